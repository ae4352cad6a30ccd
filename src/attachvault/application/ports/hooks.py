"""Caller-supplied collaborators, injected at construction time."""

from __future__ import annotations
from typing import Any, Optional, Protocol, Sequence
from attachvault.domain.entities.attachment import PendingAttachment

class Promoter(Protocol):
    """Side effect that makes staged attachments official (e.g. a DB insert).

    Called with the whole batch under the grouped policy, otherwise with one
    attachment at a time. Raising marks the attachment(s) as failed.
    """

    async def promote(self, attachments: Sequence[PendingAttachment]) -> None: ...

class FilenameResolver(Protocol):
    # Stored filename of an attachment identity, None when unknown
    async def resolve_filename(self, resource_key: str, attachment_key: str) -> Optional[str]: ...

class AttachmentLookup(Protocol):
    async def get_attachment(self, resource_key: str, attachment_key: str) -> Optional[dict[str, Any]]: ...

class CopyResourceResolver(Protocol):
    # Resource href owning a copy source, used for the read check
    def resource_for_copy(self, file_href: str) -> str: ...

class AfterDeleteHook(Protocol):
    async def after_delete(self, resource_key: str, attachment_key: str) -> None: ...
