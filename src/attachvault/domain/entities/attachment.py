from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, BinaryIO, Mapping, Optional

from attachvault.domain.naming import IDENTITY_METADATA_KEY, safe_filename, temporary_key

if TYPE_CHECKING:
    from attachvault.domain.models import AttachmentDescriptor


@dataclass(frozen=True)
class ObjectMeta:
    key: str
    etag: Optional[str] = None
    size_bytes: Optional[int] = None
    content_type: Optional[str] = None

    # User metadata as stored (S3 lower-cases the names)
    metadata: Mapping[str, str] = field(default_factory=dict)

    @property
    def attachment_key(self) -> Optional[str]:
        return self.metadata.get(IDENTITY_METADATA_KEY)


def guess_mime_type(filename: str, declared: Optional[str] = None) -> str:
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or declared or "application/octet-stream"


@dataclass
class ReceivedFile:
    """A file that is (or will be) staged under a temporary key.

    Direct uploads carry a ``stream``; server-side copies carry a
    ``copy_source_key`` instead. ``content_hash`` and ``size_bytes`` are
    filled from the store once staging completes.
    """

    filename: str
    original_filename: str
    mime_type: str
    temporary_key: str
    stream: Optional[BinaryIO] = field(default=None, repr=False)
    copy_source_key: Optional[str] = None
    content_hash: Optional[str] = None
    size_bytes: Optional[int] = None

    @classmethod
    def from_upload(
        cls,
        filename: str,
        stream: BinaryIO,
        mime_type: Optional[str] = None,
    ) -> ReceivedFile:
        """Wrap an incoming multipart file part, assigning a fresh temporary key."""
        safe = safe_filename(filename)
        return cls(
            filename=safe,
            original_filename=filename,
            mime_type=guess_mime_type(safe, mime_type),
            temporary_key=temporary_key(safe),
            stream=stream,
        )

    @classmethod
    def for_copy(cls, filename: str, source_key: str) -> ReceivedFile:
        return cls(
            filename=filename,
            original_filename=filename,
            mime_type=guess_mime_type(filename),
            temporary_key=temporary_key(filename),
            copy_source_key=source_key,
        )

    @property
    def is_copy(self) -> bool:
        return self.copy_source_key is not None

    def record_stored(self, meta: ObjectMeta) -> None:
        self.content_hash = meta.etag
        self.size_bytes = meta.size_bytes


@dataclass
class PendingAttachment:
    """One manifest entry paired with the staged file it will be finalized from."""

    descriptor: AttachmentDescriptor
    file: Optional[ReceivedFile] = None

    @property
    def attachment_key(self) -> str:
        return self.descriptor.attachment.key

    @property
    def resource_href(self) -> str:
        return self.descriptor.resource.href

    @property
    def href(self) -> str:
        return f"{self.descriptor.resource.href}/attachments/{self.descriptor.attachment.key}"
