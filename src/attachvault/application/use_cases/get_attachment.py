from __future__ import annotations

from typing import Any, Optional

from attachvault.application.ports.hooks import AttachmentLookup
from attachvault.application.security import SecurityGate
from attachvault.domain.errors import NotFoundError


class GetAttachmentUseCase:
    """Return the caller's JSON record of one attachment after a read check."""

    def __init__(self, lookup: AttachmentLookup, resource_type: str, security: Optional[SecurityGate] = None) -> None:
        self.lookup = lookup
        self.resource_type = resource_type
        self.security = security or SecurityGate()

    async def run(self, resource_key: str, attachment_key: str) -> dict[str, Any]:
        await self.security.check([f"{self.resource_type}/{resource_key}"], "read")
        record = await self.lookup.get_attachment(resource_key, attachment_key)
        if record is None:
            raise NotFoundError(message=f"attachment {attachment_key} not found for {resource_key}")
        return record
