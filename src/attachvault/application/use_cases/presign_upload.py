"""Hand out a presigned POST so clients can upload straight to the bucket."""

from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from attachvault.application.ports.blob_store import UploadSigner
from attachvault.application.security import SecurityGate
from attachvault.application.store_calls import call_store
from attachvault.domain.errors import StoreTransportError
from attachvault.domain.naming import presigned_upload_key


class PresignUploadUseCase:
    """Returns ``{"url": ..., "fields": {...}}`` for a fresh ``tmp`` prefixed key.

    Objects uploaded this way are not tracked by any batch.
    """

    def __init__(self, signer: UploadSigner, resource_type: str, security: Optional[SecurityGate] = None) -> None:
        self.signer = signer
        self.resource_type = resource_type
        self.security = security or SecurityGate()

    async def run(self) -> dict[str, Any]:
        await self.security.check([self.resource_type], "create")

        key = presigned_upload_key()
        try:
            form = await call_store(self.signer.presigned_post, key)
        except StoreTransportError as e:
            logger.error(f"Presigning {key} failed: {e.message}")
            raise StoreTransportError("presign.failed", "unable to presign an upload") from e

        logger.debug(f"Presigned upload for {key}")
        return form
