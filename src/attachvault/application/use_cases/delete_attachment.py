"""Delete a stored attachment by identity."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from attachvault.application.ports.blob_store import BlobStore
from attachvault.application.ports.hooks import AfterDeleteHook, FilenameResolver
from attachvault.application.security import SecurityGate
from attachvault.application.store_calls import call_store
from attachvault.domain.errors import StoreTransportError
from attachvault.domain.models import PermanentKeySource
from attachvault.domain.naming import permanent_key


class DeleteAttachmentUseCase:
    """Idempotent delete: an unknown identity or an absent object still succeeds."""

    def __init__(
        self,
        store: BlobStore,
        resource_type: str,
        filenames: Optional[FilenameResolver] = None,
        security: Optional[SecurityGate] = None,
        after_delete: Optional[AfterDeleteHook] = None,
        permanent_key_source: PermanentKeySource = "filename",
    ) -> None:
        if filenames is None and permanent_key_source == "filename":
            raise ValueError("a FilenameResolver is required when permanent keys use filenames")
        self.store = store
        self.resource_type = resource_type
        self.filenames = filenames
        self.security = security or SecurityGate()
        self.after_delete = after_delete
        self.permanent_key_source = permanent_key_source

    async def _target_key(self, resource_key: str, attachment_key: str) -> Optional[str]:
        if self.permanent_key_source == "attachment_key":
            return permanent_key(resource_key, attachment_key)
        filename = await self.filenames.resolve_filename(resource_key, attachment_key)
        return permanent_key(resource_key, filename) if filename else None

    async def run(self, resource_key: str, attachment_key: str) -> int:
        """Returns the status to answer with (204)."""
        await self.security.check([f"{self.resource_type}/{resource_key}"], "delete")

        key = await self._target_key(resource_key, attachment_key)
        if key is None:
            logger.info(f"No stored file for attachment {attachment_key} of {resource_key}, nothing to delete")
        else:
            logger.debug(f"Deleting file {key}")
            try:
                await call_store(self.store.delete_many, [key])
            except StoreTransportError as e:
                logger.error(f"Unable to delete file [{key}]: {e.message}")
                raise StoreTransportError("delete.failed", f"Unable to delete file [{key}]") from e

        if self.after_delete is not None:
            await self.after_delete.after_delete(resource_key, attachment_key)
        return 204
