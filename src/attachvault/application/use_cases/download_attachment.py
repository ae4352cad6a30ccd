"""Stream a stored attachment back to the caller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

from loguru import logger

from attachvault.application.ports.blob_store import BlobStore
from attachvault.application.security import SecurityGate
from attachvault.application.store_calls import call_store
from attachvault.domain.entities.attachment import ObjectMeta, guess_mime_type
from attachvault.domain.errors import AttachmentError, NotFoundError, StoreTransportError
from attachvault.domain.models import PermanentKeySource
from attachvault.domain.naming import permanent_key, safe_filename


@dataclass
class DownloadedAttachment:
    key: str
    filename: str
    content_type: str
    size_bytes: Optional[int]
    chunks: Iterator[bytes]


def _guarded(key: str, chunks: Iterator[bytes]) -> Iterator[bytes]:
    try:
        yield from chunks
    except AttachmentError:
        raise
    except Exception as e:
        logger.error(f"Streaming {key} failed: {e}")
        raise StoreTransportError("download.failed", "unable to download the file") from e


class DownloadAttachmentUseCase:
    """Resolve ``{resource_key}-{name}`` and stream it.

    With filename keys the safe form of the filename is tried first. Objects
    stored before names were normalized live under the raw name, so a miss is
    retried once with it. With attachment-key keys ``name`` is the attachment
    key and is used as is.
    """

    def __init__(
        self,
        store: BlobStore,
        resource_type: str,
        security: Optional[SecurityGate] = None,
        permanent_key_source: PermanentKeySource = "filename",
    ) -> None:
        self.store = store
        self.resource_type = resource_type
        self.security = security or SecurityGate()
        self.permanent_key_source = permanent_key_source

    async def _head(self, key: str) -> Optional[ObjectMeta]:
        try:
            return await call_store(self.store.head, key)
        except StoreTransportError as e:
            logger.error(f"Looking up {key} failed: {e.message}")
            raise StoreTransportError("download.failed", "unable to download the file") from e

    async def _locate(self, resource_key: str, name: str) -> tuple[str, Optional[ObjectMeta]]:
        if self.permanent_key_source == "attachment_key":
            key = permanent_key(resource_key, name)
            return key, await self._head(key)

        safe = safe_filename(name)
        key = permanent_key(resource_key, safe)
        meta = await self._head(key)

        if meta is None and safe != name:
            logger.debug(f"{key} not found, retrying with the raw filename")
            key = permanent_key(resource_key, name)
            meta = await self._head(key)
        return key, meta

    async def run(self, resource_key: str, filename: str) -> DownloadedAttachment:
        await self.security.check([f"{self.resource_type}/{resource_key}"], "read")

        key, meta = await self._locate(resource_key, filename)

        if meta is None:
            raise NotFoundError(message=f"attachment {filename} not found for {resource_key}")

        try:
            chunks = await call_store(self.store.get, key)
        except NotFoundError:
            raise
        except StoreTransportError as e:
            logger.error(f"Opening {key} failed: {e.message}")
            raise StoreTransportError("download.failed", "unable to download the file") from e

        logger.debug(f"Streaming {key} ({meta.size_bytes} bytes)")
        return DownloadedAttachment(
            key=key,
            filename=filename,
            content_type=(
                meta.content_type or guess_mime_type(filename)
                if self.permanent_key_source == "attachment_key"
                else guess_mime_type(filename, meta.content_type)
            ),
            size_bytes=meta.size_bytes,
            chunks=_guarded(key, chunks),
        )
