from __future__ import annotations

from loguru import logger

from attachvault.application.batch import BatchContext
from attachvault.application.ports.blob_store import BlobStore
from attachvault.application.store_calls import call_store, gather_or_raise
from attachvault.domain.errors import ConflictError


async def check_conflicts(ctx: BatchContext, store: BlobStore) -> None:
    """Reject the batch when a direct upload would overwrite another identity's object.

    Advisory only: another writer can still create the key between this read
    and the final copy.
    """
    targets = [item for item in ctx.items if not item.descriptor.is_copy]
    if not targets:
        return

    keys = [ctx.permanent_key_for(item) for item in targets]
    metas = await gather_or_raise(*(call_store(store.head, key) for key in keys))

    for item, key, meta in zip(targets, keys, metas):
        if meta is not None and meta.attachment_key != item.attachment_key:
            logger.info(
                f"[{ctx.batch_id}] {key} belongs to attachment {meta.attachment_key}, "
                f"not {item.attachment_key}"
            )
            raise ConflictError(
                message=(
                    f"{item.file.filename} already exists for this resource. Filename has to be "
                    "unique per resource. To overwrite provide the existing file key."
                )
            )
