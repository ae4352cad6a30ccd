"""Commit (rename staged objects to their permanent keys) or roll back a batch.

The store has no rename, so a commit is a copy followed by a delete for each
file. Between the two calls both objects exist; a failed copy leaves its
temporary object behind for the sweeper and does not undo sibling commits.
"""

from __future__ import annotations

import asyncio
from collections import Counter

from loguru import logger

from attachvault.application.batch import BatchContext
from attachvault.application.ports.blob_store import BlobStore
from attachvault.application.store_calls import call_store
from attachvault.domain.entities.attachment import PendingAttachment
from attachvault.domain.errors import AttachmentError
from attachvault.domain.models import AttachmentResult
from attachvault.domain.naming import IDENTITY_METADATA_KEY


async def _delete_quietly(ctx: BatchContext, store: BlobStore, keys: list[str], reason: str) -> bool:
    try:
        # shielded so an aborted request still gets its cleanup
        await asyncio.shield(call_store(store.delete_many, keys))
        return True
    except AttachmentError as e:
        logger.warning(f"[{ctx.batch_id}] {reason} failed, temporary object(s) left behind: {', '.join(keys)} ({e.message})")
        return False


async def rollback(ctx: BatchContext, store: BlobStore) -> None:
    """Delete every temporary object of the batch. Best effort, single attempt."""
    keys = ctx.temporary_keys
    if not keys:
        return
    if await _delete_quietly(ctx, store, keys, "rollback delete"):
        logger.info(f"[{ctx.batch_id}] rolled back {len(keys)} temporary object(s)")


async def _finalize_one(
    ctx: BatchContext,
    store: BlobStore,
    item: PendingAttachment,
    claims: Counter,
) -> AttachmentResult:
    source = item.file.temporary_key
    target = ctx.permanent_key_for(item)
    try:
        await call_store(store.copy, source, target, {IDENTITY_METADATA_KEY: item.attachment_key}, item.file.mime_type)
    except AttachmentError as e:
        logger.error(f"[{ctx.batch_id}] rename of {source} to {target} failed, {source} is orphaned: {e.message}")
        return AttachmentResult(status=e.status, href=item.href, error=e.to_dict())

    logger.debug(f"[{ctx.batch_id}] renamed {source} to {target}")
    if claims[source] == 1:
        await _delete_quietly(ctx, store, [source], "temporary delete")
    return AttachmentResult(href=item.href)


async def commit(ctx: BatchContext, store: BlobStore) -> list[AttachmentResult]:
    """Move every staged file to its permanent key and report one result per descriptor."""
    claims = Counter(item.file.temporary_key for item in ctx.items)
    results = await asyncio.gather(*(_finalize_one(ctx, store, item, claims) for item in ctx.items))

    failed = {item.file.temporary_key for item, result in zip(ctx.items, results) if result.status != 200}
    # files claimed twice or never claimed are removed once every rename is done
    leftovers = [key for key in ctx.temporary_keys if claims[key] != 1 and key not in failed]
    if leftovers:
        await _delete_quietly(ctx, store, leftovers, "leftover delete")

    logger.info(f"[{ctx.batch_id}] committed {len(results) - len(failed)} of {len(results)} attachment(s)")
    return list(results)
