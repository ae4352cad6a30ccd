"""Copy resolution and staging of files under temporary keys."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from loguru import logger

from attachvault.application.batch import BatchContext
from attachvault.application.ports.blob_store import BlobStore
from attachvault.application.ports.hooks import CopyResourceResolver
from attachvault.application.security import SecurityGate
from attachvault.application.store_calls import call_store, gather_or_raise
from attachvault.domain.entities.attachment import ReceivedFile
from attachvault.domain.errors import AttachmentError, NotFoundError, StoreTransportError
from attachvault.domain.naming import IDENTITY_METADATA_KEY, copy_filename, copy_source_key


async def resolve_copies(
    ctx: BatchContext,
    store: BlobStore,
    security: SecurityGate,
    copy_resources: Optional[CopyResourceResolver] = None,
) -> None:
    """Attach a to-be-copied file to every copy descriptor of the batch.

    Sources that do not exist drop their descriptor when it is marked
    ``ignoreNotFound``, otherwise the whole batch fails.
    """
    copies = [item for item in ctx.items if item.descriptor.is_copy]
    if not copies:
        return

    logger.debug(f"[{ctx.batch_id}] resolving {len(copies)} copy source(s)")
    for item in copies:
        href = item.descriptor.file_href
        item.file = ReceivedFile.for_copy(copy_filename(href), copy_source_key(href))

    if copy_resources is not None:
        resources = [copy_resources.resource_for_copy(item.descriptor.file_href) for item in copies]
        await security.check(resources, "read")

    metas = await gather_or_raise(*(call_store(store.head, item.file.copy_source_key) for item in copies))

    dropped = set()
    for item, meta in zip(copies, metas):
        if meta is not None:
            item.file.record_stored(meta)
            continue
        if item.descriptor.ignore_not_found:
            logger.info(f"[{ctx.batch_id}] copy source {item.file.copy_source_key} not found, skipped")
            dropped.add(id(item))
            continue
        raise NotFoundError(
            "file.to.copy.not.found",
            "One or more of the files to copy can not be found",
            status=409,
        )

    if dropped:
        ctx.items = [item for item in ctx.items if id(item) not in dropped]


async def _stage_one(ctx: BatchContext, store: BlobStore, file: ReceivedFile, identity: Optional[str]) -> None:
    try:
        if file.is_copy:
            metadata = {IDENTITY_METADATA_KEY: identity} if identity else {}
            await call_store(store.copy, file.copy_source_key, file.temporary_key, metadata, file.mime_type)
        else:
            await call_store(store.put, file.temporary_key, file.stream, file.mime_type)

        # the store is the source of truth for hash and size
        meta = await call_store(store.head, file.temporary_key)
        if meta is None:
            raise StoreTransportError(message=f"{file.temporary_key} is missing right after staging")
        file.record_stored(meta)
        logger.debug(f"[{ctx.batch_id}] staged {file.filename} as {file.temporary_key} ({file.size_bytes} bytes)")
    except AttachmentError as e:
        logger.error(f"[{ctx.batch_id}] staging {file.filename} failed: {e.message}")
        ctx.record_failure(e)


async def stage_all(ctx: BatchContext, store: BlobStore, uploads: Sequence[ReceivedFile]) -> None:
    """Write every upload and copy of the batch to its temporary key.

    Failures are recorded on the context, never raised, so every independent
    write is attempted. Cancellation waits for in-flight writes to land so a
    rollback afterwards sees every object that was created.
    """
    jobs: list[tuple[ReceivedFile, Optional[str]]] = [(f, None) for f in uploads]
    jobs += [(item.file, item.attachment_key) for item in ctx.items if item.descriptor.is_copy]
    if not jobs:
        return

    # registered before any write so rollback always knows the keys
    ctx.files.extend(f for f, _ in jobs)

    staging = asyncio.ensure_future(asyncio.gather(*(_stage_one(ctx, store, f, identity) for f, identity in jobs)))
    try:
        await asyncio.shield(staging)
    except asyncio.CancelledError:
        await asyncio.wait({staging})
        raise
