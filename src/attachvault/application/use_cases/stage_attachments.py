"""Stage, promote and finalize a batch of attachments."""

from __future__ import annotations

from contextlib import nullcontext
from typing import Any, Optional, Sequence

from loguru import logger

from attachvault.application.batch import BatchContext, BatchOptions
from attachvault.application.conflicts import check_conflicts
from attachvault.application.finalizer import commit, rollback
from attachvault.application.locks import KeyLocks
from attachvault.application.manifest import (
    match_files_to_descriptors,
    normalize_names,
    parse_manifest,
    validate_shape,
)
from attachvault.application.ports.blob_store import BlobStore
from attachvault.application.ports.hooks import CopyResourceResolver, Promoter
from attachvault.application.promotion import promote
from attachvault.application.security import SecurityGate
from attachvault.application.staging import resolve_copies, stage_all
from attachvault.domain.entities.attachment import ReceivedFile
from attachvault.domain.models import AttachmentResult


class StageAttachmentsUseCase:
    """All-or-nothing attachment batches over a store without transactions.

    Flow:
    1. Parse and validate the manifest, match it against the received files
    2. Resolve copy sources (read check, existence)
    3. Stage every upload and copy under a fresh temporary key
    4. Optional existence/ownership check on the permanent keys
    5. Run the promotion side effect per the configured policy
    6. Authorization check on the batch's resources (``create``)
    7. All good: copy each staged object to its permanent key and delete the
       temporary one. Anything failed: delete every temporary object and raise.

    Any exception escaping steps 2-6, cancellation included, rolls back first.
    """

    def __init__(
        self,
        store: BlobStore,
        promoter: Promoter,
        security: Optional[SecurityGate] = None,
        options: Optional[BatchOptions] = None,
        copy_resources: Optional[CopyResourceResolver] = None,
        locks: Optional[KeyLocks] = None,
    ) -> None:
        self.store = store
        self.promoter = promoter
        self.security = security or SecurityGate()
        self.options = options or BatchOptions()
        self.copy_resources = copy_resources
        self.locks = locks or KeyLocks()

    async def upload(self, files: Sequence[ReceivedFile], manifest: Any) -> list[AttachmentResult]:
        """Handle a multipart upload: file parts plus the JSON manifest."""
        descriptors = validate_shape(parse_manifest(manifest))
        normalize_names(descriptors)
        items = match_files_to_descriptors(descriptors, files)

        ctx = BatchContext(options=self.options, items=items)
        logger.info(f"[{ctx.batch_id}] upload batch: {len(files)} file(s), {len(items)} attachment(s)")
        return await self._run(ctx, list(files))

    async def copy(self, manifest: Any) -> list[AttachmentResult]:
        """Handle a copy request: every entry references an existing attachment."""
        descriptors = validate_shape(parse_manifest(manifest))
        normalize_names(descriptors)
        items = match_files_to_descriptors(descriptors, [])

        ctx = BatchContext(options=self.options, items=items)
        logger.info(f"[{ctx.batch_id}] copy batch: {len(items)} attachment(s)")
        return await self._run(ctx, [])

    async def _run(self, ctx: BatchContext, uploads: list[ReceivedFile]) -> list[AttachmentResult]:
        guard = self.locks.hold(ctx.planned_keys()) if self.options.serialize_same_key_batches else nullcontext()
        async with guard:
            try:
                await self._stage_and_promote(ctx, uploads)
            except BaseException as e:
                logger.info(f"[{ctx.batch_id}] batch aborted ({type(e).__name__}), rolling back")
                await rollback(ctx, self.store)
                raise

            if ctx.failed:
                logger.info(
                    f"[{ctx.batch_id}] batch failed: {len(ctx.failures)} failure(s), "
                    f"authorized={ctx.authorization_error is None}"
                )
                await rollback(ctx, self.store)
                raise ctx.error()

            return await commit(ctx, self.store)

    async def _stage_and_promote(self, ctx: BatchContext, uploads: list[ReceivedFile]) -> None:
        await resolve_copies(ctx, self.store, self.security, self.copy_resources)
        await stage_all(ctx, self.store, uploads)

        staged = not ctx.failures
        if not staged:
            logger.warning(f"[{ctx.batch_id}] staging failed, promotion skipped")

        if staged and self.options.check_file_existence:
            await check_conflicts(ctx, self.store)

        if self.options.authorize_before_promotion:
            await self.security.capture(ctx, "create")

        if staged and not ctx.failed:
            await promote(ctx, self.promoter, self.options.promotion_policy)

        if not self.options.authorize_before_promotion:
            await self.security.capture(ctx, "create")
