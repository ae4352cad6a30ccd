"""Runs the caller's promotion side effect under the configured concurrency policy."""

from __future__ import annotations

import asyncio
from typing import Sequence

from loguru import logger

from attachvault.application.batch import BatchContext
from attachvault.application.ports.hooks import Promoter
from attachvault.domain.entities.attachment import PendingAttachment
from attachvault.domain.errors import PromotionError
from attachvault.domain.models import PromotionPolicy


async def _promote_group(ctx: BatchContext, promoter: Promoter, items: Sequence[PendingAttachment]) -> None:
    keys = [item.attachment_key for item in items]
    try:
        await promoter.promote(list(items))
        logger.debug(f"[{ctx.batch_id}] promoted {', '.join(keys)}")
    except Exception as e:
        logger.warning(f"[{ctx.batch_id}] promotion of {', '.join(keys)} failed: {e}")
        ctx.record_failure(PromotionError(keys, e))


async def promote(ctx: BatchContext, promoter: Promoter, policy: PromotionPolicy) -> None:
    """Promote every pending attachment, recording failures on the context.

    - grouped: one call with the whole batch
    - sequential: one call per attachment in manifest order, later ones still
      run after a failure
    - parallel: one call per attachment, all awaited together
    """
    if not ctx.items:
        return

    if policy == "grouped":
        await _promote_group(ctx, promoter, ctx.items)
    elif policy == "sequential":
        for item in ctx.items:
            await _promote_group(ctx, promoter, [item])
    elif policy == "parallel":
        await asyncio.gather(*(_promote_group(ctx, promoter, [item]) for item in ctx.items))
    else:
        raise ValueError(f"Unknown promotion policy: {policy}")
