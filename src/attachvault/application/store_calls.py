from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from attachvault.domain.errors import AttachmentError, StoreTransportError

T = TypeVar("T")


async def call_store(fn: Callable[..., T], *args: Any) -> T:
    """Run a blocking BlobStore call in a worker thread.

    Errors that are not already AttachmentErrors surface as StoreTransportError.
    """
    try:
        return await asyncio.to_thread(fn, *args)
    except AttachmentError:
        raise
    except Exception as e:
        name = getattr(fn, "__name__", "store call")
        raise StoreTransportError(message=f"{name} failed: {e}") from e


async def gather_or_raise(*aws: Awaitable[T]) -> list[T]:
    """Await every call, then raise the first failure in argument order."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results
