"""Async helpers for running blocking sync work from MCP handlers."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Created at server startup; one permit means one sync at a time
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 1) -> None:
    """Create the semaphore that serialises sync operations."""
    global _semaphore
    _semaphore = asyncio.Semaphore(max_parallel)
    logger.info("Sync semaphore initialized: max_parallel=%d", max_parallel)


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking function in a worker thread.

    Use for read-only work that may overlap a running sync, such as
    ``sync_status``.

    Args:
        func: Blocking function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a blocking function in a worker thread under the semaphore.

    Unbounded if ``init_semaphore`` was never called.

    Example:
        # In an MCP tool handler:
        report = await run_sync_limited(engine.pull)
    """
    if _semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    async with _semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)
