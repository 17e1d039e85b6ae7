"""
Phoenix - Async Utilities
=========================

Utilities for handling async operations with proper error logging.

Usage:
    from phoenix.utils.async_utils import create_safe_task, gather_with_logging

    create_safe_task(self._capture_loop(), "Capture Loop")

    await gather_with_logging(
        ("Restore", restorer.restore(guild)),
        ("Capture", snapshotter.capture(guild)),
    )
"""

import asyncio
from typing import Any, Coroutine, List, Optional, Tuple

from phoenix.core.constants import LOG_TRUNCATE_MEDIUM
from phoenix.core.logger import logger


async def gather_with_logging(
    *operations: Tuple[str, Coroutine[Any, Any, Any]],
    context: Optional[str] = None,
) -> List[Any]:
    """
    Run multiple async operations concurrently with error logging.

    Unlike asyncio.gather with return_exceptions=True, failures are logged
    instead of silently returned.

    Args:
        *operations: Tuples of (operation_name, coroutine).
        context: Optional context string for error logs.

    Returns:
        List of results (including exceptions as values, not raised).
    """
    names = [name for name, _ in operations]
    coros = [coro for _, coro in operations]

    results = await asyncio.gather(*coros, return_exceptions=True)

    for i, result in enumerate(results):
        if isinstance(result, Exception):
            error_details = [
                ("Operation", names[i]),
                ("Error Type", type(result).__name__),
                ("Error", str(result)[:LOG_TRUNCATE_MEDIUM]),
            ]
            if context:
                error_details.insert(0, ("Context", context))

            logger.warning("Async Operation Failed", error_details)

    return results


# =============================================================================
# Safe Background Tasks
# =============================================================================

def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: str = "Background Task",
) -> asyncio.Task:
    """
    Create a background task with automatic error logging.

    Args:
        coro: The coroutine to run as a background task.
        name: Name for logging purposes.

    Returns:
        The created asyncio.Task.
    """
    async def wrapped():
        try:
            await coro
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("Background Task Failed", [
                ("Task", name),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:200]),
            ])

    return asyncio.create_task(wrapped())


__all__ = [
    "gather_with_logging",
    "create_safe_task",
]
