"""
Phoenix - Discord HTTP Error Helpers
====================================

Status classification and logging for failed Discord API calls.

Usage:
    from phoenix.utils.discord_rate_limit import log_http_error, is_skippable

    try:
        await guild.create_role(name="mod")
    except discord.HTTPException as e:
        log_http_error(e, "Create Role", [("Role", "mod")])
"""

from typing import List, Optional, Tuple

import discord

from phoenix.core.constants import SKIPPABLE_HTTP_STATUSES
from phoenix.core.logger import logger


# HTTP status code descriptions for logging
HTTP_STATUS_DESCRIPTIONS = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    429: "Rate Limited",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


# =============================================================================
# Classification
# =============================================================================

def get_status(error: BaseException) -> Optional[int]:
    """HTTP status carried by an exception, if any."""
    status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def is_skippable(error: BaseException) -> bool:
    """True for permission-denied and not-found failures."""
    return get_status(error) in SKIPPABLE_HTTP_STATUSES


def describe_status(status: Optional[int]) -> str:
    """Human readable "<code> (<name>)" for a status."""
    if status is None:
        return "n/a"
    return f"{status} ({HTTP_STATUS_DESCRIPTIONS.get(status, 'Unknown')})"


# =============================================================================
# Logging Helper
# =============================================================================

def log_http_error(
    e: BaseException,
    operation: str,
    context: Optional[List[Tuple[str, str]]] = None,
) -> None:
    """
    Log a failed Discord call with status details.

    Args:
        e: The exception that occurred (discord.HTTPException or any error
            exposing a .status)
        operation: Description of what operation failed
        context: Additional context tuples for logging [(key, value), ...]
    """
    status = get_status(e)
    retry_after = getattr(e, "retry_after", None)

    if isinstance(e, discord.HTTPException) and e.text:
        message = str(e.text)
    else:
        message = str(e) or type(e).__name__

    log_items = [
        ("Status", describe_status(status)),
        ("Error", message),
    ]

    if retry_after:
        log_items.append(("Retry After", f"{retry_after:.1f}s"))

    if context:
        log_items.extend(context)

    if status == 429:
        logger.warning(f"🚦 {operation} Rate Limited", log_items)
    elif status == 403:
        logger.warning(f"🚫 {operation} Forbidden", log_items)
    elif status == 404:
        logger.warning(f"❓ {operation} Not Found", log_items)
    else:
        logger.error(f"❌ {operation} Failed", log_items)


__all__ = [
    "HTTP_STATUS_DESCRIPTIONS",
    "get_status",
    "is_skippable",
    "describe_status",
    "log_http_error",
]
