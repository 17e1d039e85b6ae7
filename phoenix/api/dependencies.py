"""
Phoenix - API Dependencies
==========================

FastAPI dependency injection utilities.
"""

from typing import TYPE_CHECKING, Optional

from fastapi import HTTPException
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE

if TYPE_CHECKING:
    from phoenix.bot import PhoenixBot
    from phoenix.services.oauth import OAuthService


# =============================================================================
# Bot Reference
# =============================================================================

_bot_instance: Optional["PhoenixBot"] = None


def set_bot(bot: Optional["PhoenixBot"]) -> None:
    """Set the bot instance for dependency injection."""
    global _bot_instance
    _bot_instance = bot


def get_optional_bot() -> Optional["PhoenixBot"]:
    """The bot instance, or None when the API runs without one."""
    return _bot_instance


# =============================================================================
# OAuth Service Reference
# =============================================================================

_oauth_service: Optional["OAuthService"] = None


def set_oauth_service(service: Optional["OAuthService"]) -> None:
    global _oauth_service
    _oauth_service = service


def is_oauth_enabled() -> bool:
    return _oauth_service is not None and _oauth_service.enabled


def get_oauth_service() -> "OAuthService":
    """Get the OAuth service, or answer 503 when it is not configured."""
    if _oauth_service is None or not _oauth_service.enabled:
        raise HTTPException(
            status_code=HTTP_503_SERVICE_UNAVAILABLE,
            detail="OAuth2 is not configured",
        )
    return _oauth_service


__all__ = [
    "set_bot",
    "get_optional_bot",
    "set_oauth_service",
    "get_oauth_service",
    "is_oauth_enabled",
]
