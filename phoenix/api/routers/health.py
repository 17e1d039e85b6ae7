"""
Phoenix - Health Router
=======================
"""

from typing import Any

from fastapi import APIRouter, Depends

from phoenix.api.dependencies import get_optional_bot, is_oauth_enabled
from phoenix.api.models.base import APIResponse, HealthStatus


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=APIResponse[HealthStatus])
async def health_check(bot: Any = Depends(get_optional_bot)) -> APIResponse[HealthStatus]:
    """Basic health check for load balancers and monitoring."""
    return APIResponse(
        success=True,
        data=HealthStatus(
            status="ok",
            bot_connected=bool(bot and bot.is_ready()),
            guilds=len(bot.guilds) if bot else 0,
            oauth_enabled=is_oauth_enabled(),
        ),
    )


__all__ = ["router"]
