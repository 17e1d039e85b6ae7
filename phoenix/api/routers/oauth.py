"""
Phoenix - OAuth Router
======================

Discord OAuth2 redirect endpoint for guilds.join grants.
"""

from typing import Any, Optional

import discord
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from phoenix.core.logger import logger
from phoenix.api.dependencies import get_oauth_service, get_optional_bot
from phoenix.services.oauth import OAuthError, OAuthService, parse_state


router = APIRouter(prefix="/oauth", tags=["OAuth"])


SUCCESS_PAGE = """
<html>
    <head>
        <title>Authorization Successful</title>
        <style>
            body { font-family: Arial, sans-serif; text-align: center; padding: 50px; background: #36393f; color: #ffffff; }
            .success { background: #43b581; padding: 20px; border-radius: 10px; display: inline-block; }
        </style>
    </head>
    <body>
        <div class="success">
            <h2>Authorization Successful!</h2>
            <p>You will be re-added automatically if this server has to be rebuilt.</p>
            <p>You can now close this window and return to Discord.</p>
        </div>
    </body>
</html>
"""


def _owner_of(bot: Any, guild_id: int) -> Optional[int]:
    if bot is None:
        return None
    guild = bot.get_guild(guild_id)
    return guild.owner_id if guild else None


async def _notify_user(bot: Any, user_id: int) -> None:
    """DM the member a confirmation. Failure is only logged."""
    if bot is None:
        return
    try:
        user = await bot.fetch_user(user_id)
        embed = discord.Embed(
            title="✅ Authorization Successful",
            description=(
                "You will be automatically re-added to a new server "
                "if this one is lost."
            ),
            color=0x43B581,
        )
        await user.send(embed=embed)
    except discord.HTTPException as e:
        logger.warning("Authorization DM Failed", [
            ("User ID", str(user_id)),
            ("Error", str(e)),
        ])


@router.get("/discord", response_class=HTMLResponse)
async def discord_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    oauth: OAuthService = Depends(get_oauth_service),
    bot: Any = Depends(get_optional_bot),
) -> HTMLResponse:
    """Exchange the code, verify the identity and store the grant."""
    if not code:
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Authorization code not provided")

    try:
        user_id, guild_id = parse_state(state)
    except ValueError as e:
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        tokens = await oauth.exchange_code(code)
        identity = await oauth.fetch_identity(tokens)
    except OAuthError as e:
        logger.error("OAuth2 Exchange Failed", [
            ("User ID", str(user_id)),
            ("Guild ID", str(guild_id)),
            ("Status", str(e.status)),
            ("Error", str(e)[:100]),
        ])
        raise HTTPException(status_code=HTTP_500_INTERNAL_SERVER_ERROR, detail="Authorization failed")

    if str(identity.get("id")) != str(user_id):
        logger.warning("OAuth2 Identity Mismatch", [
            ("Expected", str(user_id)),
            ("Actual", str(identity.get("id"))),
        ])
        raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="User ID mismatch")

    recorded = await oauth.record_grant(guild_id, user_id, _owner_of(bot, guild_id), tokens)
    if not recorded:
        raise HTTPException(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save authorization data",
        )

    await _notify_user(bot, user_id)

    logger.tree("Member Authorized", [
        ("User", f"{identity.get('username', 'unknown')} ({user_id})"),
        ("Guild ID", str(guild_id)),
    ], emoji="🔐")

    return HTMLResponse(SUCCESS_PAGE)


__all__ = ["router"]
