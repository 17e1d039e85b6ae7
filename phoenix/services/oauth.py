"""
Phoenix - OAuth2 Grant Service
==============================

Authorization links, code exchange and grant recording for members who
opt in to being re-added after a guild is lost.

DESIGN:
    The authorization state is "<user_id>_<guild_id>". After the code is
    exchanged, the token's identity must match user_id before anything is
    stored. The grant is written once per authorization, replacing any
    earlier grant of the same member in the same guild.
"""

import asyncio
import sqlite3
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Tuple
from urllib.parse import urlencode

import aiohttp

from phoenix.core.constants import (
    DISCORD_API_BASE,
    DISCORD_AUTHORIZE_URL,
    DISCORD_TOKEN_URL,
    OAUTH_SCOPES,
)
from phoenix.core.logger import logger

if TYPE_CHECKING:
    from phoenix.core.config import Config
    from phoenix.core.database import DatabaseManager


SessionProvider = Callable[[], Awaitable[aiohttp.ClientSession]]


class OAuthError(Exception):
    """Discord rejected a token exchange or identity request."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        self.status = status
        super().__init__(message)


@dataclass
class OAuthTokens:
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 0
    refresh_token: Optional[str] = None
    scope: Optional[str] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "OAuthTokens":
        if not data.get("access_token"):
            raise OAuthError("Token response has no access_token")
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type") or "Bearer",
            expires_in=int(data.get("expires_in") or 0),
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope"),
        )


# =============================================================================
# State Helpers
# =============================================================================

def build_state(user_id: int, guild_id: int) -> str:
    return f"{user_id}_{guild_id}"


def parse_state(state: Optional[str]) -> Tuple[int, int]:
    """
    Split "<user_id>_<guild_id>".

    Raises:
        ValueError: If the state is missing or malformed
    """
    if not state:
        raise ValueError("State parameter missing")

    parts = state.split("_")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError("Invalid state parameter")

    return int(parts[0]), int(parts[1])


# =============================================================================
# OAuth Service
# =============================================================================

class OAuthService:
    """Handles the guilds.join authorization flow."""

    def __init__(
        self,
        config: "Config",
        db: "DatabaseManager",
        session_provider: SessionProvider,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.db = db
        self._get_session = session_provider
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self.config.oauth_enabled

    def build_authorize_url(self, user_id: int, guild_id: int) -> str:
        """Authorization link for a member of a guild."""
        params = {
            "client_id": self.config.oauth_client_id,
            "redirect_uri": self.config.oauth_redirect_uri,
            "response_type": "code",
            "scope": OAUTH_SCOPES,
            "state": build_state(user_id, guild_id),
        }
        return f"{DISCORD_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        """
        Exchange an authorization code for tokens.

        Raises:
            OAuthError: On a non-200 response or transport failure
        """
        form = {
            "client_id": self.config.oauth_client_id,
            "client_secret": self.config.oauth_client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.oauth_redirect_uri,
            "scope": OAUTH_SCOPES,
        }

        session = await self._get_session()
        try:
            async with session.post(DISCORD_TOKEN_URL, data=form) as resp:
                if resp.status != 200:
                    raise OAuthError(f"Token exchange failed: {await resp.text()}", resp.status)
                return OAuthTokens.from_response(await resp.json())
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise OAuthError(f"Token exchange failed: {type(e).__name__}") from e

    async def fetch_identity(self, tokens: OAuthTokens) -> Dict[str, Any]:
        """
        Fetch the user the tokens belong to.

        Raises:
            OAuthError: On a non-200 response or transport failure
        """
        headers = {"Authorization": f"{tokens.token_type} {tokens.access_token}"}

        session = await self._get_session()
        try:
            async with session.get(f"{DISCORD_API_BASE}/users/@me", headers=headers) as resp:
                if resp.status != 200:
                    raise OAuthError(f"Identity lookup failed: {await resp.text()}", resp.status)
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise OAuthError(f"Identity lookup failed: {type(e).__name__}") from e

    async def record_grant(
        self,
        guild_id: int,
        user_id: int,
        owner_id: Optional[int],
        tokens: OAuthTokens,
    ) -> bool:
        """Persist the grant. Returns False when the store write fails."""
        now = self._clock()
        try:
            await asyncio.to_thread(
                self.db.save_grant,
                guild_id,
                user_id,
                tokens.access_token,
                now + tokens.expires_in,
                tokens.refresh_token,
                tokens.token_type,
                tokens.scope,
                owner_id,
                now,
            )
        except sqlite3.Error as e:
            logger.error("Grant Save Failed", [
                ("User ID", str(user_id)),
                ("Guild ID", str(guild_id)),
                ("Error", str(e)),
            ])
            return False

        logger.tree("Grant Recorded", [
            ("User ID", str(user_id)),
            ("Guild ID", str(guild_id)),
            ("Owner ID", str(owner_id) if owner_id else "Unknown"),
            ("Expires In", f"{tokens.expires_in}s"),
        ], emoji="🔐")
        return True


__all__ = [
    "OAuthError",
    "OAuthTokens",
    "OAuthService",
    "SessionProvider",
    "build_state",
    "parse_state",
]
