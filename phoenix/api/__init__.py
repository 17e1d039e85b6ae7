"""
Phoenix - API Package
=====================

FastAPI service hosting the OAuth2 redirect endpoint.

Usage with bot:
    from phoenix.api import APIService

    api_service = APIService(bot, oauth_service, host="0.0.0.0", port=5000)
    await api_service.start()

    # On shutdown
    await api_service.stop()
"""

import asyncio
from typing import TYPE_CHECKING, Any, Optional

import uvicorn

from phoenix.core.logger import logger
from phoenix.utils.async_utils import create_safe_task
from phoenix.api.app import create_app

if TYPE_CHECKING:
    from phoenix.services.oauth import OAuthService


# =============================================================================
# API Service
# =============================================================================

class APIService:
    """
    Manages the FastAPI server lifecycle within the Discord bot.

    The server runs in a background task so the bot and API share one
    event loop.
    """

    def __init__(
        self,
        bot: Any,
        oauth_service: "OAuthService",
        host: str = "0.0.0.0",
        port: int = 5000,
    ) -> None:
        self._bot = bot
        self._host = host
        self._port = port
        self._app = create_app(bot, oauth_service)
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        """Check if the API server is running."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the API server in a background task."""
        if self.is_running:
            logger.warning("API Already Running", [])
            return

        config = uvicorn.Config(
            app=self._app,
            host=self._host,
            port=self._port,
            log_level="warning",
            access_log=False,
        )

        self._server = uvicorn.Server(config)
        self._task = create_safe_task(self._run_server(), "API Server")

        logger.tree("API Service Started", [
            ("Host", self._host),
            ("Port", str(self._port)),
            ("Callback", "/oauth/discord"),
        ], emoji="🌐")

    async def _run_server(self) -> None:
        """Run the uvicorn server."""
        try:
            await self._server.serve()
        except asyncio.CancelledError:
            logger.debug("API Server Cancelled", [])
        except Exception as e:
            logger.error("API Server Error", [
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])

    async def stop(self) -> None:
        """Stop the API server gracefully."""
        if not self.is_running:
            return

        if self._server:
            self._server.should_exit = True

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=5.0)
            except asyncio.TimeoutError:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass

        self._server = None
        self._task = None

        logger.tree("API Service Stopped", [], emoji="✅")


__all__ = ["APIService", "create_app"]
