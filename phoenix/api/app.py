"""
Phoenix - FastAPI Application
=============================

FastAPI application factory for the OAuth2 callback service.
"""

from typing import TYPE_CHECKING, Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from phoenix.core.logger import logger
from phoenix.api.dependencies import set_bot, set_oauth_service
from phoenix.api.routers import health_router, oauth_router

if TYPE_CHECKING:
    from phoenix.services.oauth import OAuthService


def create_app(
    bot: Optional[Any] = None,
    oauth_service: Optional["OAuthService"] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        bot: Optional Discord bot instance (owner lookup and DMs)
        oauth_service: Service handling code exchange and grant storage

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Phoenix OAuth",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    set_bot(bot)
    set_oauth_service(oauth_service)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions with a consistent error format."""
        logger.error("Unhandled API Error", [
            ("Path", str(request.url.path)[:50]),
            ("Method", request.method),
            ("Error Type", type(exc).__name__),
            ("Error", str(exc)[:100]),
        ])
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Internal server error"},
        )

    app.include_router(health_router)
    app.include_router(oauth_router)

    return app


__all__ = ["create_app"]
