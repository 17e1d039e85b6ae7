"""
Phoenix - API Routers
=====================
"""

from .health import router as health_router
from .oauth import router as oauth_router


__all__ = ["health_router", "oauth_router"]
