"""
Phoenix - Services Package
==========================

DESIGN:
    Services are standalone classes wired together in bot.py. They handle
    their own error cases and report failure through return values so a
    single bad guild or member never takes the bot down.

Available Services:
    Snapshotter / CaptureScheduler: guild capture
    Restorer / GrantResolver / Pacer: guild restoration
    OAuthService: guilds.join authorization and grant recording
"""

from .backup import CaptureScheduler, GrantResolver, Pacer, Restorer, Snapshotter
from .oauth import OAuthError, OAuthService, OAuthTokens


__all__ = [
    "CaptureScheduler",
    "GrantResolver",
    "Pacer",
    "Restorer",
    "Snapshotter",
    "OAuthError",
    "OAuthService",
    "OAuthTokens",
]
