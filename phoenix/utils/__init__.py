"""
Phoenix - Utils Package
=======================

Stateless helpers shared by services, commands and the API.
"""

from .async_utils import create_safe_task, gather_with_logging
from .discord_rate_limit import (
    HTTP_STATUS_DESCRIPTIONS,
    describe_status,
    get_status,
    is_skippable,
    log_http_error,
)
from .http import HTTPSessionManager, http_session


__all__ = [
    # Async
    "create_safe_task",
    "gather_with_logging",
    # HTTP errors
    "HTTP_STATUS_DESCRIPTIONS",
    "describe_status",
    "get_status",
    "is_skippable",
    "log_http_error",
    # HTTP
    "HTTPSessionManager",
    "http_session",
]
