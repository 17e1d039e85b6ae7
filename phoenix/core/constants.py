"""
Phoenix - Centralized Constants
===============================

All magic numbers and constants are defined here for maintainability.
Import from this module instead of hardcoding values.
"""

# =============================================================================
# Time Constants (in seconds)
# =============================================================================

SECONDS_PER_HOUR = 3600

MS_PER_SECOND = 1000

# =============================================================================
# Database Constants
# =============================================================================

DB_CONNECTION_TIMEOUT = 30.0          # sqlite3.connect() lock wait
SQLITE_BUSY_TIMEOUT = 5000            # PRAGMA busy_timeout (ms)

# =============================================================================
# Store Collections
# =============================================================================

SNAPSHOT_COLLECTION = "server_backups"

# =============================================================================
# Discord API
# =============================================================================

DISCORD_API_BASE = "https://discord.com/api/v10"
DISCORD_AUTHORIZE_URL = "https://discord.com/api/oauth2/authorize"
OAUTH_SCOPES = "identify guilds.join"
DISCORD_TOKEN_URL = f"{DISCORD_API_BASE}/oauth2/token"

# =============================================================================
# Restore Constants
# =============================================================================

GRANT_LOOKUP_CONCURRENCY = 10         # Parallel grant reads during resolution
SKIPPABLE_HTTP_STATUSES = (403, 404)  # Forbidden / Not Found => item skipped
AUDIT_REASON = "Phoenix restore"

# =============================================================================
# Logging Limits
# =============================================================================

LOG_TRUNCATE_MEDIUM = 100


__all__ = [
    "SECONDS_PER_HOUR",
    "MS_PER_SECOND",
    "DB_CONNECTION_TIMEOUT",
    "SQLITE_BUSY_TIMEOUT",
    "SNAPSHOT_COLLECTION",
    "DISCORD_API_BASE",
    "DISCORD_AUTHORIZE_URL",
    "OAUTH_SCOPES",
    "DISCORD_TOKEN_URL",
    "GRANT_LOOKUP_CONCURRENCY",
    "SKIPPABLE_HTTP_STATUSES",
    "AUDIT_REASON",
    "LOG_TRUNCATE_MEDIUM",
]
