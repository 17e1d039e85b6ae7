"""
Phoenix - Configuration Module
==============================

Centralized configuration management with environment variable validation.

DESIGN:
    This module provides a single source of truth for all configuration,
    loaded from environment variables at startup.

    Key patterns:
    - Singleton pattern via get_config() ensures one Config instance
    - Validation happens once at load time, not on every access
    - Out-of-range tuning values are clamped with a warning
"""

import os
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Bot configuration loaded from environment variables.

    Attributes:
        discord_token: Discord bot authentication token.
        oauth_client_id: OAuth2 application client ID.
        oauth_client_secret: OAuth2 application client secret.
        oauth_redirect_uri: Redirect URI registered for the OAuth2 app.
        restore_enabled: Whether joining a new guild triggers a restore.
    """

    # -------------------------------------------------------------------------
    # Required: Discord
    # -------------------------------------------------------------------------

    discord_token: str

    # -------------------------------------------------------------------------
    # Optional: OAuth2 (member re-admission)
    # -------------------------------------------------------------------------

    oauth_client_id: Optional[str] = None
    oauth_client_secret: Optional[str] = None
    oauth_redirect_uri: Optional[str] = None

    # -------------------------------------------------------------------------
    # Optional: Restore
    # -------------------------------------------------------------------------

    restore_enabled: bool = True
    structure_delay: float = 1.0    # Pause after role/channel/overwrite calls
    member_delay: float = 2.0       # Pause after each member re-admission
    grant_expiry_margin: int = 300  # Grants expiring sooner are unusable

    # -------------------------------------------------------------------------
    # Optional: Capture
    # -------------------------------------------------------------------------

    snapshot_retention: int = 3
    capture_interval_hours: int = 6
    capture_channel_exclusion: str = "none"

    # -------------------------------------------------------------------------
    # Optional: HTTP
    # -------------------------------------------------------------------------

    http_timeout: float = 15.0
    api_host: str = "0.0.0.0"
    api_port: int = 5000

    # -------------------------------------------------------------------------
    # Optional: Webhooks
    # -------------------------------------------------------------------------

    error_webhook_url: Optional[str] = None

    @property
    def oauth_enabled(self) -> bool:
        """True when every OAuth2 setting needed for the callback is present."""
        return bool(self.oauth_client_id and self.oauth_client_secret and self.oauth_redirect_uri)


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def _parse_bool(value: Optional[str], default: bool) -> bool:
    """Parse a true/false style environment value."""
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int_with_default(
    value: Optional[str],
    default: int,
    name: str,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """
    Parse optional integer with default and range validation.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).

    Returns:
        Parsed integer within valid range, or default.
    """
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        from phoenix.core.logger import logger
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    if min_val is not None and parsed < min_val:
        from phoenix.core.logger import logger
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    if max_val is not None and parsed > max_val:
        from phoenix.core.logger import logger
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return max_val
    return parsed


def _parse_float_with_default(value: Optional[str], default: float, name: str, min_val: float = 0.0) -> float:
    """Parse optional non-negative float, falling back to default."""
    if not value:
        return default
    try:
        parsed = float(value)
    except ValueError:
        from phoenix.core.logger import logger
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    if parsed < min_val:
        from phoenix.core.logger import logger
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    return parsed


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """Return the URL when it looks like http(s), otherwise None."""
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from phoenix.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Returns:
        Validated Config object with all settings.

    Raises:
        ConfigValidationError: If any required variable is missing.
    """
    discord_token = os.getenv("DISCORD_TOKEN")
    if not discord_token:
        raise ConfigValidationError("Missing required environment variables: DISCORD_TOKEN")

    from phoenix.services.backup.snapshotter import CHANNEL_EXCLUSIONS

    exclusion = (os.getenv("CAPTURE_CHANNEL_EXCLUSION") or "none").strip().lower()
    if exclusion not in CHANNEL_EXCLUSIONS:
        from phoenix.core.logger import logger
        logger.warning(f"Config CAPTURE_CHANNEL_EXCLUSION='{exclusion}' unknown, using 'none'")
        exclusion = "none"

    return Config(
        discord_token=discord_token,
        oauth_client_id=os.getenv("OAUTH2_CLIENT_ID") or None,
        oauth_client_secret=os.getenv("OAUTH2_CLIENT_SECRET") or None,
        oauth_redirect_uri=_validate_url(os.getenv("OAUTH2_REDIRECT_URI"), "OAUTH2_REDIRECT_URI"),
        restore_enabled=_parse_bool(os.getenv("RESTORE_ENABLED"), True),
        structure_delay=_parse_float_with_default(
            os.getenv("RESTORE_STRUCTURE_DELAY"), 1.0, "RESTORE_STRUCTURE_DELAY"
        ),
        member_delay=_parse_float_with_default(
            os.getenv("RESTORE_MEMBER_DELAY"), 2.0, "RESTORE_MEMBER_DELAY"
        ),
        grant_expiry_margin=_parse_int_with_default(
            os.getenv("GRANT_EXPIRY_MARGIN"), 300, "GRANT_EXPIRY_MARGIN", min_val=0, max_val=86400
        ),
        snapshot_retention=_parse_int_with_default(
            os.getenv("SNAPSHOT_RETENTION"), 3, "SNAPSHOT_RETENTION", min_val=1, max_val=100
        ),
        capture_interval_hours=_parse_int_with_default(
            os.getenv("CAPTURE_INTERVAL_HOURS"), 6, "CAPTURE_INTERVAL_HOURS", min_val=0, max_val=168
        ),
        capture_channel_exclusion=exclusion,
        http_timeout=_parse_float_with_default(os.getenv("HTTP_TIMEOUT"), 15.0, "HTTP_TIMEOUT", min_val=1.0),
        api_host=os.getenv("API_HOST", "0.0.0.0"),
        api_port=_parse_int_with_default(os.getenv("API_PORT"), 5000, "API_PORT", min_val=1, max_val=65535),
        error_webhook_url=_validate_url(os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def validate_and_log_config() -> Config:
    """Load the config (raising on invalid) and log a startup summary."""
    from phoenix.core.logger import logger

    config = get_config()

    if not config.oauth_enabled:
        logger.info("Optional config not set: OAUTH2_CLIENT_ID / OAUTH2_CLIENT_SECRET / OAUTH2_REDIRECT_URI")

    logger.tree("Configuration Validated", [
        ("Restore On Join", "Enabled" if config.restore_enabled else "Disabled"),
        ("OAuth Callback", "Enabled" if config.oauth_enabled else "Disabled"),
        ("Pacing", f"{config.structure_delay}s structure / {config.member_delay}s member"),
        ("Capture Interval", f"{config.capture_interval_hours}h" if config.capture_interval_hours else "Disabled"),
        ("Snapshot Retention", str(config.snapshot_retention)),
    ], emoji="⚙️")

    return config


__all__ = [
    "Config",
    "ConfigValidationError",
    "get_config",
    "load_config",
    "validate_and_log_config",
]
