"""
Phoenix - Core Package
======================

Configuration, logging and storage shared by every service.

DESIGN:
    Core modules are singletons or global instances so every service sees
    the same state:
    - get_config() returns the same Config instance
    - get_db() returns the same DatabaseManager instance
    - logger is a global TreeLogger instance
"""

from .config import (
    Config,
    ConfigValidationError,
    get_config,
)

from .database import DatabaseManager, get_db

from .logger import logger, TreeLogger


__all__ = [
    # Config
    "Config",
    "ConfigValidationError",
    "get_config",
    # Database
    "DatabaseManager",
    "get_db",
    # Logger
    "logger",
    "TreeLogger",
]
