"""
Phoenix - Database Manager
==========================

Central SQLite store for snapshots and delegation grants.
"""

import threading
from pathlib import Path
from typing import Optional

from phoenix.core.logger import logger
from phoenix.core.database import base
from phoenix.core.database.base import DatabaseBase
from phoenix.core.database.schema import SchemaMixin
from phoenix.core.database.documents import DocumentsMixin
from phoenix.core.database.snapshots import SnapshotsMixin
from phoenix.core.database.grants import GrantsMixin


# =============================================================================
# Database Manager (Singleton)
# =============================================================================

class DatabaseManager(
    SchemaMixin,
    DocumentsMixin,
    SnapshotsMixin,
    GrantsMixin,
    DatabaseBase,
):
    """
    Centralized database manager with thread-safe operations.

    DESIGN: Singleton pattern ensures single database connection.
    Uses WAL mode for better concurrency with multiple readers.
    All operations are thread-safe via internal locking.
    """

    _instance: Optional["DatabaseManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls, db_path: Optional[Path] = None) -> "DatabaseManager":
        """Singleton pattern - only one instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, db_path: Optional[Path] = None) -> None:
        """
        Initialize database connection and tables.

        Args:
            db_path: Database file. Defaults to data/phoenix.db.
        """
        if self._initialized:
            return

        self._db_path: Path = Path(db_path) if db_path else base.DB_PATH
        self._db_lock: threading.Lock = threading.Lock()
        self._conn = None

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connect()
        self._init_tables()
        self._initialized = True

        logger.tree("Database Manager Initialized", [
            ("Path", str(self._db_path)),
            ("WAL Mode", "Enabled"),
        ], emoji="🗄️")


# =============================================================================
# Global Instance
# =============================================================================

def get_db() -> DatabaseManager:
    """Get the global database manager instance."""
    return DatabaseManager()


__all__ = ["DatabaseManager", "get_db"]
