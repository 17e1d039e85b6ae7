"""
Phoenix - Database Package
==========================

SQLite-backed store for guild snapshots and delegation grants.
"""

from phoenix.core.database.manager import DatabaseManager, get_db
from phoenix.core.database.base import DATA_DIR, DB_PATH, _safe_json_loads
from phoenix.core.database.documents import QUERY_OPERATORS
from phoenix.core.database.models import GrantRecord, SnapshotSummaryRecord

__all__ = [
    "DatabaseManager",
    "get_db",
    "DATA_DIR",
    "DB_PATH",
    "_safe_json_loads",
    "QUERY_OPERATORS",
    "GrantRecord",
    "SnapshotSummaryRecord",
]
