"""
Phoenix - Guild Snapshots Database Mixin
========================================

Persists guild snapshots as immutable documents.

DESIGN:
    Every capture is inserted under a fresh key
    "<source_guild_id>-<captured_at_ms>-<random suffix>" with a plain INSERT,
    so an existing snapshot is never rewritten, even by two captures in the
    same millisecond. The insert and the retention prune (oldest first,
    beyond the retention count of that source guild) share one transaction.
"""

import uuid
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from phoenix.core.constants import MS_PER_SECOND, SNAPSHOT_COLLECTION
from phoenix.core.database.models import SnapshotSummaryRecord

if TYPE_CHECKING:
    from phoenix.core.database.base import DatabaseBase
    from phoenix.core.database.manager import DatabaseManager


def _newest_first(documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Sort snapshot documents by capture time, newest first."""
    return sorted(documents, key=lambda d: d.get("captured_at") or 0, reverse=True)


def _snapshot_key(source_guild_id: int, captured_at: float) -> str:
    return f"{source_guild_id}-{int(captured_at * MS_PER_SECOND)}-{uuid.uuid4().hex[:8]}"


def _prune(tx: "DatabaseBase.Transaction", source_guild_id: int, keep: int) -> int:
    cursor = tx.execute(
        """
        DELETE FROM documents WHERE collection = ? AND doc_key IN (
            SELECT doc_key FROM documents
            WHERE collection = ? AND json_extract(body, '$.source_guild_id') = ?
            ORDER BY json_extract(body, '$.captured_at') DESC, doc_key DESC
            LIMIT -1 OFFSET ?
        )
        """,
        (SNAPSHOT_COLLECTION, SNAPSHOT_COLLECTION, source_guild_id, max(keep, 1)),
    )
    return cursor.rowcount


class SnapshotsMixin:
    """Database mixin for guild snapshot operations."""

    # =========================================================================
    # Snapshot Writes
    # =========================================================================

    def save_snapshot(
        self: "DatabaseManager",
        document: Dict[str, Any],
        retention: int = 3,
    ) -> str:
        """
        Store a new snapshot document and prune old ones.

        Args:
            document: Serialized snapshot (must carry source_guild_id and
                captured_at)
            retention: Snapshots to keep for this source guild

        Returns:
            The key the snapshot was stored under

        Raises:
            sqlite3.Error: On write failure
        """
        source_guild_id = document["source_guild_id"]
        key = _snapshot_key(source_guild_id, document["captured_at"])

        with self.transaction() as tx:
            self.insert_document(SNAPSHOT_COLLECTION, key, document, tx=tx)
            _prune(tx, source_guild_id, retention)
        return key

    def prune_snapshots(
        self: "DatabaseManager",
        source_guild_id: int,
        keep: int,
    ) -> int:
        """
        Delete snapshots of a source guild beyond the newest `keep`.

        Returns:
            Number of snapshots deleted
        """
        with self.transaction() as tx:
            return _prune(tx, source_guild_id, keep)

    # =========================================================================
    # Snapshot Retrieval
    # =========================================================================

    def get_latest_snapshot_for_owner(
        self: "DatabaseManager",
        owner_id: int,
        exclude_guild_id: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Get the most recent snapshot captured from any guild of an owner.

        Args:
            owner_id: Guild owner's user ID
            exclude_guild_id: Ignore snapshots taken from this guild (used so
                a guild is never restored onto itself)

        Returns:
            Snapshot document or None
        """
        documents = self.query_documents(SNAPSHOT_COLLECTION, "owner_id", "==", owner_id)
        if exclude_guild_id is not None:
            documents = [d for d in documents if d.get("source_guild_id") != exclude_guild_id]

        documents = _newest_first(documents)
        return documents[0] if documents else None

    def list_snapshots_for_owner(
        self: "DatabaseManager",
        owner_id: int,
    ) -> List[SnapshotSummaryRecord]:
        """List an owner's snapshots, newest first, without their payload."""
        documents = _newest_first(
            self.query_documents(SNAPSHOT_COLLECTION, "owner_id", "==", owner_id)
        )
        return [
            SnapshotSummaryRecord(
                id=d["id"],
                source_guild_id=d.get("source_guild_id"),
                source_guild_name=d.get("source_guild_name", ""),
                owner_id=d.get("owner_id"),
                captured_at=d.get("captured_at", 0.0),
                member_count=d.get("member_count", 0),
            )
            for d in documents
        ]
