"""
Phoenix - Documents Database Mixin
==================================

Generic collection/key document storage on top of SQLite.

DESIGN:
    Documents are JSON bodies addressed by (collection, key). Field queries
    run through json_extract so any top-level field can be filtered without
    a dedicated column. Supported operators are equality, greater-than and
    less-than.
"""

import json
import re
import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from phoenix.core.database.base import _safe_json_loads

if TYPE_CHECKING:
    from phoenix.core.database.base import DatabaseBase
    from phoenix.core.database.manager import DatabaseManager


# =============================================================================
# Constants
# =============================================================================

QUERY_OPERATORS = {
    "==": "=",
    ">": ">",
    "<": "<",
}
"""Public operator -> SQL operator."""

_FIELD_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DocumentsMixin:
    """Database mixin for generic document operations."""

    def put_document(
        self: "DatabaseManager",
        collection: str,
        key: str,
        document: Dict[str, Any],
    ) -> None:
        """
        Insert or replace a document.

        Args:
            collection: Collection name
            key: Document key, unique within the collection
            document: JSON-serializable body

        Raises:
            sqlite3.Error: On write failure
        """
        self.execute(
            """
            INSERT INTO documents (collection, doc_key, body, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(collection, doc_key) DO UPDATE SET
                body = excluded.body,
                updated_at = excluded.updated_at
            """,
            (collection, key, json.dumps(document), time.time()),
        )

    def insert_document(
        self: "DatabaseManager",
        collection: str,
        key: str,
        document: Dict[str, Any],
        tx: Optional["DatabaseBase.Transaction"] = None,
    ) -> None:
        """
        Insert a document that must not exist yet.

        Args:
            collection: Collection name
            key: Document key, unique within the collection
            document: JSON-serializable body
            tx: Run inside this open transaction instead of committing

        Raises:
            sqlite3.IntegrityError: If the key is already taken
        """
        query = "INSERT INTO documents (collection, doc_key, body, updated_at) VALUES (?, ?, ?, ?)"
        params = (collection, key, json.dumps(document), time.time())
        if tx is not None:
            tx.execute(query, params)
        else:
            self.execute(query, params)

    def get_document(
        self: "DatabaseManager",
        collection: str,
        key: str,
    ) -> Optional[Dict[str, Any]]:
        """Get a document by key, or None if it does not exist."""
        row = self.fetchone(
            "SELECT body FROM documents WHERE collection = ? AND doc_key = ?",
            (collection, key),
        )
        if not row:
            return None
        return _safe_json_loads(row["body"], default={})

    def delete_document(
        self: "DatabaseManager",
        collection: str,
        key: str,
    ) -> bool:
        """
        Delete a document.

        Returns:
            True if a document was removed
        """
        cursor = self.execute(
            "DELETE FROM documents WHERE collection = ? AND doc_key = ?",
            (collection, key),
        )
        return cursor.rowcount > 0

    def query_documents(
        self: "DatabaseManager",
        collection: str,
        field: str,
        operator: str,
        value: Any,
    ) -> List[Dict[str, Any]]:
        """
        Query documents by a top-level field.

        Each returned document carries its key under "id", mirroring how the
        documents are addressed.

        Args:
            collection: Collection name
            field: Top-level JSON field name
            operator: One of "==", ">", "<"
            value: Value to compare against

        Returns:
            Matching documents, in key order

        Raises:
            ValueError: On an unknown operator or malformed field name
        """
        sql_op = QUERY_OPERATORS.get(operator)
        if sql_op is None:
            raise ValueError(f"Unsupported query operator: {operator}")
        if not _FIELD_PATTERN.match(field):
            raise ValueError(f"Invalid document field: {field}")

        rows = self.fetchall(
            f"""
            SELECT doc_key, body FROM documents
            WHERE collection = ? AND json_extract(body, ?) {sql_op} ?
            ORDER BY doc_key
            """,
            (collection, f"$.{field}", value),
        )

        results = []
        for row in rows:
            body = _safe_json_loads(row["body"], default={})
            body["id"] = row["doc_key"]
            results.append(body)
        return results
