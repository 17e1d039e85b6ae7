"""
Phoenix - Database Schema Module
================================

Table definitions and indexes.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from phoenix.core.database.manager import DatabaseManager


class SchemaMixin:
    """Mixin for database schema initialization."""

    def _init_tables(self: "DatabaseManager") -> None:
        """
        Initialize all database tables.

        DESIGN: Tables are created if not exist, allowing safe restarts.
        Indexes added for frequently queried columns.
        """
        conn = self._ensure_connection()
        cursor = conn.cursor()

        # -----------------------------------------------------------------
        # Documents Table
        # DESIGN: Generic collection/key JSON store. Snapshots live here.
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                collection TEXT NOT NULL,
                doc_key TEXT NOT NULL,
                body TEXT NOT NULL,
                updated_at REAL NOT NULL,
                PRIMARY KEY (collection, doc_key)
            )
        """)

        # -----------------------------------------------------------------
        # Delegation Grants Table
        # DESIGN: One row per (guild, member) authorization. Secondary
        # indexes serve lookups by member and by owner.
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS delegation_grants (
                source_guild_id INTEGER NOT NULL,
                member_id INTEGER NOT NULL,
                owner_id INTEGER,
                access_token TEXT NOT NULL,
                refresh_token TEXT,
                token_type TEXT NOT NULL DEFAULT 'Bearer',
                scope TEXT,
                expires_at REAL NOT NULL,
                created_at REAL NOT NULL,
                PRIMARY KEY (source_guild_id, member_id)
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_grants_member
            ON delegation_grants(member_id, created_at DESC)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_grants_owner
            ON delegation_grants(owner_id, member_id)
        """)

        conn.commit()
