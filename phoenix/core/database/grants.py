"""
Phoenix - Delegation Grants Database Mixin
==========================================

Stores OAuth2 grants that allow re-adding a member to a new guild.

DESIGN:
    One row per (source guild, member). The member_id and owner_id indexes
    let a grant be found after the guild it was issued in is gone. Expired
    rows are kept; callers filter on expires_at at read time.
"""

import time
from typing import TYPE_CHECKING, List, Optional

from phoenix.core.database.models import GrantRecord

if TYPE_CHECKING:
    from phoenix.core.database.manager import DatabaseManager


_GRANT_COLUMNS = """
    source_guild_id, member_id, owner_id, access_token, refresh_token,
    token_type, scope, expires_at, created_at
"""


def _to_record(row) -> GrantRecord:
    """Convert a sqlite3.Row to a GrantRecord."""
    return GrantRecord(
        source_guild_id=row["source_guild_id"],
        member_id=row["member_id"],
        owner_id=row["owner_id"],
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        token_type=row["token_type"],
        scope=row["scope"],
        expires_at=row["expires_at"],
        created_at=row["created_at"],
    )


class GrantsMixin:
    """Database mixin for delegation grant operations."""

    # =========================================================================
    # Grant Writes
    # =========================================================================

    def save_grant(
        self: "DatabaseManager",
        source_guild_id: int,
        member_id: int,
        access_token: str,
        expires_at: float,
        refresh_token: Optional[str] = None,
        token_type: str = "Bearer",
        scope: Optional[str] = None,
        owner_id: Optional[int] = None,
        created_at: Optional[float] = None,
    ) -> None:
        """
        Insert or replace the grant for a member in a guild.

        A later authorization replaces the earlier one. A known owner_id is
        never overwritten with an unknown one.

        Args:
            source_guild_id: Guild the member authorized from
            member_id: Discord user ID
            access_token: OAuth2 access token
            expires_at: Unix timestamp the access token stops working
            refresh_token: OAuth2 refresh token
            token_type: Token type (usually "Bearer")
            scope: Granted scopes
            owner_id: Owner of source_guild_id, if known
            created_at: Authorization time (defaults to now)

        Raises:
            sqlite3.Error: On write failure
        """
        self.execute(
            f"""
            INSERT INTO delegation_grants ({_GRANT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(source_guild_id, member_id) DO UPDATE SET
                owner_id = COALESCE(excluded.owner_id, delegation_grants.owner_id),
                access_token = excluded.access_token,
                refresh_token = excluded.refresh_token,
                token_type = excluded.token_type,
                scope = excluded.scope,
                expires_at = excluded.expires_at,
                created_at = excluded.created_at
            """,
            (
                source_guild_id, member_id, owner_id, access_token, refresh_token,
                token_type, scope, expires_at,
                created_at if created_at is not None else time.time(),
            ),
        )

    # =========================================================================
    # Grant Lookups
    # =========================================================================

    def get_grant(
        self: "DatabaseManager",
        source_guild_id: int,
        member_id: int,
    ) -> Optional[GrantRecord]:
        """Primary-key lookup of a member's grant for one guild."""
        row = self.fetchone(
            f"""
            SELECT {_GRANT_COLUMNS} FROM delegation_grants
            WHERE source_guild_id = ? AND member_id = ?
            """,
            (source_guild_id, member_id),
        )
        return _to_record(row) if row else None

    def get_grants_for_member(
        self: "DatabaseManager",
        member_id: int,
    ) -> List[GrantRecord]:
        """All grants of a member across guilds, newest first."""
        rows = self.fetchall(
            f"""
            SELECT {_GRANT_COLUMNS} FROM delegation_grants
            WHERE member_id = ?
            ORDER BY created_at DESC
            """,
            (member_id,),
        )
        return [_to_record(row) for row in rows]

    def get_grants_for_owner(
        self: "DatabaseManager",
        owner_id: int,
        member_id: Optional[int] = None,
    ) -> List[GrantRecord]:
        """
        Grants issued in guilds owned by owner_id, newest first.

        Args:
            owner_id: Guild owner's user ID
            member_id: Optionally restrict to one member
        """
        if member_id is None:
            rows = self.fetchall(
                f"""
                SELECT {_GRANT_COLUMNS} FROM delegation_grants
                WHERE owner_id = ?
                ORDER BY created_at DESC
                """,
                (owner_id,),
            )
        else:
            rows = self.fetchall(
                f"""
                SELECT {_GRANT_COLUMNS} FROM delegation_grants
                WHERE owner_id = ? AND member_id = ?
                ORDER BY created_at DESC
                """,
                (owner_id, member_id),
            )
        return [_to_record(row) for row in rows]

    def count_grants_for_guild(
        self: "DatabaseManager",
        source_guild_id: int,
    ) -> int:
        """Number of members who authorized from a guild."""
        row = self.fetchone(
            "SELECT COUNT(*) AS total FROM delegation_grants WHERE source_guild_id = ?",
            (source_guild_id,),
        )
        return row["total"] if row else 0
