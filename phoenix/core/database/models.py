"""
Phoenix - Database Type Definitions
===================================

TypedDict definitions for database records.
"""

from typing import Optional, TypedDict


class GrantRecord(TypedDict, total=False):
    """Type for delegation grant rows."""
    source_guild_id: int
    member_id: int
    owner_id: Optional[int]
    access_token: str
    refresh_token: Optional[str]
    token_type: str
    scope: Optional[str]
    expires_at: float
    created_at: float


class SnapshotSummaryRecord(TypedDict, total=False):
    """Type for snapshot listings (no roles/channels/members payload)."""
    id: str
    source_guild_id: int
    source_guild_name: str
    owner_id: int
    captured_at: float
    member_count: int


__all__ = [
    "GrantRecord",
    "SnapshotSummaryRecord",
]
