"""
Phoenix - Test Fixtures
=======================

Shared fixtures for all tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

# Set up test environment before importing modules
os.environ["TESTING"] = "1"
os.environ.setdefault("PHOENIX_LOG_DIR", tempfile.mkdtemp(prefix="phoenix-logs-"))

import discord  # noqa: E402

from phoenix.services.backup.destination import Destination  # noqa: E402
from phoenix.services.backup.models import (  # noqa: E402
    ChannelKind,
    ChannelSpec,
    MemberSnapshot,
    Overwrite,
    RoleSpec,
    Snapshot,
    TargetKind,
)
from phoenix.services.backup.pacer import Pacer  # noqa: E402


SOURCE_GUILD_ID = 1000
DEST_GUILD_ID = 2000
OWNER_ID = 42


def http_error(status: int, message: str = "error") -> discord.HTTPException:
    """Build the discord.py exception Discord would raise for a status."""
    response = MagicMock(status=status, reason=message)
    if status == 403:
        return discord.Forbidden(response, message)
    if status == 404:
        return discord.NotFound(response, message)
    return discord.HTTPException(response, message)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path for testing."""
    return tmp_path / "test_phoenix.db"


@pytest.fixture
def test_db(temp_db_path, monkeypatch):
    """Create a fresh test database instance."""
    from phoenix.core.database import base
    from phoenix.core.database.manager import DatabaseManager

    DatabaseManager._instance = None
    monkeypatch.setattr(base, "DATA_DIR", temp_db_path.parent)
    monkeypatch.setattr(base, "DB_PATH", temp_db_path)

    db = DatabaseManager(temp_db_path)
    yield db

    db.close()
    DatabaseManager._instance = None


# =============================================================================
# Recording Destination
# =============================================================================

class RecordingDestination(Destination):
    """
    In-memory destination that records every call in order.

    New ids are handed out from 9001 upwards. fail_on() makes one call
    raise instead of succeeding.
    """

    def __init__(self, guild_id: int = DEST_GUILD_ID) -> None:
        self.id = guild_id
        self.calls: List[Tuple[str, Any]] = []
        self.roles: Dict[int, RoleSpec] = {}
        self.channels: Dict[int, Tuple[ChannelSpec, Optional[int]]] = {}
        self.overwrites: List[Tuple[int, int, TargetKind, int, int]] = []
        self.members: Dict[int, str] = {}
        self.member_roles: List[Tuple[int, int]] = []
        self.existing_members: set = set()
        self._failures: Dict[Tuple[str, Any], Exception] = {}
        self._next_id = 9000

    def fail_on(self, operation: str, key: Any, error: Exception) -> None:
        self._failures[(operation, key)] = error

    def _check(self, operation: str, key: Any) -> None:
        self.calls.append((operation, key))
        error = self._failures.get((operation, key))
        if error is not None:
            raise error

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def names(self, operation: str) -> List[Any]:
        return [key for op, key in self.calls if op == operation]

    async def create_role(self, spec: RoleSpec) -> int:
        self._check("create_role", spec.name)
        new_id = self._new_id()
        self.roles[new_id] = spec
        return new_id

    async def create_category(self, spec: ChannelSpec) -> int:
        self._check("create_category", spec.name)
        new_id = self._new_id()
        self.channels[new_id] = (spec, None)
        return new_id

    async def create_channel(self, spec: ChannelSpec, parent_id: Optional[int]) -> int:
        self._check("create_channel", spec.name)
        new_id = self._new_id()
        self.channels[new_id] = (spec, parent_id)
        return new_id

    async def create_overwrite(self, channel_id, target_id, target_kind, allow, deny) -> None:
        self._check("create_overwrite", (channel_id, target_id))
        self.overwrites.append((channel_id, target_id, target_kind, allow, deny))

    async def add_member(self, member_id: int, access_token: str) -> bool:
        self._check("add_member", member_id)
        if member_id in self.existing_members:
            return False
        self.members[member_id] = access_token
        return True

    async def fetch_member(self, member_id: int) -> Any:
        self._check("fetch_member", member_id)
        return MagicMock(id=member_id)

    async def add_member_role(self, member_id: int, role_id: int) -> None:
        self._check("add_member_role", (member_id, role_id))
        self.member_roles.append((member_id, role_id))


@pytest.fixture
def destination():
    """Fresh recording destination."""
    return RecordingDestination()


@pytest.fixture
def pacer():
    """Pacer that never sleeps but still counts calls."""
    return Pacer(structure_delay=0, member_delay=0)


# =============================================================================
# Snapshot Fixtures
# =============================================================================

def make_snapshot(**overrides) -> Snapshot:
    """
    Snapshot of a small community guild.

    Roles: mod (pos 1), admin (pos 2). Category "Info" (pos 0) holds
    "rules" (pos 1), which denies send_messages to @everyone and allows
    it to mod.
    """
    rules = ChannelSpec(
        id=301,
        name="rules",
        kind=ChannelKind.TEXT,
        position=1,
        parent_id=300,
        topic="Read me",
        overwrites=[
            Overwrite(SOURCE_GUILD_ID, TargetKind.ROLE, allow=0, deny=2048),
            Overwrite(101, TargetKind.ROLE, allow=2048, deny=0),
        ],
    )
    data = dict(
        owner_id=OWNER_ID,
        source_guild_id=SOURCE_GUILD_ID,
        source_guild_name="Old Guild",
        captured_at=1_700_000_000.0,
        roles=[
            RoleSpec(101, "mod", color=0x00FF00, permissions=8192, position=1),
            RoleSpec(102, "admin", color=0xFF0000, permissions=8, position=2, hoist=True),
        ],
        channels=[
            ChannelSpec(300, "Info", ChannelKind.CATEGORY, position=0),
            rules,
        ],
        members=[],
    )
    data.update(overrides)
    return Snapshot(**data)


@pytest.fixture
def snapshot():
    return make_snapshot()


@pytest.fixture
def member_snapshot():
    return MemberSnapshot(
        id=555,
        username="alice",
        display_name="Alice",
        role_ids=[101, 102],
    )
