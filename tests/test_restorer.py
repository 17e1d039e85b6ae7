"""
Phoenix - Restorer Tests
========================

Tests for phase ordering, id remapping and per-item outcome handling.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import (
    DEST_GUILD_ID,
    OWNER_ID,
    SOURCE_GUILD_ID,
    http_error,
    make_snapshot,
)
from phoenix.services.backup.grants import GrantResolver
from phoenix.services.backup.models import (
    ChannelKind,
    ChannelSpec,
    ItemStatus,
    MemberSnapshot,
    Overwrite,
    RestoreReport,
    RoleSpec,
    TargetKind,
)
from phoenix.services.backup.pacer import Pacer
from phoenix.services.backup.restorer import Restorer


NOW = 1_700_000_000.0


@pytest.fixture
def restorer(test_db, pacer):
    return Restorer(test_db, GrantResolver(test_db, clock=lambda: NOW), pacer)


def _results(report, kind):
    return [r for r in report.results if r.kind == kind]


# =============================================================================
# Structure Phases
# =============================================================================

class TestStructureRestore:
    """Tests for roles, categories, channels and overwrites."""

    @pytest.mark.asyncio
    async def test_calls_in_phase_order(self, restorer, destination, snapshot):
        await restorer.apply(destination, snapshot)

        assert destination.calls == [
            ("create_role", "mod"),
            ("create_role", "admin"),
            ("create_category", "Info"),
            ("create_channel", "rules"),
            ("create_overwrite", (9004, DEST_GUILD_ID)),
            ("create_overwrite", (9004, 9001)),
        ]

    @pytest.mark.asyncio
    async def test_report_counts(self, restorer, destination, snapshot):
        report = await restorer.apply(destination, snapshot)

        assert report.roles_created == 2
        assert report.channels_created == 2
        assert report.overwrites_created == 2
        assert report.failed == []
        assert report.skipped == []
        assert report.source_guild_id == SOURCE_GUILD_ID
        assert report.source_guild_name == "Old Guild"

    @pytest.mark.asyncio
    async def test_channel_parent_remapped(self, restorer, destination, snapshot):
        await restorer.apply(destination, snapshot)

        spec, parent_id = destination.channels[9004]
        assert spec.name == "rules"
        assert parent_id == 9003

    @pytest.mark.asyncio
    async def test_overwrite_targets_remapped(self, restorer, destination, snapshot):
        await restorer.apply(destination, snapshot)

        assert destination.overwrites == [
            (9004, DEST_GUILD_ID, TargetKind.ROLE, 0, 2048),
            (9004, 9001, TargetKind.ROLE, 2048, 0),
        ]

    @pytest.mark.asyncio
    async def test_roles_created_in_ascending_position(self, restorer, destination):
        snapshot = make_snapshot(
            roles=[
                RoleSpec(103, "top", position=3),
                RoleSpec(101, "bottom", position=1),
                RoleSpec(102, "middle", position=2),
            ],
            channels=[],
        )
        await restorer.apply(destination, snapshot)

        assert destination.names("create_role") == ["bottom", "middle", "top"]

    @pytest.mark.asyncio
    async def test_category_created_before_children(self, restorer, destination):
        snapshot = make_snapshot(
            roles=[],
            channels=[
                ChannelSpec(11, "early-child", ChannelKind.TEXT, position=0, parent_id=10),
                ChannelSpec(10, "Late Category", ChannelKind.CATEGORY, position=5),
            ],
        )
        await restorer.apply(destination, snapshot)

        assert [op for op, _ in destination.calls] == ["create_category", "create_channel"]
        assert destination.channels[9002][1] == 9001

    @pytest.mark.asyncio
    async def test_member_overwrite_keeps_user_id(self, restorer, destination):
        snapshot = make_snapshot(
            roles=[],
            channels=[
                ChannelSpec(
                    20, "private", ChannelKind.TEXT,
                    overwrites=[Overwrite(777, TargetKind.MEMBER, allow=1024)],
                ),
            ],
        )
        report = await restorer.apply(destination, snapshot)

        assert destination.overwrites == [(9001, 777, TargetKind.MEMBER, 1024, 0)]
        assert report.overwrites_created == 1

    @pytest.mark.asyncio
    async def test_pacer_runs_after_every_mutation(self, test_db, destination, snapshot):
        sleep = AsyncMock()
        pacer = Pacer(structure_delay=1.0, member_delay=2.0, sleep=sleep)
        restorer = Restorer(test_db, GrantResolver(test_db, clock=lambda: NOW), pacer)

        await restorer.apply(destination, snapshot)

        assert pacer.calls == 6
        assert [c.args[0] for c in sleep.await_args_list] == [1.0] * 6


# =============================================================================
# Failure Handling
# =============================================================================

class TestItemFailures:
    """Tests for skipped and failed items."""

    @pytest.mark.asyncio
    async def test_forbidden_role_is_skipped(self, restorer, destination, snapshot):
        destination.fail_on("create_role", "mod", http_error(403, "Missing Permissions"))

        report = await restorer.apply(destination, snapshot)

        role = _results(report, "role")[0]
        assert role.status == ItemStatus.SKIPPED
        assert role.reason == "403 (Forbidden)"
        assert report.roles_created == 1

    @pytest.mark.asyncio
    async def test_overwrite_for_missing_role_is_skipped(self, restorer, destination, snapshot):
        destination.fail_on("create_role", "mod", http_error(403))

        report = await restorer.apply(destination, snapshot)

        overwrites = _results(report, "overwrite")
        assert [o.status for o in overwrites] == [ItemStatus.CREATED, ItemStatus.SKIPPED]
        assert overwrites[1].reason == "role not restored"
        assert report.overwrites_created == 1

    @pytest.mark.asyncio
    async def test_other_errors_are_failed(self, restorer, destination, snapshot):
        destination.fail_on("create_role", "admin", http_error(500, "Internal"))

        report = await restorer.apply(destination, snapshot)

        assert len(report.failed) == 1
        assert report.failed[0].name == "admin"
        assert report.roles_created == 1

    @pytest.mark.asyncio
    async def test_non_http_errors_are_failed(self, restorer, destination, snapshot):
        destination.fail_on("create_channel", "rules", ValueError("bad channel"))

        report = await restorer.apply(destination, snapshot)

        channel = _results(report, "channel")[0]
        assert channel.status == ItemStatus.FAILED
        assert "ValueError" in channel.reason

    @pytest.mark.asyncio
    async def test_failed_category_orphans_children(self, restorer, destination, snapshot):
        destination.fail_on("create_category", "Info", http_error(404))

        report = await restorer.apply(destination, snapshot)

        spec, parent_id = next(iter(destination.channels.values()))
        assert spec.name == "rules"
        assert parent_id is None
        assert report.channels_created == 1

    @pytest.mark.asyncio
    async def test_overwrites_of_missing_channel_are_skipped(self, restorer, destination, snapshot):
        destination.fail_on("create_channel", "rules", http_error(403))

        report = await restorer.apply(destination, snapshot)

        overwrites = _results(report, "overwrite")
        assert len(overwrites) == 2
        assert all(o.reason == "channel not restored" for o in overwrites)
        assert not any(op == "create_overwrite" for op, _ in destination.calls)

    @pytest.mark.asyncio
    async def test_failures_are_still_paced(self, restorer, destination, snapshot, pacer):
        destination.fail_on("create_role", "mod", http_error(500))
        destination.fail_on("create_role", "admin", http_error(403))

        await restorer.apply(destination, snapshot)

        # 2 roles + category + channel + 1 overwrite (the mod one is skipped)
        assert pacer.calls == 5


# =============================================================================
# Members
# =============================================================================

class TestMemberRestore:
    """Tests for member re-admission and role grants."""

    def _save_grant(self, test_db, member_id, expires_in=3600, token="tok"):
        test_db.save_grant(SOURCE_GUILD_ID, member_id, token, NOW + expires_in, owner_id=OWNER_ID)

    @pytest.mark.asyncio
    async def test_member_added_with_roles(self, test_db, restorer, destination, member_snapshot):
        self._save_grant(test_db, 555, token="alice-token")
        snapshot = make_snapshot(members=[member_snapshot])

        report = await restorer.apply(destination, snapshot)

        assert destination.members == {555: "alice-token"}
        assert destination.member_roles == [(555, 9001), (555, 9002)]
        assert report.members_attempted == 1
        assert report.members_added == 1
        assert report.member_roles_granted == 2

    @pytest.mark.asyncio
    async def test_member_roles_after_member_add(self, test_db, restorer, destination, member_snapshot):
        self._save_grant(test_db, 555)
        snapshot = make_snapshot(members=[member_snapshot])

        await restorer.apply(destination, snapshot)

        ops = [op for op, _ in destination.calls]
        assert ops[-4:] == ["add_member", "fetch_member", "add_member_role", "add_member_role"]

    @pytest.mark.asyncio
    async def test_member_without_grant_is_skipped(self, restorer, destination, member_snapshot):
        snapshot = make_snapshot(members=[member_snapshot])

        report = await restorer.apply(destination, snapshot)

        member = _results(report, "member")[0]
        assert member.status == ItemStatus.SKIPPED
        assert member.reason == "no grant"
        assert report.members_attempted == 0
        assert destination.names("add_member") == []

    @pytest.mark.asyncio
    async def test_member_with_expired_grant_is_skipped(self, test_db, restorer, destination, member_snapshot):
        self._save_grant(test_db, 555, expires_in=120)
        snapshot = make_snapshot(members=[member_snapshot])

        report = await restorer.apply(destination, snapshot)

        member = _results(report, "member")[0]
        assert member.reason == "grant expired"
        assert report.members_attempted == 0

    @pytest.mark.asyncio
    async def test_existing_member_counts_as_added(self, test_db, restorer, destination, member_snapshot):
        self._save_grant(test_db, 555)
        destination.existing_members.add(555)
        snapshot = make_snapshot(members=[member_snapshot])

        report = await restorer.apply(destination, snapshot)

        member = _results(report, "member")[0]
        assert member.status == ItemStatus.CREATED
        assert member.reason == "already a member"
        assert member.new_id == 555
        assert report.members_added == 1
        assert report.member_roles_granted == 2

    @pytest.mark.asyncio
    async def test_new_member_has_no_reason(self, test_db, restorer, destination, member_snapshot):
        self._save_grant(test_db, 555)

        report = await restorer.apply(destination, make_snapshot(members=[member_snapshot]))

        member = _results(report, "member")[0]
        assert member.status == ItemStatus.CREATED
        assert member.reason is None
        assert member.new_id == 555

    @pytest.mark.asyncio
    async def test_rejected_member_gets_no_roles(self, test_db, restorer, destination, member_snapshot):
        self._save_grant(test_db, 555)
        destination.fail_on("add_member", 555, http_error(403))
        snapshot = make_snapshot(members=[member_snapshot])

        report = await restorer.apply(destination, snapshot)

        assert report.members_attempted == 1
        assert report.members_added == 0
        assert destination.member_roles == []

    @pytest.mark.asyncio
    async def test_invisible_member_skips_roles(self, test_db, restorer, destination, member_snapshot):
        self._save_grant(test_db, 555)
        destination.fail_on("fetch_member", 555, http_error(404))
        snapshot = make_snapshot(members=[member_snapshot])

        report = await restorer.apply(destination, snapshot)

        role_results = _results(report, "member_role")
        assert len(role_results) == 2
        assert all(r.reason.startswith("member not visible") for r in role_results)
        assert destination.member_roles == []

    @pytest.mark.asyncio
    async def test_unrestored_role_not_granted(self, test_db, restorer, destination, member_snapshot):
        self._save_grant(test_db, 555)
        destination.fail_on("create_role", "admin", http_error(403))
        snapshot = make_snapshot(members=[member_snapshot])

        report = await restorer.apply(destination, snapshot)

        assert destination.member_roles == [(555, 9001)]
        skipped = [r for r in _results(report, "member_role") if r.status == ItemStatus.SKIPPED]
        assert skipped[0].reason == "role not restored"

    @pytest.mark.asyncio
    async def test_member_add_uses_member_delay(self, test_db, destination):
        sleep = AsyncMock()
        pacer = Pacer(structure_delay=1.0, member_delay=2.0, sleep=sleep)
        restorer = Restorer(test_db, GrantResolver(test_db, clock=lambda: NOW), pacer)
        test_db.save_grant(SOURCE_GUILD_ID, 555, "tok", NOW + 3600)
        snapshot = make_snapshot(
            roles=[], channels=[],
            members=[MemberSnapshot(555, "alice", "Alice")],
        )

        await restorer.apply(destination, snapshot)

        sleep.assert_awaited_once_with(2.0)

    def _paced_restorer(self, test_db, member_delay):
        clock = {"now": NOW}

        async def sleep(seconds):
            clock["now"] += seconds

        resolver = GrantResolver(test_db, margin=300, clock=lambda: clock["now"])
        pacer = Pacer(structure_delay=0, member_delay=member_delay, sleep=sleep)
        return Restorer(test_db, resolver, pacer)

    @pytest.mark.asyncio
    async def test_grant_rechecked_after_pacing(self, test_db, destination):
        restorer = self._paced_restorer(test_db, member_delay=60)
        members = [MemberSnapshot(member_id, f"user{member_id}", "User") for member_id in (500, 501, 502)]
        for member in members:
            self._save_grant(test_db, member.id, expires_in=400)

        report = await restorer.apply(destination, make_snapshot(members=members))

        # 502 comes up 120s in, with 280s left: inside the margin
        assert list(destination.members) == [500, 501]
        assert report.members_attempted == 2
        assert report.members_added == 2
        late = _results(report, "member")[-1]
        assert late.source_id == 502
        assert late.status == ItemStatus.SKIPPED
        assert late.reason == "grant expired"

    @pytest.mark.asyncio
    async def test_recheck_falls_back_to_longer_lived_grant(self, test_db, destination):
        restorer = self._paced_restorer(test_db, member_delay=60)
        members = [MemberSnapshot(500, "user500", "User"), MemberSnapshot(501, "user501", "User")]
        self._save_grant(test_db, 500, expires_in=3600)
        self._save_grant(test_db, 501, expires_in=330, token="short")
        test_db.save_grant(7777, 501, "long", NOW + 3600, owner_id=OWNER_ID, created_at=NOW - 10)

        report = await restorer.apply(destination, make_snapshot(members=members))

        assert destination.members == {500: "tok", 501: "long"}
        assert report.members_added == 2


# =============================================================================
# Entry Point
# =============================================================================

class TestRestoreEntry:
    """Tests for Restorer.restore against the store."""

    def _guild(self, guild_id=DEST_GUILD_ID, owner_id=OWNER_ID):
        guild = MagicMock()
        guild.id = guild_id
        guild.owner_id = owner_id
        guild.name = "New Guild"
        return guild

    @pytest.mark.asyncio
    async def test_no_snapshot_returns_empty_report(self, test_db, pacer):
        factory = MagicMock()
        restorer = Restorer(test_db, GrantResolver(test_db), pacer, destination_factory=factory)

        restored, report = await restorer.restore(self._guild())

        assert restored is False
        assert report == RestoreReport()
        factory.assert_not_called()
        assert pacer.calls == 0

    @pytest.mark.asyncio
    async def test_restores_latest_snapshot(self, test_db, pacer, destination):
        test_db.save_snapshot(make_snapshot().to_dict())
        restorer = Restorer(
            test_db, GrantResolver(test_db), pacer,
            destination_factory=lambda guild: destination,
        )

        restored, report = await restorer.restore(self._guild())

        assert restored is True
        assert report.roles_created == 2
        assert report.channels_created == 2

    @pytest.mark.asyncio
    async def test_never_restores_onto_source(self, test_db, pacer):
        test_db.save_snapshot(make_snapshot().to_dict())
        factory = MagicMock()
        restorer = Restorer(test_db, GrantResolver(test_db), pacer, destination_factory=factory)

        restored, _ = await restorer.restore(self._guild(guild_id=SOURCE_GUILD_ID))

        assert restored is False
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_owner_snapshot_ignored(self, test_db, pacer):
        test_db.save_snapshot(make_snapshot(owner_id=7).to_dict())
        restorer = Restorer(test_db, GrantResolver(test_db), pacer, destination_factory=MagicMock())

        restored, _ = await restorer.restore(self._guild())

        assert restored is False

    @pytest.mark.asyncio
    async def test_unreadable_snapshot_is_ignored(self, test_db, pacer):
        from phoenix.core.constants import SNAPSHOT_COLLECTION

        test_db.put_document(SNAPSHOT_COLLECTION, "broken", {
            "owner_id": OWNER_ID,
            "source_guild_id": SOURCE_GUILD_ID,
            "captured_at": 1.0,
            "roles": [{"name": "no id"}],
        })
        restorer = Restorer(test_db, GrantResolver(test_db), pacer, destination_factory=MagicMock())

        assert await restorer.find_snapshot(OWNER_ID, exclude_guild_id=DEST_GUILD_ID) is None

    @pytest.mark.asyncio
    async def test_missing_factory_raises(self, test_db, pacer):
        test_db.save_snapshot(make_snapshot().to_dict())
        restorer = Restorer(test_db, GrantResolver(test_db), pacer)

        with pytest.raises(RuntimeError):
            await restorer.restore(self._guild())
