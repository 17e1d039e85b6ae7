"""
Phoenix - Guild Restorer
========================

Rebuilds a guild from its owner's most recent snapshot.

DESIGN:
    Phases run strictly in order and each item is best-effort:
        1. roles, ascending position          -> role map
        2. categories, ascending position     -> category map, then overwrites
        3. other channels, ascending position, parent through the category
           map, each followed by its overwrites (role targets remapped)
        4. members with a usable grant, then their remapped roles

    The old -> new id maps live only inside one apply() call. Every item
    ends as a typed ItemResult; 403/404 are "skipped", anything else is
    "failed", and the phase moves on either way. The Pacer sleeps after
    every mutating call, successful or not.
"""

import asyncio
import sqlite3
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Tuple

import discord

from phoenix.core.constants import LOG_TRUNCATE_MEDIUM
from phoenix.core.logger import logger
from phoenix.services.backup.destination import Destination
from phoenix.services.backup.grants import GrantLookup, GrantResolver
from phoenix.services.backup.models import (
    ChannelSpec,
    ItemResult,
    ItemStatus,
    MemberSnapshot,
    RestoreReport,
    Snapshot,
    TargetKind,
)
from phoenix.services.backup.pacer import CallClass, Pacer
from phoenix.utils.discord_rate_limit import describe_status, get_status, is_skippable, log_http_error

if TYPE_CHECKING:
    from phoenix.core.database import DatabaseManager


DestinationFactory = Callable[[discord.Guild], Destination]


class Restorer:
    """Replays a Snapshot onto a destination guild."""

    def __init__(
        self,
        db: "DatabaseManager",
        resolver: GrantResolver,
        pacer: Pacer,
        destination_factory: Optional[DestinationFactory] = None,
    ) -> None:
        self.db = db
        self.resolver = resolver
        self.pacer = pacer
        self._destination_factory = destination_factory

    # =========================================================================
    # Entry Points
    # =========================================================================

    async def restore(self, guild: discord.Guild) -> Tuple[bool, RestoreReport]:
        """
        Restore a freshly joined guild from its owner's latest snapshot.

        Snapshots taken from the guild itself are ignored.

        Returns:
            (False, empty report) when there is nothing to restore,
            otherwise (True, report) even if every item failed.
        """
        snapshot = await self.find_snapshot(guild.owner_id, exclude_guild_id=guild.id)
        if snapshot is None:
            logger.info("No Snapshot To Restore", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Owner", str(guild.owner_id)),
            ])
            return False, RestoreReport()

        if self._destination_factory is None:
            raise RuntimeError("Restorer has no destination factory for live guilds")

        destination = self._destination_factory(guild)
        report = await self.apply(destination, snapshot)
        return True, report

    async def find_snapshot(
        self,
        owner_id: Optional[int],
        exclude_guild_id: Optional[int] = None,
    ) -> Optional[Snapshot]:
        """Latest snapshot of an owner, or None when absent or unreadable."""
        if owner_id is None:
            return None

        try:
            document = await asyncio.to_thread(
                self.db.get_latest_snapshot_for_owner, owner_id, exclude_guild_id
            )
        except sqlite3.Error as e:
            logger.error("Snapshot Read Failed", [
                ("Owner", str(owner_id)),
                ("Error", str(e)),
            ])
            return None

        if document is None:
            return None

        try:
            return Snapshot.from_dict(document)
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Snapshot Unreadable", [
                ("Snapshot", str(document.get("id"))),
                ("Error", f"{type(e).__name__}: {e}"),
            ])
            return None

    async def apply(self, destination: Destination, snapshot: Snapshot) -> RestoreReport:
        """Run every phase against the destination and return the report."""
        report = RestoreReport(
            source_guild_id=snapshot.source_guild_id,
            source_guild_name=snapshot.source_guild_name,
            captured_at=snapshot.captured_at,
        )

        logger.tree("Restore Started", [
            ("Destination", str(destination.id)),
            ("Source", f"{snapshot.source_guild_name} ({snapshot.source_guild_id})"),
            ("Roles", str(len(snapshot.roles))),
            ("Channels", str(len(snapshot.channels))),
            ("Members", str(len(snapshot.members))),
        ], emoji="🔄")

        role_map = await self._restore_roles(destination, snapshot, report)
        category_map = await self._restore_categories(destination, snapshot, report, role_map)
        await self._restore_channels(destination, snapshot, report, role_map, category_map)
        await self._restore_members(destination, snapshot, report, role_map)

        logger.tree("Restore Complete", [
            ("Destination", str(destination.id)),
            ("Roles", f"{report.roles_created}/{len(snapshot.roles)}"),
            ("Channels", f"{report.channels_created}/{len(snapshot.channels)}"),
            ("Overwrites", str(report.overwrites_created)),
            ("Members", f"{report.members_added}/{report.members_attempted} attempted"),
            ("Member Roles", str(report.member_roles_granted)),
            ("Skipped", str(len(report.skipped))),
            ("Failed", str(len(report.failed))),
        ], emoji="✅")

        return report

    # =========================================================================
    # Phases
    # =========================================================================

    async def _restore_roles(
        self,
        destination: Destination,
        snapshot: Snapshot,
        report: RestoreReport,
    ) -> Dict[int, int]:
        # @everyone carries the guild id, so it maps onto the destination's own.
        role_map: Dict[int, int] = {snapshot.source_guild_id: destination.id}

        for role in sorted(snapshot.roles, key=lambda r: r.position):
            result = await self._mutate(
                report, "role", role.id, role.name, CallClass.STRUCTURE,
                lambda role=role: destination.create_role(role),
            )
            if result.status == ItemStatus.CREATED:
                role_map[role.id] = result.new_id
                report.roles_created += 1

        return role_map

    async def _restore_categories(
        self,
        destination: Destination,
        snapshot: Snapshot,
        report: RestoreReport,
        role_map: Dict[int, int],
    ) -> Dict[int, int]:
        category_map: Dict[int, int] = {}

        categories = [c for c in snapshot.channels if c.is_category]
        for category in sorted(categories, key=lambda c: c.position):
            result = await self._mutate(
                report, "category", category.id, category.name, CallClass.STRUCTURE,
                lambda category=category: destination.create_category(category),
            )
            if result.status == ItemStatus.CREATED:
                category_map[category.id] = result.new_id
                report.channels_created += 1

            await self._restore_overwrites(destination, category, category_map.get(category.id), report, role_map)

        return category_map

    async def _restore_channels(
        self,
        destination: Destination,
        snapshot: Snapshot,
        report: RestoreReport,
        role_map: Dict[int, int],
        category_map: Dict[int, int],
    ) -> Dict[int, int]:
        channel_map: Dict[int, int] = dict(category_map)

        channels = [c for c in snapshot.channels if not c.is_category]
        for channel in sorted(channels, key=lambda c: c.position):
            parent_id = category_map.get(channel.parent_id) if channel.parent_id is not None else None

            result = await self._mutate(
                report, "channel", channel.id, channel.name, CallClass.STRUCTURE,
                lambda channel=channel, parent_id=parent_id: destination.create_channel(channel, parent_id),
            )
            if result.status == ItemStatus.CREATED:
                channel_map[channel.id] = result.new_id
                report.channels_created += 1

            await self._restore_overwrites(destination, channel, channel_map.get(channel.id), report, role_map)

        return channel_map

    async def _restore_overwrites(
        self,
        destination: Destination,
        channel: ChannelSpec,
        new_channel_id: Optional[int],
        report: RestoreReport,
        role_map: Dict[int, int],
    ) -> None:
        for overwrite in channel.overwrites:
            name = f"#{channel.name} ({overwrite.target_kind.value} {overwrite.target_id})"

            if new_channel_id is None:
                report.record(ItemResult(
                    "overwrite", overwrite.target_id, name, ItemStatus.SKIPPED,
                    reason="channel not restored",
                ))
                continue

            if overwrite.target_kind == TargetKind.ROLE:
                target_id = role_map.get(overwrite.target_id)
                if target_id is None:
                    report.record(ItemResult(
                        "overwrite", overwrite.target_id, name, ItemStatus.SKIPPED,
                        reason="role not restored",
                    ))
                    continue
            else:
                target_id = overwrite.target_id

            result = await self._mutate(
                report, "overwrite", overwrite.target_id, name, CallClass.STRUCTURE,
                lambda target_id=target_id, overwrite=overwrite: destination.create_overwrite(
                    new_channel_id, target_id, overwrite.target_kind, overwrite.allow, overwrite.deny
                ),
            )
            if result.status == ItemStatus.CREATED:
                result.new_id = target_id
                report.overwrites_created += 1

    async def _restore_members(
        self,
        destination: Destination,
        snapshot: Snapshot,
        report: RestoreReport,
        role_map: Dict[int, int],
    ) -> None:
        if not snapshot.members:
            return

        lookups = await self.resolver.resolve_many(
            snapshot.owner_id,
            snapshot.source_guild_id,
            (m.id for m in snapshot.members),
        )

        for member in snapshot.members:
            lookup = lookups.get(member.id) or GrantLookup()
            if lookup.found and not self.resolver.is_usable(lookup.grant):
                # Batched lookups age while earlier members are paced.
                lookup = await self.resolver.lookup(
                    snapshot.owner_id, snapshot.source_guild_id, member.id
                )

            if not lookup.found:
                report.record(ItemResult(
                    "member", member.id, member.username, ItemStatus.SKIPPED,
                    reason="grant expired" if lookup.saw_expired else "no grant",
                ))
                continue

            report.members_attempted += 1
            try:
                added = await destination.add_member(member.id, lookup.grant.access_token)
            except Exception as e:
                report.record(self._classify("member", member.id, member.username, e))
                continue
            finally:
                await self.pacer.throttle(CallClass.MEMBER)

            report.record(ItemResult(
                "member", member.id, member.username, ItemStatus.CREATED,
                reason=None if added else "already a member",
                new_id=member.id,
            ))
            report.members_added += 1

            await self._restore_member_roles(destination, member, report, role_map)

    async def _restore_member_roles(
        self,
        destination: Destination,
        member: MemberSnapshot,
        report: RestoreReport,
        role_map: Dict[int, int],
    ) -> None:
        if not member.role_ids:
            return

        try:
            await destination.fetch_member(member.id)
        except Exception as e:
            result = self._classify("member_role", member.id, member.username, e, "Fetch Member")
            result.reason = f"member not visible: {result.reason}"
            for role_id in member.role_ids:
                report.record(ItemResult(
                    "member_role", role_id, member.username, result.status, reason=result.reason,
                ))
            return

        for role_id in member.role_ids:
            new_role_id = role_map.get(role_id)
            if new_role_id is None:
                report.record(ItemResult(
                    "member_role", role_id, member.username, ItemStatus.SKIPPED,
                    reason="role not restored",
                ))
                continue

            result = await self._mutate(
                report, "member_role", role_id, member.username, CallClass.STRUCTURE,
                lambda new_role_id=new_role_id: destination.add_member_role(member.id, new_role_id),
            )
            if result.status == ItemStatus.CREATED:
                result.new_id = new_role_id
                report.member_roles_granted += 1

    # =========================================================================
    # Item Execution
    # =========================================================================

    async def _mutate(
        self,
        report: RestoreReport,
        kind: str,
        source_id: int,
        name: str,
        call_class: CallClass,
        operation: Callable[[], Awaitable[Any]],
    ) -> ItemResult:
        """Run one mutating call, classify the outcome and pace."""
        try:
            value = await operation()
        except Exception as e:
            result = self._classify(kind, source_id, name, e)
        else:
            result = ItemResult(kind, source_id, name, ItemStatus.CREATED, new_id=value)
        finally:
            await self.pacer.throttle(call_class)

        return report.record(result)

    def _classify(
        self,
        kind: str,
        source_id: int,
        name: str,
        error: Exception,
        operation: Optional[str] = None,
    ) -> ItemResult:
        operation = operation or f"Restore {kind.replace('_', ' ').title()}"
        context = [
            ("Item", f"{name} ({source_id})"),
            ("Kind", kind),
        ]

        if is_skippable(error):
            log_http_error(error, operation, context)
            return ItemResult(
                kind, source_id, name, ItemStatus.SKIPPED,
                reason=describe_status(get_status(error)),
            )

        if get_status(error) is not None:
            log_http_error(error, operation, context)
        else:
            logger.error(f"❌ {operation} Failed", context + [
                ("Error Type", type(error).__name__),
                ("Error", str(error)[:LOG_TRUNCATE_MEDIUM]),
            ])

        return ItemResult(
            kind, source_id, name, ItemStatus.FAILED,
            reason=f"{type(error).__name__}: {error}"[:LOG_TRUNCATE_MEDIUM],
        )


__all__ = ["Restorer", "DestinationFactory"]
