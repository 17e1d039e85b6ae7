"""
Phoenix - Guild Snapshotter
===========================

Captures a live guild into a Snapshot and stores it.

DESIGN:
    Captured: roles (minus @everyone and integration-managed roles),
    channels with their overwrites, and non-bot members whose role ids are
    limited to the captured roles. A configurable predicate can drop the
    channels Discord creates on its own in every new guild, so a restore
    does not duplicate them.

    capture() never raises: API and store failures are logged and reported
    as False.
"""

import asyncio
import sqlite3
import time
from typing import TYPE_CHECKING, Callable, Dict, List, Set

import discord

from phoenix.core.logger import logger
from phoenix.services.backup.models import (
    ChannelKind,
    ChannelSpec,
    MemberSnapshot,
    Overwrite,
    RoleSpec,
    Snapshot,
    TargetKind,
)
from phoenix.utils.discord_rate_limit import log_http_error

if TYPE_CHECKING:
    from phoenix.core.database import DatabaseManager


# =============================================================================
# Channel Exclusion Predicates
# =============================================================================

DEFAULT_CHANNEL_NAMES = frozenset({"general", "text channels", "voice channels"})


def exclude_nothing(spec: ChannelSpec) -> bool:
    return False


def is_default_channel(spec: ChannelSpec) -> bool:
    """Auto-created channel or category nobody customized."""
    return spec.name.casefold() in DEFAULT_CHANNEL_NAMES and not spec.overwrites


CHANNEL_EXCLUSIONS: Dict[str, Callable[[ChannelSpec], bool]] = {
    "none": exclude_nothing,
    "defaults": is_default_channel,
}


# =============================================================================
# Converters
# =============================================================================

def _channel_kind(channel: discord.abc.GuildChannel) -> ChannelKind:
    if isinstance(channel, discord.CategoryChannel):
        return ChannelKind.CATEGORY
    if isinstance(channel, discord.TextChannel):
        return ChannelKind.TEXT
    if isinstance(channel, discord.VoiceChannel):
        return ChannelKind.VOICE
    return ChannelKind.OTHER


def _overwrites_of(channel: discord.abc.GuildChannel) -> List[Overwrite]:
    overwrites = []
    for target, overwrite in channel.overwrites.items():
        allow, deny = overwrite.pair()
        overwrites.append(Overwrite(
            target_id=target.id,
            target_kind=TargetKind.ROLE if isinstance(target, discord.Role) else TargetKind.MEMBER,
            allow=allow.value,
            deny=deny.value,
        ))
    return overwrites


def role_to_spec(role: discord.Role) -> RoleSpec:
    return RoleSpec(
        id=role.id,
        name=role.name,
        color=role.colour.value,
        permissions=role.permissions.value,
        position=role.position,
        hoist=role.hoist,
        mentionable=role.mentionable,
    )


def channel_to_spec(channel: discord.abc.GuildChannel) -> ChannelSpec:
    kind = _channel_kind(channel)
    spec = ChannelSpec(
        id=channel.id,
        name=channel.name,
        kind=kind,
        position=channel.position,
        parent_id=getattr(channel, "category_id", None),
        overwrites=_overwrites_of(channel),
    )

    if kind == ChannelKind.TEXT:
        spec.topic = channel.topic
        spec.nsfw = channel.nsfw
        spec.slowmode_delay = channel.slowmode_delay
    elif kind == ChannelKind.VOICE:
        spec.bitrate = channel.bitrate
        spec.user_limit = channel.user_limit

    return spec


def member_to_snapshot(member: discord.Member, captured_roles: Set[int]) -> MemberSnapshot:
    return MemberSnapshot(
        id=member.id,
        username=member.name,
        display_name=member.display_name,
        joined_at=member.joined_at.timestamp() if member.joined_at else None,
        role_ids=[r.id for r in member.roles if r.id in captured_roles],
        permissions=member.guild_permissions.value,
    )


# =============================================================================
# Snapshotter
# =============================================================================

class Snapshotter:
    """Builds and stores guild snapshots."""

    def __init__(
        self,
        db: "DatabaseManager",
        retention: int = 3,
        channel_exclusion: str = "none",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if channel_exclusion not in CHANNEL_EXCLUSIONS:
            raise ValueError(f"Unknown channel exclusion: {channel_exclusion}")

        self.db = db
        self.retention = retention
        self.channel_exclusion = channel_exclusion
        self._exclude = CHANNEL_EXCLUSIONS[channel_exclusion]
        self._clock = clock

    async def build_snapshot(self, guild: discord.Guild) -> Snapshot:
        """Read the guild's current state into a Snapshot."""
        if not guild.chunked:
            await guild.chunk()

        roles = [
            role_to_spec(role)
            for role in guild.roles
            if not role.is_default() and not role.managed
        ]
        captured_roles = {r.id for r in roles}

        channels = [channel_to_spec(channel) for channel in guild.channels]
        channels = [c for c in channels if not self._exclude(c)]

        members = [
            member_to_snapshot(member, captured_roles)
            for member in guild.members
            if not member.bot
        ]

        return Snapshot(
            owner_id=guild.owner_id,
            source_guild_id=guild.id,
            source_guild_name=guild.name,
            captured_at=self._clock(),
            icon_url=str(guild.icon.url) if guild.icon else None,
            banner_url=str(guild.banner.url) if guild.banner else None,
            description=guild.description,
            roles=sorted(roles, key=lambda r: r.position),
            channels=sorted(channels, key=lambda c: c.position),
            members=members,
        )

    async def capture(self, guild: discord.Guild) -> bool:
        """Capture and store a snapshot. Returns False on any failure."""
        try:
            snapshot = await self.build_snapshot(guild)
        except discord.HTTPException as e:
            log_http_error(e, "Snapshot Capture", [("Guild", f"{guild.name} ({guild.id})")])
            return False
        except Exception as e:
            logger.error("Snapshot Capture Failed", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Error Type", type(e).__name__),
                ("Error", str(e)),
            ])
            return False

        try:
            key = await asyncio.to_thread(self.db.save_snapshot, snapshot.to_dict(), self.retention)
        except sqlite3.Error as e:
            logger.error("Snapshot Save Failed", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Error", str(e)),
            ])
            return False

        logger.tree("Snapshot Captured", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Key", key),
            ("Members", str(snapshot.member_count)),
            ("Roles", str(len(snapshot.roles))),
            ("Channels", str(len(snapshot.channels))),
        ], emoji="📦")
        return True


__all__ = [
    "CHANNEL_EXCLUSIONS",
    "DEFAULT_CHANNEL_NAMES",
    "exclude_nothing",
    "is_default_channel",
    "role_to_spec",
    "channel_to_spec",
    "member_to_snapshot",
    "Snapshotter",
]
