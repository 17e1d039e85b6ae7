"""
Phoenix - Restore Destination
=============================

The mutating operations a restore needs from a guild.

DESIGN:
    Restorer only talks to a Destination. DiscordDestination implements it
    over a live discord.py guild plus one raw REST call (member add via an
    OAuth2 access token, which discord.py does not expose). Objects created
    during a run are cached by their new id so later calls (overwrites, role
    grants) reuse them without extra fetches.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp
import discord

from phoenix.core.constants import AUDIT_REASON, DISCORD_API_BASE
from phoenix.services.backup.models import ChannelKind, ChannelSpec, RoleSpec, TargetKind


class MemberAddError(Exception):
    """Member re-admission was rejected by the API."""

    def __init__(self, status: int, text: str = "") -> None:
        self.status = status
        self.text = text
        super().__init__(f"Member add failed with HTTP {status}: {text}".strip())


# =============================================================================
# Destination Interface
# =============================================================================

class Destination(ABC):
    """Guild-side operations used by the Restorer. Ids returned are new ids."""

    id: int

    @abstractmethod
    async def create_role(self, spec: RoleSpec) -> int:
        pass

    @abstractmethod
    async def create_category(self, spec: ChannelSpec) -> int:
        pass

    @abstractmethod
    async def create_channel(self, spec: ChannelSpec, parent_id: Optional[int]) -> int:
        pass

    @abstractmethod
    async def create_overwrite(
        self,
        channel_id: int,
        target_id: int,
        target_kind: TargetKind,
        allow: int,
        deny: int,
    ) -> None:
        pass

    @abstractmethod
    async def add_member(self, member_id: int, access_token: str) -> bool:
        """
        Add a user with their OAuth2 token.

        Returns:
            True if the user was added, False if already a member

        Raises:
            Exception carrying .status on rejection
        """

    @abstractmethod
    async def fetch_member(self, member_id: int) -> Any:
        pass

    @abstractmethod
    async def add_member_role(self, member_id: int, role_id: int) -> None:
        pass


# =============================================================================
# discord.py Implementation
# =============================================================================

class DiscordDestination(Destination):
    """Destination backed by a live guild."""

    def __init__(
        self,
        guild: discord.Guild,
        session: aiohttp.ClientSession,
        bot_token: str,
        client: Optional[discord.Client] = None,
    ) -> None:
        self.guild = guild
        self.id = guild.id
        self._session = session
        self._bot_token = bot_token
        self._client = client
        self._roles: Dict[int, discord.Role] = {}
        self._channels: Dict[int, discord.abc.GuildChannel] = {}
        self._members: Dict[int, discord.Member] = {}

    # =========================================================================
    # Structure
    # =========================================================================

    async def create_role(self, spec: RoleSpec) -> int:
        role = await self.guild.create_role(
            name=spec.name,
            permissions=discord.Permissions(spec.permissions),
            colour=discord.Colour(spec.color),
            hoist=spec.hoist,
            mentionable=spec.mentionable,
            reason=AUDIT_REASON,
        )
        self._roles[role.id] = role
        return role.id

    async def create_category(self, spec: ChannelSpec) -> int:
        category = await self.guild.create_category(spec.name, reason=AUDIT_REASON)
        self._channels[category.id] = category
        return category.id

    async def create_channel(self, spec: ChannelSpec, parent_id: Optional[int]) -> int:
        category = self._channels.get(parent_id) if parent_id is not None else None
        if category is not None and not isinstance(category, discord.CategoryChannel):
            category = None

        if spec.kind == ChannelKind.VOICE:
            options: Dict[str, Any] = {}
            if spec.bitrate:
                options["bitrate"] = min(int(spec.bitrate), int(self.guild.bitrate_limit))
            if spec.user_limit is not None:
                options["user_limit"] = spec.user_limit
            channel = await self.guild.create_voice_channel(
                spec.name, category=category, reason=AUDIT_REASON, **options
            )
        else:
            # Non-voice kinds without a dedicated factory come back as text.
            options = {}
            if spec.kind == ChannelKind.TEXT:
                if spec.topic:
                    options["topic"] = spec.topic
                if spec.nsfw is not None:
                    options["nsfw"] = spec.nsfw
                if spec.slowmode_delay:
                    options["slowmode_delay"] = spec.slowmode_delay
            channel = await self.guild.create_text_channel(
                spec.name, category=category, reason=AUDIT_REASON, **options
            )

        self._channels[channel.id] = channel
        return channel.id

    async def create_overwrite(
        self,
        channel_id: int,
        target_id: int,
        target_kind: TargetKind,
        allow: int,
        deny: int,
    ) -> None:
        channel = self._channels.get(channel_id) or self.guild.get_channel(channel_id)
        if channel is None:
            raise ValueError(f"Channel {channel_id} was not created in this run")

        target = await self._resolve_target(target_id, target_kind)
        overwrite = discord.PermissionOverwrite.from_pair(
            discord.Permissions(allow),
            discord.Permissions(deny),
        )
        await channel.set_permissions(target, overwrite=overwrite, reason=AUDIT_REASON)

    async def _resolve_target(self, target_id: int, target_kind: TargetKind) -> Any:
        if target_kind == TargetKind.ROLE:
            role = self._roles.get(target_id) or self.guild.get_role(target_id)
            if role is None:
                raise ValueError(f"Role {target_id} is not in this guild")
            return role

        member = self.guild.get_member(target_id)
        if member is not None:
            return member
        if self._client is None:
            raise ValueError(f"Member {target_id} is not cached and no client is available")
        return await self._client.fetch_user(target_id)

    # =========================================================================
    # Membership
    # =========================================================================

    async def add_member(self, member_id: int, access_token: str) -> bool:
        url = f"{DISCORD_API_BASE}/guilds/{self.guild.id}/members/{member_id}"
        headers = {
            "Authorization": f"Bot {self._bot_token}",
            "Content-Type": "application/json",
        }

        async with self._session.put(url, json={"access_token": access_token}, headers=headers) as response:
            if response.status == 201:
                return True
            if response.status == 204:
                return False
            raise MemberAddError(response.status, await response.text())

    async def fetch_member(self, member_id: int) -> discord.Member:
        member = self.guild.get_member(member_id)
        if member is None:
            member = await self.guild.fetch_member(member_id)
        self._members[member_id] = member
        return member

    async def add_member_role(self, member_id: int, role_id: int) -> None:
        member = self._members.get(member_id) or await self.fetch_member(member_id)
        role = self._roles.get(role_id) or discord.Object(id=role_id)
        await member.add_roles(role, reason=AUDIT_REASON)


__all__ = ["Destination", "DiscordDestination", "MemberAddError"]
