"""
Phoenix - Discord Destination Tests
===================================

Tests for the discord.py backed restore destination.
"""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from phoenix.core.constants import DISCORD_API_BASE
from phoenix.services.backup.destination import DiscordDestination, MemberAddError
from phoenix.services.backup.models import ChannelKind, ChannelSpec, RoleSpec, TargetKind
from phoenix.utils.discord_rate_limit import is_skippable


class FakeResponse:
    def __init__(self, status, text=""):
        self.status = status
        self._text = text

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def guild():
    guild = MagicMock()
    guild.id = 2000
    guild.bitrate_limit = 96000
    guild.create_role = AsyncMock(return_value=MagicMock(spec=discord.Role, id=9001))
    guild.create_category = AsyncMock(return_value=MagicMock(spec=discord.CategoryChannel, id=9002))
    guild.create_text_channel = AsyncMock(return_value=MagicMock(spec=discord.TextChannel, id=9003))
    guild.create_voice_channel = AsyncMock(return_value=MagicMock(spec=discord.VoiceChannel, id=9004))
    guild.get_member.return_value = None
    guild.get_role.return_value = None
    guild.get_channel.return_value = None
    return guild


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def destination(guild, session):
    return DiscordDestination(guild, session, "bot-token")


class TestStructure:
    """Tests for role, category and channel creation."""

    @pytest.mark.asyncio
    async def test_create_role(self, destination, guild):
        new_id = await destination.create_role(RoleSpec(101, "mod", color=0xFF0000, permissions=8, hoist=True))

        assert new_id == 9001
        kwargs = guild.create_role.await_args.kwargs
        assert kwargs["name"] == "mod"
        assert kwargs["permissions"] == discord.Permissions(8)
        assert kwargs["colour"] == discord.Colour(0xFF0000)
        assert kwargs["hoist"] is True

    @pytest.mark.asyncio
    async def test_channel_placed_in_created_category(self, destination, guild):
        category_id = await destination.create_category(ChannelSpec(300, "Info", ChannelKind.CATEGORY))
        await destination.create_channel(
            ChannelSpec(301, "rules", ChannelKind.TEXT, topic="Read me", nsfw=True, slowmode_delay=5),
            category_id,
        )

        kwargs = guild.create_text_channel.await_args.kwargs
        assert kwargs["category"].id == 9002
        assert kwargs["topic"] == "Read me"
        assert kwargs["nsfw"] is True
        assert kwargs["slowmode_delay"] == 5

    @pytest.mark.asyncio
    async def test_unknown_parent_means_no_category(self, destination, guild):
        await destination.create_channel(ChannelSpec(301, "rules", ChannelKind.TEXT), 12345)
        assert guild.create_text_channel.await_args.kwargs["category"] is None

    @pytest.mark.asyncio
    async def test_voice_bitrate_capped(self, destination, guild):
        new_id = await destination.create_channel(
            ChannelSpec(302, "Lounge", ChannelKind.VOICE, bitrate=384000, user_limit=10),
            None,
        )

        assert new_id == 9004
        kwargs = guild.create_voice_channel.await_args.kwargs
        assert kwargs["bitrate"] == 96000
        assert kwargs["user_limit"] == 10

    @pytest.mark.asyncio
    async def test_other_kinds_become_text(self, destination, guild):
        await destination.create_channel(ChannelSpec(303, "news", ChannelKind.OTHER, topic="ignored"), None)

        guild.create_text_channel.assert_awaited_once()
        assert "topic" not in guild.create_text_channel.await_args.kwargs

    @pytest.mark.asyncio
    async def test_overwrite_uses_created_objects(self, destination, guild):
        role_id = await destination.create_role(RoleSpec(101, "mod"))
        channel_id = await destination.create_channel(ChannelSpec(301, "rules", ChannelKind.TEXT), None)

        await destination.create_overwrite(channel_id, role_id, TargetKind.ROLE, allow=2048, deny=1024)

        channel = guild.create_text_channel.return_value
        target = channel.set_permissions.await_args.args[0]
        overwrite = channel.set_permissions.await_args.kwargs["overwrite"]
        assert target.id == 9001
        assert overwrite.pair() == (discord.Permissions(2048), discord.Permissions(1024))

    @pytest.mark.asyncio
    async def test_overwrite_on_unknown_channel_raises(self, destination):
        with pytest.raises(ValueError):
            await destination.create_overwrite(1, 2, TargetKind.ROLE, 0, 0)


class TestMembership:
    """Tests for member re-admission and role grants."""

    @pytest.mark.asyncio
    async def test_add_member_created(self, destination, session):
        session.put.return_value = FakeResponse(201)

        assert await destination.add_member(555, "access") is True

        url = session.put.call_args.args[0]
        assert url == f"{DISCORD_API_BASE}/guilds/2000/members/555"
        assert session.put.call_args.kwargs["json"] == {"access_token": "access"}
        assert session.put.call_args.kwargs["headers"]["Authorization"] == "Bot bot-token"

    @pytest.mark.asyncio
    async def test_add_member_already_present(self, destination, session):
        session.put.return_value = FakeResponse(204)
        assert await destination.add_member(555, "access") is False

    @pytest.mark.asyncio
    async def test_add_member_rejected(self, destination, session):
        session.put.return_value = FakeResponse(403, '{"message": "Missing Access"}')

        with pytest.raises(MemberAddError) as exc_info:
            await destination.add_member(555, "access")

        assert exc_info.value.status == 403
        assert is_skippable(exc_info.value)

    @pytest.mark.asyncio
    async def test_add_member_role_uses_created_role(self, destination, guild):
        member = MagicMock()
        member.add_roles = AsyncMock()
        guild.get_member.return_value = member

        role_id = await destination.create_role(RoleSpec(101, "mod"))
        await destination.add_member_role(555, role_id)

        assert member.add_roles.await_args.args[0].id == 9001

    @pytest.mark.asyncio
    async def test_fetch_member_falls_back_to_api(self, destination, guild):
        guild.fetch_member = AsyncMock(return_value=MagicMock(id=555))

        member = await destination.fetch_member(555)

        assert member.id == 555
        guild.fetch_member.assert_awaited_once_with(555)
