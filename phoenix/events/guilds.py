"""
Phoenix - Guild Events
======================

Restores and captures guilds as the bot joins them.

DESIGN:
    on_guild_join restores first, then captures the joined guild, so the
    capture reflects the rebuilt state and never overwrites the snapshot
    the restore just read (snapshots of a guild are never used to restore
    that same guild).
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import discord
from discord.ext import commands

from phoenix.core.logger import logger
from phoenix.services.backup.models import RestoreReport
from phoenix.utils.discord_rate_limit import log_http_error

if TYPE_CHECKING:
    from phoenix.bot import PhoenixBot


SUMMARY_CHANNEL_HINTS = ("general", "admin")


def find_summary_channel(guild: discord.Guild) -> Optional[discord.TextChannel]:
    """First writable text channel named like general/admin, else the top one."""
    writable = [
        channel for channel in sorted(guild.text_channels, key=lambda c: c.position)
        if channel.permissions_for(guild.me).send_messages
    ]
    for channel in writable:
        if any(hint in channel.name for hint in SUMMARY_CHANNEL_HINTS):
            return channel
    return writable[0] if writable else None


def build_restore_embed(report: RestoreReport) -> discord.Embed:
    """Summary embed for a finished restore."""
    embed = discord.Embed(
        title="🔄 Server Restored",
        description=f"Rebuilt from the backup of **{report.source_guild_name or 'unknown server'}**",
        color=0x43B581,
        timestamp=datetime.now(timezone.utc),
    )
    embed.add_field(name="Roles", value=str(report.roles_created), inline=True)
    embed.add_field(name="Channels", value=str(report.channels_created), inline=True)
    embed.add_field(name="Overwrites", value=str(report.overwrites_created), inline=True)
    embed.add_field(
        name="Members Re-added",
        value=f"{report.members_added}/{report.members_attempted} attempted",
        inline=True,
    )
    embed.add_field(name="Skipped", value=str(len(report.skipped)), inline=True)
    embed.add_field(name="Failed", value=str(len(report.failed)), inline=True)
    if report.captured_at:
        captured = datetime.fromtimestamp(report.captured_at, tz=timezone.utc)
        embed.add_field(name="Backup Date", value=discord.utils.format_dt(captured), inline=False)
    return embed


class GuildEvents(commands.Cog):
    """Guild lifecycle handlers."""

    def __init__(self, bot: "PhoenixBot") -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.tree("Joined Guild", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Owner", str(guild.owner_id)),
            ("Members", str(guild.member_count)),
        ], emoji="📥")

        if self.bot.config.restore_enabled and self.bot.restorer:
            restored, report = await self.bot.restorer.restore(guild)
            if restored:
                await self._post_summary(guild, report)

        if self.bot.snapshotter:
            await self.bot.snapshotter.capture(guild)

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        logger.tree("Left Guild", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Owner", str(guild.owner_id)),
        ], emoji="📤")

    async def _post_summary(self, guild: discord.Guild, report: RestoreReport) -> None:
        channel = find_summary_channel(guild)
        if channel is None:
            logger.info("Restore Summary Not Posted", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Reason", "No writable text channel"),
            ])
            return

        try:
            await channel.send(embed=build_restore_embed(report))
        except discord.HTTPException as e:
            log_http_error(e, "Restore Summary", [("Channel", f"#{channel.name}")])


async def setup(bot: "PhoenixBot") -> None:
    """Add the guild events cog to the bot."""
    await bot.add_cog(GuildEvents(bot))
    logger.debug("Guild Events Loaded")
