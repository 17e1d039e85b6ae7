"""
Phoenix - Backup Command Cog
============================

Slash commands around snapshots and member authorization.

Features:
    - /backup: Capture this server now (administrator)
    - /backup-status: Snapshots on record for this server's owner (administrator)
    - /authorize: Get a link that lets the bot re-add you to a rebuilt server
"""

import asyncio
import sqlite3
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from phoenix.core.logger import logger

if TYPE_CHECKING:
    from phoenix.bot import PhoenixBot


MAX_LISTED_SNAPSHOTS = 5


class BackupCog(commands.Cog):
    """Capture, inspect and opt-in commands."""

    def __init__(self, bot: "PhoenixBot") -> None:
        self.bot = bot

        logger.tree("Backup Cog Loaded", [
            ("Commands", "/backup, /backup-status, /authorize"),
        ], emoji="📦")

    # =========================================================================
    # /backup
    # =========================================================================

    @app_commands.command(name="backup", description="Capture a snapshot of this server now")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    async def backup(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)

        captured = await self.bot.snapshotter.capture(interaction.guild)

        logger.tree("Manual Backup", [
            ("Guild", f"{interaction.guild.name} ({interaction.guild.id})"),
            ("By", f"{interaction.user} ({interaction.user.id})"),
            ("Result", "Captured" if captured else "Failed"),
        ], emoji="📦")

        if captured:
            await interaction.followup.send("✅ Snapshot captured.", ephemeral=True)
        else:
            await interaction.followup.send(
                "❌ Snapshot failed. Check the bot logs for details.",
                ephemeral=True,
            )

    # =========================================================================
    # /backup-status
    # =========================================================================

    @app_commands.command(name="backup-status", description="Show the snapshots available for this server's owner")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    async def backup_status(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        guild = interaction.guild

        try:
            snapshots = await asyncio.to_thread(self.bot.db.list_snapshots_for_owner, guild.owner_id)
            grants = await asyncio.to_thread(self.bot.db.count_grants_for_guild, guild.id)
        except sqlite3.Error as e:
            logger.error("Backup Status Failed", [
                ("Guild", str(guild.id)),
                ("Error", str(e)),
            ])
            await interaction.followup.send("❌ Could not read the backup store.", ephemeral=True)
            return

        embed = discord.Embed(
            title="📦 Backup Status",
            color=0x5865F2,
            timestamp=datetime.now(timezone.utc),
        )
        embed.add_field(name="Authorized Members", value=str(grants), inline=True)
        embed.add_field(name="Snapshots", value=str(len(snapshots)), inline=True)

        if snapshots:
            lines = []
            for snap in snapshots[:MAX_LISTED_SNAPSHOTS]:
                captured = datetime.fromtimestamp(snap["captured_at"], tz=timezone.utc)
                marker = " (this server)" if snap["source_guild_id"] == guild.id else ""
                lines.append(
                    f"**{snap['source_guild_name']}**{marker} · "
                    f"{snap['member_count']} members · {discord.utils.format_dt(captured, 'R')}"
                )
            embed.add_field(name="Latest", value="\n".join(lines), inline=False)
        else:
            embed.description = "No snapshots yet. Use /backup to capture one."

        await interaction.followup.send(embed=embed, ephemeral=True)

    # =========================================================================
    # /authorize
    # =========================================================================

    @app_commands.command(name="authorize", description="Let the bot re-add you if this server is rebuilt")
    @app_commands.guild_only()
    async def authorize(self, interaction: discord.Interaction) -> None:
        oauth = self.bot.oauth_service
        if oauth is None or not oauth.enabled:
            await interaction.response.send_message(
                "Authorization is not configured for this bot.",
                ephemeral=True,
            )
            return

        url = oauth.build_authorize_url(interaction.user.id, interaction.guild.id)

        view = discord.ui.View()
        view.add_item(discord.ui.Button(label="Authorize", url=url, emoji="🔐"))

        await interaction.response.send_message(
            "Authorize once and you will be re-added automatically if this server has to be rebuilt.",
            view=view,
            ephemeral=True,
        )

        logger.info("Authorization Link Sent", [
            ("User", f"{interaction.user} ({interaction.user.id})"),
            ("Guild", str(interaction.guild.id)),
        ])


async def setup(bot: "PhoenixBot") -> None:
    """Load the Backup cog."""
    await bot.add_cog(BackupCog(bot))
