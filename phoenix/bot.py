"""
Phoenix - Main Bot Class
========================

Discord client that snapshots guilds and rebuilds them on join.

DESIGN:
    Services are created in setup_hook, before any gateway event is
    dispatched, so on_guild_join always finds a ready Restorer. Background
    loops (capture scheduler, OAuth callback server) start in on_ready.
"""

from datetime import datetime
from typing import Optional

import aiohttp
import discord
from discord.ext import commands

from phoenix.core.config import get_config
from phoenix.core.database import get_db
from phoenix.core.logger import logger
from phoenix.services.backup import (
    CaptureScheduler,
    DiscordDestination,
    GrantResolver,
    Pacer,
    Restorer,
    Snapshotter,
)
from phoenix.services.oauth import OAuthService
from phoenix.utils.async_utils import gather_with_logging
from phoenix.utils.http import http_session


class PhoenixBot(commands.Bot):
    """Snapshot and restore bot."""

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(self) -> None:
        self.config = get_config()

        intents = discord.Intents.default()
        intents.members = True
        intents.guilds = True

        super().__init__(
            command_prefix="!",
            intents=intents,
            help_command=None,
        )

        self.db = get_db()
        self.start_time: datetime = datetime.now()

        # Service placeholders
        self.rest_session: Optional[aiohttp.ClientSession] = None
        self.snapshotter: Optional[Snapshotter] = None
        self.restorer: Optional[Restorer] = None
        self.capture_scheduler: Optional[CaptureScheduler] = None
        self.oauth_service: Optional[OAuthService] = None
        self.api_service = None

        self._ready_initialized: bool = False

        logger.info("Bot Instance Created")

    # =========================================================================
    # Setup Hook
    # =========================================================================

    async def setup_hook(self) -> None:
        """Create services, load cogs and sync commands before on_ready."""
        await self._init_services()

        from phoenix.commands import COMMAND_COGS
        for cog in COMMAND_COGS:
            try:
                await self.load_extension(cog)
                logger.info(f"Cog Loaded: {cog.split('.')[-1]}")
            except Exception as e:
                logger.error("Failed to Load Cog", [("Cog", cog), ("Error", str(e))])

        from phoenix.events import EVENT_COGS
        for cog in EVENT_COGS:
            try:
                await self.load_extension(cog)
                logger.debug(f"Event Cog Loaded: {cog.split('.')[-1]}")
            except Exception as e:
                logger.error("Failed to Load Event Cog", [("Cog", cog), ("Error", str(e))])

        try:
            synced = await self.tree.sync()
            logger.tree("Commands Synced", [("Count", str(len(synced)))], emoji="✅")
        except discord.HTTPException as e:
            logger.error("Command Sync Failed", [("Error", str(e))])

    async def _init_services(self) -> None:
        config = self.config

        http_session.configure(config.http_timeout)
        self.rest_session = await http_session.get_session()

        self.snapshotter = Snapshotter(
            self.db,
            retention=config.snapshot_retention,
            channel_exclusion=config.capture_channel_exclusion,
        )
        self.restorer = Restorer(
            self.db,
            GrantResolver(self.db, margin=config.grant_expiry_margin),
            Pacer(structure_delay=config.structure_delay, member_delay=config.member_delay),
            destination_factory=self._make_destination,
        )
        self.capture_scheduler = CaptureScheduler(
            self.snapshotter,
            lambda: list(self.guilds),
            interval_hours=config.capture_interval_hours,
        )
        self.oauth_service = OAuthService(config, self.db, http_session.get_session)

        logger.tree("Services Initialized", [
            ("Snapshotter", f"retention {config.snapshot_retention}, exclusion {config.capture_channel_exclusion}"),
            ("Restorer", "Enabled" if config.restore_enabled else "Disabled"),
            ("OAuth", "Enabled" if config.oauth_enabled else "Disabled"),
        ], emoji="🧩")

    def _make_destination(self, guild: discord.Guild) -> DiscordDestination:
        return DiscordDestination(guild, self.rest_session, self.config.discord_token, client=self)

    # =========================================================================
    # On Ready
    # =========================================================================

    async def on_ready(self) -> None:
        """Start background services once connected."""
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        logger.tree("BOT ONLINE", [
            ("Name", self.user.name),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
        ], emoji="🚀")

        if self.config.error_webhook_url:
            logger.set_webhook(self.config.error_webhook_url)

        await self.capture_scheduler.start()

        if self.oauth_service.enabled:
            from phoenix.api import APIService
            self.api_service = APIService(
                self,
                self.oauth_service,
                host=self.config.api_host,
                port=self.config.api_port,
            )
            await self.api_service.start()

        logger.tree("PHOENIX READY", [
            ("Capture Scheduler", "Running" if self.capture_scheduler.running else "Stopped"),
            ("OAuth Callback", "Running" if self.api_service else "Disabled"),
            ("Restore On Join", "Enabled" if self.config.restore_enabled else "Disabled"),
        ], emoji="🔥")

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> None:
        """Graceful shutdown with proper cleanup."""
        logger.info("Initiating Graceful Shutdown")

        stops = []
        if self.capture_scheduler:
            stops.append(("Capture Scheduler", self.capture_scheduler.stop()))
        if self.api_service:
            stops.append(("API Server", self.api_service.stop()))
        if stops:
            await gather_with_logging(*stops, context="Shutdown")

        await http_session.close()
        self.db.close()
        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now() - self.start_time)),
        ], emoji="🛑")

    async def close(self) -> None:
        """Override close to ensure proper shutdown."""
        await self.shutdown()


__all__ = ["PhoenixBot"]
