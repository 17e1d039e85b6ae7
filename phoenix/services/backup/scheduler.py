"""
Phoenix - Capture Scheduler
===========================

Periodically snapshots every guild the bot is in.
"""

import asyncio
from typing import Callable, Iterable, Optional

import discord

from phoenix.core.constants import SECONDS_PER_HOUR
from phoenix.core.logger import logger
from phoenix.services.backup.snapshotter import Snapshotter


class CaptureScheduler:
    """
    Captures all guilds on a fixed interval.

    DESIGN: Guilds are captured one after another; a failed capture is
    logged by the Snapshotter and does not stop the round.
    """

    def __init__(
        self,
        snapshotter: Snapshotter,
        guilds: Callable[[], Iterable[discord.Guild]],
        interval_hours: int = 6,
    ) -> None:
        """
        Initialize the capture scheduler.

        Args:
            snapshotter: Snapshotter used for each guild
            guilds: Returns the guilds to capture (usually lambda: bot.guilds)
            interval_hours: Hours between rounds (0 disables the scheduler)
        """
        self.snapshotter = snapshotter
        self._guilds = guilds
        self.interval_hours = interval_hours
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduler loop."""
        if self._running:
            return

        if self.interval_hours <= 0:
            logger.info("Capture Scheduler Disabled", [
                ("Reason", "CAPTURE_INTERVAL_HOURS is 0"),
            ])
            return

        self._running = True
        self._task = asyncio.create_task(self._scheduler_loop())

        logger.tree("Capture Scheduler Started", [
            ("Interval", f"Every {self.interval_hours}h"),
            ("Retention", f"{self.snapshotter.retention} per guild"),
            ("Exclusion", self.snapshotter.channel_exclusion),
        ], emoji="📦")

    async def stop(self) -> None:
        """Stop the scheduler loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run_once(self) -> int:
        """
        Capture every guild once.

        Returns:
            Number of guilds captured successfully
        """
        guilds = list(self._guilds())
        captured = 0
        for guild in guilds:
            if await self.snapshotter.capture(guild):
                captured += 1

        logger.info("Capture Round Complete", [
            ("Captured", f"{captured}/{len(guilds)}"),
        ])
        return captured

    async def _scheduler_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_hours * SECONDS_PER_HOUR)

                if not self._running:
                    break

                await self.run_once()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Capture Scheduler Error", [
                    ("Error", str(e)),
                ])
                await asyncio.sleep(SECONDS_PER_HOUR)


__all__ = ["CaptureScheduler"]
