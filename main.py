#!/usr/bin/env python3
"""
Phoenix - Entry Point
=====================

Snapshots the guilds the bot sits in and rebuilds them, members included,
when the bot joins a new guild of the same owner.

Features:
- Periodic and on-demand guild snapshots (/backup)
- Restore on guild join from the owner's latest snapshot
- OAuth2 opt-in (/authorize) so members can be re-added
"""

import asyncio
import sys

from dotenv import load_dotenv

from phoenix.core.config import ConfigValidationError, validate_and_log_config
from phoenix.core.logger import logger


async def main() -> None:
    """
    Main entry point for the Phoenix bot.

    Raises:
        SystemExit: If configuration is invalid or the bot fails to start
    """
    load_dotenv()

    try:
        config = validate_and_log_config()
    except ConfigValidationError as e:
        logger.error("❌ Invalid configuration", [("Error", str(e))])
        logger.error("   Please add the missing values to the .env file")
        sys.exit(1)

    from phoenix.bot import PhoenixBot

    bot = PhoenixBot()
    logger.info("🤖 Bot instance created successfully")

    try:
        async with bot:
            await bot.start(config.discord_token)
    except Exception as e:
        logger.critical("Bot Crashed", [
            ("Error Type", type(e).__name__),
            ("Error", str(e)),
        ])
        sys.exit(1)


def run() -> None:
    """Console script entry."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("🛑 Bot stopped by user (Ctrl+C)")


if __name__ == "__main__":
    run()
