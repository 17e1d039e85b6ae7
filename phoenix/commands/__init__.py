"""
Phoenix - Commands Package
==========================

Slash command implementations as discord.py Cogs.

DESIGN:
    Each command file contains a Cog class with related commands and an
    async setup(bot) function. Add the module path to COMMAND_COGS to have
    it loaded on startup.

Available Commands:
    /backup: Capture this server now (administrator)
    /backup-status: List the owner's snapshots (administrator)
    /authorize: Member opt-in link for re-admission
"""

COMMAND_COGS = [
    "phoenix.commands.backup",
]
"""Command cog module paths, loaded in order by the bot's setup_hook."""


__all__ = [
    "COMMAND_COGS",
]
