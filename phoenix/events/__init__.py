"""
Phoenix - Events Package
========================

Event handler Cogs.

DESIGN:
    Each event file contains a Cog class with @commands.Cog.listener
    decorators. Cogs are loaded dynamically by the bot using
    load_extension().
"""

EVENT_COGS = [
    "phoenix.events.guilds",
]
"""Event cog module paths, loaded in order by the bot's setup_hook."""


__all__ = [
    "EVENT_COGS",
]
