"""
Phoenix
=======

Guild snapshot and restoration bot.

Packages:
    core: configuration, logging and the SQLite store
    services: capture, restore and OAuth2 grant services
    api: OAuth2 callback HTTP service
    commands / events: discord.py cogs
"""

__version__ = "1.0.0"
