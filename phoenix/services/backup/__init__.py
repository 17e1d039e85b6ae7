"""
Phoenix - Backup Services
=========================

Snapshot capture and guild restoration.

Usage:
    from phoenix.services.backup import Snapshotter, Restorer, GrantResolver, Pacer

    snapshotter = Snapshotter(db, retention=3)
    await snapshotter.capture(guild)

    restorer = Restorer(db, GrantResolver(db), Pacer(), destination_factory)
    restored, report = await restorer.restore(guild)
"""

from .destination import Destination, DiscordDestination, MemberAddError
from .grants import DEFAULT_EXPIRY_MARGIN, GrantLookup, GrantResolver, LookupStrategy
from .models import (
    ChannelKind,
    ChannelSpec,
    DelegationGrant,
    ItemResult,
    ItemStatus,
    MemberSnapshot,
    Overwrite,
    RestoreReport,
    RoleSpec,
    Snapshot,
    TargetKind,
)
from .pacer import CallClass, Pacer
from .restorer import Restorer
from .scheduler import CaptureScheduler
from .snapshotter import CHANNEL_EXCLUSIONS, Snapshotter, is_default_channel


__all__ = [
    # Models
    "ChannelKind",
    "ChannelSpec",
    "DelegationGrant",
    "ItemResult",
    "ItemStatus",
    "MemberSnapshot",
    "Overwrite",
    "RestoreReport",
    "RoleSpec",
    "Snapshot",
    "TargetKind",
    # Grants
    "DEFAULT_EXPIRY_MARGIN",
    "GrantLookup",
    "GrantResolver",
    "LookupStrategy",
    # Restore
    "CallClass",
    "Pacer",
    "Destination",
    "DiscordDestination",
    "MemberAddError",
    "Restorer",
    # Capture
    "CHANNEL_EXCLUSIONS",
    "Snapshotter",
    "is_default_channel",
    "CaptureScheduler",
]
