"""
Phoenix - Backup Models
=======================

Dataclasses for snapshots, grants and restore results.

DESIGN:
    Role and channel ids inside a Snapshot are ids from the source guild.
    They are only used as keys when remapping to freshly created objects
    and are never sent to a destination guild as-is (member ids excepted,
    since a user keeps the same id everywhere).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# Enums
# =============================================================================

class ChannelKind(str, Enum):
    """Channel families the restorer knows how to recreate."""
    CATEGORY = "category"
    TEXT = "text"
    VOICE = "voice"
    OTHER = "other"


class TargetKind(str, Enum):
    """What a permission overwrite is bound to."""
    ROLE = "role"
    MEMBER = "member"


class ItemStatus(str, Enum):
    """Outcome of one restore item."""
    CREATED = "created"
    SKIPPED = "skipped"
    FAILED = "failed"


# =============================================================================
# Snapshot Types
# =============================================================================

@dataclass
class RoleSpec:
    id: int
    name: str
    color: int = 0
    permissions: int = 0
    position: int = 0
    hoist: bool = False
    mentionable: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoleSpec":
        return cls(
            id=int(data["id"]),
            name=data.get("name", "role"),
            color=int(data.get("color") or 0),
            permissions=int(data.get("permissions") or 0),
            position=int(data.get("position") or 0),
            hoist=bool(data.get("hoist", False)),
            mentionable=bool(data.get("mentionable", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "permissions": self.permissions,
            "position": self.position,
            "hoist": self.hoist,
            "mentionable": self.mentionable,
        }


@dataclass
class Overwrite:
    target_id: int
    target_kind: TargetKind
    allow: int = 0
    deny: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Overwrite":
        return cls(
            target_id=int(data["target_id"]),
            target_kind=TargetKind(data.get("target_kind", TargetKind.ROLE.value)),
            allow=int(data.get("allow") or 0),
            deny=int(data.get("deny") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "target_kind": self.target_kind.value,
            "allow": self.allow,
            "deny": self.deny,
        }


@dataclass
class ChannelSpec:
    """A channel or category. Only text/voice carry their type attributes."""

    id: int
    name: str
    kind: ChannelKind
    position: int = 0
    parent_id: Optional[int] = None
    topic: Optional[str] = None
    nsfw: Optional[bool] = None
    slowmode_delay: Optional[int] = None
    bitrate: Optional[int] = None
    user_limit: Optional[int] = None
    overwrites: List[Overwrite] = field(default_factory=list)

    @property
    def is_category(self) -> bool:
        return self.kind == ChannelKind.CATEGORY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelSpec":
        parent_id = data.get("parent_id")
        return cls(
            id=int(data["id"]),
            name=data.get("name", "channel"),
            kind=ChannelKind(data.get("kind", ChannelKind.OTHER.value)),
            position=int(data.get("position") or 0),
            parent_id=int(parent_id) if parent_id is not None else None,
            topic=data.get("topic"),
            nsfw=data.get("nsfw"),
            slowmode_delay=data.get("slowmode_delay"),
            bitrate=data.get("bitrate"),
            user_limit=data.get("user_limit"),
            overwrites=[Overwrite.from_dict(o) for o in data.get("overwrites", [])],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "position": self.position,
            "parent_id": self.parent_id,
            "topic": self.topic,
            "nsfw": self.nsfw,
            "slowmode_delay": self.slowmode_delay,
            "bitrate": self.bitrate,
            "user_limit": self.user_limit,
            "overwrites": [o.to_dict() for o in self.overwrites],
        }


@dataclass
class MemberSnapshot:
    id: int
    username: str
    display_name: str
    joined_at: Optional[float] = None
    role_ids: List[int] = field(default_factory=list)
    permissions: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemberSnapshot":
        return cls(
            id=int(data["id"]),
            username=data.get("username", ""),
            display_name=data.get("display_name", ""),
            joined_at=data.get("joined_at"),
            role_ids=[int(r) for r in data.get("role_ids", [])],
            permissions=int(data.get("permissions") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "joined_at": self.joined_at,
            "role_ids": list(self.role_ids),
            "permissions": self.permissions,
        }


@dataclass
class Snapshot:
    """
    Point-in-time capture of a guild's structure and membership.

    roles are kept in ascending position order and channels in ascending
    position order, so replaying them in list order preserves hierarchy.
    """

    owner_id: int
    source_guild_id: int
    source_guild_name: str
    captured_at: float
    icon_url: Optional[str] = None
    banner_url: Optional[str] = None
    description: Optional[str] = None
    roles: List[RoleSpec] = field(default_factory=list)
    channels: List[ChannelSpec] = field(default_factory=list)
    members: List[MemberSnapshot] = field(default_factory=list)

    @property
    def member_count(self) -> int:
        return len(self.members)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        return cls(
            owner_id=int(data["owner_id"]),
            source_guild_id=int(data["source_guild_id"]),
            source_guild_name=data.get("source_guild_name", ""),
            captured_at=float(data.get("captured_at") or 0.0),
            icon_url=data.get("icon_url"),
            banner_url=data.get("banner_url"),
            description=data.get("description"),
            roles=sorted(
                (RoleSpec.from_dict(r) for r in data.get("roles", [])),
                key=lambda r: r.position,
            ),
            channels=sorted(
                (ChannelSpec.from_dict(c) for c in data.get("channels", [])),
                key=lambda c: c.position,
            ),
            members=[MemberSnapshot.from_dict(m) for m in data.get("members", [])],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "source_guild_id": self.source_guild_id,
            "source_guild_name": self.source_guild_name,
            "captured_at": self.captured_at,
            "icon_url": self.icon_url,
            "banner_url": self.banner_url,
            "description": self.description,
            "roles": [r.to_dict() for r in self.roles],
            "channels": [c.to_dict() for c in self.channels],
            "members": [m.to_dict() for m in self.members],
            "member_count": self.member_count,
        }


# =============================================================================
# Grant Type
# =============================================================================

@dataclass
class DelegationGrant:
    member_id: int
    source_guild_id: int
    access_token: str
    expires_at: float
    created_at: float
    owner_id: Optional[int] = None
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None

    def is_usable(self, now: float, margin: float) -> bool:
        """True when the token stays valid for longer than the margin."""
        return self.expires_at > now + margin

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "DelegationGrant":
        return cls(
            member_id=int(record["member_id"]),
            source_guild_id=int(record["source_guild_id"]),
            access_token=record["access_token"],
            expires_at=float(record["expires_at"]),
            created_at=float(record["created_at"]),
            owner_id=record.get("owner_id"),
            refresh_token=record.get("refresh_token"),
            token_type=record.get("token_type") or "Bearer",
            scope=record.get("scope"),
        )


# =============================================================================
# Restore Results
# =============================================================================

@dataclass
class ItemResult:
    """Outcome of a single restore item (role, channel, overwrite, member...)."""

    kind: str
    source_id: int
    name: str
    status: ItemStatus
    reason: Optional[str] = None
    new_id: Optional[int] = None


@dataclass
class RestoreReport:
    """Aggregated counts plus every per-item result of one restore run."""

    roles_created: int = 0
    channels_created: int = 0
    overwrites_created: int = 0
    members_attempted: int = 0
    members_added: int = 0
    member_roles_granted: int = 0
    source_guild_id: Optional[int] = None
    source_guild_name: Optional[str] = None
    captured_at: Optional[float] = None
    results: List[ItemResult] = field(default_factory=list)

    def record(self, result: ItemResult) -> ItemResult:
        self.results.append(result)
        return result

    def by_status(self, status: ItemStatus) -> List[ItemResult]:
        return [r for r in self.results if r.status == status]

    @property
    def skipped(self) -> List[ItemResult]:
        return self.by_status(ItemStatus.SKIPPED)

    @property
    def failed(self) -> List[ItemResult]:
        return self.by_status(ItemStatus.FAILED)


__all__ = [
    "ChannelKind",
    "TargetKind",
    "ItemStatus",
    "RoleSpec",
    "Overwrite",
    "ChannelSpec",
    "MemberSnapshot",
    "Snapshot",
    "DelegationGrant",
    "ItemResult",
    "RestoreReport",
]
