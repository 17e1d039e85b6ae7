"""
Phoenix - Grant Resolver
========================

Finds a usable delegation grant for a member being restored.

DESIGN:
    Lookup order is fixed and the first usable grant wins:
        1. primary key (source guild, member)
        2. member index, newest first
        3. owner index filtered to the member, newest first

    A grant is usable only when it expires later than now + margin. Expired
    grants never stop the cascade; a later strategy may still produce a
    usable grant. A store read failure in one strategy counts as "no
    candidates" for that strategy and the cascade moves on.

    Store reads run in a worker thread so concurrent lookups do not block
    the event loop.
"""

import asyncio
import sqlite3
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional

from phoenix.core.constants import GRANT_LOOKUP_CONCURRENCY
from phoenix.core.logger import logger
from phoenix.services.backup.models import DelegationGrant

if TYPE_CHECKING:
    from phoenix.core.database import DatabaseManager


DEFAULT_EXPIRY_MARGIN = 300  # 5 minutes


class LookupStrategy(str, Enum):
    PRIMARY_KEY = "primary_key"
    MEMBER_INDEX = "member_index"
    OWNER_INDEX = "owner_index"


@dataclass
class GrantLookup:
    """Result of one cascade run."""

    grant: Optional[DelegationGrant] = None
    strategy: Optional[LookupStrategy] = None
    saw_expired: bool = False

    @property
    def found(self) -> bool:
        return self.grant is not None


class GrantResolver:
    """Resolves delegation grants through the fixed lookup cascade."""

    def __init__(
        self,
        db: "DatabaseManager",
        margin: float = DEFAULT_EXPIRY_MARGIN,
        clock: Callable[[], float] = time.time,
        concurrency: int = GRANT_LOOKUP_CONCURRENCY,
    ) -> None:
        self.db = db
        self.margin = margin
        self._clock = clock
        self._concurrency = max(1, concurrency)

    # =========================================================================
    # Public API
    # =========================================================================

    def is_usable(self, grant: DelegationGrant) -> bool:
        """True when the grant is still outside the expiry margin right now."""
        return grant.is_usable(self._clock(), self.margin)

    async def resolve(
        self,
        owner_id: int,
        source_guild_id: int,
        member_id: int,
    ) -> Optional[DelegationGrant]:
        """Usable grant for a member, or None."""
        return (await self.lookup(owner_id, source_guild_id, member_id)).grant

    async def lookup(
        self,
        owner_id: int,
        source_guild_id: int,
        member_id: int,
    ) -> GrantLookup:
        """Run the cascade and report which strategy produced the grant."""
        now = self._clock()
        result = GrantLookup()

        for strategy in LookupStrategy:
            candidates = await self._read(strategy, owner_id, source_guild_id, member_id)
            for grant in candidates:
                if grant.is_usable(now, self.margin):
                    result.grant = grant
                    result.strategy = strategy
                    return result
                result.saw_expired = True

        return result

    async def resolve_many(
        self,
        owner_id: int,
        source_guild_id: int,
        member_ids: Iterable[int],
    ) -> Dict[int, GrantLookup]:
        """Look up several members concurrently. Reads are not rate limited."""
        semaphore = asyncio.Semaphore(self._concurrency)
        ids = list(dict.fromkeys(member_ids))

        async def bounded(member_id: int) -> GrantLookup:
            async with semaphore:
                return await self.lookup(owner_id, source_guild_id, member_id)

        lookups = await asyncio.gather(*(bounded(member_id) for member_id in ids))
        return dict(zip(ids, lookups))

    # =========================================================================
    # Strategies
    # =========================================================================

    async def _read(
        self,
        strategy: LookupStrategy,
        owner_id: int,
        source_guild_id: int,
        member_id: int,
    ) -> List[DelegationGrant]:
        try:
            if strategy == LookupStrategy.PRIMARY_KEY:
                record = await asyncio.to_thread(self.db.get_grant, source_guild_id, member_id)
                records = [record] if record else []
            elif strategy == LookupStrategy.MEMBER_INDEX:
                records = await asyncio.to_thread(self.db.get_grants_for_member, member_id)
            else:
                records = await asyncio.to_thread(self.db.get_grants_for_owner, owner_id, member_id)
        except sqlite3.Error as e:
            logger.warning("Grant Lookup Failed", [
                ("Strategy", strategy.value),
                ("Member", str(member_id)),
                ("Error", str(e)),
            ])
            return []

        return [DelegationGrant.from_record(dict(record)) for record in records]


__all__ = [
    "DEFAULT_EXPIRY_MARGIN",
    "LookupStrategy",
    "GrantLookup",
    "GrantResolver",
]
