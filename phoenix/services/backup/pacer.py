"""
Phoenix - Restore Pacer
=======================

Fixed post-call delay after every destination mutation.

DESIGN:
    Restore phases issue one mutating call at a time. After each call the
    Pacer sleeps for the delay of that call's class. There is no jitter and
    no backoff; the delays only keep a sequential run under Discord's
    per-route limits.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional


class CallClass(str, Enum):
    """Destination call families with their own delay."""
    STRUCTURE = "structure"  # role/channel/overwrite create, role grant
    MEMBER = "member"        # member re-admission


DEFAULT_DELAYS: Dict[CallClass, float] = {
    CallClass.STRUCTURE: 1.0,
    CallClass.MEMBER: 2.0,
}


class Pacer:
    """Sleeps a fixed delay per call class."""

    def __init__(
        self,
        structure_delay: float = DEFAULT_DELAYS[CallClass.STRUCTURE],
        member_delay: float = DEFAULT_DELAYS[CallClass.MEMBER],
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self._delays: Dict[CallClass, float] = {
            CallClass.STRUCTURE: max(0.0, structure_delay),
            CallClass.MEMBER: max(0.0, member_delay),
        }
        self._sleep = sleep or asyncio.sleep
        self.calls = 0

    def delay_for(self, call_class: CallClass) -> float:
        return self._delays[call_class]

    async def throttle(self, call_class: CallClass = CallClass.STRUCTURE) -> None:
        """Wait after a mutating call of the given class."""
        self.calls += 1
        delay = self._delays[call_class]
        if delay > 0:
            await self._sleep(delay)


__all__ = ["CallClass", "Pacer", "DEFAULT_DELAYS"]
