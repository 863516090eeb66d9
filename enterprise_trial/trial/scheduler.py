"""Delay abstraction used between confirmation checks."""

from __future__ import annotations

import asyncio
from typing import Protocol


class Scheduler(Protocol):
    async def sleep(self, delay: float, stop: asyncio.Event) -> bool:
        """Wait ``delay`` seconds or until ``stop`` is set.

        Returns True if the full delay elapsed.
        """
        ...


class AsyncioScheduler:
    """Real-time scheduler on the running event loop."""

    async def sleep(self, delay: float, stop: asyncio.Event) -> bool:
        try:
            await asyncio.wait_for(stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False
