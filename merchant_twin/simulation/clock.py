from __future__ import annotations

import asyncio
import time
from typing import Protocol


class SimulationClock(Protocol):
    def now_ms(self) -> float:
        ...

    async def sleep(self, ms: float) -> None:
        ...


class RealClock:
    """
    Wall-clock time. Simulated delays are slept for `ms * time_scale`;
    a scale of 0 still yields to the event loop.
    """
    def __init__(self, time_scale: float = 1.0) -> None:
        self.time_scale = max(0.0, time_scale)

    def now_ms(self) -> float:
        return time.monotonic() * 1000

    async def sleep(self, ms: float) -> None:
        await asyncio.sleep(max(0.0, ms) * self.time_scale / 1000)


class VirtualClock:
    """
    Simulated time that advances by exactly the requested delay.
    Use one instance per run: concurrent runs sharing it would add up each
    other's delays.
    """
    def __init__(self, start_ms: float = 0.0) -> None:
        self._now_ms = start_ms

    def now_ms(self) -> float:
        return self._now_ms

    async def sleep(self, ms: float) -> None:
        self._now_ms += max(0.0, ms)
        await asyncio.sleep(0)
