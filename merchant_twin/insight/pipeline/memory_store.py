from __future__ import annotations
import threading
from typing import Iterator, List

from merchant_twin.insight.pipeline.storage_port import EventStorePort, SimulationEvent


class InMemoryEventStore(EventStorePort):
    """
    Append-only in-process event log.
    Appends, snapshots and clear all take the same lock, so a reader never
    sees a partially cleared log.
    """
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: List[SimulationEvent] = []

    def append(self, event: SimulationEvent) -> None:
        with self._lock:
            self._events.append(event)

    def all(self) -> Iterator[SimulationEvent]:
        with self._lock:
            snapshot = tuple(self._events)
        return iter(snapshot)

    def clear(self) -> None:
        with self._lock:
            self._events = []

    def count(self) -> int:
        with self._lock:
            return len(self._events)
