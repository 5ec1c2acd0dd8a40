from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Iterator, Union

from merchant_twin.api.schemas import AttemptEvent, SummaryEvent

SimulationEvent = Union[AttemptEvent, SummaryEvent]


class EventStorePort(ABC):
    @abstractmethod
    def append(self, event: SimulationEvent) -> None:
        """Append one event; never fails for a valid event."""

    @abstractmethod
    def all(self) -> Iterator[SimulationEvent]:
        """Events in arrival order, read from a consistent snapshot."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every stored event."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored events"""
