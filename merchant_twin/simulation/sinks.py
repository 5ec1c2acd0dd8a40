from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
import structlog

from merchant_twin import config
from merchant_twin.insight.pipeline.storage_port import EventStorePort, SimulationEvent

logger = structlog.get_logger(__name__)


class EventSink(ABC):
    @abstractmethod
    async def publish(self, event: SimulationEvent) -> None:
        """Deliver one event; may raise on delivery failure."""


class StoreSink(EventSink):
    """Appends straight into an in-process event store."""
    def __init__(self, store: EventStorePort) -> None:
        self.store = store

    async def publish(self, event: SimulationEvent) -> None:
        self.store.append(event)


class CollectingSink(EventSink):
    def __init__(self) -> None:
        self.events: List[SimulationEvent] = []

    async def publish(self, event: SimulationEvent) -> None:
        self.events.append(event)


class HttpEventSink(EventSink):
    """
    POSTs events to a running insight service at `{base_url}/simulation-event`.
    Non-2xx responses raise httpx.HTTPStatusError.
    """
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = (base_url or config.insight_service_url()).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else config.sink_timeout_seconds()
        )

    async def publish(self, event: SimulationEvent) -> None:
        resp = await self._client.post(f"{self.base_url}/simulation-event", json=event.to_wire())
        resp.raise_for_status()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpEventSink":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


async def deliver(sink: EventSink, event: SimulationEvent) -> bool:
    """
    Best-effort publish. A failed delivery is logged and reported as False;
    it never reaches the caller's control flow.
    """
    try:
        await sink.publish(event)
    except Exception as e:
        logger.warning(
            "event_delivery_failed",
            merchant_id=event.merchant_id,
            scenario_id=event.scenario_id,
            event_type=event.event,
            error=str(e),
        )
        return False
    return True
