from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog

from merchant_twin import config
from merchant_twin.api.schemas import (
    AttemptEvent,
    AttemptResult,
    MerchantProfile,
    RunOutcome,
    ScenarioConfig,
    SummaryEvent,
)
from merchant_twin.insight.pipeline.storage_port import SimulationEvent
from merchant_twin.rounding import round_ms
from merchant_twin.simulation.behavior import (
    attempt_latency_ms,
    effective_retry_budget,
    experience_score,
    initial_delay_ms,
    retry_delay_ms,
    success_probability,
)
from merchant_twin.simulation.clock import SimulationClock
from merchant_twin.simulation.inputs import coerce_profile, coerce_scenario
from merchant_twin.simulation.random_source import RandomSource
from merchant_twin.simulation.sinks import EventSink, deliver

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SimulationResult:
    summary: SummaryEvent
    attempts: Tuple[AttemptEvent, ...]

    @property
    def outcome(self) -> RunOutcome:
        return RunOutcome(self.summary.outcome)

    @property
    def resolved(self) -> bool:
        return self.summary.success


def _stopped(stop: Optional[asyncio.Event]) -> bool:
    return stop is not None and stop.is_set()


def _summary_event(
    profile: MerchantProfile,
    scenario: ScenarioConfig,
    attempts: List[AttemptEvent],
    total_latency_ms: int,
    elapsed_ms: float,
    aborted: bool,
) -> SummaryEvent:
    count = len(attempts)
    success = attempts[-1].result == AttemptResult.success.value
    if success:
        outcome = RunOutcome.RESOLVED
    elif aborted:
        outcome = RunOutcome.ABORTED
    else:
        outcome = RunOutcome.ABANDONED

    return SummaryEvent(
        merchant_id=profile.merchant_id,
        scenario_id=scenario.scenario_id,
        total_attempts=count,
        failures=count - (1 if success else 0),
        success=success,
        experience_score=experience_score(count, success, profile),
        completion_time_ms=max(0, round_ms(elapsed_ms)),
        avg_latency_ms=round_ms(total_latency_ms / count),
        outcome=outcome,
        **profile.categories(),
    )


class _Outbox:
    """
    Per-run delivery queue drained by one background task.
    Events go out in the order they were put; the run never waits on the sink.
    """
    def __init__(self, sink: EventSink) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task = asyncio.create_task(self._drain(sink))

    async def _drain(self, sink: EventSink) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            await deliver(sink, event)

    def put(self, event: SimulationEvent) -> None:
        self._queue.put_nowait(event)

    async def close(self) -> None:
        """Wait until every queued event has been handed to the sink."""
        self._queue.put_nowait(None)
        await self._task


async def simulate_merchant(
    profile: object,
    scenario: object,
    *,
    rng: RandomSource,
    clock: SimulationClock,
    sink: EventSink,
    stop: Optional[asyncio.Event] = None,
    clamp_probability: Optional[bool] = None,
) -> SimulationResult:
    """
    Run one merchant's bounded retry process under one scenario.

    Emits one AttemptEvent per attempt and exactly one SummaryEvent through
    `sink`. Delivery is best-effort and runs beside the retry loop, so a slow or
    failing sink never delays the next attempt; the call returns once every
    event of the run has been handed over. The run ends RESOLVED on the first
    successful attempt, ABANDONED when the retry budget is spent, or ABORTED
    when `stop` is set between attempts.

    Task cancellation after the first attempt still emits a summary of the
    partial run before the CancelledError propagates.

    Raises ConfigurationError for an unusable profile or scenario, before any
    event is produced.
    """
    profile = coerce_profile(profile)
    scenario = coerce_scenario(scenario)
    if clamp_probability is None:
        clamp_probability = config.sim_clamp_probability()

    log = logger.bind(merchant_id=profile.merchant_id, scenario_id=scenario.scenario_id)
    budget = effective_retry_budget(profile, scenario)
    probability = success_probability(profile, scenario, clamp=clamp_probability)
    categories = profile.categories()

    attempts: List[AttemptEvent] = []
    total_latency_ms = 0
    aborted = False
    outbox = _Outbox(sink)
    start_ms = clock.now_ms()

    try:
        try:
            await clock.sleep(initial_delay_ms(profile.digital_literacy, rng))

            while True:
                latency = attempt_latency_ms(profile.network_profile, scenario.latency_multiplier, rng)
                await clock.sleep(latency)
                total_latency_ms += latency

                success = rng.random() < probability
                event = AttemptEvent(
                    merchant_id=profile.merchant_id,
                    scenario_id=scenario.scenario_id,
                    attempt_index=len(attempts) + 1,
                    latency_ms=latency,
                    result=AttemptResult.success if success else AttemptResult.retry,
                    **categories,
                )
                attempts.append(event)
                outbox.put(event)

                if success or len(attempts) >= budget:
                    break
                if _stopped(stop):
                    aborted = True
                    break
                await clock.sleep(retry_delay_ms(profile.patience_score))
                if _stopped(stop):
                    aborted = True
                    break
        except asyncio.CancelledError:
            if attempts:
                outbox.put(
                    _summary_event(
                        profile, scenario, attempts, total_latency_ms, clock.now_ms() - start_ms, aborted=True
                    )
                )
                log.info("run_cancelled", attempts=len(attempts))
            raise

        summary = _summary_event(profile, scenario, attempts, total_latency_ms, clock.now_ms() - start_ms, aborted)
        outbox.put(summary)
    finally:
        await outbox.close()

    log.debug(
        "run_completed",
        outcome=summary.outcome,
        attempts=summary.total_attempts,
        budget=budget,
        experience_score=summary.experience_score,
    )
    return SimulationResult(summary=summary, attempts=tuple(attempts))
