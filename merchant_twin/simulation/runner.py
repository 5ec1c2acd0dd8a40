from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import structlog

from merchant_twin import config
from merchant_twin.api.schemas import RunOutcome, ScenarioConfig
from merchant_twin.simulation.agent import SimulationResult, simulate_merchant
from merchant_twin.simulation.clock import RealClock, SimulationClock, VirtualClock
from merchant_twin.simulation.inputs import ConfigurationError, coerce_scenario
from merchant_twin.simulation.random_source import run_random_source
from merchant_twin.simulation.sinks import EventSink

logger = structlog.get_logger(__name__)

ClockFactory = Callable[[], SimulationClock]


@dataclass
class ScenarioTally:
    scenario_id: str
    runs: int = 0
    resolved: int = 0
    abandoned: int = 0
    aborted: int = 0
    rejected: int = 0
    skipped: int = 0


@dataclass(frozen=True)
class RunError:
    scenario_id: str
    merchant_ref: str
    message: str


@dataclass
class ExperimentReport:
    tallies: Dict[str, ScenarioTally] = field(default_factory=dict)
    results: List[SimulationResult] = field(default_factory=list)
    errors: List[RunError] = field(default_factory=list)


def default_clock_factory(time_scale: Optional[float] = None) -> ClockFactory:
    """Scale 0 (SIM_TIME_SCALE default) -> a fresh VirtualClock per run; otherwise one scaled RealClock."""
    scale = config.sim_time_scale() if time_scale is None else max(0.0, time_scale)
    if scale == 0:
        return VirtualClock
    real = RealClock(scale)
    return lambda: real


def _merchant_ref(profile: object, index: int) -> str:
    ref = getattr(profile, "merchant_id", None)
    if ref is None and isinstance(profile, dict):
        ref = profile.get("merchantId") or profile.get("merchant_id")
    return str(ref) if ref else f"#{index}"


async def run_experiment(
    profiles: Sequence[object],
    scenarios: Sequence[object],
    *,
    sink: EventSink,
    concurrency: Optional[int] = None,
    seed: Optional[int] = None,
    clock_factory: Optional[ClockFactory] = None,
    stop: Optional[asyncio.Event] = None,
    clamp_probability: Optional[bool] = None,
) -> ExperimentReport:
    """
    Simulate every (merchant, scenario) pair as an independent task, at most
    `concurrency` at a time. concurrency=1 runs them one after another.

    Scenarios are validated up front and a bad one aborts the whole experiment.
    A bad profile only rejects its own runs. Once `stop` is set, queued runs are
    skipped and running ones end after their current attempt.
    """
    scenario_configs: List[ScenarioConfig] = [coerce_scenario(s) for s in scenarios]
    concurrency = max(1, concurrency if concurrency is not None else config.sim_concurrency())
    seed = seed if seed is not None else config.sim_seed()
    clock_factory = clock_factory or default_clock_factory()

    report = ExperimentReport(tallies={s.scenario_id: ScenarioTally(s.scenario_id) for s in scenario_configs})
    semaphore = asyncio.Semaphore(concurrency)

    async def _run(scenario_index: int, scenario: ScenarioConfig, merchant_index: int, profile: object) -> None:
        tally = report.tallies[scenario.scenario_id]
        async with semaphore:
            if stop is not None and stop.is_set():
                tally.skipped += 1
                return
            try:
                result = await simulate_merchant(
                    profile,
                    scenario,
                    rng=run_random_source(seed, scenario_index, merchant_index),
                    clock=clock_factory(),
                    sink=sink,
                    stop=stop,
                    clamp_probability=clamp_probability,
                )
            except ConfigurationError as e:
                ref = _merchant_ref(profile, merchant_index)
                tally.rejected += 1
                report.errors.append(RunError(scenario.scenario_id, ref, str(e)))
                logger.warning("run_rejected", scenario_id=scenario.scenario_id, merchant=ref, error=str(e))
                return

        tally.runs += 1
        report.results.append(result)
        if result.outcome is RunOutcome.RESOLVED:
            tally.resolved += 1
        elif result.outcome is RunOutcome.ABORTED:
            tally.aborted += 1
        else:
            tally.abandoned += 1

    logger.info(
        "experiment_started",
        merchants=len(profiles),
        scenarios=[s.scenario_id for s in scenario_configs],
        concurrency=concurrency,
        seed=seed,
    )

    tasks = [
        asyncio.create_task(_run(si, scenario, mi, profile))
        for si, scenario in enumerate(scenario_configs)
        for mi, profile in enumerate(profiles)
    ]
    await asyncio.gather(*tasks)

    for tally in report.tallies.values():
        logger.info(
            "scenario_completed",
            scenario_id=tally.scenario_id,
            runs=tally.runs,
            resolved=tally.resolved,
            abandoned=tally.abandoned,
            aborted=tally.aborted,
            rejected=tally.rejected,
            skipped=tally.skipped,
        )
    return report
