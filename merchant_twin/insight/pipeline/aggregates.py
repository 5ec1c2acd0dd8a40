from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from merchant_twin.api.schemas import SummaryEvent
from merchant_twin.insight.pipeline.storage_port import EventStorePort, SimulationEvent
from merchant_twin.rounding import percent, round_half_up, round_ms


NO_DATA_MESSAGE = "No simulation data available yet"
UNKNOWN_LABEL = "unknown"


def merchant_summaries(
    events: Iterable[SimulationEvent],
    scenario_id: Optional[str] = None,
) -> List[SummaryEvent]:
    """
    SUMMARY events, optionally restricted to one scenario.
    A merchant re-run under the same scenario counts once: the latest summary wins.
    """
    latest: Dict[Tuple[str, str], SummaryEvent] = {}
    for e in events:
        if not isinstance(e, SummaryEvent):
            continue
        if scenario_id is not None and e.scenario_id != scenario_id:
            continue
        latest[(e.scenario_id, e.merchant_id)] = e
    return list(latest.values())


def empty_summary() -> dict:
    return {
        "totalMerchants": 0,
        "successRate": 0,
        "averageCompletionTimeMs": 0,
        "averageRetries": 0,
        "experienceScore": 0,
        "message": NO_DATA_MESSAGE,
    }


def summarize(summaries: Sequence[SummaryEvent]) -> dict:
    """
    Scenario-level aggregate.

    The composite experienceScore is
        successRate*0.5 - (averageRetries-1)*0.1 + avgIndividualExperienceScore*0.4
    and is deliberately left unclamped; values outside [0, 1] are outliers for
    consumers to interpret.
    """
    if not summaries:
        return empty_summary()

    total_merchants = len(summaries)
    successful = sum(1 for s in summaries if s.success)
    success_rate = successful / total_merchants

    average_completion_ms = round_ms(sum(s.completion_time_ms for s in summaries) / total_merchants)
    average_retries = round_half_up(sum(s.total_attempts for s in summaries) / total_merchants, 2)
    avg_individual = round_half_up(sum(s.experience_score for s in summaries) / total_merchants, 2)

    experience_score = round_half_up(
        success_rate * 0.5 - (average_retries - 1) * 0.1 + avg_individual * 0.4,
        2,
    )

    return {
        "totalMerchants": total_merchants,
        "successRate": success_rate,
        "successRatePercent": percent(success_rate),
        "averageCompletionTimeMs": average_completion_ms,
        "averageCompletionTimeSec": round_half_up(average_completion_ms / 1000, 1),
        "averageRetries": average_retries,
        "experienceScore": experience_score,
        "avgIndividualExperienceScore": avg_individual,
    }


def _summaries_frame(summaries: Sequence[SummaryEvent]) -> pd.DataFrame:
    return pd.DataFrame([s.model_dump() for s in summaries])


def group_by(summaries: Sequence[SummaryEvent], field: str) -> Dict[str, dict]:
    """
    Partition summaries by a categorical field (snake_case name) and compute
    per-label statistics. Missing labels fall into "unknown".
    """
    if not summaries:
        return {}

    df = _summaries_frame(summaries)
    labels = df[field]
    present = labels.notna() & (labels.astype(str).str.strip() != "")
    df["_label"] = labels.where(present, UNKNOWN_LABEL).astype(str)

    grouped = df.groupby("_label", sort=False).agg(
        total=("success", "size"),
        successful=("success", "sum"),
        attempts=("total_attempts", "sum"),
        completion_ms=("completion_time_ms", "sum"),
        experience=("experience_score", "sum"),
    )

    insights: Dict[str, dict] = {}
    for label, row in grouped.iterrows():
        total = int(row["total"])
        failed = total - int(row["successful"])
        insights[str(label)] = {
            "totalMerchants": total,
            "successRate": round_half_up(int(row["successful"]) / total, 2),
            "failureRate": round_half_up(failed / total, 2),
            "failureRatePercent": percent(failed / total),
            "avgAttempts": round_half_up(float(row["attempts"]) / total, 2),
            "avgCompletionTimeMs": round_ms(float(row["completion_ms"]) / total),
            "avgExperienceScore": round_half_up(float(row["experience"]) / total, 2),
        }
    return insights


def summary_insights(store: EventStorePort, scenario_id: Optional[str] = None) -> dict:
    return summarize(merchant_summaries(store.all(), scenario_id))


def insights_by_network(store: EventStorePort) -> Dict[str, dict]:
    return group_by(merchant_summaries(store.all()), "network_profile")


def insights_by_literacy(store: EventStorePort) -> Dict[str, dict]:
    return group_by(merchant_summaries(store.all()), "digital_literacy")


def insights_by_issue(store: EventStorePort) -> Dict[str, dict]:
    return group_by(merchant_summaries(store.all()), "issue_type")


def insights_by_scenario_id(store: EventStorePort) -> Dict[str, dict]:
    return group_by(merchant_summaries(store.all()), "scenario_id")


def available_scenarios(store: EventStorePort) -> List[str]:
    """Distinct scenario ids of stored summaries, in first-seen order."""
    seen: Dict[str, None] = {}
    for e in store.all():
        if isinstance(e, SummaryEvent) and e.scenario_id:
            seen.setdefault(e.scenario_id, None)
    return list(seen)
