from __future__ import annotations

from enum import Enum
from typing import Tuple

from merchant_twin.insight.pipeline.aggregates import summary_insights
from merchant_twin.insight.pipeline.storage_port import EventStorePort
from merchant_twin.rounding import percent, round_half_up


EXPERIENCE_DELTA_THRESHOLD = 0.05
SUCCESS_DELTA_THRESHOLD = 0.05

HIGH_CONFIDENCE_SAMPLES = 50
MEDIUM_CONFIDENCE_SAMPLES = 20

_SIDE_FIELDS = (
    "totalMerchants",
    "successRate",
    "successRatePercent",
    "averageRetries",
    "averageCompletionTimeMs",
    "averageCompletionTimeSec",
    "experienceScore",
)


class Confidence(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


def confidence_for(sample_size: int) -> Confidence:
    if sample_size >= HIGH_CONFIDENCE_SAMPLES:
        return Confidence.HIGH
    if sample_size >= MEDIUM_CONFIDENCE_SAMPLES:
        return Confidence.MEDIUM
    return Confidence.LOW


def insufficient_data(scenario_a: str, summary_a: dict, scenario_b: str, summary_b: dict) -> dict:
    missing = [sid for sid, s in ((scenario_a, summary_a), (scenario_b, summary_b)) if s["totalMerchants"] == 0]
    return {
        "error": "Insufficient data",
        "message": "Missing simulation data for one or both scenarios",
        "missing": missing,
        "scenarioA": {"id": scenario_a, "totalMerchants": summary_a["totalMerchants"]},
        "scenarioB": {"id": scenario_b, "totalMerchants": summary_b["totalMerchants"]},
    }


def compute_deltas(summary_a: dict, summary_b: dict) -> dict:
    """
    Positive values favour B for every delta:
    higher success, fewer retries, less time, better experience.
    """
    success_delta = round_half_up(summary_b["successRate"] - summary_a["successRate"], 3)
    retry_reduction = round_half_up(summary_a["averageRetries"] - summary_b["averageRetries"], 2)
    completion_delta_ms = summary_a["averageCompletionTimeMs"] - summary_b["averageCompletionTimeMs"]
    experience_delta = round_half_up(summary_b["experienceScore"] - summary_a["experienceScore"], 3)

    if summary_a["averageRetries"] > 0:
        retry_reduction_percent = percent(retry_reduction / summary_a["averageRetries"])
    else:
        retry_reduction_percent = "0%"

    return {
        "successRateImprovement": success_delta,
        "successRateImprovementPercent": percent(success_delta),
        "retryReduction": retry_reduction,
        "retryReductionPercent": retry_reduction_percent,
        "completionTimeDeltaMs": completion_delta_ms,
        "completionTimeDeltaSec": round_half_up(completion_delta_ms / 1000, 2),
        "completionTimeImprovement": completion_delta_ms > 0,
        "experienceScoreDelta": experience_delta,
    }


def recommend(scenario_a: str, scenario_b: str, deltas: dict) -> Tuple[str, str]:
    """First matching rule wins; thresholds are absolute."""
    experience_delta = deltas["experienceScoreDelta"]
    success_delta = deltas["successRateImprovement"]

    if experience_delta > EXPERIENCE_DELTA_THRESHOLD:
        return scenario_b, f"Higher experience score (+{experience_delta})"
    if experience_delta < -EXPERIENCE_DELTA_THRESHOLD:
        return scenario_a, f"Higher experience score ({scenario_a} leads by {abs(experience_delta)})"
    if success_delta > SUCCESS_DELTA_THRESHOLD:
        return scenario_b, f"Better success rate (+{deltas['successRateImprovementPercent']})"
    if success_delta < -SUCCESS_DELTA_THRESHOLD:
        return scenario_a, f"Better success rate ({scenario_a} leads by {abs(success_delta) * 100:.1f}%)"
    if deltas["completionTimeDeltaMs"] > 0:
        return scenario_b, f"Faster completion time (-{abs(deltas['completionTimeDeltaSec'])}s)"
    return scenario_a, "Baseline performance is adequate"


def _side(scenario_id: str, summary: dict) -> dict:
    side = {"id": scenario_id}
    side.update({k: summary.get(k) for k in _SIDE_FIELDS})
    return side


def compare_summaries(scenario_a: str, summary_a: dict, scenario_b: str, summary_b: dict) -> dict:
    if summary_a["totalMerchants"] == 0 or summary_b["totalMerchants"] == 0:
        return insufficient_data(scenario_a, summary_a, scenario_b, summary_b)

    deltas = compute_deltas(summary_a, summary_b)
    recommended, reason = recommend(scenario_a, scenario_b, deltas)
    sample_size = min(summary_a["totalMerchants"], summary_b["totalMerchants"])

    return {
        "scenarioA": _side(scenario_a, summary_a),
        "scenarioB": _side(scenario_b, summary_b),
        "comparison": deltas,
        "recommendation": {
            "recommendedScenario": recommended,
            "reason": reason,
            "confidence": confidence_for(sample_size).value,
            "sampleSize": sample_size,
        },
    }


def compare_scenarios(store: EventStorePort, scenario_a: str, scenario_b: str) -> dict:
    """
    Compare two scenarios present in the store.
    Missing data on either side is a normal result, never an exception.
    """
    return compare_summaries(
        scenario_a,
        summary_insights(store, scenario_a),
        scenario_b,
        summary_insights(store, scenario_b),
    )
