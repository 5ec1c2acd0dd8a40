import pytest

from merchant_twin.api.schemas import SummaryEvent
from merchant_twin.insight.pipeline.comparison import (
    Confidence,
    compare_scenarios,
    compare_summaries,
    compute_deltas,
    confidence_for,
    recommend,
)
from merchant_twin.insight.pipeline.memory_store import InMemoryEventStore


def _fill(store, scenario_id: str, total: int, successes: int) -> None:
    for i in range(total):
        ok = i < successes
        store.append(
            SummaryEvent(
                merchant_id=f"SYNTH_{i + 1:03d}",
                scenario_id=scenario_id,
                total_attempts=1 if ok else 2,
                failures=0 if ok else 2,
                success=ok,
                experience_score=0.5 if ok else 0.0,
                completion_time_ms=3000 if ok else 6000,
            )
        )


def _stats(success_rate=0.5, retries=2.0, completion_ms=5000, experience=0.4, total=30) -> dict:
    return {
        "totalMerchants": total,
        "successRate": success_rate,
        "successRatePercent": f"{success_rate * 100:.1f}%",
        "averageRetries": retries,
        "averageCompletionTimeMs": completion_ms,
        "averageCompletionTimeSec": round(completion_ms / 1000, 1),
        "experienceScore": experience,
    }


def test_better_scenario_is_recommended():
    store = InMemoryEventStore()
    _fill(store, "BASELINE", 20, 10)
    _fill(store, "SIMPLIFIED_FLOW", 20, 18)

    result = compare_scenarios(store, "BASELINE", "SIMPLIFIED_FLOW")

    assert result["scenarioA"]["id"] == "BASELINE"
    assert result["scenarioB"]["totalMerchants"] == 20
    assert result["comparison"]["successRateImprovement"] == pytest.approx(0.4)
    assert result["comparison"]["successRateImprovementPercent"] == "40.0%"
    assert result["comparison"]["completionTimeImprovement"] is True
    assert result["recommendation"]["recommendedScenario"] == "SIMPLIFIED_FLOW"
    assert result["recommendation"]["confidence"] == "MEDIUM"
    assert result["recommendation"]["sampleSize"] == 20


def test_missing_scenario_is_insufficient_data():
    store = InMemoryEventStore()
    _fill(store, "BASELINE", 5, 3)

    result = compare_scenarios(store, "BASELINE", "NOPE")

    assert result["error"] == "Insufficient data"
    assert result["missing"] == ["NOPE"]
    assert result["scenarioA"] == {"id": "BASELINE", "totalMerchants": 5}
    assert result["scenarioB"] == {"id": "NOPE", "totalMerchants": 0}
    assert "recommendation" not in result


def test_both_missing():
    result = compare_scenarios(InMemoryEventStore(), "X", "Y")
    assert result["missing"] == ["X", "Y"]


def test_swapping_sides_negates_deltas_and_keeps_recommendation():
    store = InMemoryEventStore()
    _fill(store, "A", 25, 10)
    _fill(store, "B", 25, 20)

    ab = compare_scenarios(store, "A", "B")
    ba = compare_scenarios(store, "B", "A")

    for key in ("successRateImprovement", "retryReduction", "completionTimeDeltaMs", "experienceScoreDelta"):
        assert ab["comparison"][key] == pytest.approx(-ba["comparison"][key])
    assert ab["recommendation"]["recommendedScenario"] == "B"
    assert ba["recommendation"]["recommendedScenario"] == "B"


def test_retry_reduction_percent():
    deltas = compute_deltas(_stats(retries=2.0), _stats(retries=1.5))
    assert deltas["retryReduction"] == 0.5
    assert deltas["retryReductionPercent"] == "25.0%"
    assert compute_deltas(_stats(retries=0), _stats(retries=0))["retryReductionPercent"] == "0%"


def test_recommend_on_experience_gain():
    deltas = compute_deltas(_stats(experience=0.40), _stats(experience=0.50))
    scenario, reason = recommend("A", "B", deltas)
    assert scenario == "B"
    assert reason == "Higher experience score (+0.1)"


def test_recommend_on_experience_loss():
    deltas = compute_deltas(_stats(experience=0.50), _stats(experience=0.40))
    scenario, reason = recommend("A", "B", deltas)
    assert scenario == "A"
    assert "A leads by 0.1" in reason


def test_recommend_on_success_rate_when_experience_is_close():
    deltas = compute_deltas(_stats(success_rate=0.5), _stats(success_rate=0.6, experience=0.42))
    scenario, reason = recommend("A", "B", deltas)
    assert scenario == "B"
    assert reason.startswith("Better success rate")

    deltas = compute_deltas(_stats(success_rate=0.6), _stats(success_rate=0.5))
    assert recommend("A", "B", deltas)[0] == "A"


def test_recommend_on_completion_time():
    deltas = compute_deltas(_stats(completion_ms=5000), _stats(completion_ms=4000))
    scenario, reason = recommend("A", "B", deltas)
    assert scenario == "B"
    assert reason == "Faster completion time (-1.0s)"


def test_recommend_defaults_to_first_scenario():
    deltas = compute_deltas(_stats(), _stats())
    assert recommend("A", "B", deltas) == ("A", "Baseline performance is adequate")


def test_experience_threshold_is_strict():
    deltas = compute_deltas(_stats(experience=0.40), _stats(experience=0.45))
    assert deltas["experienceScoreDelta"] == 0.05
    assert recommend("A", "B", deltas)[0] == "A"


@pytest.mark.parametrize(
    "sample_size,expected",
    [(0, Confidence.LOW), (19, Confidence.LOW), (20, Confidence.MEDIUM), (49, Confidence.MEDIUM), (50, Confidence.HIGH)],
)
def test_confidence_buckets(sample_size, expected):
    assert confidence_for(sample_size) is expected


def test_sample_size_is_smaller_side():
    result = compare_summaries("A", _stats(total=80), "B", _stats(total=55, experience=0.9))
    assert result["recommendation"]["sampleSize"] == 55
    assert result["recommendation"]["confidence"] == "HIGH"
