from merchant_twin.api.schemas import AttemptEvent, SummaryEvent
from merchant_twin.insight.pipeline.aggregates import (
    NO_DATA_MESSAGE,
    available_scenarios,
    group_by,
    insights_by_issue,
    insights_by_network,
    merchant_summaries,
    summarize,
    summary_insights,
)
from merchant_twin.insight.pipeline.memory_store import InMemoryEventStore


def _summary(merchant_id: str, success: bool, *, scenario_id: str = "BASELINE", **kw) -> SummaryEvent:
    data = dict(
        merchant_id=merchant_id,
        scenario_id=scenario_id,
        total_attempts=1,
        failures=0 if success else 1,
        success=success,
        experience_score=0.0,
        completion_time_ms=0,
        avg_latency_ms=0,
    )
    data.update(kw)
    return SummaryEvent(**data)


def test_single_perfect_run():
    s = summarize([_summary("m1", True, experience_score=0.9, completion_time_ms=3000)])
    assert s["totalMerchants"] == 1
    assert s["successRate"] == 1.0
    assert s["successRatePercent"] == "100.0%"
    assert s["averageRetries"] == 1.0
    assert s["averageCompletionTimeMs"] == 3000
    assert s["averageCompletionTimeSec"] == 3.0
    # 1.0*0.5 - 0 + 0.9*0.4
    assert s["experienceScore"] == 0.86


def test_summary_from_store_matches_example_run():
    store = InMemoryEventStore()
    store.append(AttemptEvent(merchant_id="m1", scenario_id="BASELINE", attempt_index=1, latency_ms=120, result="success"))
    store.append(_summary("m1", True, experience_score=0.8, completion_time_ms=2600, avg_latency_ms=120))

    s = summary_insights(store)
    assert s["totalMerchants"] == 1
    assert s["successRate"] == 1.0
    assert s["averageRetries"] == 1.0
    assert s["experienceScore"] == 0.82


def test_empty_store_returns_zero_summary():
    s = summary_insights(InMemoryEventStore())
    assert s == {
        "totalMerchants": 0,
        "successRate": 0,
        "averageCompletionTimeMs": 0,
        "averageRetries": 0,
        "experienceScore": 0,
        "message": NO_DATA_MESSAGE,
    }


def test_success_rate_is_not_rounded():
    summaries = [_summary(f"m{i}", i < 3) for i in range(7)]
    s = summarize(summaries)
    assert s["successRate"] == 3 / 7
    assert s["successRatePercent"] == "42.9%"


def test_experience_score_is_not_clamped():
    summaries = [_summary("m1", False, total_attempts=8, failures=8)]
    s = summarize(summaries)
    # 0*0.5 - 7*0.1 + 0
    assert s["experienceScore"] == -0.7


def test_scenario_filter():
    store = InMemoryEventStore()
    store.append(_summary("m1", True, scenario_id="A"))
    store.append(_summary("m1", False, scenario_id="B"))
    store.append(_summary("m2", False, scenario_id="B"))

    assert summary_insights(store, "A")["totalMerchants"] == 1
    assert summary_insights(store, "B")["successRate"] == 0.0
    assert summary_insights(store)["totalMerchants"] == 3
    assert summary_insights(store, "C")["totalMerchants"] == 0


def test_rerun_counts_once_with_latest_summary():
    events = [
        _summary("m1", False),
        _summary("m1", True),
        _summary("m2", True),
    ]
    summaries = merchant_summaries(events)
    assert len(summaries) == 2
    assert all(s.success for s in summaries)


def test_aggregation_is_idempotent():
    store = InMemoryEventStore()
    for i in range(5):
        store.append(_summary(f"m{i}", i % 2 == 0, network_profile="3G_POOR"))
    assert summary_insights(store) == summary_insights(store)
    assert insights_by_network(store) == insights_by_network(store)


def test_group_by_network_with_unknown_bucket():
    summaries = [
        _summary("m1", True, network_profile="4G_GOOD", total_attempts=1, experience_score=0.6, completion_time_ms=1000),
        _summary("m2", False, network_profile="4G_GOOD", total_attempts=3, failures=3, completion_time_ms=2000),
        _summary("m3", True, network_profile="2G_EDGE", total_attempts=2, failures=1, experience_score=0.4),
        _summary("m4", True),
    ]
    groups = group_by(summaries, "network_profile")

    assert list(groups) == ["4G_GOOD", "2G_EDGE", "unknown"]
    good = groups["4G_GOOD"]
    assert good["totalMerchants"] == 2
    assert good["successRate"] == 0.5
    assert good["failureRate"] == 0.5
    assert good["failureRatePercent"] == "50.0%"
    assert good["avgAttempts"] == 2.0
    assert good["avgCompletionTimeMs"] == 1500
    assert good["avgExperienceScore"] == 0.3
    assert groups["unknown"]["totalMerchants"] == 1
    assert sum(g["totalMerchants"] for g in groups.values()) == len(summaries)


def test_group_by_blank_label_is_unknown():
    groups = group_by([_summary("m1", True, issue_type="  ")], "issue_type")
    assert list(groups) == ["unknown"]


def test_group_by_empty_input():
    assert group_by([], "network_profile") == {}
    assert insights_by_issue(InMemoryEventStore()) == {}


def test_available_scenarios_first_seen_order():
    store = InMemoryEventStore()
    store.append(AttemptEvent(merchant_id="m1", scenario_id="ONLY_ATTEMPTS", attempt_index=1, latency_ms=1, result="retry"))
    store.append(_summary("m1", True, scenario_id="SIMPLIFIED_FLOW"))
    store.append(_summary("m1", True, scenario_id="BASELINE"))
    store.append(_summary("m2", True, scenario_id="SIMPLIFIED_FLOW"))
    assert available_scenarios(store) == ["SIMPLIFIED_FLOW", "BASELINE"]


def test_average_completion_time_rounds_half_up():
    s = summarize([_summary("m1", True, completion_time_ms=3000), _summary("m2", True, completion_time_ms=3001)])
    assert s["averageCompletionTimeMs"] == 3001


def test_average_retries_rounds_half_up():
    summaries = [_summary(f"m{i}", True) for i in range(7)] + [_summary("m7", True, total_attempts=2)]
    # 9 attempts over 8 merchants = 1.125
    assert summarize(summaries)["averageRetries"] == 1.13
    assert group_by(summaries, "network_profile")["unknown"]["avgAttempts"] == 1.13


def test_grouped_completion_time_rounds_half_up():
    summaries = [
        _summary("m1", True, network_profile="3G_POOR", completion_time_ms=1000),
        _summary("m2", True, network_profile="3G_POOR", completion_time_ms=1001),
    ]
    assert group_by(summaries, "network_profile")["3G_POOR"]["avgCompletionTimeMs"] == 1001
