"""
Command line entry point.

    merchant-twin simulate --merchants 50
    merchant-twin report --service-url http://localhost:3000
    merchant-twin compare BASELINE SIMPLIFIED_FLOW

`simulate` runs against an in-process store unless --service-url is given, in
which case events are posted to a running insight service.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Dict, List, Optional, Sequence, Tuple

import httpx

from merchant_twin import config
from merchant_twin.insight.pipeline.aggregates import (
    available_scenarios,
    insights_by_issue,
    insights_by_literacy,
    insights_by_network,
    summary_insights,
)
from merchant_twin.insight.pipeline.comparison import compare_scenarios
from merchant_twin.insight.pipeline.memory_store import InMemoryEventStore
from merchant_twin.logging_config import configure_logging
from merchant_twin.simulation.adapters.csv_profiles import read_profiles_csv
from merchant_twin.simulation.inputs import ConfigurationError, load_scenarios
from merchant_twin.simulation.profiles import generate_merchants
from merchant_twin.simulation.runner import ExperimentReport, default_clock_factory, run_experiment
from merchant_twin.simulation.sinks import HttpEventSink, StoreSink


RULE = "═" * 70
SUBRULE = "─" * 70
BASELINE = "BASELINE"


# -----------------------------
# Insight sources
# -----------------------------
class LocalInsights:
    def __init__(self, store: InMemoryEventStore) -> None:
        self.store = store

    def summary(self) -> dict:
        return summary_insights(self.store)

    def grouped(self) -> Tuple[dict, dict, dict]:
        return insights_by_network(self.store), insights_by_literacy(self.store), insights_by_issue(self.store)

    def scenarios(self) -> List[str]:
        return available_scenarios(self.store)

    def compare(self, scenario_a: str, scenario_b: str) -> dict:
        return compare_scenarios(self.store, scenario_a, scenario_b)


class RemoteInsights:
    """Reads the same views from a running insight service."""
    def __init__(self, base_url: str, *, timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, path: str, **params) -> dict:
        resp = httpx.get(f"{self.base_url}{path}", params=params or None, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def summary(self) -> dict:
        return self._get("/insights/summary")

    def grouped(self) -> Tuple[dict, dict, dict]:
        return (
            self._get("/insights/by-network"),
            self._get("/insights/by-literacy"),
            self._get("/insights/by-issue"),
        )

    def scenarios(self) -> List[str]:
        return self._get("/insights/scenarios").get("scenarios", [])

    def compare(self, scenario_a: str, scenario_b: str) -> dict:
        return self._get("/insights/compare", scenarioA=scenario_a, scenarioB=scenario_b)

    def clear(self) -> None:
        httpx.delete(f"{self.base_url}/insights/clear", timeout=self.timeout).raise_for_status()


# -----------------------------
# Rendering
# -----------------------------
def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def _groups(payload: dict) -> Dict[str, dict]:
    # empty breakdowns come back as {"message": ...}
    return {k: v for k, v in payload.items() if isinstance(v, dict)}


def interpret_experience(score: float) -> str:
    if score >= 0.7:
        return "Excellent - users have a smooth experience"
    if score >= 0.5:
        return "Good - minor friction points exist"
    if score >= 0.3:
        return "Fair - significant improvement needed"
    return "Poor - critical issues affecting users"


def pick_scenarios(
    available: Sequence[str],
    scenario_a: Optional[str] = None,
    scenario_b: Optional[str] = None,
) -> Optional[Tuple[str, str]]:
    """Explicit pair wins; otherwise BASELINE vs the first other scenario, else the first two."""
    if scenario_a and scenario_b:
        return scenario_a, scenario_b
    if BASELINE in available:
        others = [s for s in available if s != BASELINE]
        return (BASELINE, others[0]) if others else None
    if len(available) >= 2:
        return available[0], available[1]
    return None


def _breakdown(title: str, groups: Dict[str, dict], width: int) -> List[str]:
    lines = ["", SUBRULE, f"  {title}", SUBRULE, ""]
    for label, data in sorted(groups.items(), key=lambda kv: kv[1]["failureRate"], reverse=True):
        bar = "█" * round(data["failureRate"] * 50)
        lines.append(f"  {label.ljust(width)} {data['failureRatePercent'].rjust(6)} {bar}")
        lines.append(
            f"  {''.ljust(width)} Avg Time: {data['avgCompletionTimeMs'] / 1000:.1f}s"
            f" | Attempts: {data['avgAttempts']} | Exp Score: {data['avgExperienceScore']}"
        )
    return lines


def render_report(summary: dict, by_network: dict, by_literacy: dict, by_issue: dict) -> str:
    lines = [RULE, "  SIMULATION INSIGHTS REPORT", RULE]

    if summary.get("totalMerchants", 0) == 0:
        lines += [
            "",
            "  No simulation data available yet.",
            "  Run `merchant-twin simulate` to generate data, then re-run this report.",
        ]
        return "\n".join(lines)

    succeeded = round(summary["successRate"] * summary["totalMerchants"])
    lines += [
        "",
        f"  Total Merchants Simulated:    {summary['totalMerchants']}",
        f"  Success Rate:                 {_pct(summary['successRate'])} ({succeeded} succeeded)",
        f"  Average Completion Time:      {summary['averageCompletionTimeSec']}s ({summary['averageCompletionTimeMs']}ms)",
        f"  Average Retry Attempts:       {summary['averageRetries']}",
        f"  Overall Experience Score:     {summary['experienceScore']} / 1.0",
        "",
        f"  Experience Assessment: {interpret_experience(summary['experienceScore'])}",
    ]

    networks, literacies, issues = _groups(by_network), _groups(by_literacy), _groups(by_issue)
    if networks:
        lines += _breakdown("FAILURES BY NETWORK PROFILE", networks, 15)
    if literacies:
        lines += _breakdown("FAILURES BY DIGITAL LITERACY", literacies, 15)
    if issues:
        lines += _breakdown("FAILURES BY ISSUE TYPE", issues, 20)

    lines += ["", SUBRULE, "  RECOMMENDATIONS", SUBRULE, ""]
    for kind, groups, advice in (
        ("Network", networks, "optimize for low-bandwidth conditions and retry handling on poor networks"),
        ("Digital literacy", literacies, "simplify the flow and add guidance for less tech-savvy users"),
    ):
        if groups:
            label, worst = max(groups.items(), key=lambda kv: kv[1]["failureRate"])
            if worst["failureRate"] > 0.3:
                lines.append(f"  {kind}: {label} has {worst['failureRatePercent']} failure rate")
                lines.append(f"     -> {advice}")
    if summary["experienceScore"] < 0.5:
        lines.append(f"  Overall experience score is low ({summary['experienceScore']})")
        lines.append("     -> review the top failure segments and A/B test fixes before rollout")
    else:
        lines.append(f"  System is performing well (score: {summary['experienceScore']})")
    lines.append(RULE)
    return "\n".join(lines)


def render_comparison(comparison: dict) -> str:
    lines = [RULE, "  SCENARIO COMPARISON REPORT", RULE]

    if comparison.get("error"):
        missing = ", ".join(comparison.get("missing", [])) or "unknown"
        lines += [
            "",
            f"  {comparison['error']}: no simulation data yet for {missing}.",
            "  Run more simulations for these scenarios, then compare again.",
        ]
        return "\n".join(lines)

    a, b = comparison["scenarioA"], comparison["scenarioB"]
    comp = comparison["comparison"]
    rec = comparison["recommendation"]

    for tag, side in (("A", a), ("B", b)):
        lines += [
            "",
            f"  Scenario {tag}: {side['id']}",
            f"     Merchants: {side['totalMerchants']}",
            f"     Success Rate: {side['successRatePercent']}",
            f"     Avg Retries: {side['averageRetries']}",
            f"     Avg Time: {side['averageCompletionTimeSec']}s",
            f"     Experience Score: {side['experienceScore']}",
        ]

    sign = "+" if comp["successRateImprovement"] > 0 else ""
    if comp["retryReduction"] >= 0:
        retry_text = f"Reduced by {comp['retryReduction']}"
    else:
        retry_text = f"Increased by {abs(comp['retryReduction'])}"
    faster = "Faster" if comp["completionTimeImprovement"] else "Slower"
    exp_sign = "+" if comp["experienceScoreDelta"] > 0 else ""

    lines += [
        "",
        SUBRULE,
        "  PERFORMANCE COMPARISON",
        SUBRULE,
        f"  Success Rate:      {sign}{comp['successRateImprovementPercent']} ({b['id']} vs {a['id']})",
        f"  Retry Attempts:    {retry_text} attempts ({comp['retryReductionPercent']})",
        f"  Completion Time:   {faster} by {abs(comp['completionTimeDeltaSec'])}s",
        f"  Experience Score:  {exp_sign}{comp['experienceScoreDelta']} points",
        "",
        SUBRULE,
        "  RECOMMENDATION",
        SUBRULE,
        f"  Recommended Scenario: {rec['recommendedScenario']}",
        f"     Reason: {rec['reason']}",
        f"     Confidence: {rec['confidence']} (sample size: {rec['sampleSize']})",
    ]
    if rec["confidence"] == "LOW":
        lines += [
            "",
            f"  Note: low confidence due to small sample size ({rec['sampleSize']}).",
            "     -> run the simulation with more merchants; aim for at least 50 per scenario",
        ]
    lines.append(RULE)
    return "\n".join(lines)


def render_tallies(report: ExperimentReport) -> str:
    lines = [RULE, "  SIMULATION RUNS", RULE]
    for tally in report.tallies.values():
        lines.append(
            f"  {tally.scenario_id.ljust(20)} runs: {tally.runs} | resolved: {tally.resolved}"
            f" | abandoned: {tally.abandoned} | aborted: {tally.aborted} | rejected: {tally.rejected}"
        )
    for err in report.errors:
        lines.append(f"  ! {err.scenario_id}/{err.merchant_ref}: {err.message}")
    return "\n".join(lines)


# -----------------------------
# Commands
# -----------------------------
def _print_comparison(insights, scenario_a: Optional[str], scenario_b: Optional[str]) -> int:
    pair = pick_scenarios(insights.scenarios(), scenario_a, scenario_b)
    if pair is None:
        print("Need at least 2 scenarios with data to compare. Run more simulations first.")
        return 1
    comparison = insights.compare(*pair)
    print(render_comparison(comparison))
    return 1 if comparison.get("error") else 0


def cmd_simulate(args: argparse.Namespace) -> int:
    profiles = read_profiles_csv(args.csv) if args.csv else generate_merchants(args.merchants, seed=args.seed)
    scenarios = load_scenarios(args.scenarios_dir)
    if not scenarios:
        print(f"No scenarios found in {args.scenarios_dir}")
        return 2

    kwargs = dict(
        concurrency=args.concurrency,
        seed=args.seed,
        clock_factory=default_clock_factory(args.time_scale),
    )

    if args.service_url:
        insights = RemoteInsights(args.service_url)
        insights.clear()

        async def _run_remote() -> ExperimentReport:
            async with HttpEventSink(args.service_url) as sink:
                return await run_experiment(profiles, scenarios, sink=sink, **kwargs)

        report = asyncio.run(_run_remote())
    else:
        store = InMemoryEventStore()
        insights = LocalInsights(store)
        report = asyncio.run(run_experiment(profiles, scenarios, sink=StoreSink(store), **kwargs))

    print(render_tallies(report))
    print(render_report(insights.summary(), *insights.grouped()))
    return _print_comparison(insights, args.scenario_a, args.scenario_b)


def cmd_report(args: argparse.Namespace) -> int:
    insights = RemoteInsights(args.service_url)
    print(render_report(insights.summary(), *insights.grouped()))
    return 0


def cmd_compare(args: argparse.Namespace) -> int:
    return _print_comparison(RemoteInsights(args.service_url), args.scenario_a, args.scenario_b)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="merchant-twin", description="Merchant digital-twin experimentation harness.")
    sub = p.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="Run every merchant through every scenario.")
    sim.add_argument("--merchants", type=int, default=20, help="Synthetic merchants to generate.")
    sim.add_argument("--csv", type=str, default=None, help="Load merchant profiles from a CSV instead.")
    sim.add_argument("--scenarios-dir", type=str, default=config.scenarios_dir(), help="Directory of scenario JSON files.")
    sim.add_argument("--seed", type=int, default=config.sim_seed(), help="Random seed.")
    sim.add_argument("--concurrency", type=int, default=config.sim_concurrency(), help="Max parallel runs.")
    sim.add_argument("--time-scale", type=float, default=config.sim_time_scale(), help="0 = virtual time, 1 = real time.")
    sim.add_argument("--service-url", type=str, default=None, help="Post events to a running insight service.")
    sim.add_argument("--scenario-a", type=str, default=None)
    sim.add_argument("--scenario-b", type=str, default=None)
    sim.set_defaults(func=cmd_simulate)

    rep = sub.add_parser("report", help="Render insights from a running insight service.")
    rep.add_argument("--service-url", type=str, default=config.insight_service_url())
    rep.set_defaults(func=cmd_report)

    cmp_ = sub.add_parser("compare", help="Compare two scenarios on a running insight service.")
    cmp_.add_argument("scenario_a", nargs="?", default=None)
    cmp_.add_argument("scenario_b", nargs="?", default=None)
    cmp_.add_argument("--service-url", type=str, default=config.insight_service_url())
    cmp_.set_defaults(func=cmd_compare)
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging()
    args = build_arg_parser().parse_args(argv)
    try:
        return args.func(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except httpx.HTTPError as e:
        url = getattr(args, "service_url", None) or config.insight_service_url()
        print(f"Could not reach the insight service at {url}: {e}", file=sys.stderr)
        print("Start it with: python -m merchant_twin.api.app", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
