from __future__ import annotations

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Body, HTTPException, Request, status

from merchant_twin.insight.pipeline.aggregates import (
    NO_DATA_MESSAGE,
    available_scenarios,
    insights_by_issue,
    insights_by_literacy,
    insights_by_network,
    insights_by_scenario_id,
    summary_insights,
)
from merchant_twin.insight.pipeline.comparison import compare_scenarios
from merchant_twin.insight.pipeline.storage_port import EventStorePort
from merchant_twin.insight.pipeline.validation import EventValidationError, parse_event

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["insights"])


def _store(request: Request) -> EventStorePort:
    return request.app.state.store


def _grouped_or_message(insights: Dict[str, dict]) -> Dict[str, Any]:
    return insights if insights else {"message": NO_DATA_MESSAGE}


@router.post("/simulation-event", status_code=status.HTTP_201_CREATED)
def ingest_event(request: Request, payload: Any = Body(...)):
    """
    Accept one ATTEMPT or SUMMARY event from a simulation run.
    Rejected events are never stored.
    """
    try:
        event = parse_event(payload)
    except EventValidationError as e:
        logger.info("event_rejected", error=str(e), missing=e.missing)
        raise HTTPException(status_code=400, detail=e.detail())

    _store(request).append(event)
    logger.debug("event_stored", merchant_id=event.merchant_id, scenario_id=event.scenario_id, event_type=event.event)
    return {"success": True, "message": "Event stored successfully"}


@router.get("/insights/summary")
def get_summary(request: Request, scenarioId: Optional[str] = None):
    return summary_insights(_store(request), scenarioId or None)


@router.get("/insights/scenario/{scenario_id}")
def get_scenario_summary(request: Request, scenario_id: str):
    return summary_insights(_store(request), scenario_id)


@router.get("/insights/scenarios")
def get_scenarios(request: Request):
    scenarios = available_scenarios(_store(request))
    return {"scenarios": scenarios, "count": len(scenarios)}


@router.get("/insights/compare")
def get_comparison(request: Request, scenarioA: Optional[str] = None, scenarioB: Optional[str] = None):
    if not scenarioA or not scenarioB:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Missing parameters",
                "message": "Both scenarioA and scenarioB query parameters are required",
                "example": "/insights/compare?scenarioA=BASELINE&scenarioB=SIMPLIFIED_FLOW",
            },
        )
    return compare_scenarios(_store(request), scenarioA, scenarioB)


@router.get("/insights/by-network")
def get_by_network(request: Request):
    return _grouped_or_message(insights_by_network(_store(request)))


@router.get("/insights/by-literacy")
def get_by_literacy(request: Request):
    return _grouped_or_message(insights_by_literacy(_store(request)))


@router.get("/insights/by-issue")
def get_by_issue(request: Request):
    return _grouped_or_message(insights_by_issue(_store(request)))


@router.get("/insights/by-scenario")
def get_by_scenario(request: Request):
    # grouped by issue type; kept under this path for existing report clients
    return _grouped_or_message(insights_by_issue(_store(request)))


@router.get("/insights/by-scenario-id")
def get_by_scenario_id(request: Request):
    return _grouped_or_message(insights_by_scenario_id(_store(request)))


@router.delete("/insights/clear")
def clear_events(request: Request):
    _store(request).clear()
    logger.info("events_cleared")
    return {"success": True, "message": "All events cleared"}
