from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from merchant_twin.api.schemas import AttemptEvent, SummaryEvent
from merchant_twin.insight.pipeline.storage_port import SimulationEvent


REQUIRED_FIELDS = ("merchantId", "event", "timestamp")

_EVENT_MODELS = {
    "ATTEMPT": AttemptEvent,
    "SUMMARY": SummaryEvent,
}


class EventValidationError(ValueError):
    def __init__(self, message: str, *, missing: Optional[List[str]] = None, errors: Optional[list] = None) -> None:
        super().__init__(message)
        self.missing = missing or []
        self.errors = errors or []

    def detail(self) -> Dict[str, object]:
        detail: Dict[str, object] = {"error": str(self)}
        if self.missing:
            detail["missing"] = self.missing
        if self.errors:
            detail["errors"] = self.errors
        return detail


def _is_missing(val: object) -> bool:
    if val is None:
        return True
    if isinstance(val, str) and val.strip() == "":
        return True
    return False


def missing_required_fields(payload: dict) -> List[str]:
    """Required wire fields absent under both their camelCase and snake_case names."""
    return [
        name
        for name in REQUIRED_FIELDS
        if _is_missing(payload.get(name)) and _is_missing(payload.get(to_snake(name)))
    ]


def parse_event(payload: object) -> SimulationEvent:
    """
    Validate an inbound event payload and build the matching immutable event.
    Nothing is stored here; callers append the result.
    """
    if not isinstance(payload, dict):
        raise EventValidationError("event payload must be a JSON object")

    missing = missing_required_fields(payload)
    if missing:
        raise EventValidationError("Missing required fields", missing=missing)

    tag = str(payload["event"]).strip().upper()
    model = _EVENT_MODELS.get(tag)
    if model is None:
        raise EventValidationError(f"unknown event type: {payload['event']}")

    try:
        return model.model_validate({**payload, "event": tag})
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise EventValidationError(f"invalid {tag} event", errors=errors) from e
