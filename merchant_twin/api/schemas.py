from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class IncomeLevel(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class DigitalLiteracy(str, Enum):
    basic = "basic"
    intermediate = "intermediate"
    advanced = "advanced"


class DeviceType(str, Enum):
    android_low_end = "android_low_end"
    android_mid = "android_mid"
    ios = "ios"
    feature_phone = "feature_phone"


class NetworkProfile(str, Enum):
    NET_4G_GOOD = "4G_GOOD"
    NET_4G_UNSTABLE = "4G_UNSTABLE"
    NET_3G_POOR = "3G_POOR"
    NET_2G_EDGE = "2G_EDGE"


class AttemptResult(str, Enum):
    success = "success"
    retry = "retry"


class RunOutcome(str, Enum):
    RESOLVED = "RESOLVED"
    ABANDONED = "ABANDONED"
    ABORTED = "ABORTED"


# Issue types a merchants CSV may declare.
ISSUE_TYPES = ("pin_reset", "balance_check", "transaction_failure", "kyc_update", "statement_request")

# Profile categories copied onto every event for later grouping.
PROFILE_CATEGORY_FIELDS = ("issue_type", "network_profile", "digital_literacy", "income_level", "device_type")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _WireModel(BaseModel):
    """snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class MerchantProfile(_WireModel):
    """
    Static attributes of one simulated merchant.
    Enum fields are stored as their plain string values.
    """
    merchant_id: str = Field(..., min_length=1)
    income_level: IncomeLevel
    digital_literacy: DigitalLiteracy
    device_type: DeviceType
    network_profile: NetworkProfile
    patience_score: float = Field(..., ge=0.0, le=1.0)
    retry_threshold: int = Field(..., ge=1, le=10)
    issue_type: str = Field(..., min_length=1)

    def categories(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in PROFILE_CATEGORY_FIELDS}


class ScenarioConfig(_WireModel):
    scenario_id: str = Field(..., min_length=1)
    description: Optional[str] = None
    latency_multiplier: float = Field(1.0, ge=0.0)
    retry_bonus: int = 0
    success_probability_bonus: float = 0.0


class _EventBase(_WireModel):
    merchant_id: str = Field(..., min_length=1)
    scenario_id: str = "UNKNOWN"
    timestamp: datetime = Field(default_factory=utc_now)

    issue_type: Optional[str] = None
    network_profile: Optional[str] = None
    digital_literacy: Optional[str] = None
    income_level: Optional[str] = None
    device_type: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class AttemptEvent(_EventBase):
    """
    One try at resolving the issue.
    Also accepts `attempt` / `latency` in place of `attemptIndex` / `latencyMs`.
    """
    event: Literal["ATTEMPT"] = "ATTEMPT"
    attempt_index: int = Field(..., ge=1)
    latency_ms: int = Field(..., ge=0)
    result: AttemptResult

    @model_validator(mode="before")
    @classmethod
    def accept_short_names(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for short, name, alias in (("attempt", "attempt_index", "attemptIndex"), ("latency", "latency_ms", "latencyMs")):
            if short in data and name not in data and alias not in data:
                data[alias] = data.pop(short)
        return data


class SummaryEvent(_EventBase):
    """
    Terminal event of one (merchant, scenario) run.
    Metrics may arrive nested under `summary`; they are lifted to the top level.
    """
    event: Literal["SUMMARY"] = "SUMMARY"
    total_attempts: int = Field(..., ge=1)
    failures: int = Field(0, ge=0)
    success: bool
    experience_score: float = Field(0.0, ge=0.0, le=1.0)
    completion_time_ms: int = Field(0, ge=0)
    avg_latency_ms: int = Field(0, ge=0)
    outcome: Optional[RunOutcome] = None

    @model_validator(mode="before")
    @classmethod
    def lift_nested_summary(cls, data: object) -> object:
        if not isinstance(data, dict) or not isinstance(data.get("summary"), dict):
            return data
        lifted = dict(data["summary"])
        lifted.update({k: v for k, v in data.items() if k != "summary"})
        outcome = lifted.get("outcome")
        if isinstance(outcome, str) and outcome not in RunOutcome.__members__:
            # agents decorate the outcome label ("✅ RESOLVED")
            lifted["outcome"] = next((o.value for o in RunOutcome if o.value in outcome.upper()), None)
        return lifted
