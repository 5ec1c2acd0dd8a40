from __future__ import annotations

import json
from pathlib import Path
from typing import List, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from merchant_twin.api.schemas import MerchantProfile, ScenarioConfig


class ConfigurationError(ValueError):
    """A profile or scenario that cannot be simulated."""


_M = TypeVar("_M", bound=BaseModel)


def _format_errors(e: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
        for err in e.errors()
    )


def _coerce(model: Type[_M], value: object, what: str) -> _M:
    if isinstance(value, model):
        return value
    if value is None:
        raise ConfigurationError(f"{what} is missing")
    if isinstance(value, (str, bytes)):
        try:
            value = json.loads(value)
        except ValueError as e:
            raise ConfigurationError(f"{what} is not valid JSON: {e}") from e
    if not isinstance(value, dict):
        raise ConfigurationError(f"{what} must be an object, got {type(value).__name__}")
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise ConfigurationError(f"invalid {what}: {_format_errors(e)}") from e


def coerce_profile(value: Union[MerchantProfile, dict, str, bytes, None]) -> MerchantProfile:
    return _coerce(MerchantProfile, value, "merchant profile")


def coerce_scenario(value: Union[ScenarioConfig, dict, str, bytes, None]) -> ScenarioConfig:
    return _coerce(ScenarioConfig, value, "scenario config")


def load_scenarios(directory: Union[str, Path]) -> List[ScenarioConfig]:
    """
    Read every *.json file in `directory` (sorted by file name) as a ScenarioConfig.
    Duplicate scenario ids are rejected.
    """
    path = Path(directory)
    if not path.is_dir():
        raise ConfigurationError(f"scenarios directory not found: {path}")

    scenarios: List[ScenarioConfig] = []
    seen: set[str] = set()
    for file in sorted(path.glob("*.json")):
        scenario = coerce_scenario(file.read_text(encoding="utf-8"))
        if scenario.scenario_id in seen:
            raise ConfigurationError(f"duplicate scenario id {scenario.scenario_id} in {file.name}")
        seen.add(scenario.scenario_id)
        scenarios.append(scenario)
    return scenarios
