from __future__ import annotations

import os


DEFAULT_INSIGHT_SERVICE_URL = "http://localhost:3000"
DEFAULT_CONCURRENCY = 8
DEFAULT_TIME_SCALE = 0.0
DEFAULT_SEED = 42
DEFAULT_SCENARIOS_DIR = "scenarios"
DEFAULT_SINK_TIMEOUT_SECONDS = 2.0

_TRUTHY = {"1", "true", "t", "yes", "y"}


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name, "").strip()
    return raw or default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default)).strip().lower()
    if raw in {"", "none", "null"}:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        return default


def insight_service_url() -> str:
    return _env_str("INSIGHT_SERVICE_URL", DEFAULT_INSIGHT_SERVICE_URL).rstrip("/")


def sim_concurrency() -> int:
    """SIM_CONCURRENCY: max parallel runs; anything below 1 falls back to 1."""
    return max(1, _env_int("SIM_CONCURRENCY", DEFAULT_CONCURRENCY))


def sim_time_scale() -> float:
    """
    SIM_TIME_SCALE:
    - 0 (default) -> virtual time, runs never wait on the wall clock
    - 1.0 -> simulated delays are slept in real time
    """
    return max(0.0, _env_float("SIM_TIME_SCALE", DEFAULT_TIME_SCALE))


def sim_seed() -> int:
    return _env_int("SIM_SEED", DEFAULT_SEED)


def sim_clamp_probability() -> bool:
    return os.getenv("SIM_CLAMP_PROBABILITY", "").strip().lower() in _TRUTHY


def scenarios_dir() -> str:
    return _env_str("SIM_SCENARIOS_DIR", DEFAULT_SCENARIOS_DIR)


def sink_timeout_seconds() -> float:
    return _env_float("SINK_TIMEOUT_SECONDS", DEFAULT_SINK_TIMEOUT_SECONDS)


def log_level() -> str:
    return _env_str("LOG_LEVEL", "INFO").upper()


def log_format() -> str:
    return _env_str("LOG_FORMAT", "console").lower()
