"""
Factor model behind one merchant's retry process.

Every function here is pure given its inputs (and the random source, where one
is taken). Lookups are keyed by the plain string labels stored on
MerchantProfile; unrecognised labels contribute no bonus.
"""
from __future__ import annotations

from merchant_twin.api.schemas import MerchantProfile, ScenarioConfig
from merchant_twin.rounding import round_half_up, round_ms
from merchant_twin.simulation.random_source import RandomSource


NETWORK_LATENCY_MS = {
    "4G_GOOD": 100,
    "4G_UNSTABLE": 300,
    "3G_POOR": 800,
    "2G_EDGE": 1500,
}
DEFAULT_NETWORK_LATENCY_MS = 500
LATENCY_JITTER = 0.2

THINKING_DELAY_MS = {
    "basic": 2000,
    "intermediate": 1500,
    "advanced": 1000,
}
DEFAULT_THINKING_DELAY_MS = 1000
THINKING_JITTER_MS = 1000

BASE_SUCCESS_RATE = 0.35
LITERACY_SUCCESS_BONUS = {"advanced": 0.30, "intermediate": 0.15}
INCOME_SUCCESS_BONUS = {"high": 0.10, "medium": 0.05}
DEVICE_SUCCESS_BONUS = {"ios": 0.10, "android_mid": 0.05}
PATIENCE_SUCCESS_WEIGHT = 0.2

RETRY_DELAY_MS = 1000

ATTEMPT_PENALTY = 0.2
LITERACY_EXPERIENCE_BONUS = {"advanced": 0.2, "intermediate": 0.1}
INCOME_EXPERIENCE_IMPACT = {"high": -0.1, "low": 0.1}
NETWORK_EXPERIENCE_PENALTY = {"2G_EDGE": -0.2, "3G_POOR": -0.1}


def effective_retry_budget(profile: MerchantProfile, scenario: ScenarioConfig) -> int:
    return max(1, profile.retry_threshold + scenario.retry_bonus)


def base_latency_ms(network_profile: str) -> int:
    return NETWORK_LATENCY_MS.get(network_profile, DEFAULT_NETWORK_LATENCY_MS)


def attempt_latency_ms(network_profile: str, latency_multiplier: float, rng: RandomSource) -> int:
    """base × multiplier, jittered by ±20%."""
    adjusted = base_latency_ms(network_profile) * latency_multiplier
    jitter = rng.uniform(-LATENCY_JITTER, LATENCY_JITTER)
    return max(0, round_ms(adjusted * (1 + jitter)))


def initial_delay_ms(digital_literacy: str, rng: RandomSource) -> float:
    """Time spent before the first attempt; lower literacy takes longer."""
    base = THINKING_DELAY_MS.get(digital_literacy, DEFAULT_THINKING_DELAY_MS)
    return base + rng.uniform(0, THINKING_JITTER_MS)


def success_probability(profile: MerchantProfile, scenario: ScenarioConfig, *, clamp: bool = False) -> float:
    """
    Per-attempt success probability.
    Unclamped by default: stacked bonuses above 1.0 make every draw succeed.
    """
    p = (
        BASE_SUCCESS_RATE
        + LITERACY_SUCCESS_BONUS.get(profile.digital_literacy, 0.0)
        + INCOME_SUCCESS_BONUS.get(profile.income_level, 0.0)
        + DEVICE_SUCCESS_BONUS.get(profile.device_type, 0.0)
        + profile.patience_score * PATIENCE_SUCCESS_WEIGHT
        + scenario.success_probability_bonus
    )
    if clamp:
        return min(1.0, max(0.0, p))
    return p


def retry_delay_ms(patience_score: float) -> float:
    return RETRY_DELAY_MS * (1 - patience_score * 0.5)


def experience_score(attempts: int, success: bool, profile: MerchantProfile) -> float:
    if not success:
        return 0.0

    attempt_factor = max(0.0, 1 - (attempts - 1) * ATTEMPT_PENALTY)
    score = (
        attempt_factor * profile.patience_score
        + LITERACY_EXPERIENCE_BONUS.get(profile.digital_literacy, 0.0)
        + INCOME_EXPERIENCE_IMPACT.get(profile.income_level, 0.0)
        + NETWORK_EXPERIENCE_PENALTY.get(profile.network_profile, 0.0)
    )
    return round_half_up(min(1.0, max(0.0, score)), 2)
