from __future__ import annotations

from typing import List, Optional

import numpy as np
import pandas as pd

from merchant_twin.api.schemas import (
    DeviceType,
    DigitalLiteracy,
    IncomeLevel,
    MerchantProfile,
    NetworkProfile,
)


GENERATED_ISSUE_TYPES = ("pin_reset", "balance_check", "transaction_failure", "kyc_update")
PATIENCE_RANGE = (0.1, 0.9)
RETRY_THRESHOLD_RANGE = (1, 4)

PROFILE_COLUMNS = [
    "merchant_id",
    "income_level",
    "digital_literacy",
    "device_type",
    "network_profile",
    "patience_score",
    "retry_threshold",
    "issue_type",
]


def _pick(rng: np.random.Generator, values) -> str:
    return str(values[int(rng.integers(0, len(values)))])


def generate_merchants(count: int, seed: Optional[int] = None) -> List[MerchantProfile]:
    """
    Uniformly drawn synthetic population with ids SYNTH_001, SYNTH_002, ...
    """
    if count < 0:
        raise ValueError("count must be >= 0")

    rng = np.random.default_rng(seed)
    incomes = [v.value for v in IncomeLevel]
    literacies = [v.value for v in DigitalLiteracy]
    devices = [v.value for v in DeviceType]
    networks = [v.value for v in NetworkProfile]

    merchants: List[MerchantProfile] = []
    for i in range(1, count + 1):
        merchants.append(
            MerchantProfile(
                merchant_id=f"SYNTH_{i:03d}",
                income_level=_pick(rng, incomes),
                digital_literacy=_pick(rng, literacies),
                device_type=_pick(rng, devices),
                network_profile=_pick(rng, networks),
                patience_score=round(float(rng.uniform(*PATIENCE_RANGE)), 2),
                retry_threshold=int(rng.integers(RETRY_THRESHOLD_RANGE[0], RETRY_THRESHOLD_RANGE[1] + 1)),
                issue_type=_pick(rng, GENERATED_ISSUE_TYPES),
            )
        )
    return merchants


def profiles_to_frame(profiles: List[MerchantProfile]) -> pd.DataFrame:
    return pd.DataFrame([p.model_dump() for p in profiles], columns=PROFILE_COLUMNS)
