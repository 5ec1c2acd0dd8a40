#!/usr/bin/env python3
"""
Synthetic Merchant Profile Generator
Language: Python

Writes a merchants CSV that `merchant-twin simulate --csv` (and
read_profiles_csv) accepts:

    merchant_id, income_level, digital_literacy, device_type,
    network_profile, patience_score, retry_threshold, issue_type

Profiles are SYNTHETIC-only; every categorical field is drawn uniformly,
patience from U(0.1, 0.9) and retry threshold from 1..4.

Usage
-----
python merchant_profile_generator.py --out merchants.csv --count 100 --seed 42

Dependencies: numpy, pandas
"""

from __future__ import annotations

import argparse

from merchant_twin.simulation.profiles import generate_merchants, profiles_to_frame


DEFAULT_COUNT = 100
DEFAULT_SEED = 42
DEFAULT_OUT = "merchants.csv"


def write_profiles(out: str, count: int, seed: int) -> int:
    df = profiles_to_frame(generate_merchants(count, seed=seed))
    df.to_csv(out, index=False)
    return len(df)


# -----------------------------
# CLI
# -----------------------------
def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Generate synthetic merchant profiles.")
    p.add_argument("--out", type=str, default=DEFAULT_OUT, help="Output CSV path.")
    p.add_argument("--count", type=int, default=DEFAULT_COUNT, help="Number of merchants.")
    p.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Random seed.")
    return p


def main() -> None:
    args = build_arg_parser().parse_args()
    n = write_profiles(out=args.out, count=args.count, seed=args.seed)
    print(f"wrote {n} merchants to {args.out}")


if __name__ == "__main__":
    main()
