from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float, ndigits: int = 0) -> float:
    """
    Round the exact binary value of `value`, ties away from zero
    (2.5 -> 3, 1.125 -> 1.13). Built-in round() sends ties to the even neighbour.
    """
    quantum = Decimal(1).scaleb(-ndigits)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def round_ms(value: float) -> int:
    return int(round_half_up(value))


def percent(ratio: float) -> str:
    return f"{round_half_up(ratio * 100, 1):.1f}%"
