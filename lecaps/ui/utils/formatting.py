from __future__ import annotations

import math
from datetime import date
from typing import Optional, Union

Number = Union[int, float]

MISSING = "-"


def format_number(value: Optional[Number], *, decimals: int = 2) -> str:
    v = _finite_or_none(value)
    if v is None:
        return MISSING
    return f"{v:,.{decimals}f}"


def format_money(value: Optional[Number], *, decimals: int = 2) -> str:
    text = format_number(value, decimals=decimals)
    if text == MISSING:
        return MISSING
    return f"-${text[1:]}" if text.startswith("-") else f"${text}"


def format_pct(value: Optional[Number], *, decimals: int = 2) -> str:
    """Format a rate given as a fraction (0.25 -> "25.00%"); NaN means no rate."""
    v = _finite_or_none(value)
    if v is None:
        return MISSING
    return f"{v * 100.0:.{decimals}f}%"


def format_date(value: Optional[date]) -> str:
    if value is None:
        return MISSING
    return value.strftime("%d/%m/%Y")


def _finite_or_none(value: Optional[Number]) -> Optional[float]:
    if value is None:
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(v) or math.isinf(v):
        return None
    return v
