from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from lecaps.core.holdings.holding_schema import HOLDING_FIELD_ALIASES
from lecaps.core.orchestration.time_utils import to_utc_date, today_utc, utc_day_diff

DAYS_PER_YEAR = 365.0

# Not-a-number marker for rates that are economically undefined.
RATE_SENTINEL = float("nan")


@dataclass(frozen=True)
class HoldingMetrics:
    days_held: int
    capital_invested: float
    capital_at_maturity: float
    simple_return: float
    nominal_annual_rate: float
    effective_annual_rate: float
    yield_to_maturity: float

    @property
    def has_rates(self) -> bool:
        return not math.isnan(self.simple_return)

    def to_dict(self) -> dict[str, float | int | None]:
        return {
            "days_held": self.days_held,
            "capital_invested": self.capital_invested,
            "capital_at_maturity": self.capital_at_maturity,
            "simple_return": _rate_or_none(self.simple_return),
            "nominal_annual_rate": _rate_or_none(self.nominal_annual_rate),
            "effective_annual_rate": _rate_or_none(self.effective_annual_rate),
            "yield_to_maturity": _rate_or_none(self.yield_to_maturity),
        }


def compute_metrics(holding: Any) -> HoldingMetrics:
    """
    Holding-period and yield figures for one lot, ACT/365 fixed.

    Accepts a Holding or any record exposing the same fields (Python names or
    persisted column names). Missing or malformed numbers count as 0 and
    missing dates as today, so bad rows land in the sentinel branch instead
    of raising.
    """
    quantity = _to_float(_read(holding, "quantity"))
    purchase_price = _to_float(_read(holding, "purchase_price"))
    maturity_price = _to_float(_read(holding, "maturity_price"))
    purchase_date = _to_date(_read(holding, "purchase_date"))
    maturity_date = _to_date(_read(holding, "maturity_date"))

    capital_invested = quantity * purchase_price
    capital_at_maturity = quantity * maturity_price
    days_held = max(1, utc_day_diff(maturity_date, purchase_date))

    if not _positive_finite(capital_invested) or not _positive_finite(capital_at_maturity):
        return HoldingMetrics(
            days_held=days_held,
            capital_invested=0.0,
            capital_at_maturity=0.0,
            simple_return=RATE_SENTINEL,
            nominal_annual_rate=RATE_SENTINEL,
            effective_annual_rate=RATE_SENTINEL,
            yield_to_maturity=RATE_SENTINEL,
        )

    simple_return = (capital_at_maturity - capital_invested) / capital_invested
    nominal_annual_rate = simple_return * (DAYS_PER_YEAR / days_held)
    effective_annual_rate = _compound(capital_at_maturity / capital_invested, DAYS_PER_YEAR / days_held)

    return HoldingMetrics(
        days_held=days_held,
        capital_invested=capital_invested,
        capital_at_maturity=capital_at_maturity,
        simple_return=simple_return,
        nominal_annual_rate=nominal_annual_rate,
        effective_annual_rate=effective_annual_rate,
        # Single bullet redemption: YTM equals the effective rate over the period.
        yield_to_maturity=effective_annual_rate,
    )


def _compound(growth: float, periods: float) -> float:
    try:
        return math.pow(growth, periods) - 1.0
    except OverflowError:
        return math.inf


def _read(record: Any, name: str) -> Any:
    alias = HOLDING_FIELD_ALIASES.get(name)
    if isinstance(record, Mapping):
        if record.get(name) is not None:
            return record.get(name)
        return record.get(alias) if alias else None
    value = getattr(record, name, None)
    if value is None and alias:
        value = getattr(record, alias, None)
    return value


def _to_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _to_date(value: Any) -> date:
    parsed = to_utc_date(value)
    return parsed if parsed is not None else today_utc()


def _positive_finite(value: float) -> bool:
    return math.isfinite(value) and value > 0.0


def _rate_or_none(value: float) -> float | None:
    if math.isnan(value) or math.isinf(value):
        return None
    return value
