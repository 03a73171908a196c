from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from lecaps.core.metrics.yield_metrics import compute_metrics


@dataclass(frozen=True)
class PortfolioTotals:
    invested: float
    at_maturity: float
    gross_result: float
    holding_count: int

    def to_dict(self) -> dict[str, float | int]:
        return {
            "invested": self.invested,
            "at_maturity": self.at_maturity,
            "gross_result": self.gross_result,
            "holding_count": self.holding_count,
        }


def compute_portfolio_totals(holdings: Iterable[Any]) -> PortfolioTotals:
    invested: list[float] = []
    at_maturity: list[float] = []
    for holding in holdings:
        metrics = compute_metrics(holding)
        invested.append(metrics.capital_invested)
        at_maturity.append(metrics.capital_at_maturity)

    total_invested = math.fsum(invested)
    total_at_maturity = math.fsum(at_maturity)
    return PortfolioTotals(
        invested=total_invested,
        at_maturity=total_at_maturity,
        gross_result=total_at_maturity - total_invested,
        holding_count=len(invested),
    )
