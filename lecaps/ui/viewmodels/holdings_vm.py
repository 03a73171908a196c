from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pandas as pd

from lecaps.core.holdings.holding_schema import Holding
from lecaps.core.metrics.portfolio_totals import PortfolioTotals, compute_portfolio_totals
from lecaps.core.metrics.yield_metrics import HoldingMetrics, compute_metrics
from lecaps.ui.utils.formatting import format_date, format_money, format_number, format_pct

FRAME_COLUMNS = [
    "id",
    "ticker",
    "purchase_date",
    "maturity_date",
    "days_held",
    "quantity",
    "purchase_price",
    "maturity_price",
    "capital_invested",
    "capital_at_maturity",
    "nominal_annual_rate",
    "effective_annual_rate",
    "yield_to_maturity",
]

DISPLAY_COLUMNS = [
    "Ticker",
    "Compra",
    "Venc.",
    "Días",
    "Cant.",
    "Precio",
    "Precio fin",
    "Invertido",
    "Al vencimiento",
    "TNA",
    "TEA",
    "YTM",
]


def build_holding_row_vm(holding: Holding, metrics: HoldingMetrics | None = None) -> dict[str, Any]:
    m = metrics or compute_metrics(holding)
    return {
        "id": holding.id,
        "Ticker": holding.ticker,
        "Compra": format_date(holding.purchase_date),
        "Venc.": format_date(holding.maturity_date),
        "Días": str(m.days_held),
        "Cant.": format_number(holding.quantity, decimals=0),
        "Precio": format_number(holding.purchase_price, decimals=4),
        "Precio fin": format_number(holding.maturity_price, decimals=4),
        "Invertido": format_money(m.capital_invested),
        "Al vencimiento": format_money(m.capital_at_maturity),
        "TNA": format_pct(m.nominal_annual_rate),
        "TEA": format_pct(m.effective_annual_rate),
        "YTM": format_pct(m.yield_to_maturity),
    }


def build_totals_vm(totals: PortfolioTotals) -> dict[str, str]:
    return {
        "Invertido": format_money(totals.invested),
        "Valor a vencimiento": format_money(totals.at_maturity),
        "Resultado bruto": format_money(totals.gross_result),
        "Posiciones": str(totals.holding_count),
    }


def build_holdings_frame(holdings: Iterable[Holding]) -> pd.DataFrame:
    """Numeric table of lots and their metrics; sentinel rates stay NaN."""
    records: list[dict[str, Any]] = []
    for holding in holdings:
        metrics = compute_metrics(holding)
        records.append(
            {
                "id": holding.id,
                "ticker": holding.ticker,
                "purchase_date": holding.purchase_date,
                "maturity_date": holding.maturity_date,
                "days_held": metrics.days_held,
                "quantity": holding.quantity,
                "purchase_price": holding.purchase_price,
                "maturity_price": holding.maturity_price,
                "capital_invested": metrics.capital_invested,
                "capital_at_maturity": metrics.capital_at_maturity,
                "nominal_annual_rate": metrics.nominal_annual_rate,
                "effective_annual_rate": metrics.effective_annual_rate,
                "yield_to_maturity": metrics.yield_to_maturity,
            }
        )
    frame = pd.DataFrame.from_records(records, columns=FRAME_COLUMNS)
    if not frame.empty:
        frame = frame.sort_values(["maturity_date", "ticker"], kind="stable").reset_index(drop=True)
    return frame


def build_holdings_table_vm(holdings: Iterable[Holding]) -> dict[str, Any]:
    items = list(holdings)
    return {
        "rows": [build_holding_row_vm(h) for h in sorted(items, key=lambda h: h.maturity_date)],
        "totals": build_totals_vm(compute_portfolio_totals(items)),
        "empty": not items,
    }
