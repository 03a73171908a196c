from __future__ import annotations

from datetime import date

from lecaps.ui.utils.formatting import format_date, format_money, format_number, format_pct


def test_format_pct_fraction() -> None:
    assert format_pct(0.2507) == "25.07%"


def test_format_pct_sentinel() -> None:
    assert format_pct(float("nan")) == "-"
    assert format_pct(None) == "-"
    assert format_pct(float("inf")) == "-"


def test_format_money_numeric() -> None:
    assert format_money(8000) == "$8,000.00"
    assert format_money(-1234.5) == "-$1,234.50"


def test_format_number_decimals() -> None:
    assert format_number(150, decimals=0) == "150"
    assert format_number("abc") == "-"


def test_format_date() -> None:
    assert format_date(date(2025, 10, 31)) == "31/10/2025"
    assert format_date(None) == "-"
