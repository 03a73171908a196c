from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from lecaps.core.errors import ValidationError
from lecaps.core.holdings.holding_schema import (
    Holding,
    Portfolio,
    apply_holding_update,
    parse_holding,
    parse_portfolio,
    parse_purchase,
)

RAW_ROW = {
    "id": "lot-a",
    "portfolio_id": "pf-1",
    "user_id": "user-1",
    "ticker": " s31o5 ",
    "cantidad": "150",
    "precio_compra": "87.4321",
    "precio_finish": 100,
    "fecha_compra": "2025-03-10",
    "fecha_finish": "2025-10-31",
    "notas": "reinversion",
}


def test_parse_holding_accepts_persisted_column_names() -> None:
    holding = parse_holding(RAW_ROW)

    assert holding.ticker == "S31O5"
    assert holding.owner_id == "user-1"
    assert holding.quantity == 150.0
    assert holding.purchase_price == 87.4321
    assert holding.purchase_date == date(2025, 3, 10)
    assert holding.maturity_date == date(2025, 10, 31)
    assert holding.notes == "reinversion"


def test_to_record_round_trips_column_names() -> None:
    record = parse_holding(RAW_ROW).to_record()

    assert record["cantidad"] == 150.0
    assert record["precio_compra"] == 87.4321
    assert record["fecha_finish"] == "2025-10-31"
    assert record["user_id"] == "user-1"
    assert "broker" not in record
    assert parse_holding(record) == parse_holding(RAW_ROW)


def test_parse_holding_converts_datetimes_to_utc_dates() -> None:
    holding = parse_holding({**RAW_ROW, "fecha_compra": datetime(2025, 3, 10, 23, 0, tzinfo=timezone.utc)})
    assert holding.purchase_date == date(2025, 3, 10)


def test_parse_holding_names_offending_field() -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_holding({**RAW_ROW, "cantidad": 0})
    assert excinfo.value.field == "quantity"


def test_parse_holding_rejects_non_mapping() -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_holding(["not", "a", "mapping"])
    assert excinfo.value.field == "payload"


def test_parse_purchase_rejects_nan_price() -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_purchase(
            {
                "ticker": "S31O5",
                "quantity": 1,
                "purchase_price": float("nan"),
                "maturity_price": 100,
                "purchase_date": "2025-01-01",
                "maturity_date": "2025-02-01",
            }
        )
    assert excinfo.value.field == "purchase_price"


def test_apply_update_rejects_identity_fields() -> None:
    holding = parse_holding(RAW_ROW)

    with pytest.raises(ValidationError) as excinfo:
        apply_holding_update(holding, {"user_id": "someone-else"})
    assert excinfo.value.field == "owner_id"


def test_apply_update_validates_new_values() -> None:
    holding = parse_holding(RAW_ROW)

    updated = apply_holding_update(holding, {"precio_compra": "88.5", "ticker": "s30j5"})
    assert updated.purchase_price == 88.5
    assert updated.ticker == "S30J5"
    assert updated.id == holding.id

    with pytest.raises(ValidationError):
        apply_holding_update(holding, {"maturity_price": -1})


def test_portfolio_requires_name() -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_portfolio({"owner_id": "user-1", "name": "  "})
    assert excinfo.value.field == "name"

    portfolio = parse_portfolio({"user_id": "user-1", "name": " General "})
    assert isinstance(portfolio, Portfolio)
    assert portfolio.name == "General"
    assert portfolio.created_at.tzinfo is not None


def test_holding_is_immutable() -> None:
    holding = parse_holding(RAW_ROW)
    assert isinstance(holding, Holding)
    with pytest.raises(PydanticValidationError):
        holding.quantity = 1.0  # type: ignore[misc]
