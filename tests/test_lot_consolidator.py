from __future__ import annotations

import math
from datetime import date

import pytest

from lecaps.core.consolidation.lot_consolidator import Insert, MergeInto, consolidate
from lecaps.core.errors import ValidationError
from lecaps.core.holdings.holding_schema import Holding


def _lot(lot_id: str, **overrides) -> Holding:
    fields = {
        "id": lot_id,
        "portfolio_id": "pf-1",
        "owner_id": "user-1",
        "ticker": "S30J5",
        "quantity": 10.0,
        "purchase_price": 95.0,
        "maturity_price": 100.0,
        "purchase_date": date(2025, 1, 1),
        "maturity_date": date(2025, 6, 1),
    }
    fields.update(overrides)
    return Holding(**fields)


def _purchase(**overrides) -> dict:
    payload = {
        "ticker": "s30j5",
        "quantity": 10,
        "purchase_price": 97,
        "maturity_price": 100,
        "purchase_date": "2025-02-01",
        "maturity_date": "2025-07-01",
    }
    payload.update(overrides)
    return payload


def _consolidate(existing, purchase):
    return consolidate(existing, purchase, portfolio_id="pf-1", owner_id="user-1")


def test_empty_portfolio_inserts_new_lot() -> None:
    result = _consolidate([], _purchase(broker="IOL", notas="primera compra"))

    assert isinstance(result, Insert)
    lot = result.lot
    assert lot.ticker == "S30J5"
    assert lot.quantity == 10.0
    assert lot.purchase_price == 97.0
    assert lot.purchase_date == date(2025, 2, 1)
    assert lot.portfolio_id == "pf-1"
    assert lot.owner_id == "user-1"
    assert lot.broker == "IOL"
    assert lot.notes == "primera compra"
    assert lot.id


def test_insert_generates_fresh_ids() -> None:
    first = _consolidate([], _purchase())
    second = _consolidate([], _purchase())

    assert isinstance(first, Insert) and isinstance(second, Insert)
    assert first.lot.id != second.lot.id


def test_merge_weighted_average_and_date_bounds() -> None:
    existing = _lot("lot-a")
    result = _consolidate([existing], _purchase())

    assert isinstance(result, MergeInto)
    assert result.keep_lot_id == "lot-a"
    assert result.ids_to_delete == ()
    assert result.updated_fields["quantity"] == 20.0
    assert result.updated_fields["purchase_price"] == pytest.approx(96.0)
    assert result.updated_fields["maturity_price"] == 100.0
    assert result.updated_fields["purchase_date"] == date(2025, 1, 1)
    assert result.updated_fields["maturity_date"] == date(2025, 7, 1)


def test_merge_keeps_first_lot_and_deletes_the_rest() -> None:
    lots = [
        _lot("lot-a", quantity=5.0, purchase_price=90.0, purchase_date=date(2025, 3, 1)),
        _lot("lot-b", quantity=15.0, purchase_price=94.0, purchase_date=date(2024, 12, 15)),
        _lot("lot-c", quantity=30.0, purchase_price=96.5, maturity_date=date(2025, 9, 30)),
    ]
    result = _consolidate(lots, _purchase(quantity=50, purchase_price=98.25, maturity_price=101.5))

    assert isinstance(result, MergeInto)
    assert result.keep_lot_id == "lot-a"
    assert result.ids_to_delete == ("lot-b", "lot-c")
    assert result.updated_fields["quantity"] == 100.0
    assert result.updated_fields["maturity_price"] == 101.5
    assert result.updated_fields["purchase_date"] == date(2024, 12, 15)
    assert result.updated_fields["maturity_date"] == date(2025, 9, 30)


def test_merge_preserves_cost_basis() -> None:
    lots = [
        _lot("lot-a", quantity=3.0, purchase_price=91.123456),
        _lot("lot-b", quantity=7.5, purchase_price=93.987654),
    ]
    purchase = _purchase(quantity=12.25, purchase_price=96.5)
    result = _consolidate(lots, purchase)

    assert isinstance(result, MergeInto)
    expected_cost = 3.0 * 91.123456 + 7.5 * 93.987654 + 12.25 * 96.5
    merged_cost = result.updated_fields["purchase_price"] * result.updated_fields["quantity"]
    assert math.isclose(merged_cost, expected_cost, rel_tol=1e-12)


def test_merged_dates_bound_every_input() -> None:
    lots = [
        _lot("lot-a", purchase_date=date(2025, 1, 10), maturity_date=date(2025, 5, 30)),
        _lot("lot-b", purchase_date=date(2025, 1, 5), maturity_date=date(2025, 8, 29)),
    ]
    purchase = _purchase(purchase_date="2025-01-20", maturity_date="2025-06-30")
    result = _consolidate(lots, purchase)

    assert isinstance(result, MergeInto)
    merged_purchase = result.updated_fields["purchase_date"]
    merged_maturity = result.updated_fields["maturity_date"]
    for lot in lots:
        assert merged_purchase <= lot.purchase_date
        assert merged_maturity >= lot.maturity_date
    assert merged_purchase <= date(2025, 1, 20)
    assert merged_maturity >= date(2025, 6, 30)


def test_merge_carries_pre_merge_snapshot() -> None:
    existing = _lot("lot-a")
    result = _consolidate([existing], _purchase())

    assert isinstance(result, MergeInto)
    assert result.snapshot == existing
    merged = result.merged_lot()
    assert merged.id == "lot-a"
    assert merged.quantity == 20.0
    assert existing.quantity == 10.0


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"ticker": "   "}, "ticker"),
        ({"quantity": 0}, "quantity"),
        ({"quantity": -1}, "quantity"),
        ({"purchase_price": 0}, "purchase_price"),
        ({"purchase_price": "abc"}, "purchase_price"),
        ({"maturity_price": -100}, "maturity_price"),
        ({"purchase_date": ""}, "purchase_date"),
        ({"maturity_date": None}, "maturity_date"),
    ],
)
def test_invalid_purchase_is_rejected(overrides: dict, field: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        _consolidate([_lot("lot-a")], _purchase(**overrides))
    assert excinfo.value.field == field


def test_missing_field_is_reported() -> None:
    payload = _purchase()
    del payload["maturity_price"]

    with pytest.raises(ValidationError) as excinfo:
        _consolidate([], payload)
    assert excinfo.value.field == "maturity_price"


def test_lots_of_another_ticker_are_rejected() -> None:
    with pytest.raises(ValidationError) as excinfo:
        _consolidate([_lot("lot-a", ticker="S29G5")], _purchase())
    assert excinfo.value.field == "ticker"


def test_lots_of_another_portfolio_are_rejected() -> None:
    with pytest.raises(ValidationError) as excinfo:
        _consolidate([_lot("lot-a", portfolio_id="pf-2")], _purchase())
    assert excinfo.value.field == "portfolio_id"
