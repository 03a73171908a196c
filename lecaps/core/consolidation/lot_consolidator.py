from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Union

from lecaps.core.errors import ValidationError
from lecaps.core.holdings.holding_schema import Holding, PurchaseInput, new_id, parse_holding, parse_purchase


@dataclass(frozen=True)
class Insert:
    lot: Holding


@dataclass(frozen=True)
class MergeInto:
    keep_lot_id: str
    updated_fields: dict[str, Any]
    ids_to_delete: tuple[str, ...]
    snapshot: Holding

    def merged_lot(self) -> Holding:
        return self.snapshot.model_copy(update=self.updated_fields)


ConsolidationResult = Union[Insert, MergeInto]


def consolidate(
    existing_lots: Sequence[Holding],
    new_purchase: PurchaseInput | dict[str, Any],
    *,
    portfolio_id: str,
    owner_id: str,
) -> ConsolidationResult:
    """
    Decide how a purchase lands in a portfolio that may already hold the ticker.

    No existing lots: insert a fresh lot. Otherwise every existing lot collapses
    into the first one at weighted-average cost, keeping the earliest purchase
    date, the latest maturity date and the newest maturity price. The caller
    applies a merge as one update of ``keep_lot_id`` followed by deleting
    ``ids_to_delete``.
    """
    purchase = parse_purchase(new_purchase)
    lots = [parse_holding(lot) for lot in existing_lots]
    _check_lots(lots, ticker=purchase.ticker, portfolio_id=portfolio_id, owner_id=owner_id)

    if not lots:
        return Insert(lot=_lot_from_purchase(purchase, portfolio_id=portfolio_id, owner_id=owner_id))

    keep = lots[0]
    total_quantity = math.fsum([lot.quantity for lot in lots] + [purchase.quantity])
    total_cost = math.fsum([lot.quantity * lot.purchase_price for lot in lots] + [purchase.quantity * purchase.purchase_price])

    updated_fields: dict[str, Any] = {
        "quantity": total_quantity,
        "purchase_price": total_cost / total_quantity,
        "maturity_price": purchase.maturity_price,
        "purchase_date": min([lot.purchase_date for lot in lots] + [purchase.purchase_date]),
        "maturity_date": max([lot.maturity_date for lot in lots] + [purchase.maturity_date]),
    }
    return MergeInto(
        keep_lot_id=keep.id,
        updated_fields=updated_fields,
        ids_to_delete=tuple(lot.id for lot in lots[1:]),
        snapshot=keep.model_copy(),
    )


def _lot_from_purchase(purchase: PurchaseInput, *, portfolio_id: str, owner_id: str) -> Holding:
    return parse_holding(
        {
            **purchase.model_dump(),
            "id": new_id(),
            "portfolio_id": portfolio_id,
            "owner_id": owner_id,
        }
    )


def _check_lots(lots: list[Holding], *, ticker: str, portfolio_id: str, owner_id: str) -> None:
    seen: set[str] = set()
    for lot in lots:
        if lot.ticker != ticker:
            raise ValidationError("ticker", f"existing lot {lot.id} is {lot.ticker}, purchase is {ticker}")
        if lot.portfolio_id != portfolio_id:
            raise ValidationError("portfolio_id", f"existing lot {lot.id} belongs to another portfolio")
        if lot.owner_id != owner_id:
            raise ValidationError("owner_id", f"existing lot {lot.id} belongs to another owner")
        if lot.id in seen:
            raise ValidationError("id", f"lot {lot.id} listed twice")
        seen.add(lot.id)
