from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Any

from lecaps.core.consolidation.lot_consolidator import Insert, consolidate
from lecaps.core.consolidation.undo import CollaboratorCall, DeletedLot, OverwrittenLot, UndoSlot, apply_undo
from lecaps.core.errors import ValidationError
from lecaps.core.holdings.holding_schema import Holding, Portfolio, apply_holding_update, parse_purchase
from lecaps.core.identity.identity_provider import Session
from lecaps.core.metrics.portfolio_totals import PortfolioTotals, compute_portfolio_totals
from lecaps.core.metrics.yield_metrics import HoldingMetrics, compute_metrics
from lecaps.core.store.holdings_store import HoldingsRepository

logger = logging.getLogger(__name__)


class HoldingsService:
    """
    Runs purchases, edits, deletes and undo against a holdings repository.

    All calls are scoped to ``session.user_id``. Mutations for one owner are
    serialized, and each owner has a single undo slot that the latest
    delete/edit/merge overwrites.
    """

    def __init__(self, store: HoldingsRepository, default_portfolio_name: str = "General"):
        self.store = store
        self.default_portfolio_name = default_portfolio_name
        self._undo_slots: dict[str, UndoSlot] = {}
        self._owner_locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def ensure_default_portfolio(self, session: Session) -> Portfolio:
        with self._owner_lock(session.user_id):
            portfolios = self.store.list_portfolios(session.user_id)
            if portfolios:
                return portfolios[0]
            logger.info("owner %s has no portfolio; creating %r", session.user_id, self.default_portfolio_name)
            return self.store.create_portfolio(session.user_id, self.default_portfolio_name)

    def list_portfolios(self, session: Session) -> list[Portfolio]:
        self.ensure_default_portfolio(session)
        return self.store.list_portfolios(session.user_id)

    def create_portfolio(self, session: Session, name: str) -> Portfolio:
        if not str(name or "").strip():
            raise ValidationError("name", "portfolio name cannot be empty")
        return self.store.create_portfolio(session.user_id, str(name).strip())

    def list_holdings(self, session: Session, portfolio_id: str) -> list[Holding]:
        self.store.get_portfolio(session.user_id, portfolio_id)
        return self.store.list_holdings(session.user_id, portfolio_id)

    def holding_rows(self, session: Session, portfolio_id: str) -> list[tuple[Holding, HoldingMetrics]]:
        return [(holding, compute_metrics(holding)) for holding in self.list_holdings(session, portfolio_id)]

    def portfolio_totals(self, session: Session, portfolio_id: str) -> PortfolioTotals:
        return compute_portfolio_totals(self.list_holdings(session, portfolio_id))

    def add_purchase(self, session: Session, portfolio_id: str, raw_purchase: Any) -> Holding:
        purchase = parse_purchase(raw_purchase)
        owner_id = session.user_id
        with self._owner_lock(owner_id):
            self.store.get_portfolio(owner_id, portfolio_id)
            existing = self.store.find_holdings(owner_id, portfolio_id, purchase.ticker)
            plan = consolidate(existing, purchase, portfolio_id=portfolio_id, owner_id=owner_id)

            if isinstance(plan, Insert):
                created = self.store.insert_holding(plan.lot)
                self._undo_slot(owner_id).clear()
                logger.info("inserted %s lot %s in portfolio %s", created.ticker, created.id, portfolio_id)
                return created

            # Update first: if the deletes fail the kept lot already holds the merged position.
            merged = self.store.update_holding(plan.keep_lot_id, owner_id, plan.updated_fields)
            self.store.delete_holdings(plan.ids_to_delete, owner_id)
            self._undo_slot(owner_id).record(OverwrittenLot(snapshot=plan.snapshot, reason="merge"))
            logger.info(
                "merged %s purchase into lot %s in portfolio %s (removed %d duplicate lots)",
                merged.ticker,
                merged.id,
                portfolio_id,
                len(plan.ids_to_delete),
            )
            return merged

    def edit_holding(self, session: Session, holding_id: str, raw_fields: Mapping[str, Any]) -> Holding:
        owner_id = session.user_id
        with self._owner_lock(owner_id):
            current = self.store.get_holding(owner_id, holding_id)
            candidate = apply_holding_update(current, raw_fields)
            changed = {
                name: value for name, value in candidate.mutable_fields().items() if getattr(current, name) != value
            }
            if not changed:
                return current
            updated = self.store.update_holding(holding_id, owner_id, changed)
            self._undo_slot(owner_id).record(OverwrittenLot(snapshot=current, reason="edit"))
            logger.info("edited lot %s (%s): %s", holding_id, updated.ticker, ", ".join(sorted(changed)))
            return updated

    def delete_holding(self, session: Session, holding_id: str) -> Holding:
        owner_id = session.user_id
        with self._owner_lock(owner_id):
            current = self.store.get_holding(owner_id, holding_id)
            self.store.delete_holding(holding_id, owner_id)
            self._undo_slot(owner_id).record(DeletedLot(snapshot=current))
            logger.info("deleted lot %s (%s) from portfolio %s", holding_id, current.ticker, current.portfolio_id)
            return current

    def pending_action(self, session: Session) -> DeletedLot | OverwrittenLot | None:
        return self._undo_slot(session.user_id).peek()

    def undo(self, session: Session) -> list[CollaboratorCall]:
        """Reverse the owner's last delete/edit/merge. Returns the calls performed, empty if none was pending."""
        owner_id = session.user_id
        with self._owner_lock(owner_id):
            slot = self._undo_slot(owner_id)
            calls = apply_undo(slot.peek())
            for call in calls:
                self._perform(call)
            slot.clear()
            if calls:
                logger.info("undo applied for owner %s: %s", owner_id, [c.operation for c in calls])
            return calls

    def _perform(self, call: CollaboratorCall) -> None:
        if call.operation == "insert_holding" and call.holding is not None:
            self.store.insert_holding(call.holding)
        elif call.operation == "update_holding":
            self.store.update_holding(call.holding_id, call.owner_id, call.fields)
        else:
            raise ValueError(f"cannot perform collaborator call {call.operation}")

    def _undo_slot(self, owner_id: str) -> UndoSlot:
        with self._guard:
            return self._undo_slots.setdefault(owner_id, UndoSlot())

    def _owner_lock(self, owner_id: str) -> threading.RLock:
        with self._guard:
            return self._owner_locks.setdefault(owner_id, threading.RLock())
