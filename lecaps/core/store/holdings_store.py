from __future__ import annotations

import errno
import json
import logging
import os
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

from lecaps.core.errors import CollaboratorError, NotFoundError, ValidationError
from lecaps.core.holdings.holding_schema import (
    Holding,
    Portfolio,
    apply_holding_update,
    normalize_ticker,
    parse_holding,
    parse_portfolio,
)

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = ".data/holdings.json"


class HoldingsRepository(Protocol):
    def list_portfolios(self, owner_id: str) -> list[Portfolio]: ...

    def create_portfolio(self, owner_id: str, name: str) -> Portfolio: ...

    def get_portfolio(self, owner_id: str, portfolio_id: str) -> Portfolio: ...

    def list_holdings(self, owner_id: str, portfolio_id: str) -> list[Holding]: ...

    def find_holdings(self, owner_id: str, portfolio_id: str, ticker: str) -> list[Holding]: ...

    def get_holding(self, owner_id: str, holding_id: str) -> Holding: ...

    def insert_holding(self, holding: Holding) -> Holding: ...

    def update_holding(self, holding_id: str, owner_id: str, fields: Mapping[str, Any]) -> Holding: ...

    def delete_holding(self, holding_id: str, owner_id: str) -> None: ...

    def delete_holdings(self, ids: Iterable[str], owner_id: str) -> None: ...


class JsonHoldingsStore:
    """
    File-backed holdings repository.

    The file holds ``{"portfolios": [...], "holdings": [...]}`` using the
    persisted column names. Every call reads the file and every mutation
    rewrites it atomically, so several processes can share one store as long
    as writes are serialized.
    """

    def __init__(self, path: str = DEFAULT_STORE_PATH):
        self.path = Path(path)
        self._lock = threading.RLock()

    def list_portfolios(self, owner_id: str) -> list[Portfolio]:
        portfolios = [p for p in self._load()["portfolios"] if p.owner_id == owner_id]
        return sorted(portfolios, key=lambda p: p.created_at)

    def create_portfolio(self, owner_id: str, name: str) -> Portfolio:
        portfolio = parse_portfolio({"owner_id": owner_id, "name": name})
        with self._lock:
            data = self._load()
            data["portfolios"].append(portfolio)
            self._save(data)
        logger.info("created portfolio %s for owner %s", portfolio.id, owner_id)
        return portfolio

    def get_portfolio(self, owner_id: str, portfolio_id: str) -> Portfolio:
        for portfolio in self._load()["portfolios"]:
            if portfolio.id == portfolio_id and portfolio.owner_id == owner_id:
                return portfolio
        raise NotFoundError("portfolio", portfolio_id)

    def list_holdings(self, owner_id: str, portfolio_id: str) -> list[Holding]:
        holdings = [
            h for h in self._load()["holdings"] if h.owner_id == owner_id and h.portfolio_id == portfolio_id
        ]
        return sorted(holdings, key=lambda h: h.maturity_date)

    def find_holdings(self, owner_id: str, portfolio_id: str, ticker: str) -> list[Holding]:
        ticker_norm = normalize_ticker(ticker)
        return [
            h
            for h in self._load()["holdings"]
            if h.owner_id == owner_id and h.portfolio_id == portfolio_id and h.ticker == ticker_norm
        ]

    def get_holding(self, owner_id: str, holding_id: str) -> Holding:
        for holding in self._load()["holdings"]:
            if holding.id == holding_id and holding.owner_id == owner_id:
                return holding
        raise NotFoundError("holding", holding_id)

    def insert_holding(self, holding: Holding) -> Holding:
        with self._lock:
            data = self._load()
            if any(h.id == holding.id for h in data["holdings"]):
                raise CollaboratorError(f"holding id already exists: {holding.id}")
            if not any(p.id == holding.portfolio_id and p.owner_id == holding.owner_id for p in data["portfolios"]):
                raise NotFoundError("portfolio", holding.portfolio_id)
            data["holdings"].append(holding)
            self._save(data)
        return holding

    def update_holding(self, holding_id: str, owner_id: str, fields: Mapping[str, Any]) -> Holding:
        with self._lock:
            data = self._load()
            holdings: list[Holding] = data["holdings"]
            for index, current in enumerate(holdings):
                if current.id == holding_id and current.owner_id == owner_id:
                    updated = apply_holding_update(current, fields)
                    holdings[index] = updated
                    self._save(data)
                    return updated
        raise NotFoundError("holding", holding_id)

    def delete_holding(self, holding_id: str, owner_id: str) -> None:
        self.delete_holdings([holding_id], owner_id)

    def delete_holdings(self, ids: Iterable[str], owner_id: str) -> None:
        targets = set(ids)
        if not targets:
            return
        with self._lock:
            data = self._load()
            owned = {h.id for h in data["holdings"] if h.owner_id == owner_id}
            missing = sorted(targets - owned)
            if missing:
                raise NotFoundError("holding", missing[0])
            data["holdings"] = [h for h in data["holdings"] if h.id not in targets]
            self._save(data)

    def _load(self) -> dict[str, list[Any]]:
        if not self.path.exists():
            return {"portfolios": [], "holdings": []}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise CollaboratorError(f"cannot read holdings store {self.path}") from exc

        if not isinstance(raw, dict):
            raise CollaboratorError(f"holdings store {self.path} is not a JSON object")
        try:
            portfolios = [parse_portfolio(item) for item in raw.get("portfolios", [])]
            holdings = [parse_holding(item) for item in raw.get("holdings", [])]
        except ValidationError as exc:
            raise CollaboratorError(f"corrupt record in holdings store {self.path}: {exc}") from exc
        return {"portfolios": portfolios, "holdings": holdings}

    def _save(self, data: dict[str, list[Any]]) -> None:
        payload = {
            "portfolios": [p.to_record() for p in data["portfolios"]],
            "holdings": [h.to_record() for h in data["holdings"]],
        }
        try:
            _write_atomic(self.path, payload)
        except OSError as exc:
            raise CollaboratorError(f"cannot write holdings store {self.path}") from exc


def _write_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=True, indent=2, sort_keys=True)
        f.write("\n")

    try:
        os.replace(tmp_path, path)
    except OSError as exc:
        # Some Docker bind-mounted file targets cannot be atomically replaced.
        if exc.errno not in {errno.EBUSY, errno.EXDEV, errno.EPERM}:
            raise
        logger.warning("atomic replace of %s failed (%s); rewriting in place", path, exc)
        with tmp_path.open("r", encoding="utf-8") as src, path.open("w", encoding="utf-8") as dst:
            dst.write(src.read())
        tmp_path.unlink(missing_ok=True)
