from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from lecaps.core.errors import ValidationError
from lecaps.core.orchestration.time_utils import now_utc, to_utc_date

# Python field name -> column name in the existing holdings table.
HOLDING_FIELD_ALIASES: dict[str, str] = {
    "owner_id": "user_id",
    "quantity": "cantidad",
    "purchase_price": "precio_compra",
    "maturity_price": "precio_finish",
    "purchase_date": "fecha_compra",
    "maturity_date": "fecha_finish",
    "notes": "notas",
}
_ALIAS_TO_FIELD = {alias: name for name, alias in HOLDING_FIELD_ALIASES.items()}

MUTABLE_HOLDING_FIELDS: tuple[str, ...] = (
    "ticker",
    "quantity",
    "purchase_price",
    "maturity_price",
    "purchase_date",
    "maturity_date",
    "broker",
    "notes",
)
IMMUTABLE_HOLDING_FIELDS: frozenset[str] = frozenset({"id", "owner_id", "portfolio_id"})


def new_id() -> str:
    return uuid.uuid4().hex


def normalize_ticker(value: Any) -> str:
    return str(value or "").strip().upper()


class PurchaseInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    ticker: str
    quantity: float = Field(alias="cantidad", gt=0.0, allow_inf_nan=False)
    purchase_price: float = Field(alias="precio_compra", gt=0.0, allow_inf_nan=False)
    maturity_price: float = Field(alias="precio_finish", gt=0.0, allow_inf_nan=False)
    purchase_date: date = Field(alias="fecha_compra")
    maturity_date: date = Field(alias="fecha_finish")
    broker: str | None = None
    notes: str | None = Field(default=None, alias="notas")

    @field_validator("ticker")
    @classmethod
    def check_ticker(cls, value: str) -> str:
        ticker = normalize_ticker(value)
        if not ticker:
            raise ValueError("ticker cannot be empty")
        return ticker

    @field_validator("purchase_date", "maturity_date", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("date is required")
        parsed = to_utc_date(value)
        return parsed if parsed is not None else value


class Holding(PurchaseInput):
    """One lot of an instrument inside a portfolio."""

    id: str = Field(default_factory=new_id)
    portfolio_id: str
    owner_id: str = Field(alias="user_id")

    @field_validator("id", "portfolio_id", "owner_id")
    @classmethod
    def require_identifier(cls, value: str) -> str:
        text = str(value).strip()
        if not text:
            raise ValueError("identifier cannot be empty")
        return text

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def mutable_fields(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in MUTABLE_HOLDING_FIELDS}


class Portfolio(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=new_id)
    owner_id: str = Field(alias="user_id")
    name: str
    created_at: datetime = Field(default_factory=now_utc)

    @field_validator("name")
    @classmethod
    def require_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("portfolio name cannot be empty")
        return name

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def field_name(key: Any) -> str:
    """Map a persisted column name to its Python field name."""
    text = str(key)
    return _ALIAS_TO_FIELD.get(text, text)


def parse_purchase(raw: Any) -> PurchaseInput:
    if isinstance(raw, PurchaseInput):
        return raw
    return _validate(PurchaseInput, raw)


def parse_holding(raw: Any) -> Holding:
    """Validated construction boundary: untrusted mapping in, strict ``Holding`` out."""
    if isinstance(raw, Holding):
        return raw
    return _validate(Holding, raw)


def parse_portfolio(raw: Any) -> Portfolio:
    if isinstance(raw, Portfolio):
        return raw
    return _validate(Portfolio, raw)


def apply_holding_update(current: Holding, raw_fields: Mapping[str, Any]) -> Holding:
    merged = current.model_dump()
    for key, value in dict(raw_fields).items():
        name = field_name(key)
        if name in IMMUTABLE_HOLDING_FIELDS:
            raise ValidationError(name, "field cannot be changed")
        if name not in MUTABLE_HOLDING_FIELDS:
            raise ValidationError(name, "unknown field")
        merged[name] = value
    return parse_holding(merged)


def _validate(model: type[BaseModel], raw: Any) -> Any:
    if not isinstance(raw, Mapping):
        raise ValidationError("payload", "expected a mapping of holding fields")
    try:
        return model.model_validate(dict(raw))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        loc = first.get("loc") or ("payload",)
        raise ValidationError(field_name(loc[0]), str(first.get("msg", "invalid value"))) from exc
