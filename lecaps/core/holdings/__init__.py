from lecaps.core.holdings.holding_schema import (
    HOLDING_FIELD_ALIASES,
    MUTABLE_HOLDING_FIELDS,
    Holding,
    Portfolio,
    PurchaseInput,
    apply_holding_update,
    normalize_ticker,
    parse_holding,
    parse_portfolio,
    parse_purchase,
)

__all__ = [
    "HOLDING_FIELD_ALIASES",
    "MUTABLE_HOLDING_FIELDS",
    "Holding",
    "Portfolio",
    "PurchaseInput",
    "apply_holding_update",
    "normalize_ticker",
    "parse_holding",
    "parse_portfolio",
    "parse_purchase",
]
