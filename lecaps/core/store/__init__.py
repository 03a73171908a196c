from lecaps.core.store.holdings_store import DEFAULT_STORE_PATH, HoldingsRepository, JsonHoldingsStore

__all__ = [
    "DEFAULT_STORE_PATH",
    "HoldingsRepository",
    "JsonHoldingsStore",
]
