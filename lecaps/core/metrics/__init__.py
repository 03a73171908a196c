from lecaps.core.metrics.portfolio_totals import PortfolioTotals, compute_portfolio_totals
from lecaps.core.metrics.yield_metrics import RATE_SENTINEL, HoldingMetrics, compute_metrics

__all__ = [
    "HoldingMetrics",
    "PortfolioTotals",
    "RATE_SENTINEL",
    "compute_metrics",
    "compute_portfolio_totals",
]
