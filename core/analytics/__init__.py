"""Statistics over price and return series."""

from core.analytics.statistics import (
    TRADING_DAYS_PER_YEAR,
    calculate_correlation,
    calculate_correlation_matrix,
    calculate_drawdown,
    calculate_historical_var,
    calculate_returns,
    calculate_sharpe_ratio,
    calculate_volatility,
)

__all__ = [
    "TRADING_DAYS_PER_YEAR",
    "calculate_correlation",
    "calculate_correlation_matrix",
    "calculate_drawdown",
    "calculate_historical_var",
    "calculate_returns",
    "calculate_sharpe_ratio",
    "calculate_volatility",
]
