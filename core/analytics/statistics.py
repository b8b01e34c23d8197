"""Time-series statistics over in-memory price and return series.

Every function is pure. Inputs may hold floats, ints or Decimals; they are
converted to float on entry. Edge cases raise typed errors from
`core.errors` instead of returning NaN or infinity.
"""

from __future__ import annotations

import math
from typing import Literal, Sequence, SupportsFloat

from core.errors import DegenerateInputError, InsufficientDataError, ValidationError
from core.types import DrawdownPeriod, DrawdownReport

TRADING_DAYS_PER_YEAR = 252

ReturnPeriod = Literal["daily", "weekly", "monthly"]
_RETURN_PERIODS = ("daily", "weekly", "monthly")


def _as_floats(values: Sequence[SupportsFloat], name: str) -> list[float]:
    converted = [float(v) for v in values]
    for v in converted:
        if not math.isfinite(v):
            raise ValidationError(f"{name} must contain only finite numbers")
    return converted


def _sample_mean_variance(values: Sequence[float]) -> tuple[float, float]:
    n = len(values)
    mean = sum(values) / n
    variance = sum((v - mean) ** 2 for v in values) / (n - 1)
    return mean, variance


def calculate_returns(prices: Sequence[SupportsFloat], period: ReturnPeriod = "daily") -> list[float]:
    """Calculate simple period-over-period returns.

    return[i] = (p[i+1] - p[i]) / p[i]

    Args:
        prices: Prices at a fixed spacing, oldest first
        period: Label for the spacing of `prices`. The computation is the same
            for every period; prices are not resampled.

    Returns:
        len(prices) - 1 returns

    Raises:
        ValidationError: Unknown period or non-finite price
        InsufficientDataError: Fewer than 2 prices
        DegenerateInputError: A previous price is zero
    """
    if period not in _RETURN_PERIODS:
        raise ValidationError(f"Unsupported period: {period}. Supported: {', '.join(_RETURN_PERIODS)}")

    values = _as_floats(prices, "prices")
    if len(values) < 2:
        raise InsufficientDataError(
            "At least two prices are required to calculate returns", required=2, received=len(values)
        )

    returns = []
    for previous, current in zip(values, values[1:]):
        if previous == 0:
            raise DegenerateInputError("Previous price cannot be zero when calculating returns")
        returns.append((current - previous) / previous)

    return returns


def calculate_volatility(returns: Sequence[SupportsFloat], annualize: bool = True) -> float:
    """Sample standard deviation of returns, optionally scaled by sqrt(252)."""
    values = _as_floats(returns, "returns")
    if len(values) < 2:
        raise InsufficientDataError(
            "At least two returns are required to calculate volatility", required=2, received=len(values)
        )

    _, variance = _sample_mean_variance(values)
    std_dev = math.sqrt(variance)

    if annualize:
        return std_dev * math.sqrt(TRADING_DAYS_PER_YEAR)
    return std_dev


def _pearson(xs: Sequence[float], ys: Sequence[float]) -> float:
    n = len(xs)
    sum_x = sum(xs)
    sum_y = sum(ys)
    sum_xy = sum(x * y for x, y in zip(xs, ys))
    sum_x2 = sum(x * x for x in xs)
    sum_y2 = sum(y * y for y in ys)

    numerator = n * sum_xy - sum_x * sum_y
    spread = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)
    if spread <= 0:
        raise DegenerateInputError("Variance must be greater than zero to calculate correlation")

    return numerator / math.sqrt(spread)


def calculate_correlation(series_a: Sequence[SupportsFloat], series_b: Sequence[SupportsFloat]) -> float:
    """Pearson correlation of two equally long series.

    Raises:
        ValidationError: Lengths differ or a value is non-finite
        InsufficientDataError: Fewer than 2 observations
        DegenerateInputError: Either series has zero variance
    """
    if len(series_a) != len(series_b):
        raise ValidationError(f"Series must have the same length: {len(series_a)} != {len(series_b)}")

    xs = _as_floats(series_a, "series_a")
    ys = _as_floats(series_b, "series_b")
    if len(xs) < 2:
        raise InsufficientDataError(
            "At least two observations are required to calculate correlation", required=2, received=len(xs)
        )

    return _pearson(xs, ys)


def calculate_correlation_matrix(series: Sequence[Sequence[SupportsFloat]]) -> list[list[float]]:
    """Square correlation matrix of several equally long series.

    The diagonal is exactly 1.0. Each pair is computed once for i < j and
    mirrored into [j][i].
    """
    if not series:
        raise InsufficientDataError(
            "At least one series is required to calculate a correlation matrix", required=1, received=0
        )

    length = len(series[0])
    for s in series:
        if len(s) != length:
            raise ValidationError("All series must have the same length")
    if length < 2:
        raise InsufficientDataError(
            "At least two observations are required to calculate a correlation matrix", required=2, received=length
        )

    columns = [_as_floats(s, "series") for s in series]
    size = len(columns)
    matrix = [[0.0] * size for _ in range(size)]

    for i in range(size):
        matrix[i][i] = 1.0
        for j in range(i + 1, size):
            value = _pearson(columns[i], columns[j])
            matrix[i][j] = value
            matrix[j][i] = value

    return matrix


def calculate_drawdown(values: Sequence[SupportsFloat]) -> DrawdownReport:
    """Calculate drawdowns against the running peak.

    drawdown[i] = (value[i] - peak) / peak, where peak is the highest value seen
    up to i. Entries are <= 0 and exactly 0 at a new peak.

    The maximum drawdown period is (index of the peak, index of the trough) for
    the deepest drawdown. The average is taken over the whole series, zero
    entries included.

    Raises:
        InsufficientDataError: Empty input
        DegenerateInputError: The running peak is zero
    """
    points = _as_floats(values, "values")
    if not points:
        raise InsufficientDataError("At least one value is required to calculate drawdown", required=1, received=0)

    peak = points[0]
    peak_index = 0
    max_drawdown = 0.0
    max_period = DrawdownPeriod(start=0, end=0)
    drawdowns: list[float] = []

    for index, value in enumerate(points):
        if value > peak:
            peak = value
            peak_index = index
        if peak == 0:
            raise DegenerateInputError("Peak value cannot be zero when calculating drawdown")

        drawdown = (value - peak) / peak
        drawdowns.append(drawdown)

        if drawdown < max_drawdown:
            max_drawdown = drawdown
            max_period = DrawdownPeriod(start=peak_index, end=index)

    return DrawdownReport(
        drawdowns=drawdowns,
        max_drawdown=max_drawdown,
        max_drawdown_period=max_period,
        average_drawdown=sum(drawdowns) / len(drawdowns),
    )


def calculate_sharpe_ratio(returns: Sequence[SupportsFloat], risk_free_rate: float = 0.0) -> float:
    """Calculate the per-period Sharpe ratio.

    Sharpe = mean(r - rf) / stdev(r - rf), sample standard deviation. Not
    annualised; `risk_free_rate` is per period, in the same units as `returns`.

    Raises:
        InsufficientDataError: Fewer than 2 returns
        DegenerateInputError: Excess returns have zero variance
    """
    values = _as_floats(returns, "returns")
    if len(values) < 2:
        raise InsufficientDataError(
            "At least two returns are required to calculate Sharpe ratio", required=2, received=len(values)
        )

    excess = [r - float(risk_free_rate) for r in values]
    mean, variance = _sample_mean_variance(excess)
    # constant series leave float noise in the variance
    if max(excess) == min(excess) or variance == 0:
        raise DegenerateInputError("Return variance must be greater than zero to calculate Sharpe ratio")

    return mean / math.sqrt(variance)


def calculate_historical_var(returns: Sequence[SupportsFloat], confidence: float = 0.95) -> float:
    """Empirical Value at Risk.

    Returns the sorted return at index max(0, ceil((1 - confidence) * n) - 1).
    A loss comes back as a negative number.

    Raises:
        ValidationError: Confidence not strictly between 0 and 1
        InsufficientDataError: Empty input
    """
    if not 0 < confidence < 1:
        raise ValidationError(f"confidence must be between 0 and 1 (exclusive), got {confidence}")

    values = _as_floats(returns, "returns")
    if not values:
        raise InsufficientDataError("At least one return is required to calculate VaR", required=1, received=0)

    ordered = sorted(values)
    position = max(0, math.ceil((1 - confidence) * len(ordered)) - 1)
    return ordered[position]
