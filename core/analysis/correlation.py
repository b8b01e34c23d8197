"""Asset Correlation Calculator

Correlation matrix between the close series of several stored assets, for
portfolio diversification analysis.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Sequence

import pandas as pd

from core.analytics.statistics import calculate_correlation_matrix as correlation_matrix_of
from core.errors import InsufficientDataError
from core.market_data.timeframes import as_utc
from core.persistence.interfaces import CandleStore

logger = logging.getLogger(__name__)


def load_close_frame(
    store: CandleStore,
    asset_ids: Sequence[str],
    *,
    timeframe: str,
    start: datetime,
    end: datetime,
) -> pd.DataFrame:
    """Load closes for each asset into one frame indexed by open_time.

    Rows are inner-joined, so only open times present for every loaded asset
    survive. Assets without candles in the window are left out.
    """
    combined: pd.DataFrame | None = None

    for asset_id in dict.fromkeys(asset_ids):
        candles = store.get_candles(asset_id=asset_id, timeframe=timeframe, start=start, end=end)
        if not candles:
            logger.warning(f"No data found for {asset_id} {timeframe}")
            continue

        df = pd.DataFrame(
            [(c.open_time, float(c.close)) for c in candles],
            columns=["time", asset_id],
        )
        df["time"] = pd.to_datetime(df["time"], utc=True)
        df = df.set_index("time")

        combined = df if combined is None else combined.join(df, how="inner")

    if combined is None:
        return pd.DataFrame()
    return combined.dropna()


def calculate_correlation_matrix(
    store: CandleStore,
    asset_ids: Sequence[str],
    *,
    timeframe: str = "1d",
    start: datetime,
    end: datetime,
) -> dict[str, Any]:
    """Calculate the close-price correlation matrix between assets.

    Args:
        store: Candle store to read from
        asset_ids: Assets to compare (at least 2)
        timeframe: Timeframe of the compared series
        start: Inclusive window start
        end: Inclusive window end

    Returns:
        Dictionary with correlation matrix and metadata:
        {
            "asset_ids": ["BTC", "ETH", ...],
            "matrix": [[1.0, 0.8, ...], [0.8, 1.0, ...], ...],
            "data_points": 30,
            "start_time": <iso timestamp>,
            "end_time": <iso timestamp>
        }

    Raises:
        InsufficientDataError: Fewer than 2 assets have data, or fewer than 2 aligned points
        DegenerateInputError: An asset's closes are constant over the window
    """
    # repeated ids collapse to one column
    asset_ids = list(dict.fromkeys(asset_ids))
    if len(asset_ids) < 2:
        raise InsufficientDataError(
            "Need at least 2 assets for correlation analysis", required=2, received=len(asset_ids)
        )

    combined = load_close_frame(store, asset_ids, timeframe=timeframe, start=as_utc(start), end=as_utc(end))

    if len(combined.columns) < 2:
        raise InsufficientDataError(
            f"Insufficient data: only {len(combined.columns)} assets have data",
            required=2,
            received=len(combined.columns),
        )
    if len(combined) < 2:
        raise InsufficientDataError("Insufficient overlapping data points", required=2, received=len(combined))

    names = [str(column) for column in combined.columns]
    matrix = correlation_matrix_of([combined[name].tolist() for name in names])

    return {
        "asset_ids": names,
        "matrix": matrix,
        "data_points": len(combined),
        "start_time": combined.index.min().isoformat(),
        "end_time": combined.index.max().isoformat(),
    }
