"""Gap detection for stored candle series.

A gap is a run of expected open times with no stored candle. Detection is a
single pass over the ascending open times; nothing is persisted.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Sequence

from core.errors import ValidationError
from core.persistence.interfaces import CandleStore
from core.types import CandleGap

logger = logging.getLogger(__name__)


def find_gaps(open_times: Sequence[datetime], expected_interval_minutes: int) -> list[CandleGap]:
    """Find missing runs between consecutive open times.

    Args:
        open_times: Candle open times in ascending order
        expected_interval_minutes: Spacing between consecutive candles. Taken as
            given; it is not checked against the series' timeframe.

    Returns:
        Gaps in ascending order. Empty when fewer than two open times are given.

    Raises:
        ValidationError: If the interval is not positive
    """
    if expected_interval_minutes <= 0:
        raise ValidationError("expected_interval_minutes must be > 0")

    gaps: list[CandleGap] = []
    if len(open_times) < 2:
        return gaps

    interval = timedelta(minutes=expected_interval_minutes)

    for current, nxt in zip(open_times, open_times[1:]):
        expected_next = current + interval
        if nxt > expected_next:
            gaps.append(CandleGap(start=expected_next, end=nxt - interval))

    return gaps


def find_candle_gaps(
    store: CandleStore,
    *,
    asset_id: str,
    timeframe: str,
    expected_interval_minutes: int,
) -> list[CandleGap]:
    """Load the stored open times for asset+timeframe and detect gaps."""
    open_times = store.get_open_times(asset_id=asset_id, timeframe=timeframe)
    gaps = find_gaps(open_times, expected_interval_minutes)

    if gaps:
        missing = sum(gap.missing_count(expected_interval_minutes) for gap in gaps)
        logger.info(f"Detected {len(gaps)} gaps ({missing} missing candles) for {asset_id} {timeframe}")

    return gaps
