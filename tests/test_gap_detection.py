"""Tests for gap detection algorithm.

Tests the gap detection logic that identifies missing candles in time series data.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.errors import ValidationError
from core.market_data.gaps import find_candle_gaps, find_gaps
from core.types import CandleGap

BASE = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


def _at(*minutes: int) -> list[datetime]:
    return [BASE + timedelta(minutes=m) for m in minutes]


def test_find_gaps_single_gap() -> None:
    """Verify offsets 0, 60, 240 at 60 minutes give one gap from 120 to 180."""
    gaps = find_gaps(_at(0, 60, 240), 60)

    assert gaps == [CandleGap(start=BASE + timedelta(minutes=120), end=BASE + timedelta(minutes=180))]
    assert gaps[0].missing_count(60) == 2


def test_find_gaps_no_gaps_in_contiguous_series() -> None:
    """Verify a contiguous series has no gaps."""
    assert find_gaps(_at(0, 5, 10, 15), 5) == []


def test_find_gaps_single_missing_candle() -> None:
    """Verify a single missing candle is a gap whose start equals its end."""
    gaps = find_gaps(_at(0, 60, 180), 60)

    assert len(gaps) == 1
    assert gaps[0].start == gaps[0].end == BASE + timedelta(minutes=120)
    assert gaps[0].missing_count(60) == 1


def test_find_gaps_multiple_gaps_in_order() -> None:
    """Verify several gaps are returned oldest first."""
    gaps = find_gaps(_at(0, 120, 180, 420), 60)

    assert [(g.start, g.end) for g in gaps] == [
        (BASE + timedelta(minutes=60), BASE + timedelta(minutes=60)),
        (BASE + timedelta(minutes=240), BASE + timedelta(minutes=360)),
    ]


@pytest.mark.parametrize("open_times", [[], _at(0)])
def test_find_gaps_needs_two_points(open_times) -> None:
    """Verify fewer than two open times give no gaps."""
    assert find_gaps(open_times, 60) == []


@pytest.mark.parametrize("interval", [0, -5])
def test_find_gaps_rejects_non_positive_interval(interval) -> None:
    """Verify the expected interval must be positive."""
    with pytest.raises(ValidationError, match="expected_interval_minutes"):
        find_gaps(_at(0, 60), interval)


def test_find_gaps_trusts_the_given_interval() -> None:
    """Verify spacing closer than the interval is not reported."""
    assert find_gaps(_at(0, 1, 2, 3), 60) == []


def test_find_candle_gaps_reads_stored_series(stores, candle_factory) -> None:
    """Verify the store-backed detector loads one series and finds its gaps."""
    for minutes in (0, 60, 240):
        stores.insert_candle(candle=candle_factory(BASE + timedelta(minutes=minutes)))
    stores.insert_candle(candle=candle_factory(BASE + timedelta(minutes=120), asset_id="ETH"))

    gaps = find_candle_gaps(stores, asset_id="BTC", timeframe="1h", expected_interval_minutes=60)

    assert gaps == [CandleGap(start=BASE + timedelta(minutes=120), end=BASE + timedelta(minutes=180))]


def test_find_candle_gaps_is_read_only(stores, sample_candles) -> None:
    """Verify detection does not write anything."""
    stores.bulk_insert_candles(candles=[sample_candles[0], sample_candles[4]])

    gaps = find_candle_gaps(stores, asset_id="BTC", timeframe="1h", expected_interval_minutes=60)

    assert len(gaps) == 1
    assert gaps[0].missing_count(60) == 3
    assert stores.count_candles() == 2
