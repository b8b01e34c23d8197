"""Tests for the timeframe table and time helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from core.errors import ValidationError
from core.market_data.timeframes import (
    TIMEFRAMES,
    align_to_step,
    as_utc,
    from_ms,
    get_timeframe_spec,
    timeframe_minutes,
    to_ms,
)


@pytest.mark.parametrize(
    "timeframe,minutes",
    [
        ("1m", 1),
        ("5m", 5),
        ("15m", 15),
        ("30m", 30),
        ("1h", 60),
        ("4h", 240),
        ("6h", 360),
        ("12h", 720),
        ("1d", 1440),
        ("3d", 4320),
        ("1w", 10080),
        ("1M", 43200),
    ],
)
def test_timeframe_minutes(timeframe: str, minutes: int) -> None:
    """Verify the fixed duration table."""
    assert timeframe_minutes(timeframe) == minutes
    assert get_timeframe_spec(timeframe).delta == timedelta(minutes=minutes)
    assert get_timeframe_spec(timeframe).step_ms == minutes * 60_000


def test_table_has_twelve_timeframes() -> None:
    """Verify no timeframe is missing or extra."""
    assert len(TIMEFRAMES) == 12


@pytest.mark.parametrize("timeframe", ["2h", "1y", "", "1H"])
def test_unknown_timeframe_raises(timeframe: str) -> None:
    """Verify unknown values raise ValidationError."""
    with pytest.raises(ValidationError, match="Unsupported timeframe"):
        get_timeframe_spec(timeframe)


def test_as_utc_handles_naive_and_offset_datetimes() -> None:
    """Verify naive values are tagged UTC and aware values are converted."""
    assert as_utc(datetime(2024, 1, 1, 12, 0)) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    plus_two = timezone(timedelta(hours=2))
    converted = as_utc(datetime(2024, 1, 1, 12, 0, tzinfo=plus_two))
    assert converted.tzinfo == timezone.utc
    assert converted.hour == 10


def test_ms_round_trip() -> None:
    """Verify epoch millisecond conversion."""
    dt = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)

    assert to_ms(dt) == 1_704_067_200_000
    assert from_ms(to_ms(dt)) == dt


@pytest.mark.parametrize(
    "step_minutes,value,expected",
    [
        (60, datetime(2024, 1, 1, 12, 30, 45), datetime(2024, 1, 1, 12, 0, 0)),
        (5, datetime(2024, 1, 1, 12, 33, 45), datetime(2024, 1, 1, 12, 30, 0)),
        (1440, datetime(2024, 1, 1, 23, 59, 59), datetime(2024, 1, 1, 0, 0, 0)),
        (15, datetime(2024, 1, 1, 12, 15, 0), datetime(2024, 1, 1, 12, 15, 0)),
    ],
)
def test_align_to_step(step_minutes: int, value: datetime, expected: datetime) -> None:
    """Verify alignment floors onto the epoch grid and returns UTC."""
    aligned = align_to_step(value, step_minutes * 60_000)

    assert aligned == expected.replace(tzinfo=timezone.utc)
    assert aligned.tzinfo == timezone.utc
