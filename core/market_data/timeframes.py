"""Fixed timeframe table.

Every candle series is keyed by one of these timeframes. The mapping to a
duration is a static lookup; `1M` uses a 30-day approximation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from core.errors import ValidationError
from core.types import Timeframe

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class TimeframeSpec:
    """Duration of one candle for a timeframe."""

    minutes: int
    delta: timedelta
    step_ms: int


def _spec(minutes: int) -> TimeframeSpec:
    return TimeframeSpec(minutes=minutes, delta=timedelta(minutes=minutes), step_ms=minutes * 60_000)


TIMEFRAMES: dict[str, TimeframeSpec] = {
    "1m": _spec(1),
    "5m": _spec(5),
    "15m": _spec(15),
    "30m": _spec(30),
    "1h": _spec(60),
    "4h": _spec(240),
    "6h": _spec(360),
    "12h": _spec(720),
    "1d": _spec(1440),
    "3d": _spec(4320),
    "1w": _spec(10080),
    "1M": _spec(43200),
}


def get_timeframe_spec(timeframe: Timeframe | str) -> TimeframeSpec:
    tf_key = str(timeframe)
    if tf_key not in TIMEFRAMES:
        raise ValidationError(f"Unsupported timeframe: {timeframe}. Supported: {', '.join(TIMEFRAMES)}")
    return TIMEFRAMES[tf_key]


def timeframe_minutes(timeframe: Timeframe | str) -> int:
    return get_timeframe_spec(timeframe).minutes


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_ms(dt: datetime) -> int:
    dt = as_utc(dt)
    # Integer arithmetic on the delta keeps microsecond inputs exact.
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def from_ms(ms: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=ms)


def align_to_step(dt: datetime, step_ms: int) -> datetime:
    """Floor `dt` onto the epoch-relative grid of `step_ms`."""
    return from_ms((to_ms(dt) // step_ms) * step_ms)

