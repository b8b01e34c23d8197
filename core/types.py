from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Literal, Optional, Sequence

Timeframe = Literal["1m", "5m", "15m", "30m", "1h", "4h", "6h", "12h", "1d", "3d", "1w", "1M"]
CandleOrder = Literal["timestamp_asc", "timestamp_desc"]


@dataclass(frozen=True)
class Candle:
    asset_id: str
    timeframe: Timeframe
    open_time: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    source: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ArchivedCandle:
    asset_id: str
    timeframe: Timeframe
    open_time: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    archived_at: datetime
    source: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class CandleInsertResult:
    """Outcome of an insert-or-fetch: the stored record and whether this call created it."""

    candle: Candle
    inserted: bool


@dataclass(frozen=True)
class CandleFilters:
    """Query filters. Bounds on `open_time` are inclusive."""

    asset_id: Optional[str] = None
    asset_ids: Sequence[str] = ()
    timeframe: Optional[Timeframe] = None
    timeframes: Sequence[Timeframe] = ()
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class CandlePage:
    limit: Optional[int] = None
    offset: Optional[int] = None
    order: CandleOrder = "timestamp_desc"


@dataclass(frozen=True)
class CandleDateRange:
    earliest: Optional[datetime]
    latest: Optional[datetime]
    count: int


@dataclass(frozen=True)
class CandleStatistics:
    count: int
    avg_volume: Optional[Decimal] = None
    max_high: Optional[Decimal] = None
    min_low: Optional[Decimal] = None
    first_open: Optional[Decimal] = None
    last_close: Optional[Decimal] = None


@dataclass(frozen=True)
class CandleGap:
    """A run of missing candles; `start` and `end` are the first and last missing open times."""

    start: datetime
    end: datetime

    def missing_count(self, interval_minutes: int) -> int:
        return int((self.end - self.start) / timedelta(minutes=interval_minutes)) + 1


@dataclass(frozen=True)
class ArchiveResult:
    archived: int
    deleted: int


@dataclass(frozen=True)
class DrawdownPeriod:
    start: int
    end: int


@dataclass(frozen=True)
class DrawdownReport:
    drawdowns: list[float]
    max_drawdown: float
    max_drawdown_period: DrawdownPeriod
    average_drawdown: float
