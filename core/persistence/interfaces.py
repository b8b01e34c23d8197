from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from core.types import (
    ArchivedCandle,
    ArchiveResult,
    Candle,
    CandleDateRange,
    CandleFilters,
    CandleInsertResult,
    CandlePage,
    CandleStatistics,
)


class CandleStore(Protocol):
    def insert_candle(self, *, candle: Candle) -> CandleInsertResult:
        """Insert a candle, or fetch the stored one when its key already exists."""

    def bulk_insert_candles(self, *, candles: Sequence[Candle]) -> int:
        """Insert a batch in one transaction, skipping duplicates. Returns number of new rows."""

    def get_candle(self, *, asset_id: str, timeframe: str, open_time: datetime) -> Optional[Candle]:
        """Fetch a single candle by its unique key."""

    def get_candles(
        self,
        *,
        asset_id: str,
        timeframe: str,
        start: datetime,
        end: datetime,
    ) -> Sequence[Candle]:
        """Fetch candles for a time range (inclusive), oldest first."""

    def get_candles_before(self, *, asset_id: str, timeframe: str, before: datetime) -> Sequence[Candle]:
        """Fetch candles strictly older than `before`, oldest first."""

    def query_candles(
        self,
        *,
        filters: CandleFilters | None = None,
        page: CandlePage | None = None,
    ) -> Sequence[Candle]:
        """Filtered, ordered and paged candle listing."""

    def get_latest_candle(self, *, asset_id: str, timeframe: str) -> Optional[Candle]:
        """Most recent candle for asset+timeframe."""

    def get_earliest_candle(self, *, asset_id: str, timeframe: str) -> Optional[Candle]:
        """Oldest candle for asset+timeframe."""

    def get_date_range(self, *, asset_id: str, timeframe: str) -> CandleDateRange:
        """Earliest/latest open time and row count for asset+timeframe."""

    def has_data_in_range(self, *, asset_id: str, timeframe: str, start: datetime, end: datetime) -> bool:
        """Whether at least one candle exists in the inclusive range."""

    def get_statistics(
        self,
        *,
        asset_id: str,
        timeframe: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> CandleStatistics:
        """Decimal aggregates over the (optionally bounded) series."""

    def get_open_times(self, *, asset_id: str, timeframe: str) -> Sequence[datetime]:
        """All open times for asset+timeframe, oldest first."""

    def count_candles(self, *, filters: CandleFilters | None = None) -> int:
        """Count candles matching the filters."""

    def update_candle(
        self,
        *,
        candle_id: str,
        open: Decimal | None = None,
        high: Decimal | None = None,
        low: Decimal | None = None,
        close: Decimal | None = None,
        volume: Decimal | None = None,
        source: str | None = None,
    ) -> Optional[Candle]:
        """Backfill OHLCV fields of an existing candle. Returns None when the id is unknown."""

    def delete_candle(self, *, candle_id: str) -> bool:
        """Delete one candle by id."""

    def delete_candles_before(
        self,
        *,
        before: datetime,
        asset_id: str | None = None,
        timeframe: str | None = None,
    ) -> int:
        """Prune candles older than `before`. Returns number of deleted rows."""


class CandleArchiveStore(Protocol):
    def archive_candles_before(self, *, before: datetime) -> ArchiveResult:
        """Move candles older than `before` into the archive in one transaction."""

    def count_archived_candles(self) -> int:
        """Number of archived candles."""

    def get_archived_candles(self, *, asset_id: str, timeframe: str) -> Sequence[ArchivedCandle]:
        """Archived candles for asset+timeframe, oldest first."""
