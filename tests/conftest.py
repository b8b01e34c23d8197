"""Shared test fixtures for pytest.

Provides a SQL candle store on a temporary SQLite file, sample candles and a
candle factory used across multiple test files.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator

import pytest

from core.storage.sql import SqlStores, StoreConfig
from core.types import Candle

BASE_TIME = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """SQLAlchemy URL of an empty SQLite file, unique per test."""
    return f"sqlite:///{tmp_path / 'candles.db'}"


@pytest.fixture
def stores(database_url: str) -> Iterator[SqlStores]:
    """SqlStores with the schema applied."""
    store = SqlStores(config=StoreConfig(database_url=database_url))
    store.ensure_schema()
    yield store
    store.dispose()


@pytest.fixture
def candle_factory() -> Callable[..., Candle]:
    """Build a candle; OHLCV values may be given as strings."""

    def _make(
        open_time: datetime = BASE_TIME,
        *,
        asset_id: str = "BTC",
        timeframe: str = "1h",
        open: str = "100",
        high: str = "110",
        low: str = "90",
        close: str = "105",
        volume: str = "10",
        source: str | None = "binance",
    ) -> Candle:
        return Candle(
            asset_id=asset_id,
            timeframe=timeframe,
            open_time=open_time,
            open=Decimal(open),
            high=Decimal(high),
            low=Decimal(low),
            close=Decimal(close),
            volume=Decimal(volume),
            source=source,
        )

    return _make


@pytest.fixture
def sample_candles() -> list[Candle]:
    """Sample candles for testing.

    Returns a list of 5 consecutive 1h candles for BTC from binance.
    """
    candles = []

    for i in range(5):
        candles.append(
            Candle(
                asset_id="BTC",
                timeframe="1h",
                open_time=datetime(2024, 1, 1, i, 0, 0, tzinfo=timezone.utc),
                open=Decimal("40000") + Decimal(i * 100),
                high=Decimal("40500") + Decimal(i * 100),
                low=Decimal("39500") + Decimal(i * 100),
                close=Decimal("40200") + Decimal(i * 100),
                volume=Decimal("100.5"),
                source="binance",
            )
        )

    return candles
