"""Tests for the store-backed asset correlation calculator."""

from datetime import datetime, timedelta, timezone

import pytest

from core.analysis.correlation import calculate_correlation_matrix, load_close_frame
from core.errors import InsufficientDataError

BASE = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
END = BASE + timedelta(days=10)


@pytest.fixture
def populated(stores, candle_factory):
    candles = []
    for day in range(5):
        open_time = BASE + timedelta(days=day)
        candles.append(candle_factory(open_time, asset_id="BTC", timeframe="1d", close=str(100 + day * 10)))
        candles.append(candle_factory(open_time, asset_id="ETH", timeframe="1d", close=str(10 + day)))
        candles.append(candle_factory(open_time, asset_id="DOGE", timeframe="1d", close=str(50 - day)))
    # SOL only overlaps on two days
    candles.append(candle_factory(BASE, asset_id="SOL", timeframe="1d", close="20"))
    candles.append(candle_factory(BASE + timedelta(days=4), asset_id="SOL", timeframe="1d", close="25"))
    stores.bulk_insert_candles(candles=candles)
    return stores


def test_correlation_matrix_from_store(populated) -> None:
    """Verify aligned closes produce a symmetric matrix with unit diagonal."""
    result = calculate_correlation_matrix(populated, ["BTC", "ETH", "DOGE"], timeframe="1d", start=BASE, end=END)

    assert result["asset_ids"] == ["BTC", "ETH", "DOGE"]
    assert result["data_points"] == 5
    matrix = result["matrix"]
    assert [matrix[i][i] for i in range(3)] == [1.0, 1.0, 1.0]
    assert matrix[0][1] == pytest.approx(1.0)
    assert matrix[0][2] == pytest.approx(-1.0)
    assert matrix[2][0] == matrix[0][2]
    assert result["start_time"].startswith("2024-01-01T00:00:00")
    assert result["end_time"].startswith("2024-01-05T00:00:00")


def test_inner_join_keeps_shared_open_times(populated) -> None:
    """Verify only open times present for every asset survive."""
    frame = load_close_frame(populated, ["BTC", "SOL"], timeframe="1d", start=BASE, end=END)

    assert list(frame.columns) == ["BTC", "SOL"]
    assert len(frame) == 2


def test_assets_without_data_are_skipped(populated) -> None:
    """Verify missing assets drop out of the result."""
    result = calculate_correlation_matrix(populated, ["BTC", "XRP", "ETH"], timeframe="1d", start=BASE, end=END)

    assert result["asset_ids"] == ["BTC", "ETH"]


def test_needs_two_assets(populated) -> None:
    """Verify one asset is rejected up front."""
    with pytest.raises(InsufficientDataError, match="at least 2 assets"):
        calculate_correlation_matrix(populated, ["BTC"], timeframe="1d", start=BASE, end=END)


def test_needs_two_assets_with_data(populated) -> None:
    """Verify fewer than two assets with data is insufficient."""
    with pytest.raises(InsufficientDataError, match="only 1 assets"):
        calculate_correlation_matrix(populated, ["BTC", "XRP"], timeframe="1d", start=BASE, end=END)


def test_needs_two_overlapping_points(populated, candle_factory) -> None:
    """Verify a single shared open time is insufficient."""
    populated.insert_candle(candle=candle_factory(BASE, asset_id="ADA", timeframe="1d", close="1"))

    with pytest.raises(InsufficientDataError, match="overlapping"):
        calculate_correlation_matrix(populated, ["BTC", "ADA"], timeframe="1d", start=BASE, end=END)


def test_repeated_asset_ids_collapse(populated) -> None:
    """Verify an asset listed twice is correlated once."""
    result = calculate_correlation_matrix(
        populated, ["BTC", "ETH", "BTC"], timeframe="1d", start=BASE, end=END
    )

    assert result["asset_ids"] == ["BTC", "ETH"]
    assert len(result["matrix"]) == 2


def test_same_asset_twice_is_insufficient(populated) -> None:
    """Verify one distinct asset is rejected even when repeated."""
    with pytest.raises(InsufficientDataError, match="at least 2 assets") as exc_info:
        calculate_correlation_matrix(populated, ["BTC", "BTC"], timeframe="1d", start=BASE, end=END)

    assert exc_info.value.received == 1


def test_load_close_frame_ignores_repeats(populated) -> None:
    """Verify a repeated id does not produce overlapping columns."""
    frame = load_close_frame(populated, ["BTC", "BTC", "ETH"], timeframe="1d", start=BASE, end=END)

    assert list(frame.columns) == ["BTC", "ETH"]
