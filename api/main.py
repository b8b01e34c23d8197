"""FastAPI application for read-only candle access.

This module provides a minimal HTTP API service for:
- GET /health - Database connectivity check
- GET /candles - Filtered, paged candle query
- GET /candles/latest - Most recent candle for an asset/timeframe
- GET /candles/earliest - Oldest candle for an asset/timeframe
- GET /candles/range - Earliest/latest open time and count
- GET /candles/exists - Whether any candle falls in a window
- GET /candles/statistics - Decimal aggregates over a window
- GET /candles/gaps - Missing intervals in a stored series
- GET /analysis/correlation - Close-price correlation matrix between assets

Requirements:
- DATABASE_URL must be set in environment
- No authentication (local network only)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.analysis.correlation import calculate_correlation_matrix
from core.errors import DegenerateInputError, InsufficientDataError, StorageError, ValidationError
from core.market_data.gaps import find_candle_gaps
from core.market_data.timeframes import as_utc, timeframe_minutes
from core.storage.sql import SqlStores, StoreConfig
from core.types import Candle, CandleFilters, CandlePage

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Candle Store API",
    description="Read-only API for stored OHLCV candles, gaps and statistics",
    version="1.0.0",
)

# Global store instance (initialized on first use)
_stores: SqlStores | None = None


def _get_stores() -> SqlStores:
    """Get or initialize the database stores."""
    global _stores
    if _stores is None:
        _stores = SqlStores(config=StoreConfig.from_env())
    return _stores


class CandleResponse(BaseModel):
    """Candle as served over HTTP. Decimal fields are strings to keep precision."""

    id: Optional[str] = None
    asset_id: str
    timeframe: str
    open_time: datetime
    open: str
    high: str
    low: str
    close: str
    volume: str
    source: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_candle(cls, candle: Candle) -> "CandleResponse":
        return cls(
            id=candle.id,
            asset_id=candle.asset_id,
            timeframe=candle.timeframe,
            open_time=candle.open_time,
            open=str(candle.open),
            high=str(candle.high),
            low=str(candle.low),
            close=str(candle.close),
            volume=str(candle.volume),
            source=candle.source,
            created_at=candle.created_at,
        )


def _decimal_str(value: Any) -> str | None:
    return None if value is None else str(value)


@app.exception_handler(ValidationError)
async def validation_error_handler(_request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": "validation_error", "message": str(exc)})


@app.exception_handler(InsufficientDataError)
async def insufficient_data_handler(_request, exc: InsufficientDataError):
    return JSONResponse(
        status_code=422,
        content={
            "error": "insufficient_data",
            "message": str(exc),
            "required": exc.required,
            "received": exc.received,
        },
    )


@app.exception_handler(DegenerateInputError)
async def degenerate_input_handler(_request, exc: DegenerateInputError):
    return JSONResponse(status_code=422, content={"error": "degenerate_input", "message": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(_request, exc: StorageError):
    logger.error(f"Storage error while serving request: {exc}")
    return JSONResponse(
        status_code=503,
        content={"error": "storage_error", "message": "Candle storage is unavailable"},
    )


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check endpoint.

    Returns:
        JSON with database connectivity status and the live candle count.

    Raises:
        HTTPException: If the database cannot be reached.
    """
    try:
        total_candles = _get_stores().check_connection()
    except StorageError as e:
        raise HTTPException(
            status_code=503,
            detail={
                "status": "error",
                "database": {
                    "connected": False,
                    "error": str(e),
                },
            },
        ) from e

    return {
        "status": "ok",
        "database": {
            "connected": True,
            "total_candles": total_candles,
        },
    }


@app.get("/candles")
async def list_candles(
    asset_id: Optional[str] = Query(default=None, description="Asset id"),
    timeframe: Optional[str] = Query(default=None, description="Timeframe (e.g., 1m, 1h, 1d)"),
    start: Optional[datetime] = Query(default=None, description="Inclusive lower bound on open_time"),
    end: Optional[datetime] = Query(default=None, description="Inclusive upper bound on open_time"),
    source: Optional[str] = Query(default=None, description="Provenance tag"),
    limit: int = Query(default=100, ge=1, le=5000, description="Number of candles to return"),
    offset: int = Query(default=0, ge=0, description="Number of candles to skip"),
    order: Literal["timestamp_asc", "timestamp_desc"] = Query(default="timestamp_desc"),
) -> dict[str, Any]:
    """Query candles with any combination of filters."""
    filters = CandleFilters(
        asset_id=asset_id,
        timeframe=timeframe,
        start=as_utc(start) if start else None,
        end=as_utc(end) if end else None,
        source=source,
    )
    candles = _get_stores().query_candles(
        filters=filters,
        page=CandlePage(limit=limit, offset=offset, order=order),
    )

    return {
        "count": len(candles),
        "limit": limit,
        "offset": offset,
        "order": order,
        "candles": [CandleResponse.from_candle(c) for c in candles],
    }


def _require_candle(candle: Candle | None, asset_id: str, timeframe: str) -> CandleResponse:
    if candle is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "no_data",
                "message": f"No candles found for {asset_id}:{timeframe}",
            },
        )
    return CandleResponse.from_candle(candle)


@app.get("/candles/latest", response_model=CandleResponse)
async def get_latest_candle(
    asset_id: str = Query(..., description="Asset id"),
    timeframe: str = Query(..., description="Timeframe (e.g., 1m, 1h, 1d)"),
) -> CandleResponse:
    """Get the most recent candle for an asset and timeframe."""
    candle = _get_stores().get_latest_candle(asset_id=asset_id, timeframe=timeframe)
    return _require_candle(candle, asset_id, timeframe)


@app.get("/candles/earliest", response_model=CandleResponse)
async def get_earliest_candle(
    asset_id: str = Query(..., description="Asset id"),
    timeframe: str = Query(..., description="Timeframe (e.g., 1m, 1h, 1d)"),
) -> CandleResponse:
    """Get the oldest candle for an asset and timeframe."""
    candle = _get_stores().get_earliest_candle(asset_id=asset_id, timeframe=timeframe)
    return _require_candle(candle, asset_id, timeframe)


@app.get("/candles/range")
async def get_date_range(
    asset_id: str = Query(..., description="Asset id"),
    timeframe: str = Query(..., description="Timeframe (e.g., 1m, 1h, 1d)"),
) -> dict[str, Any]:
    """Get earliest/latest open time and the number of stored candles."""
    date_range = _get_stores().get_date_range(asset_id=asset_id, timeframe=timeframe)

    return {
        "asset_id": asset_id,
        "timeframe": timeframe,
        "earliest": date_range.earliest.isoformat() if date_range.earliest else None,
        "latest": date_range.latest.isoformat() if date_range.latest else None,
        "count": date_range.count,
    }


@app.get("/candles/exists")
async def has_data_in_range(
    asset_id: str = Query(..., description="Asset id"),
    timeframe: str = Query(..., description="Timeframe (e.g., 1m, 1h, 1d)"),
    start: datetime = Query(..., description="Inclusive window start"),
    end: datetime = Query(..., description="Inclusive window end"),
) -> dict[str, Any]:
    """Check whether any candle falls inside [start, end]."""
    exists = _get_stores().has_data_in_range(
        asset_id=asset_id,
        timeframe=timeframe,
        start=as_utc(start),
        end=as_utc(end),
    )
    return {"asset_id": asset_id, "timeframe": timeframe, "exists": exists}


@app.get("/candles/statistics")
async def get_statistics(
    asset_id: str = Query(..., description="Asset id"),
    timeframe: str = Query(..., description="Timeframe (e.g., 1m, 1h, 1d)"),
    start: Optional[datetime] = Query(default=None, description="Inclusive window start"),
    end: Optional[datetime] = Query(default=None, description="Inclusive window end"),
) -> dict[str, Any]:
    """Decimal aggregates over the stored candles in the window."""
    stats = _get_stores().get_statistics(
        asset_id=asset_id,
        timeframe=timeframe,
        start=as_utc(start) if start else None,
        end=as_utc(end) if end else None,
    )

    return {
        "asset_id": asset_id,
        "timeframe": timeframe,
        "count": stats.count,
        "avg_volume": _decimal_str(stats.avg_volume),
        "max_high": _decimal_str(stats.max_high),
        "min_low": _decimal_str(stats.min_low),
        "first_open": _decimal_str(stats.first_open),
        "last_close": _decimal_str(stats.last_close),
    }


@app.get("/candles/gaps")
async def get_gaps(
    asset_id: str = Query(..., description="Asset id"),
    timeframe: str = Query(..., description="Timeframe (e.g., 1m, 1h, 1d)"),
    expected_interval_minutes: Optional[int] = Query(
        default=None, description="Expected spacing in minutes (defaults to the timeframe's duration)"
    ),
) -> dict[str, Any]:
    """List missing intervals in a stored series."""
    interval = timeframe_minutes(timeframe) if expected_interval_minutes is None else expected_interval_minutes
    gaps = find_candle_gaps(
        _get_stores(),
        asset_id=asset_id,
        timeframe=timeframe,
        expected_interval_minutes=interval,
    )

    return {
        "asset_id": asset_id,
        "timeframe": timeframe,
        "expected_interval_minutes": interval,
        "gap_count": len(gaps),
        "missing_candles": sum(gap.missing_count(interval) for gap in gaps),
        "gaps": [
            {
                "start": gap.start.isoformat(),
                "end": gap.end.isoformat(),
                "missing": gap.missing_count(interval),
            }
            for gap in gaps
        ],
    }


@app.get("/analysis/correlation")
async def get_correlation(
    asset_ids: list[str] = Query(..., description="Assets to compare (repeat the parameter)"),
    timeframe: str = Query(default="1d", description="Timeframe (e.g., 1h, 1d)"),
    start: datetime = Query(..., description="Inclusive window start"),
    end: datetime = Query(..., description="Inclusive window end"),
) -> dict[str, Any]:
    """Close-price correlation matrix between stored assets."""
    return calculate_correlation_matrix(
        _get_stores(),
        asset_ids,
        timeframe=timeframe,
        start=start,
        end=end,
    )
