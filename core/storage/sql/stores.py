from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator, Optional, Sequence

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from core.errors import StorageError, ValidationError
from core.market_data.timeframes import as_utc, get_timeframe_spec
from core.persistence.interfaces import CandleArchiveStore, CandleStore
from core.storage.sql.config import StoreConfig
from core.storage.sql.schema import load_schema_statements
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

logger = logging.getLogger(__name__)

# Fixed width so that lexical order of the TEXT column is chronological order.
_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_CANDLE_COLUMNS = """
    id, asset_id, timeframe, open_time,
    open, high, low, close, volume,
    source, created_at
"""

_INSERT_CANDLE_SQL = """
    INSERT INTO candles (
        id, asset_id, timeframe, open_time,
        open, high, low, close, volume,
        source, created_at
    )
    VALUES (
        :id, :asset_id, :timeframe, :open_time,
        :open, :high, :low, :close, :volume,
        :source, :created_at
    )
    ON CONFLICT (asset_id, timeframe, open_time) DO NOTHING
"""

_ORDER_DIRECTIONS = {"timestamp_asc": "ASC", "timestamp_desc": "DESC"}


def _to_db_time(dt: datetime) -> str:
    return as_utc(dt).strftime(_TIME_FORMAT)


def _from_db_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    return datetime.strptime(str(value), _TIME_FORMAT).replace(tzinfo=timezone.utc)


def _to_db_decimal(value: Any, field_name: str) -> str:
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field_name} is not a decimal value: {value!r}") from exc
    if not dec.is_finite():
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    return str(dec)


def _candle_payload(candle: Candle) -> dict[str, Any]:
    if not candle.asset_id:
        raise ValidationError("asset_id is required")
    get_timeframe_spec(candle.timeframe)

    return {
        "id": str(uuid.uuid4()),
        "asset_id": candle.asset_id,
        "timeframe": str(candle.timeframe),
        "open_time": _to_db_time(candle.open_time),
        "open": _to_db_decimal(candle.open, "open"),
        "high": _to_db_decimal(candle.high, "high"),
        "low": _to_db_decimal(candle.low, "low"),
        "close": _to_db_decimal(candle.close, "close"),
        "volume": _to_db_decimal(candle.volume, "volume"),
        "source": candle.source,
        "created_at": _to_db_time(datetime.now(timezone.utc)),
    }


def _payload_to_candle(payload: dict[str, Any]) -> Candle:
    return Candle(
        id=payload["id"],
        asset_id=payload["asset_id"],
        timeframe=payload["timeframe"],
        open_time=_from_db_time(payload["open_time"]),
        open=Decimal(payload["open"]),
        high=Decimal(payload["high"]),
        low=Decimal(payload["low"]),
        close=Decimal(payload["close"]),
        volume=Decimal(payload["volume"]),
        source=payload["source"],
        created_at=_from_db_time(payload["created_at"]),
    )


def _row_to_candle(row: Sequence[Any]) -> Candle:
    return Candle(
        id=row[0],
        asset_id=row[1],
        timeframe=row[2],
        open_time=_from_db_time(row[3]),
        open=Decimal(row[4]),
        high=Decimal(row[5]),
        low=Decimal(row[6]),
        close=Decimal(row[7]),
        volume=Decimal(row[8]),
        source=row[9],
        created_at=_from_db_time(row[10]),
    )


def _row_to_archived_candle(row: Sequence[Any]) -> ArchivedCandle:
    return ArchivedCandle(
        id=row[0],
        asset_id=row[1],
        timeframe=row[2],
        open_time=_from_db_time(row[3]),
        open=Decimal(row[4]),
        high=Decimal(row[5]),
        low=Decimal(row[6]),
        close=Decimal(row[7]),
        volume=Decimal(row[8]),
        source=row[9],
        created_at=_from_db_time(row[10]),
        archived_at=_from_db_time(row[11]),
    )


def _bind_list(params: dict[str, Any], prefix: str, values: Sequence[Any]) -> str:
    names = []
    for i, value in enumerate(values):
        name = f"{prefix}_{i}"
        params[name] = value
        names.append(f":{name}")
    return ", ".join(names)


def _filter_conditions(filters: CandleFilters | None) -> tuple[list[str], dict[str, Any]]:
    conditions: list[str] = []
    params: dict[str, Any] = {}

    if filters is None:
        return conditions, params

    if filters.asset_id is not None:
        conditions.append("asset_id = :asset_id")
        params["asset_id"] = filters.asset_id
    if filters.asset_ids:
        conditions.append(f"asset_id IN ({_bind_list(params, 'asset_id', list(filters.asset_ids))})")
    if filters.timeframe is not None:
        get_timeframe_spec(filters.timeframe)
        conditions.append("timeframe = :timeframe")
        params["timeframe"] = str(filters.timeframe)
    if filters.timeframes:
        for tf in filters.timeframes:
            get_timeframe_spec(tf)
        conditions.append(f"timeframe IN ({_bind_list(params, 'timeframe', [str(tf) for tf in filters.timeframes])})")
    if filters.start is not None:
        conditions.append("open_time >= :start")
        params["start"] = _to_db_time(filters.start)
    if filters.end is not None:
        conditions.append("open_time <= :end")
        params["end"] = _to_db_time(filters.end)
    if filters.source is not None:
        conditions.append("source = :source")
        params["source"] = filters.source

    return conditions, params


def _where(conditions: list[str]) -> str:
    return ("WHERE " + " AND ".join(conditions)) if conditions else ""


class SqlStores(CandleStore, CandleArchiveStore):
    """SQL-backed candle store (SQLite or PostgreSQL through SQLAlchemy).

    Every public method is one transaction. Duplicate keys on insert are an
    expected no-op, never an error; any other database failure is rolled back
    and raised as `StorageError`.
    """

    def __init__(self, *, config: StoreConfig) -> None:
        self._config = config
        self._engine: Engine | None = None

    def _get_engine(self) -> Engine:
        if self._engine is None:
            # Do not log the URL (it may contain secrets).
            self._engine = create_engine(self._config.database_url, echo=self._config.echo, pool_pre_ping=True)
        return self._engine

    @contextmanager
    def _transaction(self) -> Iterator[Connection]:
        try:
            engine = self._get_engine()
            with engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error(f"Candle store transaction rolled back: {type(exc).__name__}")
            raise StorageError(f"Candle store operation failed: {exc}") from exc

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist yet."""
        statements = load_schema_statements()
        with self._transaction() as conn:
            for stmt in statements:
                conn.execute(text(stmt))

    def check_connection(self) -> int:
        """Round-trip to the database. Returns the number of live candles."""
        with self._transaction() as conn:
            total = conn.execute(text("SELECT COUNT(*) FROM candles")).scalar()
        return int(total or 0)

    def _insert_or_ignore(self, conn: Connection, payload: dict[str, Any]) -> bool:
        result = conn.execute(text(_INSERT_CANDLE_SQL), payload)
        return (result.rowcount or 0) > 0

    def _unbounded_limit(self) -> str:
        # OFFSET needs a LIMIT on SQLite; PostgreSQL spells "no limit" differently.
        return "LIMIT -1" if self._get_engine().dialect.name == "sqlite" else "LIMIT ALL"

    # ---- CandleStore: writes

    def insert_candle(self, *, candle: Candle) -> CandleInsertResult:
        payload = _candle_payload(candle)

        with self._transaction() as conn:
            if self._insert_or_ignore(conn, payload):
                return CandleInsertResult(candle=_payload_to_candle(payload), inserted=True)

            row = conn.execute(
                text(
                    f"""
                    SELECT {_CANDLE_COLUMNS}
                    FROM candles
                    WHERE asset_id = :asset_id
                      AND timeframe = :timeframe
                      AND open_time = :open_time
                    """
                ),
                {
                    "asset_id": payload["asset_id"],
                    "timeframe": payload["timeframe"],
                    "open_time": payload["open_time"],
                },
            ).fetchone()

        if row is None:
            raise StorageError("Failed to insert or retrieve candle")

        return CandleInsertResult(candle=_row_to_candle(row), inserted=False)

    def bulk_insert_candles(self, *, candles: Sequence[Candle]) -> int:
        if not candles:
            return 0

        # Validate the whole batch before opening the transaction.
        payloads = [_candle_payload(candle) for candle in candles]

        inserted = 0
        with self._transaction() as conn:
            for payload in payloads:
                if self._insert_or_ignore(conn, payload):
                    inserted += 1

        logger.debug(f"Bulk insert stored {inserted} of {len(payloads)} candles")
        return inserted

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
        changes: dict[str, Any] = {}
        for name, value in (("open", open), ("high", high), ("low", low), ("close", close), ("volume", volume)):
            if value is not None:
                changes[name] = Decimal(_to_db_decimal(value, name))
        if source is not None:
            changes["source"] = source

        with self._transaction() as conn:
            row = conn.execute(
                text(f"SELECT {_CANDLE_COLUMNS} FROM candles WHERE id = :id"),
                {"id": candle_id},
            ).fetchone()
            if row is None:
                return None

            updated = replace(_row_to_candle(row), **changes)
            conn.execute(
                text(
                    """
                    UPDATE candles
                    SET open = :open,
                        high = :high,
                        low = :low,
                        close = :close,
                        volume = :volume,
                        source = :source
                    WHERE id = :id
                    """
                ),
                {
                    "id": candle_id,
                    "open": str(updated.open),
                    "high": str(updated.high),
                    "low": str(updated.low),
                    "close": str(updated.close),
                    "volume": str(updated.volume),
                    "source": updated.source,
                },
            )

        return updated

    def delete_candle(self, *, candle_id: str) -> bool:
        with self._transaction() as conn:
            result = conn.execute(text("DELETE FROM candles WHERE id = :id"), {"id": candle_id})
            deleted = (result.rowcount or 0) > 0
        return deleted

    def delete_candles_before(
        self,
        *,
        before: datetime,
        asset_id: str | None = None,
        timeframe: str | None = None,
    ) -> int:
        conditions = ["open_time < :before"]
        params: dict[str, Any] = {"before": _to_db_time(before)}

        if asset_id is not None:
            conditions.append("asset_id = :asset_id")
            params["asset_id"] = asset_id
        if timeframe is not None:
            get_timeframe_spec(timeframe)
            conditions.append("timeframe = :timeframe")
            params["timeframe"] = timeframe

        with self._transaction() as conn:
            result = conn.execute(text(f"DELETE FROM candles {_where(conditions)}"), params)
            deleted = int(result.rowcount or 0)

        return deleted

    # ---- CandleStore: reads

    def get_candle(self, *, asset_id: str, timeframe: str, open_time: datetime) -> Optional[Candle]:
        with self._transaction() as conn:
            row = conn.execute(
                text(
                    f"""
                    SELECT {_CANDLE_COLUMNS}
                    FROM candles
                    WHERE asset_id = :asset_id
                      AND timeframe = :timeframe
                      AND open_time = :open_time
                    """
                ),
                {"asset_id": asset_id, "timeframe": timeframe, "open_time": _to_db_time(open_time)},
            ).fetchone()

        return None if row is None else _row_to_candle(row)

    def get_candle_by_id(self, *, candle_id: str) -> Optional[Candle]:
        with self._transaction() as conn:
            row = conn.execute(
                text(f"SELECT {_CANDLE_COLUMNS} FROM candles WHERE id = :id"),
                {"id": candle_id},
            ).fetchone()

        return None if row is None else _row_to_candle(row)

    def get_candles(
        self,
        *,
        asset_id: str,
        timeframe: str,
        start: datetime,
        end: datetime,
    ) -> Sequence[Candle]:
        return self.query_candles(
            filters=CandleFilters(asset_id=asset_id, timeframe=timeframe, start=start, end=end),
            page=CandlePage(order="timestamp_asc"),
        )

    def get_candles_before(self, *, asset_id: str, timeframe: str, before: datetime) -> Sequence[Candle]:
        get_timeframe_spec(timeframe)

        with self._transaction() as conn:
            rows = conn.execute(
                text(
                    f"""
                    SELECT {_CANDLE_COLUMNS}
                    FROM candles
                    WHERE asset_id = :asset_id
                      AND timeframe = :timeframe
                      AND open_time < :before
                    ORDER BY open_time ASC
                    """
                ),
                {"asset_id": asset_id, "timeframe": timeframe, "before": _to_db_time(before)},
            ).fetchall()

        return [_row_to_candle(row) for row in rows]

    def query_candles(
        self,
        *,
        filters: CandleFilters | None = None,
        page: CandlePage | None = None,
    ) -> Sequence[Candle]:
        page = page or CandlePage()
        if page.order not in _ORDER_DIRECTIONS:
            raise ValidationError(f"Unsupported order: {page.order}")
        if page.limit is not None and page.limit < 1:
            raise ValidationError("limit must be >= 1")
        if page.offset is not None and page.offset < 0:
            raise ValidationError("offset must be >= 0")

        conditions, params = _filter_conditions(filters)
        direction = _ORDER_DIRECTIONS[page.order]

        sql = f"""
            SELECT {_CANDLE_COLUMNS}
            FROM candles
            {_where(conditions)}
            ORDER BY open_time {direction}, asset_id ASC, timeframe ASC
        """
        if page.limit is not None:
            sql += " LIMIT :limit"
            params["limit"] = page.limit
        if page.offset:
            if page.limit is None:
                sql += " " + self._unbounded_limit()
            sql += " OFFSET :offset"
            params["offset"] = page.offset

        with self._transaction() as conn:
            rows = conn.execute(text(sql), params).fetchall()

        return [_row_to_candle(row) for row in rows]

    def get_latest_candle(self, *, asset_id: str, timeframe: str) -> Optional[Candle]:
        results = self.query_candles(
            filters=CandleFilters(asset_id=asset_id, timeframe=timeframe),
            page=CandlePage(limit=1, order="timestamp_desc"),
        )
        return results[0] if results else None

    def get_earliest_candle(self, *, asset_id: str, timeframe: str) -> Optional[Candle]:
        results = self.query_candles(
            filters=CandleFilters(asset_id=asset_id, timeframe=timeframe),
            page=CandlePage(limit=1, order="timestamp_asc"),
        )
        return results[0] if results else None

    def get_date_range(self, *, asset_id: str, timeframe: str) -> CandleDateRange:
        with self._transaction() as conn:
            row = conn.execute(
                text(
                    """
                    SELECT
                        MIN(open_time) AS earliest,
                        MAX(open_time) AS latest,
                        COUNT(*) AS total_count
                    FROM candles
                    WHERE asset_id = :asset_id
                      AND timeframe = :timeframe
                    """
                ),
                {"asset_id": asset_id, "timeframe": timeframe},
            ).fetchone()

        count = int(row[2] or 0) if row is not None else 0
        if count == 0:
            return CandleDateRange(earliest=None, latest=None, count=0)

        return CandleDateRange(earliest=_from_db_time(row[0]), latest=_from_db_time(row[1]), count=count)

    def has_data_in_range(self, *, asset_id: str, timeframe: str, start: datetime, end: datetime) -> bool:
        with self._transaction() as conn:
            row = conn.execute(
                text(
                    """
                    SELECT 1
                    FROM candles
                    WHERE asset_id = :asset_id
                      AND timeframe = :timeframe
                      AND open_time >= :start
                      AND open_time <= :end
                    LIMIT 1
                    """
                ),
                {
                    "asset_id": asset_id,
                    "timeframe": timeframe,
                    "start": _to_db_time(start),
                    "end": _to_db_time(end),
                },
            ).fetchone()

        return row is not None

    def get_statistics(
        self,
        *,
        asset_id: str,
        timeframe: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> CandleStatistics:
        conditions, params = _filter_conditions(
            CandleFilters(asset_id=asset_id, timeframe=timeframe, start=start, end=end)
        )

        # Aggregated in Python so every step stays in Decimal; SQL casts would go through REAL.
        with self._transaction() as conn:
            rows = conn.execute(
                text(
                    f"""
                    SELECT open, high, low, close, volume
                    FROM candles
                    {_where(conditions)}
                    ORDER BY open_time ASC
                    """
                ),
                params,
            ).fetchall()

        if not rows:
            return CandleStatistics(count=0)

        total_volume = sum((Decimal(row[4]) for row in rows), Decimal("0"))

        return CandleStatistics(
            count=len(rows),
            avg_volume=total_volume / len(rows),
            max_high=max(Decimal(row[1]) for row in rows),
            min_low=min(Decimal(row[2]) for row in rows),
            first_open=Decimal(rows[0][0]),
            last_close=Decimal(rows[-1][3]),
        )

    def get_open_times(self, *, asset_id: str, timeframe: str) -> Sequence[datetime]:
        with self._transaction() as conn:
            rows = conn.execute(
                text(
                    """
                    SELECT open_time
                    FROM candles
                    WHERE asset_id = :asset_id
                      AND timeframe = :timeframe
                    ORDER BY open_time ASC
                    """
                ),
                {"asset_id": asset_id, "timeframe": timeframe},
            ).fetchall()

        return [_from_db_time(row[0]) for row in rows]

    def count_candles(self, *, filters: CandleFilters | None = None) -> int:
        conditions, params = _filter_conditions(filters)

        with self._transaction() as conn:
            total = conn.execute(
                text(f"SELECT COUNT(*) FROM candles {_where(conditions)}"),
                params,
            ).scalar()

        return int(total or 0)

    # ---- CandleArchiveStore

    def archive_candles_before(self, *, before: datetime) -> ArchiveResult:
        cutoff = _to_db_time(before)
        archived_at = _to_db_time(datetime.now(timezone.utc))

        # Copy and delete share one transaction: a failed copy never deletes.
        with self._transaction() as conn:
            copy_result = conn.execute(
                text(
                    """
                    INSERT INTO candles_archive (
                        id, asset_id, timeframe, open_time,
                        open, high, low, close, volume,
                        source, created_at, archived_at
                    )
                    SELECT
                        id, asset_id, timeframe, open_time,
                        open, high, low, close, volume,
                        source, created_at, :archived_at
                    FROM candles
                    WHERE open_time < :before
                    ON CONFLICT DO NOTHING
                    """
                ),
                {"before": cutoff, "archived_at": archived_at},
            )
            archived = int(copy_result.rowcount or 0)

            delete_result = conn.execute(
                text("DELETE FROM candles WHERE open_time < :before"),
                {"before": cutoff},
            )
            deleted = int(delete_result.rowcount or 0)

        return ArchiveResult(archived=archived, deleted=deleted)

    def count_archived_candles(self) -> int:
        with self._transaction() as conn:
            total = conn.execute(text("SELECT COUNT(*) FROM candles_archive")).scalar()
        return int(total or 0)

    def get_archived_candles(self, *, asset_id: str, timeframe: str) -> Sequence[ArchivedCandle]:
        with self._transaction() as conn:
            rows = conn.execute(
                text(
                    f"""
                    SELECT {_CANDLE_COLUMNS}, archived_at
                    FROM candles_archive
                    WHERE asset_id = :asset_id
                      AND timeframe = :timeframe
                    ORDER BY open_time ASC
                    """
                ),
                {"asset_id": asset_id, "timeframe": timeframe},
            ).fetchall()

        return [_row_to_archived_candle(row) for row in rows]
