"""Compression of fine candles into coarser timeframes.

Buckets sit on an epoch-relative grid of the target duration, so a 1h bucket
always starts on the hour regardless of where the source series begins. All
arithmetic is Decimal.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from core.errors import ValidationError
from core.market_data.timeframes import align_to_step, as_utc, get_timeframe_spec
from core.persistence.interfaces import CandleStore
from core.types import Candle, Timeframe

logger = logging.getLogger(__name__)


def compressed_source_tag(from_timeframe: str) -> str:
    return f"compressed_from_{from_timeframe}"


def aggregate_candles(
    candles: Sequence[Candle],
    *,
    asset_id: str,
    to_timeframe: Timeframe,
    source: str | None = None,
) -> list[Candle]:
    """Aggregate ascending candles into one candle per target bucket.

    Args:
        candles: Source candles, oldest first
        asset_id: Asset of the produced candles
        to_timeframe: Target timeframe
        source: Provenance tag for the produced candles

    Returns:
        One candle per non-empty bucket, oldest first
    """
    spec = get_timeframe_spec(to_timeframe)

    buckets: dict[datetime, list[Candle]] = {}
    for candle in candles:
        bucket_start = align_to_step(candle.open_time, spec.step_ms)
        buckets.setdefault(bucket_start, []).append(candle)

    aggregated: list[Candle] = []
    for bucket_start in sorted(buckets):
        rows = buckets[bucket_start]
        aggregated.append(
            Candle(
                asset_id=asset_id,
                timeframe=to_timeframe,
                open_time=bucket_start,
                open=rows[0].open,
                high=max(row.high for row in rows),
                low=min(row.low for row in rows),
                close=rows[-1].close,
                volume=sum((row.volume for row in rows), Decimal("0")),
                source=source,
            )
        )

    return aggregated


def compress_candles(
    store: CandleStore,
    *,
    asset_id: str,
    from_timeframe: Timeframe,
    to_timeframe: Timeframe,
    before: datetime,
) -> int:
    """Compress `from_timeframe` candles older than `before` into `to_timeframe`.

    Buckets that already have a `to_timeframe` candle are skipped, not
    overwritten. Source candles are left in place; pruning them is a separate
    step (see `core.market_data.archiver.prune_candles`).

    Returns:
        Number of newly inserted target candles

    Raises:
        ValidationError: If the target timeframe is not strictly longer than the source
        StorageError: If the write fails; no bucket is stored in that case
    """
    from_spec = get_timeframe_spec(from_timeframe)
    to_spec = get_timeframe_spec(to_timeframe)
    if to_spec.minutes <= from_spec.minutes:
        raise ValidationError(
            f"Target timeframe must be larger than source timeframe: {to_timeframe} <= {from_timeframe}"
        )

    cutoff = as_utc(before)
    source_candles = store.get_candles_before(asset_id=asset_id, timeframe=from_timeframe, before=cutoff)
    if not source_candles:
        logger.info(f"No {from_timeframe} candles before {cutoff.isoformat()} to compress for {asset_id}")
        return 0

    compressed = aggregate_candles(
        source_candles,
        asset_id=asset_id,
        to_timeframe=to_timeframe,
        source=compressed_source_tag(from_timeframe),
    )
    inserted = store.bulk_insert_candles(candles=compressed)

    logger.info(
        f"Compressed {len(source_candles)} {from_timeframe} candles into {len(compressed)} {to_timeframe} "
        f"buckets for {asset_id} ({inserted} new)"
    )
    return inserted
