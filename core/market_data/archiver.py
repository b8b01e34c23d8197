"""Archiving and pruning of stale candles."""

from __future__ import annotations

import logging
from datetime import datetime

from core.market_data.timeframes import as_utc
from core.persistence.interfaces import CandleArchiveStore, CandleStore
from core.types import ArchiveResult

logger = logging.getLogger(__name__)


def archive_candles(store: CandleArchiveStore, *, before: datetime) -> ArchiveResult:
    """Move every live candle older than `before` into the archive.

    Covers all assets and timeframes in one transaction. Candles whose key is
    already archived are not copied again but are still removed from the live
    table, so `archived` can be lower than `deleted`. Re-running with the same
    cutoff returns (0, 0).

    Raises:
        StorageError: If either step fails; nothing is applied in that case
    """
    cutoff = as_utc(before)
    result = store.archive_candles_before(before=cutoff)

    logger.info(
        f"Archived candles before {cutoff.isoformat()}: archived={result.archived} deleted={result.deleted}"
    )
    if result.archived < result.deleted:
        logger.info(f"{result.deleted - result.archived} candles were already archived by an earlier run")

    return result


def prune_candles(
    store: CandleStore,
    *,
    before: datetime,
    asset_id: str | None = None,
    timeframe: str | None = None,
) -> int:
    """Delete live candles older than `before` without archiving them.

    Used to drop a finer-grained source series once it has been compressed.
    """
    cutoff = as_utc(before)
    deleted = store.delete_candles_before(before=cutoff, asset_id=asset_id, timeframe=timeframe)

    scope = " ".join(part for part in (asset_id, timeframe) if part) or "all series"
    logger.info(f"Pruned {deleted} candles before {cutoff.isoformat()} ({scope})")
    return deleted
