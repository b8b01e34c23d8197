#!/usr/bin/env python3
"""Maintenance passes over stored candles.

Designed to be run via systemd timer or manually. Passes for the same
asset/timeframe must not run concurrently.

Usage:
    python -m scripts.candle_maintenance gaps --asset-id BTC --timeframe 1h
    python -m scripts.candle_maintenance archive --older-than-days 365
    python -m scripts.candle_maintenance compress --asset-id BTC --from-timeframe 1m --to-timeframe 1h \
        --before 2024-01-01 --prune
    python -m scripts.candle_maintenance prune --before 2023-01-01 --timeframe 1m

Requirements:
    - DATABASE_URL must be set (or pass --database-url)
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta, timezone
from typing import Sequence

from core.errors import MarketDataError
from core.market_data.archiver import archive_candles, prune_candles
from core.market_data.compressor import compress_candles
from core.market_data.gaps import find_candle_gaps
from core.market_data.timeframes import TIMEFRAMES, timeframe_minutes
from core.storage.sql import SqlStores, StoreConfig

logger = logging.getLogger("candle-maintenance")


def _parse_dt(value: str) -> datetime:
    """ISO date or datetime; UTC assumed when no offset is given."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _add_cutoff_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--before", help="ISO datetime/date cutoff (UTC assumed if no tz); exclusive")
    group.add_argument("--older-than-days", type=int, help="Cutoff relative to now (UTC)")


def _resolve_cutoff(args: argparse.Namespace, parser: argparse.ArgumentParser) -> datetime:
    if args.before:
        return _parse_dt(args.before)
    if args.older_than_days <= 0:
        parser.error("--older-than-days must be > 0")
    return datetime.now(tz=timezone.utc) - timedelta(days=args.older_than_days)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Gap detection, archiving, compression and pruning of candles.")
    parser.add_argument("--database-url", help="SQLAlchemy URL. Default: $DATABASE_URL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    timeframes = list(TIMEFRAMES.keys())

    gaps = subparsers.add_parser("gaps", help="Detect missing candles in a stored series")
    gaps.add_argument("--asset-id", required=True, help="Asset id, e.g. BTC")
    gaps.add_argument("--timeframe", required=True, choices=timeframes, help="Candle timeframe")
    gaps.add_argument(
        "--interval-minutes",
        type=int,
        help="Expected spacing in minutes. Default: the timeframe's duration",
    )

    archive = subparsers.add_parser("archive", help="Move candles older than the cutoff into the archive")
    _add_cutoff_args(archive)

    compress = subparsers.add_parser("compress", help="Aggregate fine candles into a coarser timeframe")
    compress.add_argument("--asset-id", required=True, help="Asset id, e.g. BTC")
    compress.add_argument("--from-timeframe", required=True, choices=timeframes, help="Source timeframe")
    compress.add_argument("--to-timeframe", required=True, choices=timeframes, help="Target timeframe")
    compress.add_argument(
        "--prune",
        action="store_true",
        help="Delete the source candles before the cutoff after compressing them",
    )
    _add_cutoff_args(compress)

    prune = subparsers.add_parser("prune", help="Delete candles older than the cutoff without archiving")
    prune.add_argument("--asset-id", help="Limit to one asset")
    prune.add_argument("--timeframe", choices=timeframes, help="Limit to one timeframe")
    _add_cutoff_args(prune)

    return parser


def _run(args: argparse.Namespace, parser: argparse.ArgumentParser, stores: SqlStores) -> None:
    if args.command == "gaps":
        interval = args.interval_minutes or timeframe_minutes(args.timeframe)
        gaps = find_candle_gaps(
            stores,
            asset_id=args.asset_id,
            timeframe=args.timeframe,
            expected_interval_minutes=interval,
        )
        for gap in gaps:
            print(f"gap start={gap.start.isoformat()} end={gap.end.isoformat()} missing={gap.missing_count(interval)}")
        missing = sum(gap.missing_count(interval) for gap in gaps)
        print(f"gaps-ok asset_id={args.asset_id} timeframe={args.timeframe} gaps={len(gaps)} missing={missing}")

    elif args.command == "archive":
        result = archive_candles(stores, before=_resolve_cutoff(args, parser))
        print(f"archive-ok archived={result.archived} deleted={result.deleted}")

    elif args.command == "compress":
        before = _resolve_cutoff(args, parser)
        inserted = compress_candles(
            stores,
            asset_id=args.asset_id,
            from_timeframe=args.from_timeframe,
            to_timeframe=args.to_timeframe,
            before=before,
        )
        pruned = 0
        if args.prune:
            pruned = prune_candles(stores, before=before, asset_id=args.asset_id, timeframe=args.from_timeframe)
        print(f"compress-ok asset_id={args.asset_id} inserted={inserted} pruned={pruned}")

    elif args.command == "prune":
        deleted = prune_candles(
            stores,
            before=_resolve_cutoff(args, parser),
            asset_id=args.asset_id,
            timeframe=args.timeframe,
        )
        print(f"prune-ok deleted={deleted}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.command == "gaps" and args.interval_minutes is not None and args.interval_minutes <= 0:
        parser.error("--interval-minutes must be > 0")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.database_url:
        config = StoreConfig(database_url=args.database_url)
    else:
        try:
            config = StoreConfig.from_env()
        except RuntimeError as exc:
            raise SystemExit("DATABASE_URL is not set") from exc

    stores = SqlStores(config=config)
    try:
        _run(args, parser, stores)
    except MarketDataError as exc:
        logger.error(f"{args.command} failed: {exc}")
        raise SystemExit(f"{args.command} failed: {exc}") from exc
    finally:
        stores.dispose()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
