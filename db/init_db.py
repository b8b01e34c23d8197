#!/usr/bin/env python3
"""Initialize the candle store schema.

Applies core/storage/sql/schema.sql to the database pointed to by DATABASE_URL.
Every statement is `IF NOT EXISTS`, so running it again is harmless.

Usage:
  python -m db.init_db
  python -m db.init_db --database-url sqlite:///candles.db

Requirements:
  - DATABASE_URL must be set (or pass --database-url)
  - psycopg2-binary installed for PostgreSQL URLs (the `postgres` extra)
"""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from core.errors import StorageError
from core.storage.sql import SqlStores, StoreConfig
from core.storage.sql.schema import SCHEMA_PATH

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Apply the candle store schema.")
    parser.add_argument("--database-url", help="SQLAlchemy URL. Default: $DATABASE_URL")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if args.database_url:
        config = StoreConfig(database_url=args.database_url)
    else:
        try:
            config = StoreConfig.from_env()
        except RuntimeError as exc:
            raise SystemExit("DATABASE_URL is not set") from exc

    stores = SqlStores(config=config)
    try:
        stores.ensure_schema()
    except StorageError as exc:
        raise SystemExit(f"Failed to apply schema: {exc}") from exc
    finally:
        stores.dispose()

    logger.info(f"Applied schema from {SCHEMA_PATH.name}")
    print("Database schema applied")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
