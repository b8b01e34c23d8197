from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class StoreConfig:
    """Connection configuration.

    `database_url` is any SQLAlchemy URL: `sqlite:///path/to/candles.db` for local
    use, `postgresql+psycopg2://...` in deployment. It may contain secrets, so it is
    never logged.
    """

    database_url: str
    echo: bool = False

    @classmethod
    def from_env(cls) -> "StoreConfig":
        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL environment variable is required")
        echo = os.getenv("SQL_ECHO", "").strip().lower() in ("1", "true", "yes")
        return cls(database_url=database_url, echo=echo)
