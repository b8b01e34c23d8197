"""SQL storage for candles.

Notes
- We avoid logging connection URLs to prevent accidental secret leakage.
- Runs on SQLite for local use and tests, PostgreSQL in deployment.
"""

from .config import StoreConfig
from .stores import SqlStores

__all__ = ["SqlStores", "StoreConfig"]
