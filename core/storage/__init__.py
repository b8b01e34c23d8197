"""Storage implementations of the persistence interfaces."""

from .sql import SqlStores, StoreConfig

__all__ = ["SqlStores", "StoreConfig"]
