"""Persistence interfaces.

These protocols define the persistence boundary. Implementations can be backed by
PostgreSQL (recommended) or SQLite.
"""

from .interfaces import CandleArchiveStore, CandleStore

__all__ = ["CandleArchiveStore", "CandleStore"]
