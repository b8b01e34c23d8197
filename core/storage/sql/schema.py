"""Schema loading for the SQL candle store."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

# Quoted literals first so `;` and `--` inside them are kept as text.
_SQL_TOKEN = re.compile(
    r"""
    (?P<literal>'(?:[^']|'')*'|"[^"]*")
    | (?P<comment>--[^\r\n]*)
    | (?P<end>;)
    | (?P<text>[^'";-]+|.)
    """,
    re.VERBOSE | re.DOTALL,
)


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a SQL script on top-level semicolons, dropping `--` comments."""
    parts: list[str] = []
    for match in _SQL_TOKEN.finditer(sql):
        kind = match.lastgroup
        if kind == "comment":
            continue
        if kind == "end":
            statement = "".join(parts).strip()
            parts = []
            if statement:
                yield statement
            continue
        parts.append(match.group())

    tail = "".join(parts).strip()
    if tail:
        yield tail


def load_schema_statements(path: Path = SCHEMA_PATH) -> list[str]:
    return list(iter_sql_statements(path.read_text(encoding="utf-8")))
