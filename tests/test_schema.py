"""Tests for database schema validation."""

from __future__ import annotations

from core.storage.sql.schema import SCHEMA_PATH, iter_sql_statements, load_schema_statements


def test_schema_file_exists():
    """Test that the schema.sql file ships next to the store."""
    assert SCHEMA_PATH.exists(), "core/storage/sql/schema.sql should exist"
    assert SCHEMA_PATH.is_file()


def test_schema_contains_required_tables():
    """Test that the schema contains the live and archive tables."""
    schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")

    for table_name in ("candles", "candles_archive"):
        assert f"CREATE TABLE IF NOT EXISTS {table_name}" in schema_sql, f"Schema should contain {table_name} table"


def test_schema_declares_unique_keys():
    """Test that both tables are unique on asset, timeframe and open time."""
    schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")

    assert "CREATE UNIQUE INDEX IF NOT EXISTS idx_candles_key ON candles (asset_id, timeframe, open_time)" in schema_sql
    assert (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_candles_archive_key ON candles_archive (asset_id, timeframe, open_time)"
        in schema_sql
    )


def test_schema_is_idempotent():
    """Test that all CREATE statements use IF NOT EXISTS."""
    for stmt in load_schema_statements():
        if stmt.upper().startswith("CREATE"):
            assert "IF NOT EXISTS" in stmt.upper(), f"Statement should be idempotent: {stmt[:60]}"


def test_iter_sql_statements_splits_and_strips_comments():
    """Test statement splitting on semicolons with comments removed."""
    sql = """
    -- leading comment
    CREATE TABLE a (x TEXT); -- trailing comment
    INSERT INTO a VALUES ('semi;colon');
    INSERT INTO a VALUES ('it''s')
    """

    statements = list(iter_sql_statements(sql))

    assert statements == [
        "CREATE TABLE a (x TEXT)",
        "INSERT INTO a VALUES ('semi;colon')",
        "INSERT INTO a VALUES ('it''s')",
    ]


def test_iter_sql_statements_ignores_empty_statements():
    """Test that stray semicolons produce nothing."""
    assert list(iter_sql_statements(";;  ;\n")) == []


def test_iter_sql_statements_keeps_quoted_identifiers():
    """Test that semicolons and dashes inside double quotes are not split."""
    sql = 'CREATE TABLE "odd;name--x" (y TEXT); SELECT 1 - 1'

    assert list(iter_sql_statements(sql)) == ['CREATE TABLE "odd;name--x" (y TEXT)', "SELECT 1 - 1"]
