"""Tests for DuckDB connection management and SQL templates."""

from pathlib import Path

import jinja2
import pandas as pd
import pytest

from nycshootings.config import Config
from nycshootings.data_access import create_configured_connection, execute_sql_template


def test_configured_connection_settings(test_config: Config) -> None:
    """Test connection applies config settings."""
    conn = create_configured_connection(test_config)

    # Verify memory limit was set (DuckDB may format it differently)
    result = conn.execute(
        "SELECT value FROM duckdb_settings() WHERE name = 'memory_limit'"
    ).fetchone()
    assert result is not None
    memory_value = result[0].lower()
    expected_units = ["gb", "gib", "mib", "mb"]
    assert any(unit in memory_value for unit in expected_units), (
        f"Unexpected memory format: {result[0]}"
    )

    # Verify threads were set
    result = conn.execute("SELECT value FROM duckdb_settings() WHERE name = 'threads'").fetchone()
    assert result is not None
    assert int(result[0]) == 1

    conn.close()


def test_connection_registers_tables(test_config: Config) -> None:
    """Test DataFrames passed as tables are queryable by name."""
    df = pd.DataFrame({"borough": ["BRONX", "QUEENS", "BRONX"], "n": [1, 2, 3]})
    conn = create_configured_connection(test_config, tables={"sample": df})
    try:
        rows = conn.execute(
            "SELECT borough, SUM(n) FROM sample GROUP BY borough ORDER BY borough"
        ).fetchall()
    finally:
        conn.close()

    assert rows == [("BRONX", 4), ("QUEENS", 2)]


def test_execute_sql_template_renders_params(test_config: Config, tmp_path: Path) -> None:
    """Test template variables are substituted before execution."""
    sql_path = tmp_path / "doubled.sql"
    sql_path.write_text(
        "CREATE TABLE {{ output_table }} AS SELECT n * {{ factor }} AS n FROM {{ input_table }}"
    )
    df = pd.DataFrame({"n": [1, 2, 3]})

    conn = create_configured_connection(test_config, tables={"numbers": df})
    try:
        execute_sql_template(
            conn, sql_path, {"output_table": "doubled", "input_table": "numbers", "factor": 2}
        )
        rows = conn.execute("SELECT n FROM doubled ORDER BY n").fetchall()
    finally:
        conn.close()

    assert [r[0] for r in rows] == [2, 4, 6]


def test_execute_sql_template_missing_param(test_config: Config, tmp_path: Path) -> None:
    """Test a template referencing an absent parameter fails before execution."""
    sql_path = tmp_path / "broken.sql"
    sql_path.write_text("SELECT * FROM {{ missing_table }}")

    conn = create_configured_connection(test_config)
    try:
        with pytest.raises(jinja2.UndefinedError):
            execute_sql_template(conn, sql_path, {})
    finally:
        conn.close()


def test_execute_sql_template_file_not_found(test_config: Config, tmp_path: Path) -> None:
    """Test a missing template raises FileNotFoundError."""
    conn = create_configured_connection(test_config)
    try:
        with pytest.raises(FileNotFoundError, match="SQL template not found"):
            execute_sql_template(conn, tmp_path / "nope.sql", {})
    finally:
        conn.close()
