"""Tests for Parquet export."""

from pathlib import Path
from unittest.mock import Mock, patch

import duckdb
import pandas as pd
import pytest

from nycshootings.categories import Borough, categorical_dtype
from nycshootings.config import Config
from nycshootings.export import export_table, export_tables


@pytest.fixture
def summary() -> pd.DataFrame:
    df = pd.DataFrame(
        {
            "borough": ["BRONX", "QUEENS", None],
            "year": [2010, 2010, 2011],
            "rate": [0.5, float("nan"), 0.25],
        }
    )
    df["borough"] = df["borough"].astype(categorical_dtype(Borough))
    return df


def test_export_writes_parquet(summary: pd.DataFrame, test_config: Config, tmp_path: Path) -> None:
    """Rows round-trip through the written file."""
    output_file = tmp_path / "nested" / "summary.parquet"

    result = export_table(summary, output_file, config=test_config)

    assert result == output_file
    assert output_file.exists()
    assert not output_file.with_suffix(".tmp").exists()

    rows = duckdb.sql(f"SELECT year, rate FROM '{output_file}' ORDER BY year, rate").fetchall()
    assert len(rows) == 3


def test_categorical_written_as_string(
    summary: pd.DataFrame, test_config: Config, tmp_path: Path
) -> None:
    """Borough categories become plain strings; missing stays NULL."""
    output_file = tmp_path / "summary.parquet"
    export_table(summary, output_file, config=test_config)

    column_type = duckdb.sql(
        f"SELECT column_type FROM (DESCRIBE SELECT * FROM '{output_file}') "
        "WHERE column_name = 'borough'"
    ).fetchone()
    assert column_type == ("VARCHAR",)

    boroughs = duckdb.sql(f"SELECT borough FROM '{output_file}' ORDER BY year, borough").fetchall()
    assert boroughs == [("BRONX",), ("QUEENS",), (None,)]


def test_export_failure_leaves_no_temp_file(
    summary: pd.DataFrame, test_config: Config, tmp_path: Path
) -> None:
    """A failed write raises RuntimeError and removes the partial temp file."""
    output_file = tmp_path / "summary.parquet"
    temp_file = output_file.with_suffix(".tmp")

    def fail_midway(sql: str) -> None:
        temp_file.write_bytes(b"partial")
        raise duckdb.IOException("disk full")

    conn = Mock()
    conn.execute.side_effect = fail_midway
    with patch("nycshootings.export.create_configured_connection", return_value=conn):
        with pytest.raises(RuntimeError, match="Failed to export"):
            export_table(summary, output_file, config=test_config)

    assert not temp_file.exists()
    assert not output_file.exists()
    conn.close.assert_called_once()


def test_export_tables_names_files(
    summary: pd.DataFrame, test_config: Config, tmp_path: Path
) -> None:
    """Each table is written to <name>.parquet in order."""
    paths = export_tables(
        {"yearly_summary": summary, "hourly_distribution": pd.DataFrame({"hour": [0, 1]})},
        tmp_path,
        config=test_config,
    )

    assert [p.name for p in paths] == ["yearly_summary.parquet", "hourly_distribution.parquet"]
    assert all(p.exists() for p in paths)
