"""Export of result tables to Parquet.

Each table is written with DuckDB's COPY ... TO using the atomic write
pattern: write to a temp file, rename on success, remove the temp file on
failure.
"""

import logging
from pathlib import Path

import pandas as pd

from nycshootings.config import Config
from nycshootings.data_access import create_configured_connection

logger = logging.getLogger(__name__)


def export_table(df: pd.DataFrame, output_file: Path, config: Config | None = None) -> Path:
    """Write one DataFrame to a Parquet file.

    Categorical columns are written as strings.

    Args:
        df: Table to export
        output_file: Destination .parquet path (parent directories are created)
        config: Configuration object (defaults used if None)

    Returns:
        Path to the written file

    Raises:
        RuntimeError: If the export fails (wraps underlying exception)
    """
    if config is None:
        config = Config()

    temp_file = output_file.with_suffix(".tmp")
    output_file.parent.mkdir(parents=True, exist_ok=True)

    categorical = df.select_dtypes(include="category").columns
    table = df.astype({col: "string" for col in categorical}) if len(categorical) else df

    conn = create_configured_connection(config, tables={"result_table": table})
    try:
        conn.execute(f"COPY (SELECT * FROM result_table) TO '{temp_file}' (FORMAT PARQUET)")
        temp_file.rename(output_file)
    except Exception as e:
        if temp_file.exists():
            temp_file.unlink()
        logger.error(f"Export of {output_file.name} failed: {e}")
        raise RuntimeError(f"Failed to export {output_file}: {e}") from e
    finally:
        conn.close()

    file_size_kb = output_file.stat().st_size / 1024
    logger.info(f"  Wrote {output_file} ({len(df):,} rows, {file_size_kb:.1f} KB)")
    return output_file


def export_tables(
    tables: dict[str, pd.DataFrame],
    output_dir: Path,
    config: Config | None = None,
) -> list[Path]:
    """Write each named table to ``<output_dir>/<name>.parquet``.

    Returns:
        Paths of the written files, in input order
    """
    logger.info(f"Exporting {len(tables)} tables to {output_dir}")
    return [
        export_table(df, output_dir / f"{name}.parquet", config=config)
        for name, df in tables.items()
    ]
