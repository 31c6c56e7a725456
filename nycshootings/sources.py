"""Remote and local CSV sources.

Both input tables are published by NYC Open Data as CSV exports:
- Shooting incidents: NYPD Shooting Incident Data (Historic), 833y-fsy8
- Population: New York City Population by Borough, 1950 - 2040, xywu-7bv9

A source location may also be a local file path, which keeps offline runs and
tests off the network.
"""

import io
import logging
from pathlib import Path

import pandas as pd
import requests

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Input table could not be retrieved."""

    pass


class SchemaError(Exception):
    """Input table does not have the expected shape or values."""

    pass


def fetch_csv(location: str, timeout: float = 120.0) -> pd.DataFrame:
    """Read a CSV table from an HTTP(S) URL or a local path.

    All columns are read as strings; callers own type coercion.

    Args:
        location: URL or filesystem path
        timeout: Seconds before an HTTP request is abandoned

    Returns:
        Raw DataFrame with string columns

    Raises:
        SourceError: If the source is unreachable, times out or is not CSV
    """
    if location.startswith(("http://", "https://")):
        logger.info(f"Downloading {location}")
        try:
            response = requests.get(location, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise SourceError(f"Failed to fetch {location}: {e}") from e
        buffer: io.StringIO | Path = io.StringIO(response.text)
    else:
        buffer = Path(location)
        if not buffer.exists():
            raise SourceError(f"Source file not found: {location}")

    try:
        df = pd.read_csv(buffer, dtype=str, keep_default_na=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise SourceError(f"Source is not a readable CSV table: {location}: {e}") from e

    logger.info(f"  Read {len(df):,} rows x {len(df.columns)} columns")
    return df


def require_columns(df: pd.DataFrame, columns: list[str], table: str) -> None:
    """Fail fast when a table is missing expected columns.

    Raises:
        SchemaError: Naming every missing column
    """
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise SchemaError(f"{table} table is missing columns: {', '.join(missing)}")
