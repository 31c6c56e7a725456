"""DuckDB connection management with configuration."""

from pathlib import Path
from typing import Any

import duckdb
import pandas as pd
from jinja2 import StrictUndefined, Template

from nycshootings.config import Config


def create_configured_connection(
    config: Config,
    tables: dict[str, pd.DataFrame] | None = None,
) -> duckdb.DuckDBPyConnection:
    """Create in-memory DuckDB connection with standard configuration.

    Applies memory limits and threading, then registers DataFrames as views.

    Args:
        config: Configuration object
        tables: Optional mapping of view name to DataFrame to register

    Returns:
        Configured DuckDB connection

    Example:
        >>> from nycshootings.config import Config
        >>> conn = create_configured_connection(Config(), tables={"incidents": incidents})
        >>> conn.execute("SELECT COUNT(*) FROM incidents").fetchone()
    """
    conn = duckdb.connect()

    conn.execute(f"SET memory_limit = '{config.duckdb.memory_limit}'")
    conn.execute(f"SET threads = {config.duckdb.threads}")

    if tables:
        for name, df in tables.items():
            conn.register(name, df)

    return conn


def execute_sql_template(
    conn: duckdb.DuckDBPyConnection,
    sql_path: Path,
    params: dict[str, Any],
) -> None:
    """Render a Jinja2 SQL template and execute it on a connection.

    Args:
        conn: DuckDB connection with the referenced tables registered
        sql_path: Path to the .sql template
        params: Template variables

    Raises:
        FileNotFoundError: If the template doesn't exist
        jinja2.UndefinedError: If the template references a missing parameter
    """
    if not sql_path.exists():
        raise FileNotFoundError(f"SQL template not found: {sql_path}")

    template = Template(sql_path.read_text(encoding="utf-8"), undefined=StrictUndefined)
    conn.execute(template.render(**params))
