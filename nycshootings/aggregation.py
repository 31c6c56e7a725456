"""Borough-year aggregation with population-normalized rates.

Counts incidents per (borough, year) and joins the interpolated population
table. Uses a SQL template for the core transformation, with Python providing
orchestration and error handling.
"""

import logging
from pathlib import Path

import pandas as pd

from nycshootings.categories import Borough, categorical_dtype
from nycshootings.config import Config
from nycshootings.data_access import create_configured_connection, execute_sql_template

logger = logging.getLogger(__name__)


def summarize_by_borough_year(
    incidents: pd.DataFrame,
    population: pd.DataFrame,
    config: Config | None = None,
) -> pd.DataFrame:
    """Aggregate incidents to yearly borough counts and rates.

    Executes the yearly_summary.sql template. The join is a LEFT JOIN from
    incident counts, so a borough-year with incidents but no population still
    appears, with a missing rate.

    Args:
        incidents: Cleaned incident table (needs borough, occur_datetime)
        population: Interpolated population table (borough, year, population)
        config: Configuration object (defaults used if None)

    Returns:
        DataFrame with columns borough, year, incident_count, population, rate,
        sorted by borough then year

    Raises:
        RuntimeError: If SQL execution fails (wraps underlying exception)

    Example:
        >>> from nycshootings.config import Config
        >>> config = Config.from_file("config.toml")
        >>> summary = summarize_by_borough_year(incidents, population, config=config)
    """
    if config is None:
        config = Config()

    sql_path = Path(__file__).parent / "sql" / "yearly_summary.sql"

    params = {
        "incidents_table": "incidents",
        "population_table": "population",
        "output_table": "yearly_summary",
        "rate_per": config.analysis.rate_per,
    }

    skipped = int(incidents["borough"].isna().sum())
    if skipped:
        logger.warning(f"  {skipped:,} incidents without a borough left out of the summary")

    logger.info(
        f"Aggregating {len(incidents):,} incidents by borough and year "
        f"(rate per {config.analysis.rate_per:,} residents)"
    )

    conn = create_configured_connection(
        config,
        tables={
            "incidents": incidents[["borough", "occur_datetime"]],
            "population": population[["borough", "year", "population"]],
        },
    )
    try:
        # Renders the Jinja2 template and materializes the yearly_summary table
        execute_sql_template(conn, sql_path, params)
        summary = conn.execute(
            "SELECT * FROM yearly_summary ORDER BY borough, year"
        ).fetchdf()
    except Exception as e:
        logger.error(f"Yearly aggregation failed: {e}")
        raise RuntimeError(f"Failed to aggregate incidents by borough and year: {e}") from e
    finally:
        conn.close()

    summary["borough"] = summary["borough"].astype(categorical_dtype(Borough))
    summary["year"] = summary["year"].astype(int)
    summary["incident_count"] = summary["incident_count"].astype(int)
    summary["population"] = summary["population"].astype(float)
    summary["rate"] = summary["rate"].astype(float)

    missing_rate = int(summary["rate"].isna().sum())
    logger.info(
        f"  Result: {len(summary):,} borough-years, "
        f"{int(summary['incident_count'].sum()):,} incidents, "
        f"{missing_rate:,} without population"
    )
    return summary.reset_index(drop=True)
