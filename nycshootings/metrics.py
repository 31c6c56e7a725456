"""Secondary aggregates over the incident table and the yearly summary.

- hourly_distribution: incidents per hour of day, all 24 hours present
- monthly_distribution: incidents per calendar month, January first
- year_over_year_change: rate difference from the borough's previous year
- rate_statistics: per-borough rate summary, missing rates excluded
- fatality_share: per-borough share of incidents flagged as murders
"""

import calendar
import logging

import pandas as pd

from nycshootings.config import Config
from nycshootings.data_access import create_configured_connection

logger = logging.getLogger(__name__)

MONTH_NAMES: list[str] = list(calendar.month_name)[1:]


def hourly_distribution(incidents: pd.DataFrame, config: Config | None = None) -> pd.DataFrame:
    """Count incidents per hour of day.

    Hours with no incidents are included with a zero count, so the result
    always has exactly 24 rows (0-23) summing to the number of incidents.

    Args:
        incidents: Cleaned incident table (needs occur_datetime)
        config: Configuration object (defaults used if None)

    Returns:
        DataFrame with columns hour, incident_count
    """
    if config is None:
        config = Config()

    conn = create_configured_connection(
        config, tables={"incidents": incidents[["occur_datetime"]]}
    )
    try:
        df = conn.execute("""
            SELECT
                h.hour,
                COUNT(i.occur_datetime) AS incident_count
            FROM range(24) AS h(hour)
            LEFT JOIN incidents i ON hour(i.occur_datetime) = h.hour
            GROUP BY h.hour
            ORDER BY h.hour
        """).fetchdf()
    finally:
        conn.close()

    df = df.astype({"hour": int, "incident_count": int})
    peak = df.loc[df["incident_count"].idxmax(), "hour"] if len(incidents) else None
    logger.info(f"Hourly distribution: peak hour {peak}")
    return df


def monthly_distribution(incidents: pd.DataFrame, config: Config | None = None) -> pd.DataFrame:
    """Count incidents per calendar month.

    The result has twelve rows in calendar order. ``month_name`` is an ordered
    categorical, so sorting on it keeps January through December rather than
    alphabetical order.

    Args:
        incidents: Cleaned incident table (needs occur_datetime)
        config: Configuration object (defaults used if None)

    Returns:
        DataFrame with columns month, month_name, incident_count
    """
    if config is None:
        config = Config()

    conn = create_configured_connection(
        config, tables={"incidents": incidents[["occur_datetime"]]}
    )
    try:
        df = conn.execute("""
            SELECT
                m.month,
                COUNT(i.occur_datetime) AS incident_count
            FROM range(1, 13) AS m(month)
            LEFT JOIN incidents i ON month(i.occur_datetime) = m.month
            GROUP BY m.month
            ORDER BY m.month
        """).fetchdf()
    finally:
        conn.close()

    df = df.astype({"month": int, "incident_count": int})
    month_dtype = pd.CategoricalDtype(MONTH_NAMES, ordered=True)
    df.insert(1, "month_name", pd.Categorical.from_codes(df["month"] - 1, dtype=month_dtype))
    return df.sort_values("month_name").reset_index(drop=True)


def year_over_year_change(summary: pd.DataFrame) -> pd.DataFrame:
    """Difference in rate from the previous year within each borough.

    Rows are explicitly sorted by (borough, year) before differencing, so the
    result does not depend on input order. The comparison is with the
    immediately preceding calendar year: a borough's first year, and any year
    whose predecessor is absent from the summary, has no change.

    Args:
        summary: Yearly borough summary (borough, year, rate)

    Returns:
        DataFrame with columns borough, year, rate, rate_change
    """
    df = summary[["borough", "year", "rate"]].sort_values(["borough", "year"])
    df = df.reset_index(drop=True)
    prev = df.groupby("borough", observed=True)[["year", "rate"]].shift()
    df["rate_change"] = (df["rate"] - prev["rate"]).where(prev["year"] == df["year"] - 1)
    return df


def rate_statistics(summary: pd.DataFrame) -> pd.DataFrame:
    """Mean, median, min and max of the yearly rate per borough.

    Borough-years with a missing rate are excluded from every statistic and
    counted separately in ``missing_years``.
    """
    grouped = summary.groupby("borough", observed=True)["rate"]
    stats = grouped.agg(["mean", "median", "min", "max", "count"])
    stats = stats.rename(columns={"count": "years"})
    stats["missing_years"] = grouped.size() - stats["years"]
    return stats.reset_index()


def fatality_share(incidents: pd.DataFrame) -> pd.DataFrame:
    """Share of each borough's incidents flagged as murders."""
    grouped = incidents.groupby("borough", observed=True)["fatal"]
    df = grouped.agg(incident_count="size", fatal_count="sum").reset_index()
    df["fatal_count"] = df["fatal_count"].astype(int)
    df["fatal_share"] = df["fatal_count"] / df["incident_count"]
    return df
