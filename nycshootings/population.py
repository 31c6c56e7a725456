"""Borough population loading and yearly interpolation.

The population source is a wide table: one row per borough (plus an "NYC Total"
row), one column per decennial year, and a "share of total" column after each
year. Only decennial counts are published, so the yearly values needed for
rate normalization are linearly interpolated between census years.
"""

import logging
import re

import pandas as pd

from nycshootings.categories import Borough, categorical_dtype, normalize_borough
from nycshootings.sources import SchemaError, fetch_csv, require_columns

logger = logging.getLogger(__name__)

YEAR_COLUMN = re.compile(r"^\d{4}$")
TOTAL_ROW = "NYC TOTAL"


def load_population(location: str, timeout: float = 120.0) -> pd.DataFrame:
    """Fetch the borough population table and reshape it to long format.

    Args:
        location: URL or path of the population CSV
        timeout: HTTP timeout in seconds

    Returns:
        DataFrame with columns borough, year, population

    Raises:
        SourceError: If the source cannot be read
        SchemaError: If the table shape or borough names are unexpected
    """
    logger.info("Loading borough population")
    raw = fetch_csv(location, timeout=timeout)
    return reshape_population(raw)


def reshape_population(raw: pd.DataFrame) -> pd.DataFrame:
    """Melt the wide population table into (borough, year, population) rows.

    Drops the city-wide total row, the age group column and every column that
    is not a four-digit year (the "Boro share of NYC total" columns).

    Raises:
        SchemaError: If the Borough column or all year columns are missing,
            a borough name is unknown, or a population value is not numeric
    """
    require_columns(raw, ["Borough"], "Population")
    year_columns = [col for col in raw.columns if YEAR_COLUMN.match(str(col).strip())]
    if not year_columns:
        raise SchemaError("Population table has no per-year columns")

    df = raw[["Borough", *year_columns]].copy()
    if df["Borough"].isna().any():
        raise SchemaError("Population table has rows without a borough")
    names = df["Borough"].astype("string").str.strip()
    df = df[names.str.upper() != TOTAL_ROW].copy()

    boroughs = []
    for name in df["Borough"]:
        try:
            boroughs.append(normalize_borough(str(name)).value)
        except ValueError as e:
            raise SchemaError(f"Unknown borough in population table: {name!r}") from e
    df["Borough"] = boroughs

    long = df.melt(id_vars="Borough", var_name="year", value_name="population")
    long = long.rename(columns={"Borough": "borough"})
    long["year"] = long["year"].astype(str).str.strip().astype(int)

    cleaned = long["population"].astype("string").str.replace(",", "").str.strip()
    population = pd.to_numeric(cleaned, errors="coerce")
    bad = cleaned.notna() & (cleaned != "") & population.isna()
    if bad.any():
        raise SchemaError(f"Non-numeric population values: {sorted(set(cleaned[bad]))}")
    if (population < 0).any():
        raise SchemaError("Population table contains negative counts")
    long["population"] = population.round().astype("Int64")

    long["borough"] = long["borough"].astype(categorical_dtype(Borough))
    long = long.sort_values(["borough", "year"]).reset_index(drop=True)

    logger.info(
        f"  Result: {long['borough'].nunique()} boroughs, "
        f"years {long['year'].min()}-{long['year'].max()}"
    )
    return long


def interpolate_population(
    population: pd.DataFrame,
    min_year: int,
    max_year: int,
) -> pd.DataFrame:
    """Fill in yearly population by linear interpolation per borough.

    Rows outside [min_year, max_year] are dropped first. Each borough then gets
    one row for every year in range. Missing years that lie between two known
    years are placed on the straight line through them; years before the first
    or after the last known value stay missing, as does every gap in a borough
    with fewer than two known values.

    Args:
        population: Long table with borough, year, population
        min_year: First year of the analysis range (inclusive)
        max_year: Last year of the analysis range (inclusive)

    Returns:
        DataFrame with columns borough, year, population (float, NaN where unknown)

    Raises:
        ValueError: If min_year > max_year
    """
    if min_year > max_year:
        raise ValueError(f"min_year ({min_year}) must not exceed max_year ({max_year})")

    in_range = population[population["year"].between(min_year, max_year)]
    years = pd.RangeIndex(min_year, max_year + 1, name="year")

    frames = []
    for borough in population["borough"].dropna().unique():
        known = (
            in_range.loc[in_range["borough"] == borough, ["year", "population"]]
            .dropna(subset=["population"])
            .groupby("year")["population"]
            .mean()
            .astype(float)
        )
        series = known.reindex(years)
        if known.size >= 2:
            series = series.interpolate(method="index", limit_area="inside")
        frame = series.rename("population").reset_index()
        frame.insert(0, "borough", borough)
        frames.append(frame)

    if not frames:
        return pd.DataFrame(
            {
                "borough": pd.Series(dtype=categorical_dtype(Borough)),
                "year": pd.Series(dtype=int),
                "population": pd.Series(dtype=float),
            }
        )

    result = pd.concat(frames, ignore_index=True)
    result["borough"] = result["borough"].astype(categorical_dtype(Borough))
    result["year"] = result["year"].astype(int)

    filled = int(result["population"].notna().sum())
    logger.info(
        f"Interpolated population for {result['borough'].nunique()} boroughs, "
        f"{min_year}-{max_year}: {filled:,} of {len(result):,} borough-years known"
    )
    return result.sort_values(["borough", "year"]).reset_index(drop=True)
