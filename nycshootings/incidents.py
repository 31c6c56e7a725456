"""Shooting incident loading and cleaning.

Turns the raw NYPD export into a typed incident table:
- sparse/redundant location and projected-coordinate columns are dropped
- OCCUR_DATE / OCCUR_TIME become dates, times and a combined timestamp
- BORO and the demographic columns become fixed-vocabulary categoricals
- STATISTICAL_MURDER_FLAG becomes a boolean ``fatal`` column
- Latitude/Longitude are numeric and either both present or both missing
"""

import logging

import pandas as pd

from nycshootings.categories import (
    DEMOGRAPHIC_FIELDS,
    Borough,
    categorical_dtype,
    coerce_with_unknown,
)
from nycshootings.sources import SchemaError, fetch_csv, require_columns

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = [
    "INCIDENT_KEY",
    "OCCUR_DATE",
    "OCCUR_TIME",
    "BORO",
    "PRECINCT",
    "STATISTICAL_MURDER_FLAG",
    "PERP_AGE_GROUP",
    "PERP_SEX",
    "PERP_RACE",
    "VIC_AGE_GROUP",
    "VIC_SEX",
    "VIC_RACE",
    "Latitude",
    "Longitude",
]

# Mostly empty, or duplicated by Latitude/Longitude
DROPPED_COLUMNS = [
    "LOC_OF_OCCUR_DESC",
    "JURISDICTION_CODE",
    "LOC_CLASSFCTN_DESC",
    "LOCATION_DESC",
    "X_COORD_CD",
    "Y_COORD_CD",
    "Lon_Lat",
]

DATE_FORMAT = "%m/%d/%Y"
TIME_FORMAT = "%H:%M:%S"


def load_incidents(location: str, timeout: float = 120.0) -> pd.DataFrame:
    """Fetch and clean the shooting incident table.

    Args:
        location: URL or path of the incident CSV
        timeout: HTTP timeout in seconds

    Returns:
        Cleaned incident DataFrame (see clean_incidents)

    Raises:
        SourceError: If the source cannot be read
        SchemaError: If columns are missing or values cannot be coerced
    """
    logger.info("Loading shooting incidents")
    raw = fetch_csv(location, timeout=timeout)
    return clean_incidents(raw)


def clean_incidents(raw: pd.DataFrame) -> pd.DataFrame:
    """Coerce a raw incident table into typed columns.

    Output columns: incident_key, occur_date, occur_time, occur_datetime,
    borough, precinct, fatal, perp_age_group, perp_sex, perp_race,
    vic_age_group, vic_sex, vic_race, latitude, longitude.

    Args:
        raw: Incident table with the NYPD export's column names, string values

    Returns:
        New DataFrame; the input is not modified

    Raises:
        SchemaError: If columns are missing or values cannot be coerced
    """
    require_columns(raw, REQUIRED_COLUMNS, "Incident")

    df = raw.drop(columns=[col for col in DROPPED_COLUMNS if col in raw.columns])
    df = df.rename(columns=str.lower).rename(
        columns={"boro": "borough", "statistical_murder_flag": "fatal"}
    )

    try:
        timestamps = pd.to_datetime(df["occur_date"], format=DATE_FORMAT)
        times = pd.to_datetime(df["occur_time"], format=TIME_FORMAT)
    except (ValueError, TypeError) as e:
        raise SchemaError(f"Unparseable occurrence date/time: {e}") from e
    if timestamps.isna().any() or times.isna().any():
        raise SchemaError("Incident table has rows without an occurrence date or time")

    df["occur_date"] = timestamps.dt.date
    df["occur_time"] = times.dt.time
    df["occur_datetime"] = timestamps + (times - times.dt.normalize())

    df["borough"] = _coerce_borough(df["borough"])
    for column, vocabulary in DEMOGRAPHIC_FIELDS.items():
        df[column] = coerce_with_unknown(df[column], vocabulary)

    df["fatal"] = _coerce_flag(df["fatal"])
    df["precinct"] = pd.to_numeric(df["precinct"], errors="coerce").astype("Int64")

    df["latitude"] = pd.to_numeric(df["latitude"], errors="coerce")
    df["longitude"] = pd.to_numeric(df["longitude"], errors="coerce")
    half_missing = df["latitude"].isna() != df["longitude"].isna()
    if half_missing.any():
        logger.warning(f"  {half_missing.sum():,} incidents with only one coordinate, dropping both")
        df.loc[half_missing, ["latitude", "longitude"]] = float("nan")

    columns = [
        "incident_key",
        "occur_date",
        "occur_time",
        "occur_datetime",
        "borough",
        "precinct",
        "fatal",
        *DEMOGRAPHIC_FIELDS,
        "latitude",
        "longitude",
    ]
    df = df[columns].reset_index(drop=True)

    logger.info(
        f"  Result: {len(df):,} incidents, "
        f"{df['occur_date'].min()} to {df['occur_date'].max()}, "
        f"{int(df['fatal'].sum()):,} fatal"
    )
    return df


def _coerce_borough(series: pd.Series) -> pd.Series:
    """Upper-case borough names and reject anything outside the five boroughs."""
    cleaned = series.astype("string").str.strip().str.upper()
    known = {b.value for b in Borough}
    unknown = sorted(set(cleaned.dropna()) - known)
    if unknown:
        raise SchemaError(f"Unknown borough values in incident table: {unknown}")
    return cleaned.astype(categorical_dtype(Borough))


def _coerce_flag(series: pd.Series) -> pd.Series:
    """Map true/false strings (any case) to booleans."""
    lowered = series.astype("string").str.strip().str.lower()
    mapped = lowered.map({"true": True, "false": False})
    if mapped.isna().any():
        bad = sorted(set(lowered[mapped.isna()].fillna("<null>")))
        raise SchemaError(f"Unrecognised STATISTICAL_MURDER_FLAG values: {bad}")
    return mapped.astype(bool)
