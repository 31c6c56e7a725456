"""Fixed vocabularies for the categorical incident fields.

Borough is a closed five-way set; demographic fields carry an UNKNOWN member
that absorbs nulls, "(null)" placeholders and codes outside the vocabulary.

Usage:
    from nycshootings.categories import Borough, normalize_borough, categorical_dtype

    normalize_borough(" Staten Island")   # Borough.STATEN_ISLAND
    categorical_dtype(Borough)            # CategoricalDtype([...], ordered=False)
"""

from enum import StrEnum

import pandas as pd


class Borough(StrEnum):
    """The five NYC boroughs, in the incident table's spelling."""

    BRONX = "BRONX"
    BROOKLYN = "BROOKLYN"
    MANHATTAN = "MANHATTAN"
    QUEENS = "QUEENS"
    STATEN_ISLAND = "STATEN ISLAND"


class AgeGroup(StrEnum):
    """Perpetrator/victim age bracket."""

    UNDER_18 = "<18"
    AGE_18_24 = "18-24"
    AGE_25_44 = "25-44"
    AGE_45_64 = "45-64"
    AGE_65_PLUS = "65+"
    UNKNOWN = "UNKNOWN"


class Sex(StrEnum):
    """Perpetrator/victim sex."""

    MALE = "M"
    FEMALE = "F"
    UNKNOWN = "U"


class Race(StrEnum):
    """Perpetrator/victim race as coded by NYPD."""

    AMERICAN_INDIAN_ALASKAN_NATIVE = "AMERICAN INDIAN/ALASKAN NATIVE"
    ASIAN_PACIFIC_ISLANDER = "ASIAN / PACIFIC ISLANDER"
    BLACK = "BLACK"
    BLACK_HISPANIC = "BLACK HISPANIC"
    WHITE = "WHITE"
    WHITE_HISPANIC = "WHITE HISPANIC"
    UNKNOWN = "UNKNOWN"


# Incident column -> vocabulary with an UNKNOWN fallback
DEMOGRAPHIC_FIELDS: dict[str, type[StrEnum]] = {
    "perp_age_group": AgeGroup,
    "perp_sex": Sex,
    "perp_race": Race,
    "vic_age_group": AgeGroup,
    "vic_sex": Sex,
    "vic_race": Race,
}


def normalize_borough(name: str) -> Borough:
    """Map a borough name from either source onto the canonical enum.

    The population table spells boroughs in title case with stray leading
    whitespace (" Staten Island"); the incident table uses upper case.

    Args:
        name: Raw borough name

    Returns:
        Matching Borough member

    Raises:
        ValueError: If the name is not one of the five boroughs
    """
    return Borough(name.strip().upper())


def coerce_with_unknown(series: pd.Series, vocabulary: type[StrEnum]) -> pd.Series:
    """Convert raw codes to a fixed-vocabulary categorical.

    Values are stripped and upper-cased before lookup. Anything that does not
    match a member (including nulls) becomes the vocabulary's UNKNOWN member.
    """
    values = [member.value for member in vocabulary]
    unknown = vocabulary["UNKNOWN"].value
    cleaned = series.astype("string").str.strip().str.upper()
    cleaned = cleaned.where(cleaned.isin(values), unknown).fillna(unknown)
    return cleaned.astype(categorical_dtype(vocabulary))


def categorical_dtype(vocabulary: type[StrEnum]) -> pd.CategoricalDtype:
    """Unordered pandas categorical dtype holding every member of an enum."""
    return pd.CategoricalDtype([member.value for member in vocabulary], ordered=False)
