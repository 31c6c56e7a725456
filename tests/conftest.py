"""Shared pytest fixtures for nycshootings tests."""

from collections.abc import Callable
from pathlib import Path

import pandas as pd
import pytest

from nycshootings.config import Config
from nycshootings.incidents import clean_incidents, load_incidents
from nycshootings.population import interpolate_population, load_population

FIXTURES = Path(__file__).parent / "fixtures"

IncidentRow = tuple[str, str, str | None]


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Create test configuration pointing at the CSV fixtures.

    Returns:
        Config object with test-specific settings
    """
    config = Config()
    # Override for tests
    config.sources.incidents_url = str(FIXTURES / "shootings_sample.csv")
    config.sources.population_url = str(FIXTURES / "population_sample.csv")
    config.duckdb.memory_limit = "1GB"
    config.duckdb.threads = 1
    config.output_dir = tmp_path / "output"
    return config


@pytest.fixture
def incidents_csv() -> Path:
    """Path to the 12-incident NYPD export fixture."""
    return FIXTURES / "shootings_sample.csv"


@pytest.fixture
def population_csv() -> Path:
    """Path to the wide borough population fixture (2000-2030)."""
    return FIXTURES / "population_sample.csv"


@pytest.fixture
def incidents(incidents_csv: Path) -> pd.DataFrame:
    """Cleaned incidents loaded from the fixture."""
    return load_incidents(str(incidents_csv))


@pytest.fixture
def population(population_csv: Path) -> pd.DataFrame:
    """Interpolated yearly population for 2000-2030 from the fixture."""
    return interpolate_population(load_population(str(population_csv)), 2000, 2030)


@pytest.fixture
def make_incidents() -> Callable[[list[IncidentRow]], pd.DataFrame]:
    """Factory building a minimal cleaned incident table.

    Rows are (date, time, borough) tuples; dates use the NYPD MM/DD/YYYY
    format and times HH:MM:SS.
    """

    def build(rows: list[IncidentRow]) -> pd.DataFrame:
        n = len(rows)
        raw = pd.DataFrame(
            {
                "INCIDENT_KEY": [str(i) for i in range(n)],
                "OCCUR_DATE": [r[0] for r in rows],
                "OCCUR_TIME": [r[1] for r in rows],
                "BORO": [r[2] for r in rows],
                "PRECINCT": ["40"] * n,
                "STATISTICAL_MURDER_FLAG": ["false"] * n,
                "PERP_AGE_GROUP": [None] * n,
                "PERP_SEX": [None] * n,
                "PERP_RACE": [None] * n,
                "VIC_AGE_GROUP": ["25-44"] * n,
                "VIC_SEX": ["M"] * n,
                "VIC_RACE": ["BLACK"] * n,
                "Latitude": [None] * n,
                "Longitude": [None] * n,
            }
        )
        return clean_incidents(raw)

    return build
