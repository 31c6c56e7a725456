"""Configuration management with Pydantic validation."""

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

INCIDENTS_URL = "https://data.cityofnewyork.us/api/views/833y-fsy8/rows.csv?accessType=DOWNLOAD"
POPULATION_URL = "https://data.cityofnewyork.us/api/views/xywu-7bv9/rows.csv?accessType=DOWNLOAD"


class SourcesConfig(BaseModel):
    """Locations of the two input tables."""

    incidents_url: str = Field(default=INCIDENTS_URL)
    population_url: str = Field(default=POPULATION_URL)
    timeout_seconds: float = Field(default=120.0, gt=0)


class AnalysisConfig(BaseModel):
    """Year range and rate normalization."""

    min_year: int = Field(default=2000)
    max_year: int = Field(default=2030)
    rate_per: int = Field(default=1000, gt=0)

    @model_validator(mode="after")
    def validate_year_range(self) -> "AnalysisConfig":
        """Ensure the year range is not inverted."""
        if self.min_year > self.max_year:
            raise ValueError(
                f"min_year ({self.min_year}) must not exceed max_year ({self.max_year})"
            )
        return self


class ModelConfig(BaseModel):
    """Configuration for the Poisson GAM."""

    hour_df: int = Field(default=10)
    month_df: int = Field(default=6)
    alpha: list[float] = Field(default=[1.0, 1.0])
    max_iter: int = Field(default=100, gt=0)

    @field_validator("hour_df", "month_df")
    @classmethod
    def validate_df(cls, v: int) -> int:
        """Cubic splines need at least four basis functions."""
        if v < 4:
            raise ValueError("Spline degrees of freedom must be at least 4")
        return v

    @field_validator("alpha")
    @classmethod
    def validate_alpha(cls, v: list[float]) -> list[float]:
        """One non-negative penalty weight per smooth term (hour, month)."""
        if len(v) != 2:
            raise ValueError("alpha must hold exactly two penalty weights (hour, month)")
        if any(a < 0 for a in v):
            raise ValueError("Penalty weights must be non-negative")
        return v


class DuckDBConfig(BaseModel):
    """Configuration for DuckDB execution."""

    memory_limit: str = Field(default="2GB")
    threads: int = Field(default=2)


class Config(BaseModel):
    """Main configuration."""

    output_dir: Path = Field(default=Path("output"))
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    duckdb: DuckDBConfig = Field(default_factory=DuckDBConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "Config":
        """Load configuration from TOML file.

        Args:
            path: Path to config.toml file

        Returns:
            Validated Config object

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config validation fails
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        return cls(**data)
