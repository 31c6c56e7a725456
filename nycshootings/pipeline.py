"""End-to-end analysis run.

Stages run strictly in order and each returns a new table:

    incidents ─┐
               ├─> yearly summary ─> year-over-year change, rate statistics
    population ┘   (interpolated)
    incidents ─> hourly / monthly distributions, fatality share
    incidents ─> model cells ─> Poisson GAM predictions

Any stage failure aborts the run with a PipelineError naming the stage.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import pandas as pd
from pydantic import BaseModel, ConfigDict

from nycshootings.aggregation import summarize_by_borough_year
from nycshootings.config import Config
from nycshootings.incidents import load_incidents
from nycshootings.metrics import (
    fatality_share,
    hourly_distribution,
    monthly_distribution,
    rate_statistics,
    year_over_year_change,
)
from nycshootings.model import ModelFit, build_model_cells, fit_incident_model
from nycshootings.population import interpolate_population, load_population

logger = logging.getLogger(__name__)


class PipelineError(RuntimeError):
    """A pipeline stage failed; the run produces no result."""

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage '{stage}' failed: {type(cause).__name__}: {cause}")


class AnalysisResult(BaseModel):
    """All tables produced by one run."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    incidents: pd.DataFrame
    population: pd.DataFrame
    yearly_summary: pd.DataFrame
    year_over_year: pd.DataFrame
    rate_statistics: pd.DataFrame
    hourly: pd.DataFrame
    monthly: pd.DataFrame
    fatality: pd.DataFrame
    model: ModelFit | None = None

    def tables(self) -> dict[str, pd.DataFrame]:
        """Result tables keyed by export name (raw incidents excluded)."""
        tables = {
            "population": self.population,
            "yearly_summary": self.yearly_summary,
            "year_over_year": self.year_over_year,
            "rate_statistics": self.rate_statistics,
            "hourly_distribution": self.hourly,
            "monthly_distribution": self.monthly,
            "fatality_share": self.fatality,
        }
        if self.model is not None:
            tables["model_predictions"] = self.model.predictions
        return tables


@contextmanager
def stage(name: str) -> Iterator[None]:
    """Run a block as a named stage, converting any failure to PipelineError."""
    logger.info(f"[{name}]")
    try:
        yield
    except Exception as e:
        logger.error(f"Stage '{name}' failed: {e}")
        raise PipelineError(name, e) from e


def run_analysis(config: Config, fit_model: bool = True) -> AnalysisResult:
    """Run every stage from raw sources to model predictions.

    Args:
        config: Sources, year range, model and DuckDB settings
        fit_model: Whether to fit the Poisson GAM (the slowest stage)

    Returns:
        AnalysisResult holding every derived table

    Raises:
        PipelineError: If any stage fails; ``stage`` names it and ``cause``
            holds the original exception
    """
    sources = config.sources
    analysis = config.analysis

    with stage("load incidents"):
        incidents = load_incidents(sources.incidents_url, timeout=sources.timeout_seconds)

    with stage("load population"):
        raw_population = load_population(sources.population_url, timeout=sources.timeout_seconds)

    with stage("interpolate population"):
        population = interpolate_population(raw_population, analysis.min_year, analysis.max_year)

    with stage("aggregate by borough and year"):
        summary = summarize_by_borough_year(incidents, population, config=config)

    with stage("derived metrics"):
        yoy = year_over_year_change(summary)
        stats = rate_statistics(summary)
        hourly = hourly_distribution(incidents, config=config)
        monthly = monthly_distribution(incidents, config=config)
        fatality = fatality_share(incidents)

    model_fit = None
    if fit_model:
        with stage("fit model"):
            cells = build_model_cells(incidents)
            model_fit = fit_incident_model(cells, config.model)

    return AnalysisResult(
        incidents=incidents,
        population=population,
        yearly_summary=summary,
        year_over_year=yoy,
        rate_statistics=stats,
        hourly=hourly,
        monthly=monthly,
        fatality=fatality,
        model=model_fit,
    )
