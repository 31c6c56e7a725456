"""Poisson generalized additive model of incident counts.

Incidents are counted per observed (hour, month, borough) cell and modelled as

    log E[count] = intercept + f_hour(hour) + f_month(month) + borough effect

with a penalized cyclic cubic spline for hour of day (periodic over 24 hours,
so 23:00 sits one hour before 00:00), a penalized B-spline for month and a
categorical borough term. Fitting uses statsmodels' GLMGam with a Poisson
family (log link).
"""

import logging

import numpy as np
import pandas as pd
import patsy
import statsmodels.api as sm
from pydantic import BaseModel, ConfigDict
from statsmodels.gam.api import GLMGam
from statsmodels.gam.smooth_basis import (
    GenericSmoothers,
    UnivariateBSplines,
    UnivariateCubicCyclicSplines,
)
from statsmodels.tools.sm_exceptions import PerfectSeparationError

from nycshootings.config import ModelConfig

logger = logging.getLogger(__name__)


class ModelFitError(Exception):
    """The incident count model could not be fitted."""

    pass


class ModelFit(BaseModel):
    """Fitted model output: per-cell predictions and goodness of fit."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    predictions: pd.DataFrame
    pseudo_r2: float
    deviance: float
    aic: float
    n_cells: int


class HourOfDaySplines(UnivariateCubicCyclicSplines):
    """Cyclic cubic regression spline over the whole day.

    The stock cyclic spline wraps at the smallest and largest observed value,
    which would put hour 23 and hour 0 at the same point. Here the cycle runs
    over [0, 24) with equally spaced knots, so 23:00 and 00:00 are one hour
    apart and f(24) = f(0).
    """

    period = 24.0

    def cycle_knots(self) -> np.ndarray:
        """Knot positions including both ends of the cycle."""
        return np.linspace(0.0, self.period, self.df + 1)

    def _cyclic_basis(self, x: np.ndarray) -> np.ndarray:
        knots = self.cycle_knots()
        return np.asarray(
            patsy.cc(
                np.asarray(x, dtype=float),
                knots=knots[1:-1],
                lower_bound=knots[0],
                upper_bound=knots[-1],
            )
        )

    def _smooth_basis_for_single_variable(self):
        basis = self._cyclic_basis(self.x)
        b, d = self._get_b_and_d(self.cycle_knots())
        return basis, None, None, self._get_s(b, d)

    def transform(self, x_new):
        exog = self._cyclic_basis(x_new)
        if self.ctransf is not None:
            exog = exog.dot(self.ctransf)
        return exog


def build_model_cells(incidents: pd.DataFrame) -> pd.DataFrame:
    """Count incidents per (hour, month, borough) cell.

    Only combinations that occur in the data are returned; incidents without a
    borough are left out.

    Args:
        incidents: Cleaned incident table (needs occur_datetime, borough)

    Returns:
        DataFrame with columns hour, month, borough, count
    """
    df = pd.DataFrame(
        {
            "hour": incidents["occur_datetime"].dt.hour,
            "month": incidents["occur_datetime"].dt.month,
            "borough": incidents["borough"],
        }
    ).dropna(subset=["borough"])

    cells = df.groupby(["hour", "month", "borough"], observed=True).size()
    cells = cells.rename("count").reset_index()
    cells["count"] = cells["count"].astype(int)
    logger.info(f"Built {len(cells):,} model cells from {len(df):,} incidents")
    return cells


def pseudo_r2(observed: np.ndarray | pd.Series, predicted: np.ndarray | pd.Series) -> float:
    """Compute 1 - SSR/SST between observed and predicted counts.

    When every observation equals the mean (SST = 0) the ratio is undefined:
    a perfect fit scores 1.0 and anything else NaN.
    """
    y = np.asarray(observed, dtype=float)
    y_hat = np.asarray(predicted, dtype=float)
    ss_res = float(np.sum((y - y_hat) ** 2))
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    if ss_tot == 0.0:
        return 1.0 if np.isclose(ss_res, 0.0) else float("nan")
    return 1.0 - ss_res / ss_tot


def fit_incident_model(cells: pd.DataFrame, config: ModelConfig | None = None) -> ModelFit:
    """Fit the Poisson GAM and predict every input cell.

    Args:
        cells: One row per (hour, month, borough) with an incident ``count``
        config: Spline sizes, penalty weights and iteration limit

    Returns:
        ModelFit with the input cells plus a ``predicted`` column and the
        pseudo-R² of the in-sample fit

    Raises:
        ModelFitError: If the input is degenerate, fitting raises, or the
            penalized IRLS iterations do not converge
    """
    if config is None:
        config = ModelConfig()

    _check_cells(cells, config)

    data = cells[["hour", "month", "borough", "count"]].copy()
    data["borough"] = data["borough"].astype(str)
    data = data.reset_index(drop=True)

    logger.info(
        f"Fitting Poisson GAM on {len(data):,} cells "
        f"(hour df={config.hour_df}, month df={config.month_df}, alpha={config.alpha})"
    )

    try:
        smoother = _build_smoother(data, config)
        formula = "count ~ C(borough)" if data["borough"].nunique() > 1 else "count ~ 1"
        gam = GLMGam.from_formula(
            formula,
            data=data,
            smoother=smoother,
            alpha=config.alpha,
            family=sm.families.Poisson(),
        )
        results = gam.fit(maxiter=config.max_iter)
    except PerfectSeparationError:
        # PIRLS stops once the fitted means equal the observed counts
        logger.warning("  Model reproduces the observed counts exactly")
        return _exact_fit(cells)
    except Exception as e:
        logger.error(f"Poisson GAM fit failed: {e}")
        raise ModelFitError(f"Failed to fit Poisson GAM: {e}") from e

    if not results.converged:
        raise ModelFitError(f"Poisson GAM did not converge within {config.max_iter} iterations")

    predicted = np.asarray(results.fittedvalues, dtype=float)
    if not np.all(np.isfinite(predicted)):
        raise ModelFitError("Poisson GAM produced non-finite predictions")

    predictions = cells.reset_index(drop=True).copy()
    predictions["predicted"] = predicted
    r2 = pseudo_r2(predictions["count"], predictions["predicted"])

    logger.info(f"  Result: pseudo-R² {r2:.3f}, deviance {results.deviance:,.1f}")
    return ModelFit(
        predictions=predictions,
        pseudo_r2=r2,
        deviance=float(results.deviance),
        aic=float(results.aic),
        n_cells=len(predictions),
    )


def _check_cells(cells: pd.DataFrame, config: ModelConfig) -> None:
    """Reject input the splines cannot be fitted to."""
    missing = {"hour", "month", "borough", "count"} - set(cells.columns)
    if missing:
        raise ModelFitError(f"Model input is missing columns: {sorted(missing)}")
    if len(cells) < 2:
        raise ModelFitError(f"Model needs at least two cells, got {len(cells)}")
    if cells[["hour", "month", "borough", "count"]].isna().any().any():
        raise ModelFitError("Model input contains missing values")
    if (cells["count"] < 0).any():
        raise ModelFitError("Poisson model requires non-negative counts")
    if not cells["hour"].between(0, 23).all():
        raise ModelFitError("Hours must lie between 0 and 23")
    if cells["hour"].nunique() < config.hour_df:
        raise ModelFitError(
            f"Hour spline needs at least {config.hour_df} distinct hours, "
            f"got {cells['hour'].nunique()}"
        )
    if cells["month"].nunique() < config.month_df:
        raise ModelFitError(
            f"Month spline needs at least {config.month_df} distinct months, "
            f"got {cells['month'].nunique()}"
        )


def _build_smoother(data: pd.DataFrame, config: ModelConfig) -> GenericSmoothers:
    """Cyclic spline on hour, B-spline on month."""
    x = data[["hour", "month"]].to_numpy(dtype=float)
    smoothers = [
        HourOfDaySplines(x[:, 0], df=config.hour_df, constraints="center", variable_name="hour"),
        UnivariateBSplines(
            x[:, 1], df=config.month_df, degree=3, constraints="center", variable_name="month"
        ),
    ]
    return GenericSmoothers(x, smoothers)


def _exact_fit(cells: pd.DataFrame) -> ModelFit:
    """ModelFit for a model whose fitted means equal the observed counts."""
    predictions = cells.reset_index(drop=True).copy()
    predictions["predicted"] = predictions["count"].astype(float)
    return ModelFit(
        predictions=predictions,
        pseudo_r2=pseudo_r2(predictions["count"], predictions["predicted"]),
        deviance=0.0,
        aic=float("nan"),
        n_cells=len(predictions),
    )
