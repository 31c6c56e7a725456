"""Command-line entry point.

Usage:
    python -m nycshootings [--config config.toml] [--output-dir output] [--skip-model]
"""

import argparse
import logging
import sys
from pathlib import Path

from nycshootings.config import Config
from nycshootings.export import export_tables
from nycshootings.pipeline import AnalysisResult, PipelineError, run_analysis

logger = logging.getLogger("nycshootings")
DEFAULT_CONFIG = Path("config.toml")


def log_summary(result: AnalysisResult, rate_per: int) -> None:
    """Log the headline numbers of a run."""
    logger.info(f"Incidents: {len(result.incidents):,}")

    for row in result.rate_statistics.itertuples(index=False):
        logger.info(
            f"  {row.borough:<14} mean rate {row.mean:.3f}, "
            f"min {row.min:.3f}, max {row.max:.3f} per {rate_per:,} "
            f"({row.years} years, {row.missing_years} without population)"
        )

    peak_hour = result.hourly.loc[result.hourly["incident_count"].idxmax()]
    peak_month = result.monthly.loc[result.monthly["incident_count"].idxmax()]
    logger.info(f"Peak hour: {int(peak_hour['hour']):02d}:00 ({peak_hour['incident_count']:,})")
    logger.info(f"Peak month: {peak_month['month_name']} ({peak_month['incident_count']:,})")

    if result.model is not None:
        logger.info(
            f"Poisson GAM: {result.model.n_cells:,} cells, "
            f"pseudo-R² {result.model.pseudo_r2:.3f}"
        )


def load_config(path: Path | None) -> Config:
    """Load an explicitly named config file, else ./config.toml if present, else defaults.

    Raises:
        FileNotFoundError: If an explicitly named file does not exist
    """
    if path is not None:
        return Config.from_file(path)
    if DEFAULT_CONFIG.exists():
        return Config.from_file(DEFAULT_CONFIG)
    logger.info(f"No {DEFAULT_CONFIG} found, using built-in defaults")
    return Config()


def main(argv: list[str] | None = None) -> int:
    """Run the analysis and export result tables."""
    parser = argparse.ArgumentParser(
        description="NYC shooting incidents by borough: rates, distributions and a Poisson GAM"
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help=f"Config file (default: {DEFAULT_CONFIG} if present)",
    )
    parser.add_argument(
        "--output-dir", "-o", type=Path, default=None, help="Override output directory"
    )
    parser.add_argument("--skip-model", action="store_true", help="Skip fitting the GAM")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    try:
        config = load_config(args.config)
        if args.output_dir is not None:
            config = config.model_copy(update={"output_dir": args.output_dir})
        result = run_analysis(config, fit_model=not args.skip_model)
        export_tables(result.tables(), config.output_dir, config=config)
    except PipelineError as e:
        logger.error(str(e))
        return 1
    except (FileNotFoundError, ValueError, RuntimeError) as e:
        logger.error(f"Run aborted: {e}")
        return 1

    log_summary(result, config.analysis.rate_per)
    return 0


if __name__ == "__main__":
    sys.exit(main())
