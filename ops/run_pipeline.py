#!/usr/bin/env python3
"""
Aerial Survey Spatial Join Pipeline with Click CLI

Reads a survey count export and the stream section buffer polygons, runs the
spatial join, and writes the unjoined points, the joined points and the
escapement summary (tab-delimited text and Excel workbook).

Input and output locations come from config.yaml and can be overridden on
the command line, so no script editing is needed between surveys.

Usage:
    python -m ops.run_pipeline [OPTIONS] [COMMAND]

    # Run with ops/config.yaml:
    python -m ops.run_pipeline

    # Different survey file:
    python -m ops.run_pipeline --survey-csv "data/raw/counts/TEST_20250625.csv" run \\
        --joined "data/gis/joined/TEST_20250625_Hollowell_JOINED.shp"

    # List points that fell outside every stream section:
    python -m ops.run_pipeline failed-joins --output failed_joins.csv

    # Verbose logging:
    python -m ops.run_pipeline --verbose
"""

import os
import sys
from pathlib import Path
from typing import Dict, Optional, Sequence

import click
import pandas as pd
import yaml
from loguru import logger

from aerial_survey.data_utils import FIELD_NAME_WIDTH, resolve_column
from aerial_survey.errors import SurveyPipelineError
from aerial_survey.io import ensure_output_directory, read_boundary_polygons, read_survey_table, write_outputs
from aerial_survey.pipeline import PipelineResult, run_survey_pipeline
from ops.config_loader import Config

UNJOINED_EXIT_CODE = 2


class PipelineContext:
    """Click context object holding the config and input overrides."""

    def __init__(self, config: Config, survey_csv: Optional[str] = None, polygons: Optional[str] = None):
        self.config = config
        self.survey_csv = Path(survey_csv) if survey_csv else config.get_input_path("survey_csv")
        self.polygons = Path(polygons) if polygons else config.get_input_path("boundary_polygons")

    def run(self) -> PipelineResult:
        raw = read_survey_table(self.survey_csv)
        polygons = read_boundary_polygons(self.polygons)
        return run_survey_pipeline(raw, polygons, self.config.pipeline_settings())


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to config.yaml (default: SURVEY_CONFIG_PATH, ./config.yaml, ops/config.yaml)",
)
@click.option("--survey-csv", type=click.Path(exists=False), help="Override input survey CSV path")
@click.option("--polygons", type=click.Path(exists=False), help="Override boundary polygon layer path")
@click.option("--dry-run", is_flag=True, help="Show what would be run without executing")
@click.option("-v", "--verbose", is_flag=True, help="Enable DEBUG level logging")
@click.option(
    "--trace", is_flag=True, help="Enable TRACE level logging for deep debugging (maximum detail)"
)
@click.option("--log-file", type=str, help="Also log to specified file")
@click.pass_context
def cli(ctx, config_file, survey_csv, polygons, dry_run, verbose, trace, log_file):
    """
    Aerial Survey Spatial Join Pipeline

    Join salmon escapement survey points to stream section buffer polygons
    and summarize counts by stock, species, section and observer.

    \b
    Examples:
      python -m ops.run_pipeline                                   # Run with ops/config.yaml
      python -m ops.run_pipeline --survey-csv counts.csv           # Different survey file
      python -m ops.run_pipeline run --fail-on-unjoined            # Exit 2 if any point is unjoined
      python -m ops.run_pipeline failed-joins                      # List points to correct
    """
    setup_logging(verbose=verbose, enable_trace=trace)

    if log_file:
        log_level = "TRACE" if trace else ("DEBUG" if verbose else "INFO")
        logger.add(
            log_file,
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )
        logger.info(f"📄 Also logging to file: {log_file}")

    try:
        config = Config(config_file)
        ctx.obj = PipelineContext(config, survey_csv=survey_csv, polygons=polygons)
        logger.info(f"📋 Project: {config.get('project_name', 'Aerial survey')}")
        config.print_config_summary()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        logger.critical(f"Configuration error: {e}")
        logger.info("💡 Make sure config.yaml exists and lists input_files.survey_csv and input_files.boundary_polygons")
        ctx.exit(1)

    if dry_run:
        show_execution_plan(ctx.obj)
        ctx.exit(0)

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.option("--unjoined", type=click.Path(), help="Override unjoined point layer output path")
@click.option("--joined", type=click.Path(), help="Override joined point layer output path")
@click.option("--summary-txt", type=click.Path(), help="Override tab-delimited summary output path")
@click.option("--summary-xlsx", type=click.Path(), help="Override Excel summary output path")
@click.option(
    "--fail-on-unjoined",
    is_flag=True,
    help=f"Exit with status {UNJOINED_EXIT_CODE} when any point falls outside every polygon",
)
@click.pass_context
def run(ctx, unjoined=None, joined=None, summary_txt=None, summary_xlsx=None, fail_on_unjoined=False):
    """Run the spatial join and write all configured outputs."""
    pipeline_ctx: PipelineContext = ctx.obj

    paths: Dict[str, Optional[Path]] = pipeline_ctx.config.get_output_paths()
    overrides = {"unjoined": unjoined, "joined": joined, "summary_txt": summary_txt, "summary_xlsx": summary_xlsx}
    for key, value in overrides.items():
        if value:
            paths[key] = Path(value)

    try:
        result = pipeline_ctx.run()
        write_outputs(result, paths)
    except SurveyPipelineError as e:
        handle_critical_error(e, context=f"{e.stage} stage")
        ctx.exit(1)
    except (OSError, ValueError) as e:
        handle_critical_error(e, context="reading inputs or writing outputs")
        ctx.exit(1)

    failed = result.failed_joins
    if len(failed):
        logger.warning(
            f"⚠️ {len(failed)} point(s) have Join_Count == 0; move them into the correct "
            "stream section in the survey CSV and re-run"
        )
        if fail_on_unjoined:
            ctx.exit(UNJOINED_EXIT_CODE)
    else:
        logger.success("🎉 Every survey point joined to a stream section")


@cli.command("failed-joins")
@click.option("--output", type=click.Path(), help="Also write the failed joins to this CSV file")
@click.pass_context
def failed_joins_command(ctx, output=None):
    """List survey points that fell outside every stream section polygon."""
    pipeline_ctx: PipelineContext = ctx.obj

    try:
        result = pipeline_ctx.run()
    except SurveyPipelineError as e:
        handle_critical_error(e, context=f"{e.stage} stage")
        ctx.exit(1)
    except (OSError, ValueError) as e:
        handle_critical_error(e, context="reading inputs")
        ctx.exit(1)

    settings = pipeline_ctx.config.pipeline_settings()
    report = failed_join_report(
        result, (settings.longitude, settings.latitude), field_name_width=settings.field_name_width
    )
    if report.empty:
        click.echo("No failed joins: every survey point is inside a stream section.")
        return

    click.echo(report.to_string(index=False))
    if output:
        output_path = ensure_output_directory(output)
        report.to_csv(output_path, index=False)
        logger.info(f"💾 Failed joins written to {output_path}")


def failed_join_report(
    result: PipelineResult,
    coordinate_columns: Sequence[str] = ("Longitude", "Latitude"),
    field_name_width: int = FIELD_NAME_WIDTH,
) -> pd.DataFrame:
    """Failed joins with their source CSV line and coordinates, ready for manual correction.

    Coordinates are read from the point geometry. Attribute copies of the
    coordinate columns (kept with keep_coordinates) are replaced.
    """
    failed = result.failed_joins
    drop = [failed.geometry.name]
    for name in (*coordinate_columns, "Longitude", "Latitude"):
        column = resolve_column(failed, name, width=field_name_width)
        if column and column not in drop:
            drop.append(column)

    report = pd.DataFrame(failed.drop(columns=drop))
    report.insert(0, "source_line", failed.index + 2)
    report.insert(1, "Longitude", failed.geometry.x)
    report.insert(2, "Latitude", failed.geometry.y)
    return report.reset_index(drop=True)


def show_execution_plan(pipeline_ctx: PipelineContext) -> None:
    """Log inputs and outputs without running anything."""
    logger.info("🔍 DRY RUN MODE - Showing what would be executed:")
    logger.info(f"  📄 Survey CSV: {pipeline_ctx.survey_csv}")
    logger.info(f"  🗺️ Boundary polygons: {pipeline_ctx.polygons}")
    for key, path in pipeline_ctx.config.get_output_paths().items():
        logger.info(f"  💾 {key}: {path or '(not written)'}")


def setup_logging(verbose: bool = False, enable_trace: bool = False) -> None:
    """
    Configure loguru logging with appropriate levels.

    Args:
        verbose: If True, set log level to DEBUG
        enable_trace: If True, enable TRACE level logging for deep debugging
    """
    logger.remove()

    if enable_trace:
        log_level = "TRACE"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    elif verbose:
        log_level = "DEBUG"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    else:
        log_level = "INFO"
        log_format = (
            "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        format=log_format,
        level=log_level,
        colorize=True,
        backtrace=enable_trace,
        diagnose=enable_trace,
    )

    os.environ["LOGURU_LEVEL"] = log_level

    if verbose:
        logger.debug("🔧 Verbose logging enabled (DEBUG level)")
    if enable_trace:
        logger.trace("🔍 Trace logging enabled - maximum detail mode")


def handle_critical_error(error: Exception, context: str = "") -> None:
    """
    Log a fatal error with the stage and records that triggered it.

    Args:
        error: The exception that occurred
        context: Additional context about where the error occurred
    """
    enable_trace = os.environ.get("LOGURU_LEVEL", "INFO") == "TRACE"

    logger.critical(f"💥 CRITICAL ERROR: {context}")
    logger.critical(f"Exception: {type(error).__name__}: {error}")

    positions = getattr(error, "positions", None)
    if positions:
        shown = ", ".join(str(pos) for pos in positions[:20])
        logger.critical(f"Offending positions: {shown}{' ...' if len(positions) > 20 else ''}")

    if enable_trace:
        logger.opt(exception=error).trace("Full traceback:")
    else:
        logger.info("💡 For detailed debugging, run with --trace flag")


if __name__ == "__main__":
    cli()
