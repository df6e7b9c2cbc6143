# Command Line Interface for maxent-project
import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer

from maxent_project.config import load_config
from maxent_project.errors import MaxentProjectError
from maxent_project.ic import information_criteria
from maxent_project.lambdas import ModelDescriptor, read_lambdas
from maxent_project.limiting import limiting_factor, reference_values
from maxent_project.prediction import PredictorTable, predict
from maxent_project.raster.io import read_predictors, write_limiting_factor, write_prediction
from maxent_project.utils.logging_utils import setup_logging

app = typer.Typer(help="Project fitted Maxent models from their .lambdas files.")
logger = logging.getLogger(__name__)

RASTER_HELP = "Predictor raster. Repeat for one single-band raster per variable."
TABLE_HELP = "CSV of predictor values, one column per variable."


def load_predictors(rasters: Optional[List[Path]], table: Optional[Path]) -> PredictorTable:
    """Load predictors from rasters or a CSV table, exactly one of which must be given."""
    if bool(rasters) == bool(table):
        raise typer.BadParameter("Give either --raster or --table")
    if table is not None:
        return pd.read_csv(table)
    try:
        return read_predictors(rasters)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Could not read predictor rasters: {e}")
        raise typer.Exit(code=1)


def load_descriptor(lambdas_path: Path) -> ModelDescriptor:
    try:
        return read_lambdas(lambdas_path)
    except MaxentProjectError as e:
        logger.error(f"Could not read {lambdas_path}: {e}")
        raise typer.Exit(code=1)


@app.command()
def summary(
    lambdas_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Maxent .lambdas file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging."),
):
    """Print the features and constants of a fitted model."""
    setup_logging(verbose=verbose)
    descriptor = load_descriptor(lambdas_path)

    typer.echo(descriptor.to_frame().to_string(index=False))
    typer.echo(f"linearPredictorNormalizer: {descriptor.linear_predictor_normalizer}")
    typer.echo(f"densityNormalizer: {descriptor.density_normalizer}")
    typer.echo(f"numBackgroundPoints: {descriptor.background_point_count}")
    typer.echo(f"entropy: {descriptor.entropy}")
    typer.echo(f"variables: {', '.join(descriptor.variables)}")


@app.command("predict")
def predict_command(
    lambdas_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Maxent .lambdas file."),
    output_path: Path = typer.Argument(..., help="Output GeoTIFF, or CSV when predicting a table."),
    rasters: Optional[List[Path]] = typer.Option(None, "--raster", "-r", help=RASTER_HELP),
    table: Optional[Path] = typer.Option(None, "--table", "-t", help=TABLE_HELP),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML file with a 'projection' section."),
    output: Optional[str] = typer.Option(None, help="Which output to write: raw, logistic or both."),
    clamp: Optional[bool] = typer.Option(None, "--clamp/--no-clamp", help="Clamp predictors to their training range."),
    chunk_size: Optional[int] = typer.Option(None, help="Locations evaluated per chunk."),
    n_workers: Optional[int] = typer.Option(None, help="Threads used for prediction (-1 for all but one CPU)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging."),
):
    """Predict raw and logistic suitability from a .lambdas file."""
    setup_logging(verbose=verbose)
    config = load_config(config_path).update(
        output=output, clamp=clamp, chunk_size=chunk_size, n_workers=n_workers
    )
    descriptor = load_descriptor(lambdas_path)
    predictors = load_predictors(rasters, table)

    try:
        result = predict(descriptor, predictors, **config.predict_kwargs())
    except MaxentProjectError as e:
        logger.error(f"Prediction failed: {e}")
        raise typer.Exit(code=1)

    if table is not None:
        frame = predictors.copy()
        if config.output in ("raw", "both"):
            frame["raw"] = result.raw
        if config.output in ("logistic", "both"):
            frame["logistic"] = result.logistic
        output_path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(output_path, index=False)
        logger.info(f"Saved predictions for {len(frame)} rows to {output_path}")
    else:
        write_prediction(result, output_path, output=config.output, dtype=config.dtype)


@app.command("limiting")
def limiting_command(
    lambdas_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Maxent .lambdas file."),
    output_path: Path = typer.Argument(..., help="Output GeoTIFF, or CSV when using a table."),
    occurrences: Path = typer.Option(..., "--occurrences", "-o", exists=True, help="CSV of predictor values at occurrence records."),
    rasters: Optional[List[Path]] = typer.Option(None, "--raster", "-r", help=RASTER_HELP),
    table: Optional[Path] = typer.Option(None, "--table", "-t", help=TABLE_HELP),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML file with a 'projection' section."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging."),
):
    """Map the variable most limiting suitability at each location."""
    setup_logging(verbose=verbose)
    config = load_config(config_path)
    descriptor = load_descriptor(lambdas_path)
    predictors = load_predictors(rasters, table)

    try:
        reference = reference_values(pd.read_csv(occurrences), descriptor)
        result = limiting_factor(descriptor, predictors, reference, **config.predict_kwargs())
    except MaxentProjectError as e:
        logger.error(f"Limiting factor analysis failed: {e}")
        raise typer.Exit(code=1)

    if table is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        result.to_frame().to_csv(output_path, index=False)
        logger.info(f"Saved limiting factors to {output_path}")
    else:
        write_limiting_factor(result, output_path)


@app.command("ic")
def ic_command(
    lambdas_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Maxent .lambdas file."),
    occurrences: Path = typer.Option(..., "--occurrences", "-o", exists=True, help="CSV of predictor values at occurrence records."),
    rasters: Optional[List[Path]] = typer.Option(None, "--raster", "-r", help=RASTER_HELP),
    table: Optional[Path] = typer.Option(None, "--table", "-t", help="CSV of predictor values at background locations."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging."),
):
    """Print AIC, AICc and BIC for a fitted model."""
    setup_logging(verbose=verbose)
    descriptor = load_descriptor(lambdas_path)
    background = load_predictors(rasters, table)

    try:
        criteria = information_criteria(descriptor, background, pd.read_csv(occurrences))
    except MaxentProjectError as e:
        logger.error(f"Information criteria failed: {e}")
        raise typer.Exit(code=1)
    typer.echo(criteria.to_string())


if __name__ == "__main__":
    app()
