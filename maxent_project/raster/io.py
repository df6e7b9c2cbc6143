"""Reading predictor rasters and writing projected surfaces."""

import logging
from pathlib import Path
from typing import List, Sequence, Union

import numpy as np
import rioxarray as rxr
import xarray as xr

from maxent_project.config import OUTPUTS
from maxent_project.limiting import LimitingFactorResult
from maxent_project.prediction import PredictionResult

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_predictors(paths: Union[PathLike, Sequence[PathLike]]) -> xr.Dataset:
    """Load predictor rasters into a Dataset with one variable per predictor.

    A single multi-band raster has its variables named after the band
    descriptions. Single-band rasters, one per predictor as Maxent's ASCII
    grids are laid out, are named after their file stem and must share a grid.

    Args:
        paths: A raster path or a list of raster paths.

    Returns:
        Dataset of float predictor values with NaN where there is no data.
    """
    if isinstance(paths, (str, Path)):
        paths = [paths]
    paths = [Path(p) for p in paths]
    for path in paths:
        if not path.exists():
            raise FileNotFoundError(f"Raster not found: {path}")

    if len(paths) == 1:
        data = rxr.open_rasterio(paths[0], masked=True, band_as_variable=True)
        if len(data.data_vars) == 1:
            rename_map = {name: paths[0].stem for name in data.data_vars}
        else:
            rename_map = {
                name: str(data[name].attrs.get("long_name", name)) for name in data.data_vars
            }
        data = data.rename(rename_map)
        logger.info(f"Loaded {len(data.data_vars)} predictors from {paths[0]}")
        return data

    layers: List[xr.DataArray] = []
    for path in paths:
        layer = rxr.open_rasterio(path, masked=True)
        if layer.sizes.get("band", 1) != 1:
            raise ValueError(f"Expected a single-band raster when stacking files, {path} has {layer.sizes['band']}")
        layers.append(layer.squeeze("band", drop=True).rename(path.stem))
    try:
        data = xr.merge(layers, join="exact", combine_attrs="drop")
    except ValueError as e:
        logger.error(f"Predictor rasters are not on the same grid: {e}")
        raise
    logger.info(f"Loaded {len(layers)} predictors from {len(paths)} rasters")
    return data


def write_dataset(dataset: xr.Dataset, output_path: PathLike, dtype: str = "float64") -> None:
    """Write each variable of a Dataset as a band of a GeoTIFF, with NaN as nodata."""
    output_path = Path(output_path)
    layers = {}
    for name in dataset.data_vars:
        layer = dataset[name].astype(dtype).rio.write_nodata(np.nan)
        layer.attrs["long_name"] = str(name)
        layers[name] = layer
    output = xr.Dataset(layers, attrs=dataset.attrs)
    if dataset.rio.crs is not None:
        output = output.rio.write_crs(dataset.rio.crs)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        output.rio.to_raster(output_path)
    except Exception as e:
        logger.error(f"Failed to save raster to {output_path}: {e}")
        raise
    logger.info(f"Saved {', '.join(map(str, layers))} to {output_path}")


def write_prediction(
    result: PredictionResult,
    output_path: PathLike,
    output: str = "both",
    dtype: str = "float64",
) -> None:
    """Write raw and/or logistic output to a GeoTIFF.

    Args:
        result: Prediction made from a Dataset of predictor rasters.
        output_path: GeoTIFF to create.
        output: "raw", "logistic" or "both".
        dtype: Data type of the written bands.
    """
    if output not in OUTPUTS:
        raise ValueError(f"output must be one of {OUTPUTS}, got '{output}'")
    dataset = result.to_dataset()
    if output != "both":
        dataset = dataset[[output]]
    write_dataset(dataset, output_path, dtype=dtype)


def write_limiting_factor(result: LimitingFactorResult, output_path: PathLike) -> None:
    """Write the limiting factor index and per-variable changes to a GeoTIFF.

    The index band refers to the variables listed in the
    ``limiting_factor_variables`` tag, with NaN where there is no data.
    """
    dataset = result.to_dataset()
    index = dataset["limiting_factor"]
    dataset["limiting_factor"] = index.where(index >= 0).astype(np.float64)
    write_dataset(dataset, output_path)
