"""Project a parsed Maxent model onto new predictor values."""

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from multiprocessing import cpu_count
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
import xarray as xr
from tqdm import tqdm

from maxent_project.errors import DomainError
from maxent_project.lambdas import FeatureKind, FeatureRecord, ModelDescriptor, load_lambdas

logger = logging.getLogger(__name__)

PredictorTable = Union[pd.DataFrame, xr.Dataset, Mapping]
Columns = Dict[str, np.ndarray]


def _linear(feature: FeatureRecord, clamped: Columns, raw: Columns) -> np.ndarray:
    return clamped[feature.variable]


def _quadratic(feature: FeatureRecord, clamped: Columns, raw: Columns) -> np.ndarray:
    return clamped[feature.variable] ** 2


def _product(feature: FeatureRecord, clamped: Columns, raw: Columns) -> np.ndarray:
    first, second = feature.variables
    return clamped[first] * clamped[second]


def _threshold(feature: FeatureRecord, clamped: Columns, raw: Columns) -> np.ndarray:
    return (clamped[feature.variable] >= feature.cut).astype(np.float64)


def _categorical(feature: FeatureRecord, clamped: Columns, raw: Columns) -> np.ndarray:
    return (raw[feature.variable] == feature.cut).astype(np.float64)


def _forward_hinge(feature: FeatureRecord, clamped: Columns, raw: Columns) -> np.ndarray:
    # Flat below the knot, normalises to 0 there
    return np.maximum(clamped[feature.variable], feature.train_min)


def _reverse_hinge(feature: FeatureRecord, clamped: Columns, raw: Columns) -> np.ndarray:
    return np.minimum(clamped[feature.variable], feature.train_max)


FEATURE_FUNCTIONS: Dict[FeatureKind, Callable[[FeatureRecord, Columns, Columns], np.ndarray]] = {
    FeatureKind.LINEAR: _linear,
    FeatureKind.QUADRATIC: _quadratic,
    FeatureKind.PRODUCT: _product,
    FeatureKind.THRESHOLD: _threshold,
    FeatureKind.CATEGORICAL: _categorical,
    FeatureKind.FORWARD_HINGE: _forward_hinge,
    FeatureKind.REVERSE_HINGE: _reverse_hinge,
}
assert set(FEATURE_FUNCTIONS) == set(FeatureKind), "Every feature kind needs a function"


def normalise_feature(feature: FeatureRecord, values: np.ndarray) -> np.ndarray:
    """Rescale feature values by the feature's training range.

    Reverse hinges run from their max down to their min. A feature whose min
    and max are equal contributes 0.
    """
    span = feature.train_max - feature.train_min
    if span == 0:
        return np.zeros_like(values)
    if feature.kind == FeatureKind.REVERSE_HINGE:
        return (feature.train_max - values) / span
    return (values - feature.train_min) / span


def predict_columns(
    descriptor: ModelDescriptor,
    columns: Columns,
    n_locations: int,
    clamp: bool = True,
) -> Tuple[np.ndarray, np.ndarray]:
    """Raw and logistic output for 1-D float arrays of predictor values.

    Locations where any of the model's variables is NaN are NaN in both outputs.
    """
    clamped = dict(columns)
    if clamp:
        categorical = set(descriptor.categorical_variables)
        for name, (lower, upper) in descriptor.clamp_limits().items():
            if name in clamped and name not in categorical:
                clamped[name] = np.clip(clamped[name], lower, upper)

    linear_predictor = np.zeros(n_locations, dtype=np.float64)
    for feature in descriptor.active_features:
        values = FEATURE_FUNCTIONS[feature.kind](feature, clamped, columns)
        if clamp and not feature.is_hinge:
            values = np.clip(values, feature.train_min, feature.train_max)
        linear_predictor += feature.weight * normalise_feature(feature, values)

    # exp() saturates to inf or 0 for extreme linear predictors
    with np.errstate(over="ignore", under="ignore", divide="ignore"):
        raw = (
            np.exp(linear_predictor - descriptor.linear_predictor_normalizer)
            / descriptor.density_normalizer
        )
        logistic = 1 - 1 / (np.exp(descriptor.entropy) * raw + 1)

    missing = np.zeros(n_locations, dtype=bool)
    for values in columns.values():
        missing |= np.isnan(values)
    raw[missing] = np.nan
    logistic[missing] = np.nan
    return raw, logistic


@dataclass
class PredictionResult:
    """Raw and logistic Maxent output, shaped like the predictor table."""

    raw: Any
    logistic: Any

    def to_frame(self) -> pd.DataFrame:
        if isinstance(self.raw, pd.Series):
            return pd.DataFrame({"raw": self.raw, "logistic": self.logistic})
        return pd.DataFrame(
            {"raw": np.ravel(self.raw), "logistic": np.ravel(self.logistic)}
        )

    def to_dataset(self) -> xr.Dataset:
        if not isinstance(self.raw, xr.DataArray):
            raise TypeError("Only predictions made from an xarray.Dataset can be converted to a Dataset")
        return xr.Dataset({"raw": self.raw, "logistic": self.logistic})


def table_columns(
    table: PredictorTable, variables: List[str]
) -> Tuple[Columns, int, Callable[[np.ndarray, str], Any]]:
    """Flatten the model's variables out of a predictor table.

    Returns the float64 columns, the number of locations and a function that
    reshapes a flat output array back into the shape and type of the table.

    Raises:
        DomainError: If any of the variables is not in the table.
    """
    if isinstance(table, pd.DataFrame):
        names = list(table.columns)
    elif isinstance(table, xr.Dataset):
        names = list(table.data_vars)
    elif isinstance(table, Mapping):
        names = list(table.keys())
    else:
        raise TypeError(
            f"Expected a DataFrame, Dataset or mapping of arrays, got {type(table).__name__}"
        )

    missing = [name for name in variables if name not in names]
    if missing:
        raise DomainError(missing)
    if not names:
        raise ValueError("Predictor table has no columns")
    template_name = variables[0] if variables else names[0]

    if isinstance(table, pd.DataFrame):
        columns = {name: table[name].to_numpy(dtype=np.float64) for name in variables}

        def wrap(values: np.ndarray, name: str) -> pd.Series:
            return pd.Series(values, index=table.index, name=name, dtype=values.dtype)

        return columns, len(table), wrap

    if isinstance(table, xr.Dataset):
        template = table[template_name]
        columns = {
            name: table[name].transpose(*template.dims).values.astype(np.float64).ravel()
            for name in variables
        }

        def wrap(values: np.ndarray, name: str) -> xr.DataArray:
            return xr.DataArray(
                values.reshape(template.shape),
                coords=template.coords,
                dims=template.dims,
                name=name,
            )

        return columns, template.size, wrap

    shape = np.shape(table[template_name])
    columns = {}
    for name in variables:
        values = np.asarray(table[name], dtype=np.float64)
        if values.shape != shape:
            raise ValueError(
                f"Column '{name}' has shape {values.shape}, expected {shape}"
            )
        columns[name] = values.ravel()

    def wrap(values: np.ndarray, name: str) -> np.ndarray:
        return values.reshape(shape)

    return columns, int(np.prod(shape)), wrap


def predict(
    descriptor: Any,
    table: PredictorTable,
    clamp: bool = True,
    chunk_size: Optional[int] = None,
    n_workers: int = 1,
    quiet: bool = True,
) -> PredictionResult:
    """Project a Maxent model onto a table of predictor values.

    Args:
        descriptor: A ModelDescriptor, or anything ``load_lambdas`` accepts
            (lambdas text, a path to a .lambdas file or a fitted model object).
        table: Predictor values, one column per variable, as a pandas DataFrame,
            an xarray Dataset or a mapping of equally shaped arrays.
        clamp: Clamp predictors and features to their training ranges.
        chunk_size: Number of locations evaluated at a time. None evaluates
            everything in one go.
        n_workers: Threads used to evaluate chunks. -1 uses all but one CPU.
        quiet: Hide the progress bar.

    Returns:
        PredictionResult with raw and logistic outputs shaped like the table.

    Raises:
        DomainError: If the table lacks a variable used by the model.
    """
    descriptor = load_lambdas(descriptor)
    columns, n_locations, wrap = table_columns(table, descriptor.variables)

    if chunk_size is not None and chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if n_workers == -1:
        n_workers = max(cpu_count() - 1, 1)

    if chunk_size is None or chunk_size >= n_locations:
        bounds = [(0, n_locations)]
    else:
        bounds = [
            (start, min(start + chunk_size, n_locations))
            for start in range(0, n_locations, chunk_size)
        ]
    logger.debug(f"Predicting {n_locations} locations in {len(bounds)} chunk(s)")

    def predict_chunk(bound: Tuple[int, int]) -> Tuple[np.ndarray, np.ndarray]:
        start, stop = bound
        chunk = {name: values[start:stop] for name, values in columns.items()}
        return predict_columns(descriptor, chunk, stop - start, clamp=clamp)

    if n_workers > 1 and len(bounds) > 1:
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            chunks = list(
                tqdm(
                    executor.map(predict_chunk, bounds),
                    total=len(bounds),
                    desc="Predicting chunks",
                    disable=quiet,
                )
            )
    else:
        chunks = [
            predict_chunk(bound)
            for bound in tqdm(bounds, desc="Predicting chunks", disable=quiet)
        ]

    raw = np.concatenate([chunk[0] for chunk in chunks])
    logistic = np.concatenate([chunk[1] for chunk in chunks])
    return PredictionResult(raw=wrap(raw, "raw"), logistic=wrap(logistic, "logistic"))
