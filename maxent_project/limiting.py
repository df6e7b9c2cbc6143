"""Limiting factor analysis.

At each location, every variable in turn is set to a reference value (its
mean over the occurrence records, or the median for categorical variables)
while the others keep their observed values. The change recorded for a
variable is the substituted logistic output minus the observed one, so a
positive change is the suitability lost to that variable's observed value.
The variable with the largest change is the one limiting suitability there.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

import numpy as np
import pandas as pd
import xarray as xr

from maxent_project.errors import DomainError
from maxent_project.lambdas import load_lambdas
from maxent_project.prediction import PredictorTable, predict, table_columns

logger = logging.getLogger(__name__)


def reference_values(occurrences: pd.DataFrame, descriptor: Any) -> Dict[str, float]:
    """Mean of each continuous variable and median of each categorical one at the occurrences."""
    descriptor = load_lambdas(descriptor)
    missing = [name for name in descriptor.variables if name not in occurrences.columns]
    if missing:
        raise DomainError(missing)
    categorical = set(descriptor.categorical_variables)
    return {
        name: float(
            occurrences[name].median() if name in categorical else occurrences[name].mean()
        )
        for name in descriptor.variables
    }


@dataclass
class LimitingFactorResult:
    """Limiting factor per location.

    Attributes:
        variables: The variables that were tested, in model order.
        factor: Name of the limiting variable at each location (None where there is no data).
        index: Position of the limiting variable in ``variables`` (-1 where there is no data).
        changes: Logistic output with each variable set to its reference value, minus the
            observed logistic output. Positive where the observed value lowers suitability.
    """

    variables: List[str]
    factor: Any
    index: Any
    changes: Dict[str, Any] = field(default_factory=dict)

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame({"limiting_factor": pd.Series(np.ravel(self.factor), dtype=object)})
        for name, change in self.changes.items():
            frame[f"change_{name}"] = np.ravel(change)
        if isinstance(self.factor, pd.Series):
            frame.index = self.factor.index
        return frame

    def to_dataset(self) -> xr.Dataset:
        if not isinstance(self.index, xr.DataArray):
            raise TypeError("Only results computed from an xarray.Dataset can be converted to a Dataset")
        layers = {"limiting_factor": self.index}
        layers.update({f"change_{name}": change for name, change in self.changes.items()})
        dataset = xr.Dataset(layers)
        dataset.attrs["limiting_factor_variables"] = ",".join(self.variables)
        return dataset


def limiting_factor(
    descriptor: Any,
    table: PredictorTable,
    reference: Mapping[str, float],
    **predict_kwargs: Any,
) -> LimitingFactorResult:
    """Find the variable most limiting the logistic output at each location.

    The limiting variable is the one whose substitution by its reference value
    raises the logistic output the most, i.e. the largest drop in suitability
    caused by its observed value. Changes are never negated.

    Args:
        descriptor: A ModelDescriptor or anything ``load_lambdas`` accepts.
        table: Predictor values, as for ``predict``.
        reference: Reference value per variable, see ``reference_values``.
        **predict_kwargs: Passed on to ``predict`` (clamp, chunk_size, n_workers, quiet).

    Returns:
        LimitingFactorResult shaped like the table.
    """
    descriptor = load_lambdas(descriptor)
    variables = descriptor.variables
    missing = [name for name in variables if name not in reference]
    if missing:
        raise ValueError(f"No reference value for variables: {missing}")

    columns, n_locations, wrap = table_columns(table, variables)
    observed = predict(descriptor, columns, **predict_kwargs).logistic

    changes = {}
    for name in variables:
        logger.debug(f"Substituting {name} = {reference[name]}")
        substituted = dict(columns)
        substituted[name] = np.full(n_locations, reference[name], dtype=np.float64)
        changes[name] = predict(descriptor, substituted, **predict_kwargs).logistic - observed

    index = np.full(n_locations, -1, dtype=np.int64)
    if variables:
        stacked = np.column_stack([changes[name] for name in variables])
        has_data = ~np.isnan(observed) & ~np.all(np.isnan(stacked), axis=1)
        index[has_data] = np.nanargmax(stacked[has_data], axis=1)
    names = np.array(variables + [None], dtype=object)
    factor = names[np.where(index >= 0, index, len(variables))]

    logger.info(f"Computed limiting factors for {n_locations} locations over {len(variables)} variables")
    return LimitingFactorResult(
        variables=list(variables),
        factor=wrap(factor, "limiting_factor"),
        index=wrap(index, "limiting_factor"),
        changes={name: wrap(change, f"change_{name}") for name, change in changes.items()},
    )
