"""Information criteria for fitted Maxent models."""

import logging
from typing import Any

import numpy as np
import pandas as pd

from maxent_project.lambdas import load_lambdas
from maxent_project.prediction import PredictorTable, predict

logger = logging.getLogger(__name__)


def information_criteria(
    descriptor: Any,
    background: PredictorTable,
    occurrences: PredictorTable,
    **predict_kwargs: Any,
) -> pd.Series:
    """AIC, AICc and BIC of a Maxent model.

    The raw output is rescaled to sum to 1 over the background (usually every
    cell of the study area) and the log likelihood is summed over the
    occurrences. The number of parameters is the number of features with a
    nonzero weight. AICc is NaN when there are too few occurrences for it.

    Returns:
        Series with n, k, ll, AIC, AICc and BIC.
    """
    descriptor = load_lambdas(descriptor)
    background_raw = np.ravel(np.asarray(predict(descriptor, background, **predict_kwargs).raw))
    occurrence_raw = np.ravel(np.asarray(predict(descriptor, occurrences, **predict_kwargs).raw))

    n_dropped = int(np.isnan(occurrence_raw).sum())
    if n_dropped:
        logger.warning(f"Dropping {n_dropped} occurrences with missing predictor values")
    occurrence_raw = occurrence_raw[~np.isnan(occurrence_raw)]
    if occurrence_raw.size == 0:
        raise ValueError("No occurrences with complete predictor values")

    probabilities = occurrence_raw / np.nansum(background_raw)
    n = occurrence_raw.size
    k = len(descriptor.active_features)
    ll = float(np.sum(np.log(probabilities)))
    aic = 2 * k - 2 * ll
    aicc = aic + (2 * k * (k + 1)) / (n - k - 1) if n - k - 1 > 0 else np.nan
    bic = k * np.log(n) - 2 * ll
    return pd.Series({"n": n, "k": k, "ll": ll, "AIC": aic, "AICc": aicc, "BIC": bic})
