import numpy as np
import pandas as pd
import pytest

from maxent_project.lambdas import parse_lambdas


@pytest.fixture
def lambdas_text() -> str:
    """A model using every feature kind."""
    return "\n".join(
        [
            "temp, 2.0, 0.0, 10.0",
            "precip, 0.0, 0.0, 100.0",
            "temp^2, -1.0, 0.0, 100.0",
            "temp*precip, 0.5, 0.0, 1000.0",
            "(50.5<precip), 0.3, 0.0, 1.0",
            "(biome=2.0), -0.7, 0.0, 1.0",
            "'temp, 1.2, 4.0, 10.0",
            "`precip, 0.8, 0.0, 60.0",
            "linearPredictorNormalizer, 1.5",
            "densityNormalizer, 20.0",
            "numBackgroundPoints, 10000",
            "entropy, 7.5",
        ]
    )


@pytest.fixture
def descriptor(lambdas_text):
    return parse_lambdas(lambdas_text)


@pytest.fixture
def lambdas_path(tmp_path, lambdas_text):
    path = tmp_path / "species.lambdas"
    path.write_text(lambdas_text + "\n")
    return path


@pytest.fixture
def single_linear_descriptor():
    """One linear feature on temp with weight 2 over 0-10 and neutral constants."""
    return parse_lambdas(
        "temp, 2.0, 0.0, 10.0\n"
        "linearPredictorNormalizer, 0.0\n"
        "densityNormalizer, 1.0\n"
        "numBackgroundPoints, 100\n"
        "entropy, 0.0\n"
    )


@pytest.fixture
def predictors() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "temp": [5.0, -5.0, 12.0, 4.0, np.nan],
            "precip": [70.0, 200.0, 20.0, 50.5, 30.0],
            "biome": [2, 1, 2, 3, 2],
        },
        index=pd.Index([10, 11, 12, 13, 14], name="cell"),
    )
