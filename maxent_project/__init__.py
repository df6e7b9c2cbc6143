"""Project fitted Maxent models from their .lambdas files."""

from maxent_project.errors import DomainError, FormatError, MaxentProjectError
from maxent_project.ic import information_criteria
from maxent_project.lambdas import (
    FeatureKind,
    FeatureRecord,
    ModelDescriptor,
    get_lambdas_text,
    load_lambdas,
    parse_lambdas,
    read_lambdas,
)
from maxent_project.limiting import LimitingFactorResult, limiting_factor, reference_values
from maxent_project.prediction import PredictionResult, predict

__version__ = "0.1.0"
