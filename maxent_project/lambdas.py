"""Reading Maxent .lambdas files.

A .lambdas file is a list of comma separated records. Four-field lines describe
the features of the fitted model (``expression, lambda, min, max``) and
two-field lines carry the constants needed to turn the linear predictor into
Maxent's raw and logistic outputs, e.g.::

    bio1, 0.0, -23.0, 289.0
    bio1^2, -1.52, 0.0, 83521.0
    bio1*bio12, 0.37, -16422.0, 2254040.0
    (523.5<bio12), 0.11, 0.0, 1.0
    (biome=1.0), -0.87, 0.0, 1.0
    'bio5, 2.05, 283.5, 422.0
    `bio7, -1.1, 99.0, 455.0
    linearPredictorNormalizer, 5.74
    densityNormalizer, 115.84
    numBackgroundPoints, 10000
    entropy, 8.36
"""

import logging
import re
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from maxent_project.errors import FormatError

logger = logging.getLogger(__name__)

LINEAR_PREDICTOR_NORMALIZER = "linearPredictorNormalizer"
DENSITY_NORMALIZER = "densityNormalizer"
NUM_BACKGROUND_POINTS = "numBackgroundPoints"
ENTROPY = "entropy"
REQUIRED_METADATA = (
    LINEAR_PREDICTOR_NORMALIZER,
    DENSITY_NORMALIZER,
    NUM_BACKGROUND_POINTS,
    ENTROPY,
)


class FeatureKind(StrEnum):
    LINEAR = "linear"
    QUADRATIC = "quadratic"
    PRODUCT = "product"
    THRESHOLD = "threshold"
    CATEGORICAL = "categorical"
    FORWARD_HINGE = "forward_hinge"
    REVERSE_HINGE = "reverse_hinge"


# What is left of an expression once names, numbers and brackets are removed
_SKELETON_KINDS = {
    "==": FeatureKind.CATEGORICAL,
    "<=": FeatureKind.THRESHOLD,
    "^": FeatureKind.QUADRATIC,
    "*": FeatureKind.PRODUCT,
    "`": FeatureKind.REVERSE_HINGE,
    "'": FeatureKind.FORWARD_HINGE,
}
_SKELETON_STRIP = re.compile(r"[\w.\-()]")

_EXPRESSION_PATTERNS = {
    FeatureKind.LINEAR: re.compile(r"^(?P<var>.+)$"),
    FeatureKind.QUADRATIC: re.compile(r"^(?P<var>.+)\^2$"),
    FeatureKind.PRODUCT: re.compile(r"^(?P<var>[^*]+)\*(?P<var2>[^*]+)$"),
    FeatureKind.THRESHOLD: re.compile(r"^\((?P<cut>[^<=]+)<=(?P<var>.+)\)$"),
    FeatureKind.CATEGORICAL: re.compile(r"^\((?P<var>.+?)==(?P<cut>[^=]+)\)$"),
    FeatureKind.FORWARD_HINGE: re.compile(r"^'(?P<var>.+)$"),
    FeatureKind.REVERSE_HINGE: re.compile(r"^`(?P<var>.+)$"),
}

# Maxent writes categories as (var=value) and thresholds as (cut<var)
_LONE_EQUALS = re.compile(r"(?<![=<>!])=(?!=)")
_LONE_LESS_THAN = re.compile(r"<(?!=)")


def normalize_expression(expression: str) -> str:
    """Rewrite ``=`` to ``==`` and ``<`` to ``<=``, leaving normalised operators alone."""
    expression = _LONE_EQUALS.sub("==", expression, count=1)
    return _LONE_LESS_THAN.sub("<=", expression, count=1)


def classify_expression(expression: str) -> FeatureKind:
    """Work out the feature kind from the punctuation of a normalised expression."""
    skeleton = _SKELETON_STRIP.sub("", expression)
    return _SKELETON_KINDS.get(skeleton, FeatureKind.LINEAR)


def parse_expression(
    expression: str, line_no: Optional[int] = None
) -> Tuple[FeatureKind, Tuple[str, ...], Optional[float]]:
    """Split a normalised feature expression into its kind, variables and cut value.

    The cut value is the threshold of a threshold feature or the class of a
    categorical feature, and None for every other kind.
    """
    kind = classify_expression(expression)
    match = _EXPRESSION_PATTERNS[kind].match(expression)
    if match is None:
        raise FormatError(
            f"Cannot read {kind} feature expression {expression!r}", line_no
        )
    groups = match.groupdict()
    variables = tuple(
        groups[name].strip() for name in ("var", "var2") if groups.get(name)
    )
    cut = None
    if groups.get("cut") is not None:
        cut = _to_float(groups["cut"], f"{kind} value in {expression!r}", line_no)
    return kind, variables, cut


def _to_float(value: str, what: str, line_no: Optional[int]) -> float:
    try:
        return float(value)
    except ValueError:
        raise FormatError(f"{what} is not a number: {value!r}", line_no) from None


@dataclass(frozen=True)
class FeatureRecord:
    """One feature of a fitted Maxent model."""

    raw_expression: str
    weight: float
    train_min: float
    train_max: float
    kind: FeatureKind
    variables: Tuple[str, ...]
    cut: Optional[float] = None

    @property
    def variable(self) -> str:
        return self.variables[0]

    @property
    def is_hinge(self) -> bool:
        return self.kind in (FeatureKind.FORWARD_HINGE, FeatureKind.REVERSE_HINGE)

    @classmethod
    def from_expression(
        cls,
        expression: str,
        weight: float,
        train_min: float,
        train_max: float,
        line_no: Optional[int] = None,
    ) -> "FeatureRecord":
        expression = normalize_expression(expression)
        kind, variables, cut = parse_expression(expression, line_no)
        return cls(
            raw_expression=expression,
            weight=weight,
            train_min=train_min,
            train_max=train_max,
            kind=kind,
            variables=variables,
            cut=cut,
        )


@dataclass(frozen=True)
class MetadataLine:
    line_no: int
    name: str
    value: str


@dataclass(frozen=True)
class FeatureLine:
    line_no: int
    expression: str
    weight: str
    train_min: str
    train_max: str

    def to_record(self) -> FeatureRecord:
        return FeatureRecord.from_expression(
            self.expression,
            weight=_to_float(self.weight, "lambda", self.line_no),
            train_min=_to_float(self.train_min, "min", self.line_no),
            train_max=_to_float(self.train_max, "max", self.line_no),
            line_no=self.line_no,
        )


@dataclass(frozen=True)
class IgnoredLine:
    line_no: int
    text: str


LambdasLine = Union[MetadataLine, FeatureLine, IgnoredLine]


def classify_line(text: str, line_no: int) -> LambdasLine:
    """Tag a line of a lambdas file by its number of comma separated fields."""
    fields = [field.strip() for field in text.rstrip("\r\n").split(",")]
    if len(fields) == 2:
        return MetadataLine(line_no, *fields)
    if len(fields) == 4:
        return FeatureLine(line_no, *fields)
    return IgnoredLine(line_no, text)


@dataclass(frozen=True)
class ModelDescriptor:
    """Everything needed to project a fitted Maxent model to new data.

    Attributes:
        features: Feature records in the order they appear in the lambdas file.
        linear_predictor_normalizer: Constant subtracted from the linear
            predictor so that it stays negative over the training data.
        density_normalizer: Scales the raw output to sum to 1 over the
            background points.
        background_point_count: Number of background points used in training.
        entropy: Entropy of the fitted distribution, used by the logistic
            transform.
    """

    features: Tuple[FeatureRecord, ...]
    linear_predictor_normalizer: float
    density_normalizer: float
    background_point_count: int
    entropy: float

    @property
    def active_features(self) -> Tuple[FeatureRecord, ...]:
        return tuple(f for f in self.features if f.weight != 0)

    @property
    def variables(self) -> List[str]:
        """Names of the predictors used by features with a nonzero weight."""
        names: Dict[str, None] = {}
        for feature in self.active_features:
            names.update(dict.fromkeys(feature.variables))
        return list(names)

    @property
    def categorical_variables(self) -> List[str]:
        return list(
            dict.fromkeys(
                f.variable for f in self.features if f.kind == FeatureKind.CATEGORICAL
            )
        )

    def clamp_limits(self) -> Dict[str, Tuple[float, float]]:
        """Training range of each variable, taken from its linear feature."""
        return {
            f.variable: (f.train_min, f.train_max)
            for f in self.features
            if f.kind == FeatureKind.LINEAR
        }

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "feature": [f.raw_expression for f in self.features],
                "var": [",".join(f.variables) for f in self.features],
                "weight": [f.weight for f in self.features],
                "min": [f.train_min for f in self.features],
                "max": [f.train_max for f in self.features],
                "type": [str(f.kind) for f in self.features],
            }
        )

    def to_text(self) -> str:
        """Serialise back to the lambdas format."""
        lines = [
            f"{f.raw_expression}, {f.weight!r}, {f.train_min!r}, {f.train_max!r}"
            for f in self.features
        ]
        lines += [
            f"{LINEAR_PREDICTOR_NORMALIZER}, {self.linear_predictor_normalizer!r}",
            f"{DENSITY_NORMALIZER}, {self.density_normalizer!r}",
            f"{NUM_BACKGROUND_POINTS}, {self.background_point_count}",
            f"{ENTROPY}, {self.entropy!r}",
        ]
        return "\n".join(lines) + "\n"


def parse_lambdas(source: Union[str, Iterable[str]]) -> ModelDescriptor:
    """Parse the body of a Maxent lambdas file.

    Args:
        source: The file contents, either as one string or as an iterable of lines.

    Returns:
        The parsed ModelDescriptor.

    Raises:
        FormatError: If a feature line has non-numeric values or an unreadable
            expression, or if any of the four required constants is missing.
    """
    lines = source.splitlines() if isinstance(source, str) else source

    features: List[FeatureRecord] = []
    metadata: Dict[str, float] = {}
    for line in (classify_line(text, i) for i, text in enumerate(lines, start=1)):
        if isinstance(line, FeatureLine):
            features.append(line.to_record())
        elif isinstance(line, MetadataLine):
            if line.name in REQUIRED_METADATA:
                metadata[line.name] = _to_float(line.value, line.name, line.line_no)
            else:
                logger.debug(f"Ignoring metadata '{line.name}' on line {line.line_no}")
        else:
            logger.debug(f"Ignoring line {line.line_no}: {line.text!r}")

    missing = [name for name in REQUIRED_METADATA if name not in metadata]
    if missing:
        raise FormatError(f"Lambdas text is missing required values: {missing}")

    n_background = metadata[NUM_BACKGROUND_POINTS]
    if not n_background.is_integer():
        raise FormatError(f"{NUM_BACKGROUND_POINTS} is not a whole number: {n_background}")

    descriptor = ModelDescriptor(
        features=tuple(features),
        linear_predictor_normalizer=metadata[LINEAR_PREDICTOR_NORMALIZER],
        density_normalizer=metadata[DENSITY_NORMALIZER],
        background_point_count=int(n_background),
        entropy=metadata[ENTROPY],
    )
    logger.debug(
        f"Parsed {len(features)} features ({len(descriptor.active_features)} nonzero) "
        f"over {len(descriptor.variables)} variables"
    )
    return descriptor


def read_lambdas(path: Union[str, Path]) -> ModelDescriptor:
    """Read and parse a .lambdas file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Lambdas file not found: {path}")
    logger.info(f"Reading lambdas from {path}")
    return parse_lambdas(path.read_text(encoding="utf-8"))


def get_lambdas_text(model: Any) -> str:
    """Pull the lambdas text out of a fitted model object.

    Works with any object exposing the lambdas file body as a ``lambdas``
    attribute, either as a single string or as a sequence of lines (the way
    dismo's MaxEnt objects hold it).
    """
    lambdas = getattr(model, "lambdas", None)
    if isinstance(lambdas, str):
        return lambdas
    if isinstance(lambdas, (list, tuple)) and all(isinstance(line, str) for line in lambdas):
        return "\n".join(lambdas)
    raise TypeError(
        f"Expected a model with a 'lambdas' attribute holding text, got {type(model).__name__}"
    )


def load_lambdas(source: Any) -> ModelDescriptor:
    """Get a ModelDescriptor from a descriptor, a file path, lambdas text or a model object."""
    if isinstance(source, ModelDescriptor):
        return source
    if isinstance(source, Path):
        return read_lambdas(source)
    if isinstance(source, str):
        return parse_lambdas(source) if "\n" in source else read_lambdas(source)
    return parse_lambdas(get_lambdas_text(source))
