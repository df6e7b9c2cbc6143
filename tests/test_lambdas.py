from types import SimpleNamespace

import pytest

from maxent_project.errors import FormatError
from maxent_project.lambdas import (
    FeatureKind,
    FeatureLine,
    IgnoredLine,
    MetadataLine,
    ModelDescriptor,
    classify_expression,
    classify_line,
    get_lambdas_text,
    load_lambdas,
    normalize_expression,
    parse_expression,
    parse_lambdas,
    read_lambdas,
)

METADATA = (
    "linearPredictorNormalizer, 1.5\n"
    "densityNormalizer, 20.0\n"
    "numBackgroundPoints, 10000\n"
    "entropy, 7.5\n"
)


@pytest.mark.parametrize(
    "expression, kind",
    [
        ("bio1", FeatureKind.LINEAR),
        ("bio1^2", FeatureKind.QUADRATIC),
        ("bio1*bio12", FeatureKind.PRODUCT),
        ("(150.5<=bio1)", FeatureKind.THRESHOLD),
        ("(biome==3.0)", FeatureKind.CATEGORICAL),
        ("'bio5", FeatureKind.FORWARD_HINGE),
        ("`bio7", FeatureKind.REVERSE_HINGE),
    ],
)
def test_classify_expression(expression, kind):
    assert classify_expression(expression) == kind


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("(150.5<bio1)", "(150.5<=bio1)"),
        ("(biome=3.0)", "(biome==3.0)"),
        ("(150.5<=bio1)", "(150.5<=bio1)"),
        ("(biome==3.0)", "(biome==3.0)"),
        ("bio1^2", "bio1^2"),
    ],
)
def test_normalize_expression(expression, expected):
    assert normalize_expression(expression) == expected


@pytest.mark.parametrize(
    "expression, kind, variables, cut",
    [
        ("dist.to-coast", FeatureKind.LINEAR, ("dist.to-coast",), None),
        ("dist.to-coast^2", FeatureKind.QUADRATIC, ("dist.to-coast",), None),
        ("bio_1*land.cover-500m", FeatureKind.PRODUCT, ("bio_1", "land.cover-500m"), None),
        ("(-3.5<=min.temp)", FeatureKind.THRESHOLD, ("min.temp",), -3.5),
        ("(land-cover==12.0)", FeatureKind.CATEGORICAL, ("land-cover",), 12.0),
        ("'bio.5", FeatureKind.FORWARD_HINGE, ("bio.5",), None),
        ("`bio-7", FeatureKind.REVERSE_HINGE, ("bio-7",), None),
        ("(1.0E-4<=elev)", FeatureKind.THRESHOLD, ("elev",), 1.0e-4),
    ],
)
def test_parse_expression(expression, kind, variables, cut):
    assert parse_expression(expression) == (kind, variables, cut)


def test_parse_expression_bad_cut():
    with pytest.raises(FormatError):
        parse_expression("(high<=bio1)")


def test_threshold_as_written_by_maxent():
    # Maxent writes the cut first: (cut<var)
    descriptor = parse_lambdas(
        "(85.5<bio1), 0.4, 0.0, 1.0\n"
        "(-3.5<min.temp), -0.2, 0.0, 1.0\n"
        "(1.0E-4<dist-to.coast), 0.1, 0.0, 1.0\n" + METADATA
    )
    assert [feature.kind for feature in descriptor.features] == [FeatureKind.THRESHOLD] * 3
    assert [feature.variables for feature in descriptor.features] == [
        ("bio1",),
        ("min.temp",),
        ("dist-to.coast",),
    ]
    assert [feature.cut for feature in descriptor.features] == [85.5, -3.5, 1.0e-4]
    assert descriptor.variables == ["bio1", "min.temp", "dist-to.coast"]


def test_classify_line():
    assert classify_line("entropy, 7.5", 3) == MetadataLine(3, "entropy", "7.5")
    assert classify_line("bio1, 0.5, 1.0, 2.0\n", 4) == FeatureLine(4, "bio1", "0.5", "1.0", "2.0")
    assert isinstance(classify_line("", 5), IgnoredLine)
    assert isinstance(classify_line("a, b, c", 6), IgnoredLine)


def test_parse_lambdas(descriptor):
    assert isinstance(descriptor, ModelDescriptor)
    assert len(descriptor.features) == 8
    assert descriptor.linear_predictor_normalizer == 1.5
    assert descriptor.density_normalizer == 20.0
    assert descriptor.background_point_count == 10000
    assert descriptor.entropy == 7.5

    kinds = [feature.kind for feature in descriptor.features]
    assert kinds == [
        FeatureKind.LINEAR,
        FeatureKind.LINEAR,
        FeatureKind.QUADRATIC,
        FeatureKind.PRODUCT,
        FeatureKind.THRESHOLD,
        FeatureKind.CATEGORICAL,
        FeatureKind.FORWARD_HINGE,
        FeatureKind.REVERSE_HINGE,
    ]
    threshold = descriptor.features[4]
    assert threshold.raw_expression == "(50.5<=precip)"
    assert threshold.cut == 50.5
    assert descriptor.features[5].raw_expression == "(biome==2.0)"


def test_descriptor_helpers(descriptor):
    # precip's linear feature has zero weight but precip is still used elsewhere
    assert descriptor.variables == ["temp", "precip", "biome"]
    assert descriptor.categorical_variables == ["biome"]
    assert len(descriptor.active_features) == 7
    assert descriptor.clamp_limits() == {"temp": (0.0, 10.0), "precip": (0.0, 100.0)}


def test_to_frame(descriptor):
    frame = descriptor.to_frame()
    assert list(frame.columns) == ["feature", "var", "weight", "min", "max", "type"]
    assert frame.loc[3, "var"] == "temp,precip"
    assert frame.loc[7, "type"] == "reverse_hinge"


def test_round_trip(descriptor):
    assert parse_lambdas(descriptor.to_text()) == descriptor


def test_ignores_unknown_lines():
    text = "bio1, 1.0, 0.0, 1.0\nsome, odd, line\nfitTime, 12.3\n\n" + METADATA
    descriptor = parse_lambdas(text)
    assert len(descriptor.features) == 1


def test_accepts_lines(lambdas_text):
    lines = [line + "\n" for line in lambdas_text.splitlines()]
    assert parse_lambdas(lines) == parse_lambdas(lambdas_text)


def test_missing_metadata():
    with pytest.raises(FormatError, match="entropy"):
        parse_lambdas("bio1, 1.0, 0.0, 1.0\n" + METADATA.replace("entropy, 7.5\n", ""))


def test_non_numeric_feature_value():
    with pytest.raises(FormatError) as excinfo:
        parse_lambdas("bio1, 1.0, 0.0, 1.0\nbio2, heavy, 0.0, 1.0\n" + METADATA)
    assert excinfo.value.line_no == 2


def test_non_numeric_metadata():
    with pytest.raises(FormatError):
        parse_lambdas(METADATA.replace("entropy, 7.5", "entropy, NA?"))


def test_fractional_background_points():
    with pytest.raises(FormatError):
        parse_lambdas(METADATA.replace("10000", "100.5"))


def test_read_lambdas(lambdas_path, descriptor):
    assert read_lambdas(lambdas_path) == descriptor


def test_read_lambdas_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_lambdas(tmp_path / "missing.lambdas")


def test_get_lambdas_text(lambdas_text):
    model = SimpleNamespace(lambdas=lambdas_text.splitlines())
    assert get_lambdas_text(model) == lambdas_text
    assert get_lambdas_text(SimpleNamespace(lambdas=lambdas_text)) == lambdas_text
    with pytest.raises(TypeError):
        get_lambdas_text(object())


def test_load_lambdas(lambdas_path, lambdas_text, descriptor):
    assert load_lambdas(descriptor) is descriptor
    assert load_lambdas(lambdas_path) == descriptor
    assert load_lambdas(str(lambdas_path)) == descriptor
    assert load_lambdas(lambdas_text) == descriptor
    assert load_lambdas(SimpleNamespace(lambdas=lambdas_text.splitlines())) == descriptor
