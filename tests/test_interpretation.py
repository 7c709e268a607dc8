import pytest

from backend.schemas import report as report_schemas
from backend.schemas.report import ReferenceRange
from backend.services.interpretation import classify_result, gauge_bounds, range_bounds, to_float


@pytest.mark.parametrize(
    ("result", "reference", "expected"),
    [
        (120, ReferenceRange(min=70, max=99), "high"),
        (85, ReferenceRange(min=70, max=99), "normal"),
        (65.5, ReferenceRange(min=70, max=99), "low"),
        ("4.2", ReferenceRange(text="3.5 - 5.0"), "normal"),
        (6, ReferenceRange(text="< 5"), "high"),
        (35, ReferenceRange(text=">= 40"), "low"),
        ("Not Detected", ReferenceRange(text="Not Detected"), None),
        (12, None, None),
    ],
)
def test_classify_result(result, reference, expected):
    assert classify_result(result, reference) == expected


def test_range_bounds_prefers_numeric_fields():
    assert range_bounds(ReferenceRange(min=1, max=2, text="10-20")) == (1, 2)


def test_range_bounds_reads_text_with_to():
    assert range_bounds(ReferenceRange(text="150 to 400 x10^3/uL")) == (150.0, 400.0)


def test_to_float_handles_units_and_text():
    assert to_float("13.5 g/dL") == 13.5
    assert to_float("Positive") is None
    assert to_float(True) is None


def _result(**kwargs):
    values = {"id": "t1", "test": "Glucose", "result": 120}
    values.update(kwargs)
    return report_schemas.TestResult.model_validate(values)


def test_gauge_bounds_uses_explicit_gauge_range():
    assert gauge_bounds(_result(gaugeMin=40, gaugeMax=200)) == (40, 200)


def test_gauge_bounds_pads_reference_range():
    low, high = gauge_bounds(_result(result=80, referenceRange={"min": 70, "max": 100}))

    assert low == 55
    assert high == 115


def test_gauge_bounds_stretches_to_include_result():
    low, high = gauge_bounds(_result(result=300, referenceRange={"min": 70, "max": 100}))

    assert low == 55
    assert high == 300


def test_gauge_bounds_without_range():
    assert gauge_bounds(_result(result=8)) == (0.0, 16.0)
    assert gauge_bounds(_result(result="Negative")) is None


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("5.0 x 10^3", 5.0),
        ("150 x 10^3/uL", 150.0),
        ("1,250 cells/uL", 1250.0),
        ("-2.5", -2.5),
    ],
)
def test_to_float_reads_only_the_leading_number(text, expected):
    assert to_float(text) == expected


def test_scientific_notation_result_is_classified_against_its_range():
    assert classify_result("5.0 x 10^3", ReferenceRange(min=4.0, max=11.0)) == "normal"
    assert classify_result("150 x 10^3", ReferenceRange(text="150 - 400")) == "normal"
