import re

from backend.schemas.report import ReferenceRange, TestResult

_BETWEEN_RE = re.compile(r"(?P<low>-?\d+(?:\.\d+)?)\s*(?:-|–|to)\s*(?P<high>-?\d+(?:\.\d+)?)")
_BOUND_RE = re.compile(r"(?P<op><=|>=|≤|≥|<|>)\s*(?P<value>-?\d+(?:\.\d+)?)")
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def to_float(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    # first number only; "5.0 x 10^3" reads as 5.0, in the unit the range is written in
    match = _NUMBER_RE.search(str(value).replace(",", ""))
    if match is None:
        return None
    return float(match.group())


def range_bounds(reference_range: ReferenceRange | None) -> tuple[float | None, float | None]:
    """Numeric (low, high) for a reference range, reading the text form when bounds are absent."""
    if reference_range is None:
        return None, None
    if reference_range.min is not None or reference_range.max is not None:
        return reference_range.min, reference_range.max
    text = reference_range.text or ""
    match = _BETWEEN_RE.search(text)
    if match:
        return float(match.group("low")), float(match.group("high"))
    match = _BOUND_RE.search(text)
    if match:
        value = float(match.group("value"))
        if match.group("op") in {"<", "<=", "≤"}:
            return None, value
        return value, None
    return None, None


def classify_result(result, reference_range: ReferenceRange | None) -> str | None:
    """Place a result against its reference range: 'low', 'normal', 'high' or None when unknown."""
    value = to_float(result)
    low, high = range_bounds(reference_range)
    if value is None or (low is None and high is None):
        return None
    if low is not None and value < low:
        return "low"
    if high is not None and value > high:
        return "high"
    return "normal"


def gauge_bounds(test: TestResult) -> tuple[float, float] | None:
    """Dial min/max: explicit gauge bounds first, otherwise the reference range padded by half its span."""
    if test.gauge_min is not None and test.gauge_max is not None and test.gauge_max > test.gauge_min:
        return test.gauge_min, test.gauge_max
    low, high = range_bounds(test.reference_range)
    value = to_float(test.result)
    if low is not None and high is not None and high > low:
        pad = (high - low) * 0.5
        lower = min(low - pad, value) if value is not None else low - pad
        upper = max(high + pad, value) if value is not None else high + pad
        return max(lower, 0.0) if low >= 0 else lower, upper
    if value is not None and value > 0:
        return 0.0, value * 2
    return None
