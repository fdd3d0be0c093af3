"""Closed set of named value transformations applied during standardization."""
import re
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ingestion.exceptions import InvalidTransformationError, TransformationError

TRUE_VALUES = {"true", "1", "yes", "y", "t"}
FALSE_VALUES = {"false", "0", "no", "n", "f"}

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%m-%d-%Y",
    "%d %b %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%Y%m%d",
)

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def to_number(value: Any) -> float:
    """Coerce a value to float, stripping currency symbols and grouping."""
    if isinstance(value, bool):
        raise TransformationError(f"'{value}' is not a number")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    negative = text.startswith("(") and text.endswith(")")
    cleaned = _NON_NUMERIC.sub("", text)
    try:
        number = float(cleaned)
    except ValueError:
        raise TransformationError(f"'{value}' is not a number")
    return -number if negative else number


def to_date(value: Any) -> str:
    """Normalize a date-like value to an ISO-8601 date string."""
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    raise TransformationError(f"'{value}' is not a recognized date")


def to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise TransformationError(f"'{value}' is not a boolean")


def to_integer(value: Any) -> int:
    number = to_number(value)
    if number != int(number):
        raise TransformationError(f"'{value}' is not a whole number")
    return int(number)


def _replace(value: Any, params: Dict[str, Any]) -> str:
    return str(value).replace(str(params.get("find", "")), str(params.get("replace", "")))


TRANSFORMATIONS: Dict[str, Callable[[Any, Dict[str, Any]], Any]] = {
    "uppercase": lambda v, p: str(v).upper(),
    "lowercase": lambda v, p: str(v).lower(),
    "trim": lambda v, p: str(v).strip(),
    "titlecase": lambda v, p: str(v).title(),
    "number": lambda v, p: to_number(v),
    "integer": lambda v, p: to_integer(v),
    "boolean": lambda v, p: to_boolean(v),
    "date": lambda v, p: to_date(v),
    "replace": _replace,
}


def validate_transformation(name: Optional[str], params: Optional[Dict[str, Any]] = None) -> None:
    """
    Raises:
        InvalidTransformationError: for unknown names or incomplete parameters
    """
    if name is None:
        return
    if name not in TRANSFORMATIONS:
        raise InvalidTransformationError(
            f"Unknown transformation '{name}'. Allowed: {', '.join(sorted(TRANSFORMATIONS))}"
        )
    if name == "replace" and not (params or {}).get("find"):
        raise InvalidTransformationError("The 'replace' transformation needs a 'find' parameter")


def apply_transformation(name: Optional[str], value: Any, params: Optional[Dict[str, Any]] = None) -> Any:
    """
    Apply one named transformation. None passes through untouched.

    Raises:
        TransformationError: if the value cannot be transformed
    """
    if name is None or value is None:
        return value
    validate_transformation(name, params)
    return TRANSFORMATIONS[name](value, params or {})
