"""Field-level validation and quality scoring."""
import re
from dataclasses import dataclass
from typing import Any, Optional

from ingestion.exceptions import TransformationError
from ingestion.services.field_catalog import EMAIL_REGEX, PHONE_REGEX
from ingestion.services.field_dictionary import StandardField
from ingestion.services.transforms import to_boolean, to_date, to_integer, to_number

NUMERIC_TYPES = {"integer", "decimal", "currency", "percentage"}
DEFAULT_PATTERNS = {"email": EMAIL_REGEX, "phone": PHONE_REGEX}


class ValidationStatus:
    PASSED = "passed"
    WARNING = "warning"
    FAILED = "failed"


@dataclass
class FieldError:
    field: str
    message: str
    value: Any = None
    error_type: str = "validation_error"

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "message": self.message,
            "value": self.value,
            "type": self.error_type,
        }


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_field(definition: StandardField, value: Any) -> Optional[FieldError]:
    """
    Check one value against its field definition.

    Returns the first failing check as a FieldError, or None if it passes.
    Empty values only fail when the field is required.
    """
    name = definition.field_name
    if is_empty(value):
        if definition.is_required:
            return FieldError(name, f"{definition.display_name} is required", value)
        return None

    data_type = definition.data_type
    number = None
    try:
        if data_type == "integer":
            number = to_integer(value)
        elif data_type in NUMERIC_TYPES:
            number = to_number(value)
        elif data_type == "date":
            to_date(value)
        elif data_type == "boolean":
            to_boolean(value)
    except TransformationError:
        return FieldError(name, f"{definition.display_name} must be a valid {data_type}, got '{value}'", value)

    pattern = definition.validation_regex or DEFAULT_PATTERNS.get(data_type)
    if pattern and not re.match(pattern, str(value).strip()):
        return FieldError(name, f"{definition.display_name} has an invalid format: '{value}'", value)

    if number is None and (definition.min_value is not None or definition.max_value is not None):
        try:
            number = to_number(value)
        except TransformationError:
            return FieldError(name, f"{definition.display_name} must be numeric, got '{value}'", value)
    if definition.min_value is not None and number < definition.min_value:
        return FieldError(
            name,
            f"{definition.display_name} value {value} is below the minimum of {definition.min_value:g}",
            value,
        )
    if definition.max_value is not None and number > definition.max_value:
        return FieldError(
            name,
            f"{definition.display_name} value {value} is above the maximum of {definition.max_value:g}",
            value,
        )

    if definition.allowed_values:
        allowed = {str(v).lower() for v in definition.allowed_values}
        if str(value).strip().lower() not in allowed:
            return FieldError(
                name,
                f"{definition.display_name} must be one of: {', '.join(definition.allowed_values)}",
                value,
            )
    return None


def classify(error_count: int, warning_max_errors: int = 2) -> str:
    """0 errors passes, up to ``warning_max_errors`` warns, more fails."""
    if error_count == 0:
        return ValidationStatus.PASSED
    if error_count <= warning_max_errors:
        return ValidationStatus.WARNING
    return ValidationStatus.FAILED


def quality_score(field_count: int, non_empty: int, valid: int) -> int:
    """
    Blend completeness and accuracy 50/50 into an integer percentage.

    Args:
        field_count: Number of mapped target fields
        non_empty: Fields holding a value
        valid: Fields that passed validation
    """
    if field_count <= 0:
        return 0
    completeness = non_empty / field_count * 100
    accuracy = valid / field_count * 100
    return max(0, min(100, round(0.5 * completeness + 0.5 * accuracy)))
