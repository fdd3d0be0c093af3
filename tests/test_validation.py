"""Tests for value transformations, field validation and scoring."""
import pytest

from ingestion.exceptions import InvalidTransformationError, TransformationError
from ingestion.services.field_dictionary import StandardField
from ingestion.services.transforms import apply_transformation, to_number, validate_transformation
from ingestion.services.validation import classify, quality_score, validate_field


def test_number_strips_currency_and_grouping():
    assert to_number("$1,234.50") == 1234.5
    assert to_number("(12.00)") == -12.0
    assert to_number(7) == 7.0


def test_apply_transformations():
    assert apply_transformation("uppercase", "kg") == "KG"
    assert apply_transformation("trim", "  Flour ") == "Flour"
    assert apply_transformation("titlecase", "harbor bistro") == "Harbor Bistro"
    assert apply_transformation("date", "03/02/2024") == "2024-03-02"
    assert apply_transformation("date", "2024-03-02T10:00:00") == "2024-03-02"
    assert apply_transformation("boolean", "Yes") is True
    assert apply_transformation("integer", "12") == 12
    assert apply_transformation("replace", "1-2-3", {"find": "-", "replace": ""}) == "123"


def test_null_passes_through_transformation():
    assert apply_transformation("number", None) is None


def test_transformation_failure():
    with pytest.raises(TransformationError):
        apply_transformation("date", "sometime last week")
    with pytest.raises(TransformationError):
        apply_transformation("integer", "2.5")


def test_unknown_transformation_rejected():
    with pytest.raises(InvalidTransformationError):
        validate_transformation("reverse")
    with pytest.raises(InvalidTransformationError):
        validate_transformation("replace", {})


def total_amount_field():
    return StandardField(
        domain="orders",
        field_name="total_amount",
        display_name="Total Amount",
        data_type="currency",
        is_required=True,
        min_value=0,
    )


def test_negative_total_reports_minimum():
    error = validate_field(total_amount_field(), -5)
    assert error is not None
    assert error.field == "total_amount"
    assert "minimum" in error.message
    assert error.error_type == "validation_error"


def test_required_and_type_checks():
    field = total_amount_field()
    assert "required" in validate_field(field, None).message
    assert "required" in validate_field(field, "  ").message
    assert "valid currency" in validate_field(field, "lots").message
    assert validate_field(field, "$120.50") is None


def test_optional_empty_value_passes():
    field = StandardField(domain="orders", field_name="currency", display_name="Currency")
    assert validate_field(field, None) is None


def test_allowed_values_are_case_insensitive():
    field = StandardField(
        domain="orders",
        field_name="order_status",
        display_name="Order Status",
        allowed_values=("pending", "shipped"),
    )
    assert validate_field(field, "Shipped") is None
    assert validate_field(field, "lost") is not None


def test_email_and_range_checks():
    email = StandardField(domain="customers", field_name="contact_email", display_name="Email", data_type="email")
    assert validate_field(email, "chef@example.com") is None
    assert validate_field(email, "not-an-email") is not None

    lead_time = StandardField(
        domain="suppliers",
        field_name="lead_time_days",
        display_name="Lead Time (days)",
        data_type="integer",
        min_value=0,
        max_value=365,
    )
    assert "maximum" in validate_field(lead_time, "400").message
    assert "valid integer" in validate_field(lead_time, "1.5").message


def test_classify_status():
    assert classify(0) == "passed"
    assert classify(1) == "warning"
    assert classify(2) == "warning"
    assert classify(3) == "failed"
    assert classify(3, warning_max_errors=5) == "warning"


def test_quality_score_blend():
    assert quality_score(5, 5, 5) == 100
    assert quality_score(5, 5, 4) == 90
    assert quality_score(4, 3, 2) == round(0.5 * 75 + 0.5 * 50)
    assert quality_score(0, 0, 0) == 0
