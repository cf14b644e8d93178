"""Tests for the inbound order and vendor payload schemas."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from gst_kernel.domain.dtos import FieldError, ValidationResult
from gst_kernel.domain.schemas import (
    ORDER_SCHEMA,
    VENDOR_SCHEMA,
    FieldSchema,
    FieldType,
    RecordSchema,
    parse_order,
    parse_vendor,
    validate_record,
)
from gst_kernel.exceptions import InputValidationError


def _order_payload(**overrides):
    payload = {
        "order_id": "ORD-1",
        "vendor_id": "V1",
        "customer_id": "C1",
        "items": [
            {"product_id": "P1", "classification_code": "8471", "quantity": 2, "unit_price": 50000},
        ],
        "buyer_jurisdiction": "27",
        "seller_jurisdiction": "27",
        "customer_tax_id": None,
        "completed_at": "2024-07-15T12:00:00+05:30",
    }
    payload.update(overrides)
    return payload


def _vendor_payload(**overrides):
    payload = {
        "vendor_id": "V1",
        "tax_id": "27AAPFU0939F1ZV",
        "has_tax_id": True,
        "jurisdiction": "27",
        "business_name": "V1 Traders",
    }
    payload.update(overrides)
    return payload


def _codes(exc_info):
    return {(e["field"], e["code"]) for e in exc_info.value.field_errors}


class TestParseOrder:
    def test_valid_payload(self):
        order = parse_order(_order_payload())
        assert order.order_id == "ORD-1"
        assert order.items[0].line_value == 100000
        assert order.completed_at == datetime(2024, 7, 15, 6, 30, tzinfo=timezone.utc)
        assert not order.is_b2b

    def test_empty_customer_tax_id_means_b2c(self):
        order = parse_order(_order_payload(customer_tax_id=""))
        assert order.customer_tax_id is None

    def test_completed_at_optional(self):
        payload = _order_payload()
        del payload["completed_at"]
        assert parse_order(payload).completed_at is None

    def test_collects_every_error(self):
        payload = _order_payload(
            order_id="bad/id",
            items=[{"product_id": "P1", "classification_code": "84", "quantity": 0, "unit_price": 1.5}],
        )
        del payload["customer_id"]
        with pytest.raises(InputValidationError) as exc_info:
            parse_order(payload)
        assert _codes(exc_info) == {
            ("order_id", "PATTERN_MISMATCH"),
            ("customer_id", "REQUIRED"),
            ("items[0].classification_code", "PATTERN_MISMATCH"),
            ("items[0].quantity", "BELOW_MINIMUM"),
            ("items[0].unit_price", "INVALID_TYPE"),
        }
        assert exc_info.value.schema_name == "Order"

    def test_empty_items(self):
        with pytest.raises(InputValidationError) as exc_info:
            parse_order(_order_payload(items=[]))
        assert ("items", "TOO_FEW_ITEMS") in _codes(exc_info)

    def test_naive_datetime_rejected(self):
        with pytest.raises(InputValidationError) as exc_info:
            parse_order(_order_payload(completed_at="2024-07-15T12:00:00"))
        assert ("completed_at", "NAIVE_DATETIME") in _codes(exc_info)

    def test_unknown_field_rejected(self):
        with pytest.raises(InputValidationError) as exc_info:
            parse_order(_order_payload(discount=10))
        assert ("discount", "UNKNOWN_FIELD") in _codes(exc_info)

    def test_boolean_is_not_an_integer(self):
        payload = _order_payload()
        payload["items"][0]["quantity"] = True
        with pytest.raises(InputValidationError) as exc_info:
            parse_order(payload)
        assert ("items[0].quantity", "INVALID_TYPE") in _codes(exc_info)

    def test_non_dict_payload(self):
        with pytest.raises(InputValidationError):
            parse_order(["not", "a", "dict"])


class TestParseVendor:
    def test_valid_payload(self):
        vendor = parse_vendor(_vendor_payload(commission_pct="12.5"))
        assert vendor.tax_id == "27AAPFU0939F1ZV"
        assert vendor.commission_pct == Decimal("12.5")

    def test_missing_tax_id_allowed_as_null(self):
        vendor = parse_vendor(_vendor_payload(tax_id=None, has_tax_id=False))
        assert vendor.tax_id is None
        assert vendor.commission_pct is None

    @pytest.mark.parametrize("pct, code", [(12.5, "INVALID_TYPE"), ("101", "ABOVE_MAXIMUM"),
                                           ("-1", "BELOW_MINIMUM"), ("abc", "INVALID_TYPE")])
    def test_bad_commission(self, pct, code):
        with pytest.raises(InputValidationError) as exc_info:
            parse_vendor(_vendor_payload(commission_pct=pct))
        assert ("commission_pct", code) in _codes(exc_info)

    def test_has_tax_id_must_be_boolean(self):
        with pytest.raises(InputValidationError) as exc_info:
            parse_vendor(_vendor_payload(has_tax_id="yes"))
        assert ("has_tax_id", "INVALID_TYPE") in _codes(exc_info)


class TestSchemaDefinitions:
    def test_array_needs_item_schema(self):
        with pytest.raises(ValueError):
            FieldSchema("items", FieldType.ARRAY)

    def test_duplicate_field_names_rejected(self):
        with pytest.raises(ValueError):
            RecordSchema("X", (FieldSchema("a", FieldType.STRING), FieldSchema("a", FieldType.STRING)))

    def test_validate_record_success(self):
        result = validate_record(VENDOR_SCHEMA, _vendor_payload())
        assert result
        assert result.errors == ()

    def test_validation_result_is_falsy_on_failure(self):
        result = validate_record(ORDER_SCHEMA, {})
        assert not result
        assert all(isinstance(e, FieldError) for e in result.errors)

    def test_field_error_drops_empty_keys(self):
        assert FieldError("REQUIRED", "field is required").to_dict() == {
            "code": "REQUIRED",
            "message": "field is required",
        }

    def test_success_factory(self):
        assert ValidationResult.success().is_valid
