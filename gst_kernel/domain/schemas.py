"""
Typed input schemas for inbound orders and vendor profiles.

Responsibility:
    Declares the field rules (required, type, pattern, bounds) for the
    payloads the settlement flow accepts, validates raw dicts against them
    and builds the frozen ``Order`` / ``VendorProfile`` value objects.

Architecture position:
    Kernel > Domain -- functional core, no I/O.  Regex patterns are
    compiled once when the schema objects are constructed at import.

Failure modes:
    - ``parse_order`` / ``parse_vendor`` raise ``InputValidationError``
      carrying every field error found, not just the first.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from gst_kernel.domain.dtos import FieldError, ValidationResult
from gst_kernel.domain.orders import Order, OrderItem, VendorProfile
from gst_kernel.exceptions import InputValidationError


class FieldType(str, Enum):
    """Supported field types in input schemas."""

    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATETIME = "datetime"  # ISO 8601, timezone-aware
    ARRAY = "array"  # Array of objects


@dataclass(frozen=True)
class FieldSchema:
    """
    Schema definition for a single field.

    Immutable; ``pattern`` is compiled once at construction.
    """

    name: str
    field_type: FieldType
    required: bool = True
    nullable: bool = False
    min_value: Decimal | int | None = None
    max_value: Decimal | int | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    item_schema: RecordSchema | None = None
    _regex: re.Pattern | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.field_type == FieldType.ARRAY and self.item_schema is None:
            raise ValueError(f"Field '{self.name}' of type ARRAY must have item_schema")
        if self.pattern is not None:
            object.__setattr__(self, "_regex", re.compile(self.pattern))


@dataclass(frozen=True)
class RecordSchema:
    """Named collection of field rules."""

    name: str
    fields: tuple[FieldSchema, ...]

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"Schema {self.name} declares a field twice")


def _check_value(rule: FieldSchema, value: Any, path: str) -> list[FieldError]:
    errors: list[FieldError] = []

    if rule.field_type == FieldType.STRING:
        if not isinstance(value, str):
            return [FieldError("INVALID_TYPE", "expected a string", path)]
        stripped = value.strip()
        if rule.min_length is not None and len(stripped) < rule.min_length:
            errors.append(FieldError(
                "TOO_SHORT", f"must be at least {rule.min_length} characters", path,
            ))
        if rule.max_length is not None and len(value) > rule.max_length:
            errors.append(FieldError(
                "TOO_LONG", f"must be at most {rule.max_length} characters", path,
            ))
        if rule._regex is not None and not rule._regex.fullmatch(value):
            errors.append(FieldError(
                "PATTERN_MISMATCH", f"does not match {rule.pattern}", path,
            ))
        return errors

    if rule.field_type == FieldType.BOOLEAN:
        if not isinstance(value, bool):
            return [FieldError("INVALID_TYPE", "expected a boolean", path)]
        return errors

    if rule.field_type == FieldType.INTEGER:
        if isinstance(value, bool) or not isinstance(value, int):
            return [FieldError("INVALID_TYPE", "expected an integer", path)]
        numeric: Decimal | int = value
    elif rule.field_type == FieldType.DECIMAL:
        if isinstance(value, (bool, float)) or not isinstance(value, (int, str, Decimal)):
            return [FieldError("INVALID_TYPE", "expected a decimal string or integer", path)]
        try:
            numeric = Decimal(value)
        except InvalidOperation:
            return [FieldError("INVALID_TYPE", "not a decimal number", path)]
        if not numeric.is_finite():
            return [FieldError("INVALID_TYPE", "not a finite number", path)]
    elif rule.field_type == FieldType.DATETIME:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value)
            except ValueError:
                return [FieldError("INVALID_TYPE", "not an ISO 8601 datetime", path)]
        else:
            return [FieldError("INVALID_TYPE", "expected a datetime", path)]
        if parsed.tzinfo is None:
            errors.append(FieldError("NAIVE_DATETIME", "datetime must carry a timezone", path))
        return errors
    else:
        if not isinstance(value, list):
            return [FieldError("INVALID_TYPE", "expected a list", path)]
        if rule.min_length is not None and len(value) < rule.min_length:
            errors.append(FieldError(
                "TOO_FEW_ITEMS", f"must contain at least {rule.min_length} item(s)", path,
            ))
        for index, item in enumerate(value):
            errors.extend(validate_record(rule.item_schema, item, f"{path}[{index}]").errors)
        return errors

    if rule.min_value is not None and numeric < rule.min_value:
        errors.append(FieldError("BELOW_MINIMUM", f"must be >= {rule.min_value}", path))
    if rule.max_value is not None and numeric > rule.max_value:
        errors.append(FieldError("ABOVE_MAXIMUM", f"must be <= {rule.max_value}", path))
    return errors


def validate_record(schema: RecordSchema, payload: Any, prefix: str = "") -> ValidationResult:
    """Validate ``payload`` against ``schema``, collecting every error."""
    if not isinstance(payload, dict):
        return ValidationResult.failure(
            FieldError("INVALID_TYPE", f"{schema.name} must be an object", prefix or None)
        )

    errors: list[FieldError] = []
    known = {f.name for f in schema.fields}
    for extra in sorted(set(payload) - known):
        path = f"{prefix}.{extra}" if prefix else extra
        errors.append(FieldError("UNKNOWN_FIELD", "field is not allowed", path))

    for rule in schema.fields:
        path = f"{prefix}.{rule.name}" if prefix else rule.name
        if rule.name not in payload:
            if rule.required:
                errors.append(FieldError("REQUIRED", "field is required", path))
            continue
        value = payload[rule.name]
        if value is None:
            if not rule.nullable:
                errors.append(FieldError("NULL_NOT_ALLOWED", "field may not be null", path))
            continue
        errors.extend(_check_value(rule, value, path))

    return ValidationResult.failure(*errors) if errors else ValidationResult.success()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

# Identifiers become storage keys and invoice number prefixes: no '/' allowed
IDENTIFIER_PATTERN = r"[A-Za-z0-9][A-Za-z0-9_.\-]{0,63}"

ORDER_ITEM_SCHEMA = RecordSchema(
    name="OrderItem",
    fields=(
        FieldSchema("product_id", FieldType.STRING, min_length=1, max_length=64),
        FieldSchema("classification_code", FieldType.STRING, pattern=r"[0-9]{4,8}"),
        FieldSchema("quantity", FieldType.INTEGER, min_value=1),
        FieldSchema("unit_price", FieldType.INTEGER, min_value=1),
    ),
)

ORDER_SCHEMA = RecordSchema(
    name="Order",
    fields=(
        FieldSchema("order_id", FieldType.STRING, pattern=IDENTIFIER_PATTERN),
        FieldSchema("vendor_id", FieldType.STRING, pattern=IDENTIFIER_PATTERN),
        FieldSchema("customer_id", FieldType.STRING, min_length=1, max_length=64),
        FieldSchema(
            "items", FieldType.ARRAY, min_length=1, item_schema=ORDER_ITEM_SCHEMA,
        ),
        FieldSchema("buyer_jurisdiction", FieldType.STRING, min_length=1, max_length=64),
        FieldSchema("seller_jurisdiction", FieldType.STRING, min_length=1, max_length=64),
        FieldSchema(
            "customer_tax_id", FieldType.STRING, required=False, nullable=True,
            max_length=15,
        ),
        FieldSchema("completed_at", FieldType.DATETIME, required=False, nullable=True),
    ),
)

VENDOR_SCHEMA = RecordSchema(
    name="VendorProfile",
    fields=(
        FieldSchema("vendor_id", FieldType.STRING, pattern=IDENTIFIER_PATTERN),
        FieldSchema("tax_id", FieldType.STRING, nullable=True, max_length=15),
        FieldSchema("has_tax_id", FieldType.BOOLEAN),
        FieldSchema("jurisdiction", FieldType.STRING, min_length=1, max_length=64),
        FieldSchema("business_name", FieldType.STRING, min_length=1, max_length=200),
        FieldSchema(
            "commission_pct", FieldType.DECIMAL, required=False, nullable=True,
            min_value=0, max_value=100,
        ),
    ),
)


def _raise_if_invalid(schema: RecordSchema, payload: Any) -> None:
    result = validate_record(schema, payload)
    if not result:
        raise InputValidationError(schema.name, [e.to_dict() for e in result.errors])


def _as_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def parse_order(payload: dict[str, Any]) -> Order:
    """Validate a raw order payload and build an ``Order``.

    Raises:
        InputValidationError: with one entry per failing field.
    """
    _raise_if_invalid(ORDER_SCHEMA, payload)
    return Order(
        order_id=payload["order_id"],
        vendor_id=payload["vendor_id"],
        customer_id=payload["customer_id"],
        items=tuple(
            OrderItem(
                product_id=item["product_id"],
                classification_code=item["classification_code"],
                quantity=item["quantity"],
                unit_price=item["unit_price"],
            )
            for item in payload["items"]
        ),
        buyer_jurisdiction=payload["buyer_jurisdiction"],
        seller_jurisdiction=payload["seller_jurisdiction"],
        customer_tax_id=payload.get("customer_tax_id") or None,
        completed_at=_as_datetime(payload.get("completed_at")),
    )


def parse_vendor(payload: dict[str, Any]) -> VendorProfile:
    """Validate a raw vendor payload and build a ``VendorProfile``."""
    _raise_if_invalid(VENDOR_SCHEMA, payload)
    pct = payload.get("commission_pct")
    return VendorProfile(
        vendor_id=payload["vendor_id"],
        tax_id=payload["tax_id"] or None,
        has_tax_id=payload["has_tax_id"],
        jurisdiction=payload["jurisdiction"],
        business_name=payload["business_name"],
        commission_pct=Decimal(pct) if pct is not None else None,
    )
