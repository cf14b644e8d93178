"""
Order and vendor inputs.

Frozen value objects handed to the settlement flow by the (out of scope)
HTTP layer.  Amounts are integer paise; percentages are ``Decimal``.
Build them from raw payloads with ``gst_kernel.domain.schemas``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class OrderItem:
    """One order line: ``quantity`` units at ``unit_price`` paise each."""

    product_id: str
    classification_code: str
    quantity: int
    unit_price: int

    @property
    def line_value(self) -> int:
        return self.quantity * self.unit_price

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "classification_code": self.classification_code,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


@dataclass(frozen=True)
class Order:
    """A completed marketplace order for a single vendor."""

    order_id: str
    vendor_id: str
    customer_id: str
    items: tuple[OrderItem, ...]
    buyer_jurisdiction: str
    seller_jurisdiction: str
    customer_tax_id: str | None = None
    completed_at: datetime | None = None

    @property
    def is_b2b(self) -> bool:
        return bool(self.customer_tax_id)


@dataclass(frozen=True)
class VendorProfile:
    """Vendor master data relevant to invoicing and payouts."""

    vendor_id: str
    tax_id: str | None
    has_tax_id: bool
    jurisdiction: str
    business_name: str
    # None means the platform default commission applies
    commission_pct: Decimal | None = None
