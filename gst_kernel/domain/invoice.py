"""
Invoice domain types.

Responsibility:
    Frozen value objects for tax invoices and their lines, plus the
    dict round-trip used by the storage port.

Invariants:
    - All amounts are integer paise.  NEVER float.
    - An Invoice is immutable except for ``status``, which changes only
      through ``gst_modules.invoicing.workflows.INVOICE_WORKFLOW``.
    - ``taxable_value + total_tax == gross_total`` and the header totals
      equal the sum of the lines.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class TaxType(str, Enum):
    """Which GST components apply."""

    SAME_JURISDICTION = "same_jurisdiction"  # CGST + SGST
    CROSS_JURISDICTION = "cross_jurisdiction"  # IGST


class InvoiceCategory(str, Enum):
    """GSTR-1 bucket an invoice reports under."""

    B2B = "b2b"
    B2C_LARGE = "b2c_large"
    B2C_SMALL = "b2c_small"


class InvoiceStatus(str, Enum):
    GENERATED = "generated"
    SENT = "sent"
    ACKNOWLEDGED = "acknowledged"


@dataclass(frozen=True)
class InvoiceLine:
    line_number: int
    product_id: str
    classification_code: str
    quantity: int
    unit_price: int
    taxable_value: int
    rate: Decimal
    cgst: int
    sgst: int
    igst: int
    line_total: int

    @property
    def total_tax(self) -> int:
        return self.cgst + self.sgst + self.igst

    def to_dict(self) -> dict[str, Any]:
        return {
            "line_number": self.line_number,
            "product_id": self.product_id,
            "classification_code": self.classification_code,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "taxable_value": self.taxable_value,
            "rate": f"{self.rate:.2f}",
            "cgst": self.cgst,
            "sgst": self.sgst,
            "igst": self.igst,
            "line_total": self.line_total,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InvoiceLine:
        return cls(
            line_number=data["line_number"],
            product_id=data["product_id"],
            classification_code=data["classification_code"],
            quantity=data["quantity"],
            unit_price=data["unit_price"],
            taxable_value=data["taxable_value"],
            rate=Decimal(data["rate"]),
            cgst=data["cgst"],
            sgst=data["sgst"],
            igst=data["igst"],
            line_total=data["line_total"],
        )


@dataclass(frozen=True)
class Invoice:
    """
    A GST tax invoice.

    Contract:
        Created exactly once per order.  ``invoice_number`` has the form
        ``VENDOR_ID/FY/SEQUENCE`` with the sequence zero-padded.
    """

    invoice_number: str
    order_id: str
    vendor_id: str
    vendor_tax_id: str
    customer_id: str
    customer_tax_id: str | None
    buyer_jurisdiction: str
    seller_jurisdiction: str
    tax_type: TaxType
    fiscal_year: str
    sequence: int
    lines: tuple[InvoiceLine, ...]
    taxable_value: int
    cgst: int
    sgst: int
    igst: int
    total_tax: int
    gross_total: int
    category: InvoiceCategory
    created_at: datetime
    status: InvoiceStatus = InvoiceStatus.GENERATED

    @property
    def place_of_supply(self) -> str:
        return self.buyer_jurisdiction

    def with_status(self, status: InvoiceStatus) -> Invoice:
        return replace(self, status=status)

    def financial_dict(self) -> dict[str, Any]:
        """Everything except the mutable status."""
        return {
            "invoice_number": self.invoice_number,
            "order_id": self.order_id,
            "vendor_id": self.vendor_id,
            "vendor_tax_id": self.vendor_tax_id,
            "customer_id": self.customer_id,
            "customer_tax_id": self.customer_tax_id,
            "buyer_jurisdiction": self.buyer_jurisdiction,
            "seller_jurisdiction": self.seller_jurisdiction,
            "tax_type": self.tax_type.value,
            "fiscal_year": self.fiscal_year,
            "sequence": self.sequence,
            "lines": [line.to_dict() for line in self.lines],
            "taxable_value": self.taxable_value,
            "cgst": self.cgst,
            "sgst": self.sgst,
            "igst": self.igst,
            "total_tax": self.total_tax,
            "gross_total": self.gross_total,
            "category": self.category.value,
            "created_at": self.created_at.isoformat(),
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.financial_dict()
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Invoice:
        return cls(
            invoice_number=data["invoice_number"],
            order_id=data["order_id"],
            vendor_id=data["vendor_id"],
            vendor_tax_id=data["vendor_tax_id"],
            customer_id=data["customer_id"],
            customer_tax_id=data.get("customer_tax_id"),
            buyer_jurisdiction=data["buyer_jurisdiction"],
            seller_jurisdiction=data["seller_jurisdiction"],
            tax_type=TaxType(data["tax_type"]),
            fiscal_year=data["fiscal_year"],
            sequence=data["sequence"],
            lines=tuple(InvoiceLine.from_dict(line) for line in data["lines"]),
            taxable_value=data["taxable_value"],
            cgst=data["cgst"],
            sgst=data["sgst"],
            igst=data["igst"],
            total_tax=data["total_tax"],
            gross_total=data["gross_total"],
            category=InvoiceCategory(data["category"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            status=InvoiceStatus(data.get("status", InvoiceStatus.GENERATED.value)),
        )
