"""
Invoice Generator (``gst_modules.invoicing.generator``).

Responsibility
--------------
Builds a GST ``Invoice`` from an ``Order`` and the per-line
``TaxCalculation`` results: validates the vendor's and customer's tax ids,
aggregates line totals, classifies the invoice (B2B, B2C-large,
B2C-small) and takes the next invoice number from the sequence allocator.

Architecture position
---------------------
**Modules layer**.  Composes ``gst_engines.gstin`` (pure) with
``gst_kernel.services.sequence_service`` (stateful).  Does not persist
the invoice; ``SettlementService`` does that inside its unit of work.

Invariants enforced
-------------------
* Every check and every total is computed before a number is allocated.
* A number, once allocated, is consumed even if the caller later fails.
* ``invoice_number`` fiscal year equals the fiscal year of the invoice
  date.

Failure modes
-------------
* ``VendorNotCompliant``  -- vendor has no tax id, or it fails validation.
* ``MalformedTaxId`` / ``ChecksumMismatch``  -- customer tax id is invalid.
* ``InputValidationError``  -- calculations do not match the order items.
* ``SequenceAllocationError`` / ``SequenceConflictError``  -- from the allocator.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from datetime import datetime

from gst_engines.gst import TaxCalculation
from gst_engines.gstin import DEFAULT_STATE_CODES, validate_gstin
from gst_kernel.domain.clock import Clock, SystemClock
from gst_kernel.domain.invoice import Invoice, InvoiceCategory, InvoiceLine, TaxType
from gst_kernel.domain.orders import Order, VendorProfile
from gst_kernel.exceptions import (
    ChecksumMismatch,
    InputValidationError,
    MalformedTaxId,
    VendorNotCompliant,
)
from gst_kernel.logging_config import get_logger
from gst_kernel.services.sequence_service import InvoiceSequenceAllocator

logger = get_logger("modules.invoicing.generator")


class InvoiceGenerator:
    """
    Turns a taxed order into a numbered invoice.

    Contract:
        ``generate`` either raises before touching the sequence counter or
        returns an invoice carrying a freshly allocated number.

    Non-goals:
        - Does NOT store the invoice.
        - Does NOT compute tax; the caller passes the calculations in.
    """

    def __init__(
        self,
        allocator: InvoiceSequenceAllocator,
        clock: Clock | None = None,
        b2c_large_threshold: int = 250000,
        state_codes: Collection[str] = DEFAULT_STATE_CODES,
    ):
        self._allocator = allocator
        self._clock = clock or SystemClock()
        self._b2c_large_threshold = b2c_large_threshold
        self._state_codes = state_codes

    def check_vendor(self, vendor: VendorProfile) -> str:
        """Return the vendor's validated tax id.

        Raises:
            VendorNotCompliant: missing or invalid tax id.
        """
        if not vendor.has_tax_id or not vendor.tax_id:
            raise VendorNotCompliant(vendor.vendor_id, "no GST registration on file")
        try:
            return validate_gstin(vendor.tax_id, self._state_codes)
        except (MalformedTaxId, ChecksumMismatch) as exc:
            raise VendorNotCompliant(vendor.vendor_id, str(exc)) from exc

    def classify(self, customer_tax_id: str | None, gross_total: int) -> InvoiceCategory:
        if customer_tax_id:
            return InvoiceCategory.B2B
        if gross_total >= self._b2c_large_threshold:
            return InvoiceCategory.B2C_LARGE
        return InvoiceCategory.B2C_SMALL

    def generate(
        self,
        *,
        order: Order,
        vendor: VendorProfile,
        calculations: Sequence[TaxCalculation],
    ) -> Invoice:
        """
        Validate, aggregate, classify, then allocate the invoice number.

        The invoice date is ``order.completed_at`` when given, otherwise the
        clock's current time.
        """
        if order.vendor_id != vendor.vendor_id:
            raise InputValidationError(
                "Order",
                [{
                    "code": "VENDOR_MISMATCH",
                    "message": f"order vendor {order.vendor_id} is not {vendor.vendor_id}",
                    "field": "vendor_id",
                }],
            )
        if not calculations or len(calculations) != len(order.items):
            raise InputValidationError(
                "Order",
                [{
                    "code": "LINE_COUNT_MISMATCH",
                    "message": f"{len(order.items)} items but {len(calculations)} tax results",
                    "field": "items",
                }],
            )

        vendor_tax_id = self.check_vendor(vendor)
        customer_tax_id = order.customer_tax_id or None
        if customer_tax_id is not None:
            validate_gstin(customer_tax_id, self._state_codes)

        lines = tuple(
            InvoiceLine(
                line_number=number,
                product_id=item.product_id,
                classification_code=calc.classification_code,
                quantity=item.quantity,
                unit_price=item.unit_price,
                taxable_value=calc.base_amount,
                rate=calc.rate,
                cgst=calc.cgst,
                sgst=calc.sgst,
                igst=calc.igst,
                line_total=calc.total,
            )
            for number, (item, calc) in enumerate(zip(order.items, calculations), start=1)
        )
        taxable_value = sum(line.taxable_value for line in lines)
        cgst = sum(line.cgst for line in lines)
        sgst = sum(line.sgst for line in lines)
        igst = sum(line.igst for line in lines)
        total_tax = cgst + sgst + igst
        gross_total = taxable_value + total_tax
        category = self.classify(customer_tax_id, gross_total)

        first = calculations[0]
        tax_type: TaxType = first.tax_type
        issued_at: datetime = order.completed_at or self._clock.now()

        allocated = self._allocator.allocate_for(vendor.vendor_id, issued_at)

        invoice = Invoice(
            invoice_number=allocated.invoice_number,
            order_id=order.order_id,
            vendor_id=vendor.vendor_id,
            vendor_tax_id=vendor_tax_id,
            customer_id=order.customer_id,
            customer_tax_id=customer_tax_id,
            buyer_jurisdiction=first.buyer_jurisdiction,
            seller_jurisdiction=first.seller_jurisdiction,
            tax_type=tax_type,
            fiscal_year=allocated.fiscal_year,
            sequence=allocated.sequence,
            lines=lines,
            taxable_value=taxable_value,
            cgst=cgst,
            sgst=sgst,
            igst=igst,
            total_tax=total_tax,
            gross_total=gross_total,
            category=category,
            created_at=issued_at,
        )
        logger.info(
            "invoice_generated",
            extra={
                "invoice_number": invoice.invoice_number,
                "order_id": order.order_id,
                "vendor_id": vendor.vendor_id,
                "category": category.value,
                "tax_type": tax_type.value,
                "taxable_value": taxable_value,
                "total_tax": total_tax,
                "gross_total": gross_total,
            },
        )
        return invoice
