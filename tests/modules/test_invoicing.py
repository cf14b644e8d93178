"""
Tests for invoice generation and the invoice service.

Covers:
- Vendor and customer tax id checks happen before a number is allocated
- B2B / B2C-large / B2C-small classification
- Header totals equal the sum of the lines
- One invoice per order, status changes through the invoice workflow
"""

from datetime import datetime, timezone

import pytest

from gst_kernel.domain.invoice import InvoiceCategory, InvoiceStatus, TaxType
from gst_kernel.exceptions import (
    ChecksumMismatch,
    DuplicateRecordError,
    InputValidationError,
    InvalidStatusTransition,
    InvoiceNotFound,
    VendorNotCompliant,
)

CUSTOMER_GSTIN_DL = "07AAACR5055K1Z9"
JULY_2024 = datetime(2024, 7, 15, 6, 30, tzinfo=timezone.utc)


def _generate(engine, order, vendor):
    calculations = engine.gst.calculate_lines(
        items=order.items,
        buyer_jurisdiction=order.buyer_jurisdiction,
        seller_jurisdiction=order.seller_jurisdiction,
    )
    return engine.generator.generate(order=order, vendor=vendor, calculations=calculations)


def _store(engine, invoice):
    with engine.storage.unit_of_work():
        engine.invoices.add(invoice)


class TestVendorCompliance:
    def test_vendor_without_registration(self, engine, make_order, make_vendor):
        with pytest.raises(VendorNotCompliant) as exc_info:
            _generate(engine, make_order(), make_vendor(tax_id=None, has_tax_id=False))
        assert exc_info.value.vendor_id == "V1"
        assert engine.allocator.current("V1", "2024-25") == 0

    def test_flag_without_tax_id_is_not_enough(self, engine, make_order, make_vendor):
        with pytest.raises(VendorNotCompliant):
            _generate(engine, make_order(), make_vendor(tax_id=None, has_tax_id=True))

    def test_bad_vendor_checksum(self, engine, make_order, make_vendor):
        with pytest.raises(VendorNotCompliant) as exc_info:
            _generate(engine, make_order(), make_vendor(tax_id="27AAPFU0939F1ZA"))
        assert isinstance(exc_info.value.__cause__, ChecksumMismatch)
        assert engine.allocator.current("V1", "2024-25") == 0

    def test_bad_customer_tax_id(self, engine, make_order, make_vendor):
        order = make_order(customer_tax_id="07AAACR5055K1ZA", buyer_jurisdiction="07")
        with pytest.raises(ChecksumMismatch):
            _generate(engine, order, make_vendor())
        assert engine.allocator.current("V1", "2024-25") == 0


class TestGeneratorInputs:
    def test_vendor_mismatch(self, engine, make_order, make_vendor):
        with pytest.raises(InputValidationError) as exc_info:
            _generate(engine, make_order(vendor_id="V2"), make_vendor())
        assert exc_info.value.field_errors[0]["code"] == "VENDOR_MISMATCH"

    def test_calculations_must_match_items(self, engine, make_order, make_vendor):
        with pytest.raises(InputValidationError) as exc_info:
            engine.generator.generate(order=make_order(), vendor=make_vendor(), calculations=[])
        assert exc_info.value.field_errors[0]["code"] == "LINE_COUNT_MISMATCH"
        assert engine.allocator.current("V1", "2024-25") == 0


class TestGenerate:
    def test_b2b_cross_jurisdiction(self, engine, make_order, make_vendor):
        order = make_order(customer_tax_id=CUSTOMER_GSTIN_DL, buyer_jurisdiction="07")
        invoice = _generate(engine, order, make_vendor())
        assert invoice.invoice_number == "V1/2024-25/00001"
        assert invoice.category == InvoiceCategory.B2B
        assert invoice.tax_type == TaxType.CROSS_JURISDICTION
        assert (invoice.cgst, invoice.sgst, invoice.igst) == (0, 0, 12000)
        assert invoice.gross_total == 112000
        assert invoice.place_of_supply == "07"
        assert invoice.status == InvoiceStatus.GENERATED

    def test_b2c_large_at_threshold(self, engine, make_order, make_vendor):
        # 250000 on a 0% line
        order = make_order(items=(("B1", "4901", 1, 250000),))
        invoice = _generate(engine, order, make_vendor())
        assert invoice.category == InvoiceCategory.B2C_LARGE

    def test_b2c_small(self, engine, make_order, make_vendor):
        invoice = _generate(engine, make_order(), make_vendor())
        assert invoice.category == InvoiceCategory.B2C_SMALL
        assert invoice.tax_type == TaxType.SAME_JURISDICTION
        assert (invoice.cgst, invoice.sgst) == (6000, 6000)

    def test_lines_add_up(self, engine, make_order, make_vendor):
        order = make_order(items=(
            ("P1", "8471", 2, 50000),
            ("P2", "6204", 3, 999),
            ("P3", "4901", 1, 45000),
        ))
        invoice = _generate(engine, order, make_vendor())
        assert [line.line_number for line in invoice.lines] == [1, 2, 3]
        assert invoice.taxable_value == sum(line.taxable_value for line in invoice.lines) == 147997
        assert invoice.cgst == sum(line.cgst for line in invoice.lines)
        assert invoice.total_tax == invoice.cgst + invoice.sgst + invoice.igst
        assert invoice.gross_total == invoice.taxable_value + invoice.total_tax
        assert invoice.lines[1].cgst == 74

    def test_defaults_to_clock_time(self, engine, make_order, make_vendor):
        engine.clock.set_time(datetime(2025, 4, 2, tzinfo=timezone.utc))
        invoice = _generate(engine, make_order(completed_at=None), make_vendor())
        assert invoice.fiscal_year == "2025-26"
        assert invoice.invoice_number == "V1/2025-26/00001"

    def test_numbers_increase_per_vendor(self, engine, make_order, make_vendor):
        numbers = [
            _generate(engine, make_order(order_id=f"ORD-{i}"), make_vendor()).invoice_number
            for i in range(3)
        ]
        assert numbers == ["V1/2024-25/00001", "V1/2024-25/00002", "V1/2024-25/00003"]


class TestInvoiceService:
    def test_store_and_lookup(self, engine, make_order, make_vendor):
        invoice = _generate(engine, make_order(), make_vendor())
        _store(engine, invoice)
        assert engine.invoices.get(invoice.invoice_number) == invoice
        assert engine.invoices.for_order("ORD-1") == invoice

    def test_one_invoice_per_order(self, engine, make_order, make_vendor):
        _store(engine, _generate(engine, make_order(), make_vendor()))
        second = _generate(engine, make_order(), make_vendor())
        with pytest.raises(DuplicateRecordError):
            _store(engine, second)
        assert engine.invoices.find(second.invoice_number) is None

    def test_unknown_invoice(self, engine):
        with pytest.raises(InvoiceNotFound):
            engine.invoices.get("V1/2024-25/00042")
        with pytest.raises(InvoiceNotFound):
            engine.invoices.for_order("ORD-404")

    def test_list_for_vendor(self, engine, make_order, make_vendor):
        for i, moment in enumerate([JULY_2024, datetime(2024, 3, 1, tzinfo=timezone.utc), JULY_2024]):
            _store(engine, _generate(engine, make_order(order_id=f"ORD-{i}", completed_at=moment), make_vendor()))
        _store(engine, _generate(
            engine,
            make_order(order_id="ORD-X", vendor_id="V2"),
            make_vendor(vendor_id="V2"),
        ))

        numbers = [inv.invoice_number for inv in engine.invoices.list_for_vendor("V1")]
        assert numbers == ["V1/2023-24/00001", "V1/2024-25/00001", "V1/2024-25/00002"]
        assert len(engine.invoices.list_for_vendor("V1", "2024-25")) == 2

    def test_status_workflow(self, engine, make_order, make_vendor):
        invoice = _generate(engine, make_order(), make_vendor())
        _store(engine, invoice)
        assert engine.invoices.send(invoice.invoice_number).status == InvoiceStatus.SENT
        acknowledged = engine.invoices.acknowledge(invoice.invoice_number)
        assert acknowledged.status == InvoiceStatus.ACKNOWLEDGED
        assert engine.invoices.get(invoice.invoice_number).status == InvoiceStatus.ACKNOWLEDGED

    def test_invalid_transition_leaves_status(self, engine, make_order, make_vendor):
        invoice = _generate(engine, make_order(), make_vendor())
        _store(engine, invoice)
        with pytest.raises(InvalidStatusTransition):
            engine.invoices.acknowledge(invoice.invoice_number)
        assert engine.invoices.get(invoice.invoice_number).status == InvoiceStatus.GENERATED
