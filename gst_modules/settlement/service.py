"""
Settlement Service (``gst_modules.settlement.service``).

Responsibility
--------------
Settles a completed order end to end: GST per line, a numbered invoice,
TDS on the order's gross value against the vendor's running total, the
payment split, and one commission ledger entry.

Architecture position
---------------------
**Modules layer** -- thin glue.  Pure computation is delegated to
``gst_engines`` (GST, TDS, split); numbering and the ledger to
``gst_kernel.services``.  This service owns the unit-of-work boundary.

Invariants enforced
-------------------
* All or nothing: the invoice, the order index, the TDS record, the TDS
  running total, the ledger entry and the settlement record are written
  in one unit of work.
* At most one settlement per order id.  Settling a settled order returns
  the stored outcome with ``created=False`` and allocates nothing.
* ``split.withheld_amount == tds_record.withheld_amount`` and
  ``commission + withheld + vendor == order value``.

Failure modes
-------------
* Validation, compliance and arithmetic errors propagate before any write.
* Errors raised after invoice number allocation leave that number burned.
* ``DuplicateRecordError`` from a concurrent settlement of the same order
  is absorbed: the winner's outcome is returned.

Audit relevance
---------------
``settlement_started`` / ``settlement_completed`` / ``settlement_replayed``
events carry order, vendor, invoice number and amounts.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from gst_engines.gst import GSTCalculator
from gst_engines.split import PaymentSplitCalculator, PayoutSplit
from gst_engines.tds import TDSCalculator, TDSRecord
from gst_kernel.domain.clock import Clock, SystemClock
from gst_kernel.domain.invoice import Invoice
from gst_kernel.domain.ledger import CommissionLedgerEntry
from gst_kernel.domain.orders import Order, VendorProfile
from gst_kernel.domain.schemas import parse_order, parse_vendor
from gst_kernel.exceptions import DuplicateRecordError
from gst_kernel.logging_config import LogContext, get_logger
from gst_kernel.services.ledger_service import CommissionLedger
from gst_kernel.storage.port import StoragePort
from gst_modules.invoicing.generator import InvoiceGenerator
from gst_modules.invoicing.service import InvoiceService
from gst_modules.settlement.tds_register import TdsRegister

logger = get_logger("modules.settlement")


@dataclass(frozen=True)
class SettlementResult:
    """Everything a settlement produced.  ``created`` is False on replay."""

    invoice: Invoice
    ledger_entry: CommissionLedgerEntry
    split: PayoutSplit
    tds_record: TDSRecord
    created: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoice": self.invoice.to_dict(),
            "ledger_entry": self.ledger_entry.to_dict(),
            "split": self.split.to_dict(),
            "tds_record": self.tds_record.to_dict(),
            "created": self.created,
        }


class SettlementService:
    """
    Order settlement orchestration.

    Contract:
        ``settle_order`` is safe to retry.  Each order id yields exactly one
        invoice, one ledger entry and one TDS record, however many times or
        from however many threads it is called.
    """

    NAMESPACE = "settlements"

    def __init__(
        self,
        storage: StoragePort,
        gst: GSTCalculator,
        generator: InvoiceGenerator,
        invoices: InvoiceService,
        ledger: CommissionLedger,
        splitter: PaymentSplitCalculator,
        tds: TDSCalculator,
        tds_register: TdsRegister,
        default_commission_pct: Decimal = Decimal("10"),
        clock: Clock | None = None,
    ):
        self._storage = storage
        self._gst = gst
        self._generator = generator
        self._invoices = invoices
        self._ledger = ledger
        self._splitter = splitter
        self._tds = tds
        self._tds_register = tds_register
        self._default_commission_pct = default_commission_pct
        self._clock = clock or SystemClock()

    def settle_order(self, order: Order, vendor: VendorProfile) -> SettlementResult:
        with LogContext.bind(vendor_id=vendor.vendor_id, order_id=order.order_id):
            existing = self.find(order.order_id)
            if existing is not None:
                logger.info(
                    "settlement_replayed",
                    extra={"invoice_number": existing.invoice.invoice_number},
                )
                return existing

            logger.info("settlement_started", extra={"item_count": len(order.items)})

            calculations = self._gst.calculate_lines(
                items=order.items,
                buyer_jurisdiction=order.buyer_jurisdiction,
                seller_jurisdiction=order.seller_jurisdiction,
            )
            invoice = self._generator.generate(
                order=order, vendor=vendor, calculations=calculations,
            )

            try:
                with self._storage.unit_of_work():
                    result = self._persist(order, vendor, invoice)
            except DuplicateRecordError:
                existing = self.find(order.order_id)
                if existing is None:
                    raise
                logger.warning(
                    "settlement_race_lost",
                    extra={
                        "burned_invoice_number": invoice.invoice_number,
                        "invoice_number": existing.invoice.invoice_number,
                    },
                )
                return existing

            logger.info(
                "settlement_completed",
                extra={
                    "invoice_number": invoice.invoice_number,
                    "gross_total": invoice.gross_total,
                    "commission_amount": result.split.commission_amount,
                    "withheld_amount": result.split.withheld_amount,
                    "vendor_amount": result.split.vendor_amount,
                },
            )
            return result

    def settle_payload(
        self, order_payload: dict[str, Any], vendor_payload: dict[str, Any]
    ) -> SettlementResult:
        """Validate raw inputs against the order and vendor schemas, then settle."""
        return self.settle_order(parse_order(order_payload), parse_vendor(vendor_payload))

    def _persist(self, order: Order, vendor: VendorProfile, invoice: Invoice) -> SettlementResult:
        self._invoices.add(invoice)

        order_value = invoice.gross_total
        # Reserves this payout's place in the running total before TDS is decided
        cumulative_before = self._tds_register.accumulate(
            vendor.vendor_id, invoice.fiscal_year, order_value
        )
        tds_record = self._tds.calculate(
            vendor_id=vendor.vendor_id,
            gross_amount=order_value,
            has_tax_id=vendor.has_tax_id,
            transaction_at=invoice.created_at,
            cumulative_before=cumulative_before,
            reference=order.order_id,
        )
        self._tds_register.add(tds_record)

        commission_pct = (
            vendor.commission_pct
            if vendor.commission_pct is not None
            else self._default_commission_pct
        )
        split = self._splitter.split(
            order_value=order_value,
            commission_pct=commission_pct,
            withheld_pct=tds_record.rate,
            withholding_applicable=tds_record.applicable,
            payment_id=order.order_id,
        )

        recorded = self._ledger.record(
            CommissionLedgerEntry(
                vendor_id=vendor.vendor_id,
                order_id=order.order_id,
                invoice_number=invoice.invoice_number,
                order_value=order_value,
                commission_amount=split.commission_amount,
                withheld_amount=split.withheld_amount,
                net_vendor_amount=split.vendor_amount,
                fiscal_year=invoice.fiscal_year,
                recorded_at=self._clock.now(),
            )
        )

        self._storage.put_if_absent(
            self.NAMESPACE,
            order.order_id,
            {
                "invoice_number": invoice.invoice_number,
                "fiscal_year": tds_record.fiscal_year,
                "quarter": tds_record.quarter,
                "split": split.to_dict(),
            },
        )
        return SettlementResult(
            invoice=invoice,
            ledger_entry=recorded.entry,
            split=split,
            tds_record=tds_record,
            created=recorded.created,
        )

    def find(self, order_id: str) -> SettlementResult | None:
        """The stored outcome for ``order_id``, or None if never settled."""
        data = self._storage.get(self.NAMESPACE, order_id)
        if data is None:
            return None
        invoice = self._invoices.get(data["invoice_number"])
        tds_record = self._tds_register.find(
            invoice.vendor_id, data["fiscal_year"], data["quarter"], order_id
        )
        return SettlementResult(
            invoice=invoice,
            ledger_entry=self._ledger.get(order_id),
            split=PayoutSplit.from_dict(data["split"]),
            tds_record=tds_record,
            created=False,
        )
