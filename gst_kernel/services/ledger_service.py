"""
CommissionLedger -- append-only record of how each order's value was split.

Responsibility:
    Records one ``CommissionLedgerEntry`` per order id and answers queries
    over them.  Recording is idempotent: replaying the same entry for an
    order id returns the stored entry; replaying different figures is an
    error.

Architecture position:
    Kernel > Services.  Called inside the settlement unit of work by
    ``gst_modules.settlement.service.SettlementService`` and by the payout
    service to mark entries settled.

Invariants enforced:
    - ``commission + withheld + net == order value`` on every entry.
    - At most one entry per order id (``put_if_absent`` on the order id).
    - Financial fields never change after recording; only the status moves
      pending -> settled, through ``LEDGER_ENTRY_WORKFLOW``.

Failure modes:
    - ``LedgerInvariantError``: the amounts do not add up, or one is negative.
    - ``LedgerConflictError``: the order id is recorded with other figures.
    - ``LedgerEntryNotFound``: lookup of an unknown order id.
    - ``InvalidStatusTransition``: settling an entry twice with a different
      payout reference.

Audit relevance:
    Entries are the platform's evidence of commission earned and tax
    withheld per order.  Every record, replay and conflict is logged.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from gst_kernel.domain.ledger import (
    LEDGER_ENTRY_WORKFLOW,
    CommissionLedgerEntry,
    LedgerStatus,
)
from gst_kernel.exceptions import LedgerConflictError, LedgerEntryNotFound, LedgerInvariantError
from gst_kernel.logging_config import get_logger
from gst_kernel.storage.port import StoragePort

logger = get_logger("services.ledger")


def _invoice_order(entry: CommissionLedgerEntry) -> tuple[str, int]:
    # The sequence outgrows its zero padding, so compare it as a number
    return entry.fiscal_year, int(entry.invoice_number.rsplit("/", 1)[1])


@dataclass(frozen=True)
class LedgerRecordResult:
    entry: CommissionLedgerEntry
    created: bool


@dataclass(frozen=True)
class VendorLedgerSummary:
    """Totals over a vendor's entries for one fiscal year."""

    vendor_id: str
    fiscal_year: str
    entry_count: int
    order_value: int
    commission_amount: int
    withheld_amount: int
    net_vendor_amount: int
    pending_payout: int


class CommissionLedger:
    """
    Idempotent commission ledger over the storage port.

    Contract:
        ``record`` may be called any number of times for the same order with
        the same figures; exactly one entry exists afterwards.
    """

    NAMESPACE = "ledger"

    def __init__(self, storage: StoragePort):
        self._storage = storage

    @staticmethod
    def _check_invariant(entry: CommissionLedgerEntry) -> None:
        amounts = (
            entry.commission_amount,
            entry.withheld_amount,
            entry.net_vendor_amount,
        )
        if any(amount < 0 for amount in amounts) or entry.allocated_total != entry.order_value:
            logger.error(
                "ledger_invariant_violation",
                extra={
                    "order_id": entry.order_id,
                    "order_value": entry.order_value,
                    "allocated": entry.allocated_total,
                },
            )
            raise LedgerInvariantError(entry.order_id, entry.order_value, entry.allocated_total)

    def record(self, entry: CommissionLedgerEntry) -> LedgerRecordResult:
        """
        Record ``entry`` unless its order id is already recorded.

        Returns:
            The stored entry and whether this call created it.
        """
        self._check_invariant(entry)

        if self._storage.put_if_absent(self.NAMESPACE, entry.order_id, entry.to_dict()):
            logger.info(
                "ledger_entry_recorded",
                extra={
                    "vendor_id": entry.vendor_id,
                    "order_id": entry.order_id,
                    "invoice_number": entry.invoice_number,
                    "order_value": entry.order_value,
                    "commission_amount": entry.commission_amount,
                    "withheld_amount": entry.withheld_amount,
                    "net_vendor_amount": entry.net_vendor_amount,
                },
            )
            return LedgerRecordResult(entry=entry, created=True)

        existing = self.get(entry.order_id)
        differing = existing.differing_fields(entry)
        if differing:
            logger.warning(
                "ledger_entry_conflict",
                extra={"order_id": entry.order_id, "fields": differing},
            )
            raise LedgerConflictError(entry.order_id, differing)

        logger.info("ledger_entry_replayed", extra={"order_id": entry.order_id})
        return LedgerRecordResult(entry=existing, created=False)

    def find(self, order_id: str) -> CommissionLedgerEntry | None:
        data = self._storage.get(self.NAMESPACE, order_id)
        return CommissionLedgerEntry.from_dict(data) if data is not None else None

    def get(self, order_id: str) -> CommissionLedgerEntry:
        entry = self.find(order_id)
        if entry is None:
            raise LedgerEntryNotFound(order_id)
        return entry

    def mark_settled(self, order_id: str, payout_reference: str) -> CommissionLedgerEntry:
        """Move the entry to settled.  Repeating with the same reference is a no-op."""
        entry = self.get(order_id)
        if entry.status == LedgerStatus.SETTLED and entry.payout_reference == payout_reference:
            return entry

        new_status = LEDGER_ENTRY_WORKFLOW.next_state(entry.status.value, "settle")
        settled = replace(
            entry,
            status=LedgerStatus(new_status),
            payout_reference=payout_reference,
        )
        self._storage.set(self.NAMESPACE, order_id, settled.to_dict())
        logger.info(
            "ledger_entry_settled",
            extra={"order_id": order_id, "payout_reference": payout_reference},
        )
        return settled

    def entries_for_vendor(
        self, vendor_id: str, fiscal_year: str | None = None
    ) -> list[CommissionLedgerEntry]:
        """Entries for a vendor, ordered by fiscal year then invoice sequence."""
        entries = [
            CommissionLedgerEntry.from_dict(data)
            for _, data in self._storage.list(self.NAMESPACE)
            if data["vendor_id"] == vendor_id
            and (fiscal_year is None or data["fiscal_year"] == fiscal_year)
        ]
        return sorted(entries, key=_invoice_order)

    def vendor_summary(self, vendor_id: str, fiscal_year: str) -> VendorLedgerSummary:
        entries = self.entries_for_vendor(vendor_id, fiscal_year)
        return VendorLedgerSummary(
            vendor_id=vendor_id,
            fiscal_year=fiscal_year,
            entry_count=len(entries),
            order_value=sum(e.order_value for e in entries),
            commission_amount=sum(e.commission_amount for e in entries),
            withheld_amount=sum(e.withheld_amount for e in entries),
            net_vendor_amount=sum(e.net_vendor_amount for e in entries),
            pending_payout=sum(
                e.net_vendor_amount for e in entries if e.status == LedgerStatus.PENDING
            ),
        )
