"""Services for the GST kernel (write side)."""

from gst_kernel.services.ledger_service import (
    CommissionLedger,
    LedgerRecordResult,
    VendorLedgerSummary,
)
from gst_kernel.services.sequence_service import AllocatedNumber, InvoiceSequenceAllocator

__all__ = [
    "AllocatedNumber",
    "CommissionLedger",
    "InvoiceSequenceAllocator",
    "LedgerRecordResult",
    "VendorLedgerSummary",
]
