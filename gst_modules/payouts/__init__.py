"""
Payouts Module (``gst_modules.payouts``).

Responsibility
--------------
Vendor payout dispatch through a gateway port, with one idempotency key
per logical payout.
"""

from gst_modules.payouts.models import (
    PAYOUT_WORKFLOW,
    PayoutInstruction,
    PayoutStatus,
    TransferReceipt,
)
from gst_modules.payouts.service import PayoutDispatcher, PayoutService

__all__ = [
    "PAYOUT_WORKFLOW",
    "PayoutDispatcher",
    "PayoutInstruction",
    "PayoutService",
    "PayoutStatus",
    "TransferReceipt",
]
