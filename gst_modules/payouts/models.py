"""
Payout Models (``gst_modules.payouts.models``).

Responsibility
--------------
Frozen value objects for vendor payouts: the instruction tracked across
attempts, the receipt a gateway returns, and the instruction lifecycle.

Invariants enforced
-------------------
* ``idempotency_key`` never changes for a logical payout; every attempt
  sends the same key to the gateway.
* ``attempts`` only grows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from gst_kernel.domain.workflow import Transition, Workflow


class PayoutStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TransferReceipt:
    """Gateway acknowledgement of a transfer."""

    reference: str


@dataclass(frozen=True)
class PayoutInstruction:
    idempotency_key: str
    vendor_id: str
    order_id: str
    amount: int
    created_at: datetime
    status: PayoutStatus = PayoutStatus.PENDING
    attempts: int = 0
    transfer_reference: str | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "idempotency_key": self.idempotency_key,
            "vendor_id": self.vendor_id,
            "order_id": self.order_id,
            "amount": self.amount,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "attempts": self.attempts,
            "transfer_reference": self.transfer_reference,
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PayoutInstruction:
        return cls(
            idempotency_key=data["idempotency_key"],
            vendor_id=data["vendor_id"],
            order_id=data["order_id"],
            amount=data["amount"],
            created_at=datetime.fromisoformat(data["created_at"]),
            status=PayoutStatus(data["status"]),
            attempts=data["attempts"],
            transfer_reference=data.get("transfer_reference"),
            last_error=data.get("last_error"),
        )


PAYOUT_WORKFLOW = Workflow(
    name="vendor_payout",
    description="Transfer of the vendor's net amount",
    initial_state=PayoutStatus.PENDING.value,
    states=tuple(status.value for status in PayoutStatus),
    transitions=(
        Transition(PayoutStatus.PENDING.value, PayoutStatus.COMPLETED.value, action="complete"),
        Transition(PayoutStatus.PENDING.value, PayoutStatus.FAILED.value, action="fail"),
        Transition(PayoutStatus.FAILED.value, PayoutStatus.COMPLETED.value, action="complete"),
        Transition(PayoutStatus.FAILED.value, PayoutStatus.FAILED.value, action="fail"),
    ),
    terminal_states=(PayoutStatus.COMPLETED.value,),
)
