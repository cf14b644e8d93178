"""
Commission ledger entry.

One append-only record per order: what the platform kept as commission,
what it withheld as TDS, and what the vendor is owed.  Only ``status``
and ``payout_reference`` may change after recording.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from gst_kernel.domain.workflow import Transition, Workflow


class LedgerStatus(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"


# Fields compared when an order id is recorded a second time
FINANCIAL_FIELDS: tuple[str, ...] = (
    "vendor_id",
    "invoice_number",
    "order_value",
    "commission_amount",
    "withheld_amount",
    "net_vendor_amount",
    "fiscal_year",
)


@dataclass(frozen=True)
class CommissionLedgerEntry:
    vendor_id: str
    order_id: str
    invoice_number: str
    order_value: int
    commission_amount: int
    withheld_amount: int
    net_vendor_amount: int
    fiscal_year: str
    recorded_at: datetime
    status: LedgerStatus = LedgerStatus.PENDING
    payout_reference: str | None = None

    @property
    def allocated_total(self) -> int:
        return self.commission_amount + self.withheld_amount + self.net_vendor_amount

    @property
    def platform_amount(self) -> int:
        return self.commission_amount + self.withheld_amount

    def differing_fields(self, other: CommissionLedgerEntry) -> list[str]:
        return [
            name for name in FINANCIAL_FIELDS
            if getattr(self, name) != getattr(other, name)
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor_id": self.vendor_id,
            "order_id": self.order_id,
            "invoice_number": self.invoice_number,
            "order_value": self.order_value,
            "commission_amount": self.commission_amount,
            "withheld_amount": self.withheld_amount,
            "net_vendor_amount": self.net_vendor_amount,
            "fiscal_year": self.fiscal_year,
            "recorded_at": self.recorded_at.isoformat(),
            "status": self.status.value,
            "payout_reference": self.payout_reference,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CommissionLedgerEntry:
        return cls(
            vendor_id=data["vendor_id"],
            order_id=data["order_id"],
            invoice_number=data["invoice_number"],
            order_value=data["order_value"],
            commission_amount=data["commission_amount"],
            withheld_amount=data["withheld_amount"],
            net_vendor_amount=data["net_vendor_amount"],
            fiscal_year=data["fiscal_year"],
            recorded_at=datetime.fromisoformat(data["recorded_at"]),
            status=LedgerStatus(data["status"]),
            payout_reference=data.get("payout_reference"),
        )


LEDGER_ENTRY_WORKFLOW = Workflow(
    name="commission_ledger_entry",
    description="Vendor share recorded, then paid out",
    initial_state=LedgerStatus.PENDING.value,
    states=(LedgerStatus.PENDING.value, LedgerStatus.SETTLED.value),
    transitions=(
        Transition(LedgerStatus.PENDING.value, LedgerStatus.SETTLED.value, action="settle"),
    ),
    terminal_states=(LedgerStatus.SETTLED.value,),
)
