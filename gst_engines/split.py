"""
Payment split engine - commission, withheld tax, vendor remainder.

Pure functions with no I/O.

    commission = floor(order_value * commission_pct / 100)
    withheld   = floor(order_value * withheld_pct / 100)   if applicable else 0
    vendor     = order_value - commission - withheld

The vendor amount is always the remainder, never rounded on its own, so
``commission + withheld + vendor == order_value`` holds exactly for every
valid input, including 0% and 100%.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from gst_engines.gst import floor_percent
from gst_engines.tracer import traced_engine
from gst_kernel.exceptions import InvalidAmount, InvalidPercentage
from gst_kernel.logging_config import get_logger

logger = get_logger("engines.split")


def to_percentage(name: str, value: Any) -> Decimal:
    """
    Coerce ``value`` to a Decimal percentage in [0, 100].

    Floats are refused: a binary fraction cannot carry a rate exactly.
    """
    if isinstance(value, (bool, float)):
        raise InvalidPercentage(name, value, "must be a Decimal, int or decimal string")
    try:
        pct = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidPercentage(name, value, "not a decimal number") from None
    if not pct.is_finite() or not Decimal(0) <= pct <= Decimal(100):
        raise InvalidPercentage(name, value)
    return pct


@dataclass(frozen=True)
class PayoutSplit:
    """Where an order's money goes.  ``platform_amount`` = commission + withheld."""

    payment_id: str
    order_value: int
    commission_amount: int
    withheld_amount: int
    vendor_amount: int

    @property
    def platform_amount(self) -> int:
        return self.commission_amount + self.withheld_amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "payment_id": self.payment_id,
            "order_value": self.order_value,
            "commission_amount": self.commission_amount,
            "withheld_amount": self.withheld_amount,
            "vendor_amount": self.vendor_amount,
            "platform_amount": self.platform_amount,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PayoutSplit:
        return cls(
            payment_id=data["payment_id"],
            order_value=data["order_value"],
            commission_amount=data["commission_amount"],
            withheld_amount=data["withheld_amount"],
            vendor_amount=data["vendor_amount"],
        )


class PaymentSplitCalculator:
    """Splits order proceeds between platform and vendor."""

    @traced_engine(
        "payment_split", "1.0",
        fingerprint_fields=(
            "order_value", "commission_pct", "withheld_pct", "withholding_applicable",
        ),
    )
    def split(
        self,
        *,
        order_value: int,
        commission_pct: Decimal | int | str,
        withheld_pct: Decimal | int | str,
        withholding_applicable: bool,
        payment_id: str = "",
    ) -> PayoutSplit:
        """
        Raises:
            InvalidAmount: order_value is not a positive integer.
            InvalidPercentage: a percentage is outside [0, 100], or the two
                together would leave the vendor a negative amount.
        """
        if isinstance(order_value, bool) or not isinstance(order_value, int) or order_value <= 0:
            raise InvalidAmount("order_value", order_value)
        commission_rate = to_percentage("commission_pct", commission_pct)
        withheld_rate = to_percentage("withheld_pct", withheld_pct)

        commission = floor_percent(order_value, commission_rate)
        withheld = floor_percent(order_value, withheld_rate) if withholding_applicable else 0
        vendor = order_value - commission - withheld
        if vendor < 0:
            raise InvalidPercentage(
                "commission_pct+withheld_pct",
                commission_rate + withheld_rate,
                "combined deductions exceed the order value",
            )

        logger.debug(
            "payment_split_calculated",
            extra={
                "payment_id": payment_id,
                "order_value": order_value,
                "commission_amount": commission,
                "withheld_amount": withheld,
                "vendor_amount": vendor,
            },
        )
        return PayoutSplit(
            payment_id=payment_id,
            order_value=order_value,
            commission_amount=commission,
            withheld_amount=withheld,
            vendor_amount=vendor,
        )
