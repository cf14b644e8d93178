"""
GST Engine - CGST/SGST or IGST on a taxable amount.

Pure functions with no I/O.  Amounts are integer paise; rates come from
``RateResolver`` as two-place Decimal percentages.

Rules:
    - Buyer and seller in the same jurisdiction: CGST and SGST, each
      ``floor(base * rate / 2 / 100)``.
    - Different jurisdictions: IGST ``floor(base * rate / 100)``.
    - Total = base + all components.

Rounding policy: every component is floored.  Splitting the rate in two
can under-collect by at most one paisa against a single combined tax;
the payer is favoured and tax is never over-collected.

Usage:
    from gst_engines.gst import GSTCalculator
    from gst_engines.rates import RateResolver

    calc = GSTCalculator(RateResolver(entries))
    result = calc.calculate(
        base_amount=100000,
        classification_code="8471",
        buyer_jurisdiction="27",
        seller_jurisdiction="27",
    )
    result.cgst, result.sgst, result.total   # 6000, 6000, 112000
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Any

from gst_engines.rates import RateResolver
from gst_engines.tracer import traced_engine
from gst_kernel.domain.invoice import TaxType
from gst_kernel.domain.orders import OrderItem
from gst_kernel.exceptions import InputValidationError, InvalidAmount
from gst_kernel.logging_config import get_logger

logger = get_logger("engines.gst")

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def floor_percent(amount: int, percent: Decimal, divisor: int = 1) -> int:
    """``floor(amount * percent / 100 / divisor)`` in exact decimal arithmetic."""
    exact = Decimal(amount) * percent / (Decimal(100) * divisor)
    return int(exact.to_integral_value(rounding=ROUND_FLOOR))


def normalize_jurisdiction(value: str, aliases: Mapping[str, str] | None = None) -> str:
    """
    Canonical form of a jurisdiction: lowercase, alphanumerics only, then
    mapped through ``aliases`` (e.g. ``"tamilnadu" -> "33"``).
    """
    key = _NON_ALNUM.sub("", (value or "").lower())
    if not key:
        raise InputValidationError(
            "Jurisdiction",
            [{"code": "REQUIRED", "message": "jurisdiction is empty", "field": "jurisdiction"}],
        )
    if aliases:
        return aliases.get(key, key)
    return key


@dataclass(frozen=True)
class TaxCalculation:
    """
    Tax on one taxable amount.

    Immutable value object.  Exactly one of (cgst + sgst) or igst is used,
    according to ``tax_type``.
    """

    product_id: str
    classification_code: str
    rate: Decimal
    base_amount: int
    buyer_jurisdiction: str
    seller_jurisdiction: str
    tax_type: TaxType
    cgst: int = 0
    sgst: int = 0
    igst: int = 0

    @property
    def total_tax(self) -> int:
        return self.cgst + self.sgst + self.igst

    @property
    def total(self) -> int:
        return self.base_amount + self.total_tax

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "classification_code": self.classification_code,
            "rate": f"{self.rate:.2f}",
            "base_amount": self.base_amount,
            "buyer_jurisdiction": self.buyer_jurisdiction,
            "seller_jurisdiction": self.seller_jurisdiction,
            "tax_type": self.tax_type.value,
            "cgst": self.cgst,
            "sgst": self.sgst,
            "igst": self.igst,
            "total_tax": self.total_tax,
            "total": self.total,
        }


class GSTCalculator:
    """
    Calculate GST for order lines.

    Pure - no I/O, no database access.  Rates and jurisdiction aliases are
    injected at construction.
    """

    def __init__(
        self,
        rates: RateResolver,
        jurisdiction_aliases: Mapping[str, str] | None = None,
    ):
        self._rates = rates
        self._aliases = dict(jurisdiction_aliases or {})

    def normalize(self, jurisdiction: str) -> str:
        return normalize_jurisdiction(jurisdiction, self._aliases)

    @traced_engine(
        "gst", "1.0",
        fingerprint_fields=(
            "base_amount", "classification_code", "buyer_jurisdiction", "seller_jurisdiction",
        ),
    )
    def calculate(
        self,
        *,
        base_amount: int,
        classification_code: str,
        buyer_jurisdiction: str,
        seller_jurisdiction: str,
        product_id: str = "",
    ) -> TaxCalculation:
        """
        Calculate tax on ``base_amount``.

        Raises:
            InvalidAmount: base_amount is not a positive integer.
            UnknownClassification: code not in the rate table.
        """
        if isinstance(base_amount, bool) or not isinstance(base_amount, int) or base_amount <= 0:
            raise InvalidAmount("base_amount", base_amount)

        entry = self._rates.rate(classification_code)
        buyer = self.normalize(buyer_jurisdiction)
        seller = self.normalize(seller_jurisdiction)

        if buyer == seller:
            half = floor_percent(base_amount, entry.rate, divisor=2)
            result = TaxCalculation(
                product_id=product_id,
                classification_code=classification_code,
                rate=entry.rate,
                base_amount=base_amount,
                buyer_jurisdiction=buyer,
                seller_jurisdiction=seller,
                tax_type=TaxType.SAME_JURISDICTION,
                cgst=half,
                sgst=half,
            )
        else:
            result = TaxCalculation(
                product_id=product_id,
                classification_code=classification_code,
                rate=entry.rate,
                base_amount=base_amount,
                buyer_jurisdiction=buyer,
                seller_jurisdiction=seller,
                tax_type=TaxType.CROSS_JURISDICTION,
                igst=floor_percent(base_amount, entry.rate),
            )

        logger.debug(
            "gst_calculated",
            extra={
                "classification_code": classification_code,
                "rate": entry.rate,
                "base_amount": base_amount,
                "tax_type": result.tax_type.value,
                "total_tax": result.total_tax,
            },
        )
        return result

    def calculate_lines(
        self,
        *,
        items: Sequence[OrderItem],
        buyer_jurisdiction: str,
        seller_jurisdiction: str,
    ) -> tuple[TaxCalculation, ...]:
        """One calculation per order item, in item order."""
        return tuple(
            self.calculate(
                base_amount=item.line_value,
                classification_code=item.classification_code,
                buyer_jurisdiction=buyer_jurisdiction,
                seller_jurisdiction=seller_jurisdiction,
                product_id=item.product_id,
            )
            for item in items
        )
