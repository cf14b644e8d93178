"""
Rate table lookup by HSN classification code.

Pure lookup over immutable reference data.  The table itself is
configuration (``gst_config/defaults.yaml``); this module only holds it.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from gst_kernel.exceptions import UnknownClassification
from gst_kernel.logging_config import get_logger

logger = get_logger("engines.rates")

_HUNDREDTH = Decimal("0.01")


@dataclass(frozen=True)
class RateEntry:
    """
    GST rate for one classification code.

    ``rate`` is a percentage with at most two decimal places (``12.00``).
    """

    classification_code: str
    rate: Decimal
    category: str
    description: str
    is_exempt: bool = False

    def __post_init__(self) -> None:
        if not self.classification_code:
            raise ValueError("classification_code cannot be empty")
        if not isinstance(self.rate, Decimal):
            raise TypeError(f"rate must be Decimal, got {type(self.rate).__name__}")
        if not Decimal("0") <= self.rate <= Decimal("100"):
            raise ValueError(f"rate {self.rate} for {self.classification_code} outside [0, 100]")
        if self.rate != self.rate.quantize(_HUNDREDTH):
            raise ValueError(f"rate {self.rate} has more than two decimal places")
        if self.is_exempt and self.rate != 0:
            raise ValueError(f"exempt code {self.classification_code} must have a zero rate")


class RateResolver:
    """
    Classification code -> RateEntry.

    Contract:
        Built once from configuration; never mutated.  Lookups have no
        side effects beyond a DEBUG log on misses.
    """

    def __init__(self, entries: Iterable[RateEntry]):
        table: dict[str, RateEntry] = {}
        for entry in entries:
            if entry.classification_code in table:
                raise ValueError(f"duplicate classification code {entry.classification_code}")
            table[entry.classification_code] = entry
        self._table = table

    def rate(self, classification_code: str) -> RateEntry:
        """
        Raises:
            UnknownClassification: code not in the table.
        """
        entry = self._table.get(classification_code)
        if entry is None:
            logger.debug(
                "classification_not_found",
                extra={"classification_code": classification_code},
            )
            raise UnknownClassification(classification_code)
        return entry

    def __contains__(self, classification_code: object) -> bool:
        return classification_code in self._table

    def __len__(self) -> int:
        return len(self._table)

    def by_category(self, category: str) -> tuple[RateEntry, ...]:
        return tuple(e for e in self.all() if e.category == category)

    def all(self) -> tuple[RateEntry, ...]:
        return tuple(self._table[code] for code in sorted(self._table))
