"""
InvoiceSequenceAllocator -- statutory invoice numbers per vendor per fiscal year.

Responsibility:
    Hands out strictly increasing sequence numbers for the key
    ``invoice_seq:{vendor_id}:{fiscal_year}`` and formats them into invoice
    numbers ``VENDOR_ID/FY/00001``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by ``gst_modules.invoicing.generator.InvoiceGenerator``.

Invariants enforced:
    - Uniqueness and monotonicity: every value comes from the storage
      port's atomic ``increment``; the aggregate-max-plus-one pattern is
      never used.
    - Burned, never reused: the increment commits on its own.  If the
      invoice that consumed a number then fails, the number stays consumed
      and leaves a gap.  Gaps are acceptable; duplicates are not.
    - Per-vendor, per-fiscal-year scoping: a new fiscal year starts at 1.

Failure modes:
    - ``StorageError`` from the port: retried up to ``retry_attempts`` times,
      then ``SequenceAllocationError``.
    - A non-positive value from the port: ``SequenceConflictError``, logged
      CRITICAL, never retried.

Audit relevance:
    Every allocation is logged with counter key and value; the invoice
    number sequence per vendor per year is what tax authorities inspect.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, datetime

from gst_kernel.domain.fiscal import FiscalCalendar, parse_fiscal_year
from gst_kernel.exceptions import (
    SequenceAllocationError,
    SequenceConflictError,
    StorageError,
)
from gst_kernel.logging_config import get_logger
from gst_kernel.storage.port import StoragePort

logger = get_logger("services.sequence")


@dataclass(frozen=True)
class AllocatedNumber:
    """A consumed sequence value and the invoice number it formats to."""

    vendor_id: str
    fiscal_year: str
    sequence: int
    invoice_number: str


class InvoiceSequenceAllocator:
    """
    Allocates invoice sequence numbers.

    Contract:
        ``allocate(vendor_id, fiscal_year)`` returns an integer strictly
        greater than every value previously returned for the same pair,
        across threads and processes sharing the storage backend.

    Non-goals:
        - Does NOT guarantee gap-free numbering (burned numbers stay burned).
        - Does NOT take part in the caller's unit of work.
    """

    COUNTER_PREFIX = "invoice_seq"

    def __init__(
        self,
        storage: StoragePort,
        fiscal_calendar: FiscalCalendar,
        sequence_width: int = 5,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
    ):
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        self._storage = storage
        self._calendar = fiscal_calendar
        self._width = sequence_width
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff_seconds

    @classmethod
    def counter_key(cls, vendor_id: str, fiscal_year: str) -> str:
        return f"{cls.COUNTER_PREFIX}:{vendor_id}:{fiscal_year}"

    def format_invoice_number(self, vendor_id: str, fiscal_year: str, sequence: int) -> str:
        return f"{vendor_id}/{fiscal_year}/{sequence:0{self._width}d}"

    def allocate(self, vendor_id: str, fiscal_year: str) -> int:
        """
        Consume and return the next sequence value.

        Raises:
            InvalidPeriod: malformed fiscal year label.
            SequenceAllocationError: storage kept failing.
            SequenceConflictError: storage returned an impossible value.
        """
        if not vendor_id:
            raise ValueError("vendor_id is required")
        parse_fiscal_year(fiscal_year)
        key = self.counter_key(vendor_id, fiscal_year)

        last_error: StorageError | None = None
        for attempt in range(1, self._retry_attempts + 1):
            try:
                value = self._storage.increment(key)
                break
            except StorageError as exc:
                last_error = exc
                logger.warning(
                    "sequence_allocation_retry",
                    extra={"counter_key": key, "attempt": attempt, "error": exc.detail},
                )
                if attempt < self._retry_attempts and self._retry_backoff:
                    time.sleep(self._retry_backoff * attempt)
        else:
            logger.error(
                "sequence_allocation_failed",
                extra={"counter_key": key, "attempts": self._retry_attempts},
            )
            raise SequenceAllocationError(key, self._retry_attempts) from last_error

        if value < 1:
            logger.critical(
                "sequence_conflict",
                extra={"counter_key": key, "value": value},
            )
            raise SequenceConflictError(key, value, "counter returned a non-positive value")

        logger.debug("sequence_allocated", extra={"counter_key": key, "value": value})
        return value

    def allocate_for(self, vendor_id: str, moment: datetime | date) -> AllocatedNumber:
        """Allocate in the fiscal year ``moment`` falls in."""
        fiscal_year = self._calendar.fiscal_year(moment)
        sequence = self.allocate(vendor_id, fiscal_year)
        return AllocatedNumber(
            vendor_id=vendor_id,
            fiscal_year=fiscal_year,
            sequence=sequence,
            invoice_number=self.format_invoice_number(vendor_id, fiscal_year, sequence),
        )

    def current(self, vendor_id: str, fiscal_year: str) -> int:
        """Last value issued for the pair (0 if none), without consuming."""
        return self._storage.current(self.counter_key(vendor_id, fiscal_year))
