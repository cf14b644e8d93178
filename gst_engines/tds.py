"""
TDS Engine - tax deducted at source on vendor payouts (Section 194O).

Pure functions with no I/O.  The caller supplies the vendor's cumulative
gross payouts earlier in the same fiscal year; the engine never reads or
stores it.

Rules:
    - Rate: 1% when the vendor has a valid tax id on file, 5% otherwise.
    - Threshold: withholding applies to a payout when
      ``cumulative_before + gross >= threshold``.  The whole payout is then
      withheld at the rate.  Earlier payouts below the threshold are not
      re-opened.
    - withheld = floor(gross * rate / 100); net = gross - withheld.
    - Each record is tagged with its fiscal year and quarter
      (Q1 Apr-Jun, Q2 Jul-Sep, Q3 Oct-Dec, Q4 Jan-Mar for an April year).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from gst_engines.gst import floor_percent
from gst_engines.tracer import traced_engine
from gst_kernel.domain.fiscal import FiscalCalendar, parse_fiscal_year
from gst_kernel.exceptions import InvalidAmount, InvalidPeriod
from gst_kernel.logging_config import get_logger

logger = get_logger("engines.tds")


@dataclass(frozen=True)
class TdsPolicy:
    """Statutory parameters; values come from configuration."""

    rate_with_tax_id: Decimal = Decimal("1")
    rate_without_tax_id: Decimal = Decimal("5")
    threshold: int = 50000
    section: str = "194O"

    def __post_init__(self) -> None:
        for name in ("rate_with_tax_id", "rate_without_tax_id"):
            value = getattr(self, name)
            if not Decimal(0) <= value <= Decimal(100):
                raise ValueError(f"{name} must be within [0, 100], got {value}")
        if self.threshold < 0:
            raise ValueError("threshold cannot be negative")


@dataclass(frozen=True)
class TDSRecord:
    vendor_id: str
    reference: str
    gross_amount: int
    has_tax_id: bool
    rate: Decimal
    applicable: bool
    cumulative_before: int
    cumulative_after: int
    withheld_amount: int
    net_amount: int
    fiscal_year: str
    quarter: int
    transaction_at: datetime

    @property
    def effective_rate(self) -> Decimal:
        return self.rate if self.applicable else Decimal("0")

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor_id": self.vendor_id,
            "reference": self.reference,
            "gross_amount": self.gross_amount,
            "has_tax_id": self.has_tax_id,
            "rate": f"{self.rate:.2f}",
            "applicable": self.applicable,
            "cumulative_before": self.cumulative_before,
            "cumulative_after": self.cumulative_after,
            "withheld_amount": self.withheld_amount,
            "net_amount": self.net_amount,
            "fiscal_year": self.fiscal_year,
            "quarter": self.quarter,
            "transaction_at": self.transaction_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TDSRecord:
        return cls(
            vendor_id=data["vendor_id"],
            reference=data["reference"],
            gross_amount=data["gross_amount"],
            has_tax_id=data["has_tax_id"],
            rate=Decimal(data["rate"]),
            applicable=data["applicable"],
            cumulative_before=data["cumulative_before"],
            cumulative_after=data["cumulative_after"],
            withheld_amount=data["withheld_amount"],
            net_amount=data["net_amount"],
            fiscal_year=data["fiscal_year"],
            quarter=data["quarter"],
            transaction_at=datetime.fromisoformat(data["transaction_at"]),
        )


@dataclass(frozen=True)
class TdsQuarterlyStatement:
    """Quarter's deductions for one vendor; backs the Form 16A certificate."""

    vendor_id: str
    fiscal_year: str
    quarter: int
    section: str
    certificate_number: str
    records: tuple[TDSRecord, ...]
    total_gross: int
    total_withheld: int
    total_net: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor_id": self.vendor_id,
            "fiscal_year": self.fiscal_year,
            "quarter": self.quarter,
            "section": self.section,
            "certificate_number": self.certificate_number,
            "records": [r.to_dict() for r in self.records],
            "total_gross": self.total_gross,
            "total_withheld": self.total_withheld,
            "total_net": self.total_net,
        }


@dataclass(frozen=True)
class TdsAnnualSummary:
    """The four quarterly statements of a fiscal year with annual totals."""

    vendor_id: str
    fiscal_year: str
    section: str
    quarters: tuple[TdsQuarterlyStatement, ...]

    @property
    def total_gross(self) -> int:
        return sum(q.total_gross for q in self.quarters)

    @property
    def total_withheld(self) -> int:
        return sum(q.total_withheld for q in self.quarters)

    @property
    def total_net(self) -> int:
        return sum(q.total_net for q in self.quarters)

    @property
    def record_count(self) -> int:
        return sum(len(q.records) for q in self.quarters)

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor_id": self.vendor_id,
            "fiscal_year": self.fiscal_year,
            "section": self.section,
            "quarters": [
                {
                    "quarter": q.quarter,
                    "certificate_number": q.certificate_number,
                    "record_count": len(q.records),
                    "total_gross": q.total_gross,
                    "total_withheld": q.total_withheld,
                    "total_net": q.total_net,
                }
                for q in self.quarters
            ],
            "annual_total": {
                "record_count": self.record_count,
                "total_gross": self.total_gross,
                "total_withheld": self.total_withheld,
                "total_net": self.total_net,
            },
        }


class TDSCalculator:
    """Computes withholding on a single payout and aggregates quarters."""

    def __init__(self, policy: TdsPolicy, fiscal_calendar: FiscalCalendar):
        self._policy = policy
        self._calendar = fiscal_calendar

    @property
    def policy(self) -> TdsPolicy:
        return self._policy

    def rate_for(self, has_tax_id: bool) -> Decimal:
        return self._policy.rate_with_tax_id if has_tax_id else self._policy.rate_without_tax_id

    @traced_engine(
        "tds", "1.0",
        fingerprint_fields=("gross_amount", "has_tax_id", "cumulative_before"),
    )
    def calculate(
        self,
        *,
        vendor_id: str,
        gross_amount: int,
        has_tax_id: bool,
        transaction_at: datetime,
        cumulative_before: int = 0,
        reference: str = "",
    ) -> TDSRecord:
        """
        Raises:
            InvalidAmount: gross_amount not positive, or cumulative_before negative.
        """
        if isinstance(gross_amount, bool) or not isinstance(gross_amount, int) or gross_amount <= 0:
            raise InvalidAmount("gross_amount", gross_amount)
        if isinstance(cumulative_before, bool) or not isinstance(cumulative_before, int) \
                or cumulative_before < 0:
            raise InvalidAmount("cumulative_before", cumulative_before, "cannot be negative")

        rate = self.rate_for(has_tax_id)
        cumulative_after = cumulative_before + gross_amount
        applicable = cumulative_after >= self._policy.threshold
        withheld = floor_percent(gross_amount, rate) if applicable else 0

        record = TDSRecord(
            vendor_id=vendor_id,
            reference=reference,
            gross_amount=gross_amount,
            has_tax_id=has_tax_id,
            rate=rate,
            applicable=applicable,
            cumulative_before=cumulative_before,
            cumulative_after=cumulative_after,
            withheld_amount=withheld,
            net_amount=gross_amount - withheld,
            fiscal_year=self._calendar.fiscal_year(transaction_at),
            quarter=self._calendar.quarter(transaction_at),
            transaction_at=transaction_at,
        )
        logger.debug(
            "tds_calculated",
            extra={
                "vendor_id": vendor_id,
                "gross_amount": gross_amount,
                "applicable": applicable,
                "rate": rate,
                "withheld_amount": withheld,
            },
        )
        return record

    def quarterly_statement(
        self,
        *,
        vendor_id: str,
        fiscal_year: str,
        quarter: int,
        records: Iterable[TDSRecord],
    ) -> TdsQuarterlyStatement:
        """
        Aggregate one vendor's records for a fiscal quarter.

        Raises:
            InvalidPeriod: bad fiscal year or quarter.
            ValueError: a record belongs to another vendor or quarter.
        """
        parse_fiscal_year(fiscal_year)
        if quarter not in (1, 2, 3, 4):
            raise InvalidPeriod(f"{fiscal_year}-Q{quarter}", "quarter must be 1-4")

        selected = sorted(records, key=lambda r: (r.transaction_at, r.reference))
        for r in selected:
            if (r.vendor_id, r.fiscal_year, r.quarter) != (vendor_id, fiscal_year, quarter):
                raise ValueError(
                    f"record {r.reference} is for {r.vendor_id} {r.fiscal_year} Q{r.quarter}"
                )

        return TdsQuarterlyStatement(
            vendor_id=vendor_id,
            fiscal_year=fiscal_year,
            quarter=quarter,
            section=self._policy.section,
            certificate_number=f"16A/{vendor_id}/{fiscal_year}/Q{quarter}",
            records=tuple(selected),
            total_gross=sum(r.gross_amount for r in selected),
            total_withheld=sum(r.withheld_amount for r in selected),
            total_net=sum(r.net_amount for r in selected),
        )

    def annual_summary(
        self,
        *,
        vendor_id: str,
        fiscal_year: str,
        records: Iterable[TDSRecord],
    ) -> TdsAnnualSummary:
        """
        Split a fiscal year's records into Q1-Q4 statements.

        Every quarter is present, empty ones included.

        Raises:
            InvalidPeriod: bad fiscal year.
            ValueError: a record belongs to another vendor or fiscal year.
        """
        parse_fiscal_year(fiscal_year)
        by_quarter: dict[int, list[TDSRecord]] = {1: [], 2: [], 3: [], 4: []}
        for r in records:
            if (r.vendor_id, r.fiscal_year) != (vendor_id, fiscal_year):
                raise ValueError(f"record {r.reference} is for {r.vendor_id} {r.fiscal_year}")
            by_quarter[r.quarter].append(r)

        return TdsAnnualSummary(
            vendor_id=vendor_id,
            fiscal_year=fiscal_year,
            section=self._policy.section,
            quarters=tuple(
                self.quarterly_statement(
                    vendor_id=vendor_id,
                    fiscal_year=fiscal_year,
                    quarter=quarter,
                    records=by_quarter[quarter],
                )
                for quarter in (1, 2, 3, 4)
            ),
        )
