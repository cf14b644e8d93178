"""
Fiscal calendar -- fiscal year labels, fiscal quarters and report periods.

Responsibility:
    Maps instants to the fiscal year (``2024-25``) and fiscal quarter used by
    invoice numbering, TDS records and periodic reports.  The fiscal year
    runs twelve months from ``start_month`` and is evaluated in the
    jurisdiction's timezone: 00:30 IST on 1 April opens the new fiscal year
    although it is still 31 March in UTC.

Architecture position:
    Kernel > Domain -- pure value objects.  Used by the sequence allocator
    (kernel) and by the TDS and report engines.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from zoneinfo import ZoneInfo

from gst_kernel.exceptions import InvalidPeriod

_FY_LABEL = re.compile(r"(\d{4})-(\d{2})")


def format_fiscal_year(start_year: int) -> str:
    """2024 -> '2024-25'."""
    return f"{start_year}-{(start_year + 1) % 100:02d}"


def parse_fiscal_year(label: str) -> int:
    """'2024-25' -> 2024.

    Raises:
        InvalidPeriod: malformed or inconsistent label ('2024-27').
    """
    match = _FY_LABEL.fullmatch(label or "")
    if match is None:
        raise InvalidPeriod(str(label), "fiscal year must look like 2024-25")
    start_year = int(match.group(1))
    if (start_year + 1) % 100 != int(match.group(2)):
        raise InvalidPeriod(label, "fiscal year halves are not consecutive")
    return start_year


def _add_months(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


@dataclass(frozen=True)
class FiscalCalendar:
    """
    Fiscal year definition.

    Contract:
        ``start_month`` 1-12 (April = 4 for India); ``timezone`` an IANA name.
        Naive datetimes are rejected rather than guessed.
    """

    start_month: int = 4
    timezone: str = "Asia/Kolkata"

    def __post_init__(self) -> None:
        if not 1 <= self.start_month <= 12:
            raise ValueError(f"start_month must be 1-12, got {self.start_month}")
        # Fails fast on unknown zone names
        ZoneInfo(self.timezone)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def local_date(self, moment: datetime | date) -> date:
        if isinstance(moment, datetime):
            if moment.tzinfo is None:
                raise ValueError("fiscal calculations need a timezone-aware datetime")
            return moment.astimezone(self.tzinfo).date()
        return moment

    def start_year(self, moment: datetime | date) -> int:
        day = self.local_date(moment)
        return day.year if day.month >= self.start_month else day.year - 1

    def fiscal_year(self, moment: datetime | date) -> str:
        return format_fiscal_year(self.start_year(moment))

    def quarter(self, moment: datetime | date) -> int:
        """1-4; Q1 is the first three months of the fiscal year."""
        day = self.local_date(moment)
        return ((day.month - self.start_month) % 12) // 3 + 1

    def fiscal_year_bounds(self, label: str) -> tuple[date, date]:
        start_year = parse_fiscal_year(label)
        end_year, end_month = _add_months(start_year, self.start_month, 11)
        return date(start_year, self.start_month, 1), _month_end(end_year, end_month)

    def quarter_bounds(self, label: str, quarter: int) -> tuple[date, date]:
        if quarter not in (1, 2, 3, 4):
            raise InvalidPeriod(f"{label}-Q{quarter}", "quarter must be 1-4")
        start_year = parse_fiscal_year(label)
        first_year, first_month = _add_months(start_year, self.start_month, 3 * (quarter - 1))
        last_year, last_month = _add_months(first_year, first_month, 2)
        return date(first_year, first_month, 1), _month_end(last_year, last_month)


class PeriodKind(str, Enum):
    MONTH = "month"
    QUARTER = "quarter"


@dataclass(frozen=True)
class ReportPeriod:
    """
    Inclusive date range a periodic report covers.

    Build with ``ReportPeriod.month`` or ``ReportPeriod.fiscal_quarter``.
    """

    kind: PeriodKind
    label: str
    start: date
    end: date

    @classmethod
    def month(cls, year: int, month: int) -> ReportPeriod:
        if not 1 <= month <= 12:
            raise InvalidPeriod(f"{year}-{month}", "month must be 1-12")
        if not 2000 <= year <= 9999:
            raise InvalidPeriod(f"{year}-{month:02d}", "year out of range")
        return cls(
            kind=PeriodKind.MONTH,
            label=f"{year:04d}-{month:02d}",
            start=date(year, month, 1),
            end=_month_end(year, month),
        )

    @classmethod
    def fiscal_quarter(
        cls, fiscal_calendar: FiscalCalendar, fiscal_year: str, quarter: int
    ) -> ReportPeriod:
        start, end = fiscal_calendar.quarter_bounds(fiscal_year, quarter)
        return cls(
            kind=PeriodKind.QUARTER,
            label=f"{fiscal_year}-Q{quarter}",
            start=start,
            end=end,
        )

    @classmethod
    def fiscal_months(
        cls, fiscal_calendar: FiscalCalendar, fiscal_year: str
    ) -> tuple[ReportPeriod, ...]:
        """The twelve calendar months of ``fiscal_year``, first to last."""
        start_year = parse_fiscal_year(fiscal_year)
        return tuple(
            cls.month(*_add_months(start_year, fiscal_calendar.start_month, offset))
            for offset in range(12)
        )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def return_period(self) -> str:
        """MMYYYY of the period's last month, as GST returns state it."""
        return f"{self.end.month:02d}{self.end.year:04d}"
