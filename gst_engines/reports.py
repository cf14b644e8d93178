"""
Pure periodic return builders: GSTR-1 (outward supplies) and GSTR-3B
(summary return).

These functions transform a vendor's invoices into return structures.
ZERO I/O. ZERO side effects. No clock access.

- Invoices are filtered to one vendor and to the period by their local
  invoice date (fiscal calendar timezone).
- Rows are ordered by (fiscal year, sequence); B2C-small aggregates by
  (place of supply, rate).
- ``data_version`` hashes the input invoices; ``report_id`` hashes the
  report content.  Same inputs give the same report, byte for byte.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from gst_engines.tracer import traced_engine
from gst_kernel.domain.fiscal import FiscalCalendar, ReportPeriod
from gst_kernel.domain.invoice import Invoice, InvoiceCategory, TaxType
from gst_kernel.exceptions import InvalidAmount
from gst_kernel.utils.hashing import hash_payload


# =========================================================================
# Report value objects
# =========================================================================


@dataclass(frozen=True)
class ReportTotals:
    count: int = 0
    taxable_value: int = 0
    cgst: int = 0
    sgst: int = 0
    igst: int = 0
    invoice_value: int = 0

    @property
    def total_tax(self) -> int:
        return self.cgst + self.sgst + self.igst

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "taxable_value": self.taxable_value,
            "cgst": self.cgst,
            "sgst": self.sgst,
            "igst": self.igst,
            "total_tax": self.total_tax,
            "invoice_value": self.invoice_value,
        }


def _sum_totals(rows: Iterable[ReportTotals]) -> ReportTotals:
    rows = list(rows)
    return ReportTotals(
        count=sum(r.count for r in rows),
        taxable_value=sum(r.taxable_value for r in rows),
        cgst=sum(r.cgst for r in rows),
        sgst=sum(r.sgst for r in rows),
        igst=sum(r.igst for r in rows),
        invoice_value=sum(r.invoice_value for r in rows),
    )


@dataclass(frozen=True)
class Gstr1InvoiceRow:
    """One B2B or B2C-large invoice."""

    invoice_number: str
    invoice_date: str
    customer_tax_id: str | None
    place_of_supply: str
    taxable_value: int
    cgst: int
    sgst: int
    igst: int
    invoice_value: int

    @property
    def total_tax(self) -> int:
        return self.cgst + self.sgst + self.igst

    def as_totals(self) -> ReportTotals:
        return ReportTotals(1, self.taxable_value, self.cgst, self.sgst, self.igst, self.invoice_value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoice_number": self.invoice_number,
            "invoice_date": self.invoice_date,
            "customer_tax_id": self.customer_tax_id,
            "place_of_supply": self.place_of_supply,
            "taxable_value": self.taxable_value,
            "cgst": self.cgst,
            "sgst": self.sgst,
            "igst": self.igst,
            "total_tax": self.total_tax,
            "invoice_value": self.invoice_value,
        }


@dataclass(frozen=True)
class B2CSmallRow:
    """Consolidated small consumer supplies for one place of supply and rate."""

    place_of_supply: str
    rate: Decimal
    line_count: int
    taxable_value: int
    cgst: int
    sgst: int
    igst: int

    @property
    def total_tax(self) -> int:
        return self.cgst + self.sgst + self.igst

    def to_dict(self) -> dict[str, Any]:
        return {
            "place_of_supply": self.place_of_supply,
            "rate": f"{self.rate:.2f}",
            "line_count": self.line_count,
            "taxable_value": self.taxable_value,
            "cgst": self.cgst,
            "sgst": self.sgst,
            "igst": self.igst,
            "total_tax": self.total_tax,
        }


@dataclass(frozen=True)
class Gstr1Report:
    vendor_id: str
    vendor_tax_id: str | None
    period: str
    return_period: str
    b2b: tuple[Gstr1InvoiceRow, ...]
    b2c_large: tuple[Gstr1InvoiceRow, ...]
    b2c_small: tuple[B2CSmallRow, ...]
    b2b_totals: ReportTotals
    b2c_large_totals: ReportTotals
    b2c_small_totals: ReportTotals
    totals: ReportTotals
    data_version: str
    report_id: str = ""

    kind = "gstr1"

    def content_dict(self) -> dict[str, Any]:
        return {
            "report_type": "GSTR-1",
            "vendor_id": self.vendor_id,
            "vendor_tax_id": self.vendor_tax_id,
            "period": self.period,
            "return_period": self.return_period,
            "b2b": [r.to_dict() for r in self.b2b],
            "b2c_large": [r.to_dict() for r in self.b2c_large],
            "b2c_small": [r.to_dict() for r in self.b2c_small],
            "b2b_totals": self.b2b_totals.to_dict(),
            "b2c_large_totals": self.b2c_large_totals.to_dict(),
            "b2c_small_totals": self.b2c_small_totals.to_dict(),
            "totals": self.totals.to_dict(),
            "data_version": self.data_version,
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.content_dict()
        data["report_id"] = self.report_id
        return data


@dataclass(frozen=True)
class Gstr3bReport:
    vendor_id: str
    vendor_tax_id: str | None
    period: str
    return_period: str
    invoice_count: int
    outward_taxable_value: int
    intra_state_taxable_value: int
    inter_state_taxable_value: int
    exempt_value: int
    cgst: int
    sgst: int
    igst: int
    input_tax_credit: int
    data_version: str
    report_id: str = ""

    kind = "gstr3b"

    @property
    def total_tax(self) -> int:
        return self.cgst + self.sgst + self.igst

    @property
    def tax_payable(self) -> int:
        return self.total_tax - self.input_tax_credit

    @property
    def net_cash_payment(self) -> int:
        return max(self.tax_payable, 0)

    def content_dict(self) -> dict[str, Any]:
        return {
            "report_type": "GSTR-3B",
            "vendor_id": self.vendor_id,
            "vendor_tax_id": self.vendor_tax_id,
            "period": self.period,
            "return_period": self.return_period,
            "invoice_count": self.invoice_count,
            "outward_taxable_value": self.outward_taxable_value,
            "intra_state_taxable_value": self.intra_state_taxable_value,
            "inter_state_taxable_value": self.inter_state_taxable_value,
            "exempt_value": self.exempt_value,
            "cgst": self.cgst,
            "sgst": self.sgst,
            "igst": self.igst,
            "total_tax": self.total_tax,
            "input_tax_credit": self.input_tax_credit,
            "tax_payable": self.tax_payable,
            "net_cash_payment": self.net_cash_payment,
            "data_version": self.data_version,
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.content_dict()
        data["report_id"] = self.report_id
        return data


# =========================================================================
# Selection helpers
# =========================================================================


def select_invoices(
    vendor_id: str,
    period: ReportPeriod,
    invoices: Iterable[Invoice],
    fiscal_calendar: FiscalCalendar,
) -> tuple[Invoice, ...]:
    """The vendor's invoices dated inside ``period``, in sequence order."""
    chosen = [
        inv for inv in invoices
        if inv.vendor_id == vendor_id
        and period.contains(fiscal_calendar.local_date(inv.created_at))
    ]
    return tuple(sorted(chosen, key=lambda inv: (inv.fiscal_year, inv.sequence, inv.invoice_number)))


def compute_data_version(invoices: Iterable[Invoice]) -> str:
    """Hash of the invoices' financial content (status excluded)."""
    return hash_payload([inv.financial_dict() for inv in invoices])


def _report_id(prefix: str, vendor_id: str, period: str, content: dict[str, Any]) -> str:
    return f"{prefix}-{vendor_id}-{period}-{hash_payload(content)[:16]}"


def _vendor_tax_id(invoices: tuple[Invoice, ...]) -> str | None:
    return invoices[-1].vendor_tax_id if invoices else None


def _invoice_row(inv: Invoice, fiscal_calendar: FiscalCalendar) -> Gstr1InvoiceRow:
    return Gstr1InvoiceRow(
        invoice_number=inv.invoice_number,
        invoice_date=fiscal_calendar.local_date(inv.created_at).isoformat(),
        customer_tax_id=inv.customer_tax_id,
        place_of_supply=inv.place_of_supply,
        taxable_value=inv.taxable_value,
        cgst=inv.cgst,
        sgst=inv.sgst,
        igst=inv.igst,
        invoice_value=inv.gross_total,
    )


# =========================================================================
# Builders
# =========================================================================


@traced_engine("gstr1", "1.0", fingerprint_fields=("vendor_id",))
def build_gstr1(
    *,
    vendor_id: str,
    period: ReportPeriod,
    invoices: Iterable[Invoice],
    fiscal_calendar: FiscalCalendar,
) -> Gstr1Report:
    """Partition the period's invoices into B2B, B2C-large and B2C-small."""
    selected = select_invoices(vendor_id, period, invoices, fiscal_calendar)

    b2b = tuple(
        _invoice_row(inv, fiscal_calendar) for inv in selected
        if inv.category == InvoiceCategory.B2B
    )
    b2c_large = tuple(
        _invoice_row(inv, fiscal_calendar) for inv in selected
        if inv.category == InvoiceCategory.B2C_LARGE
    )

    groups: dict[tuple[str, Decimal], list[int]] = {}
    for inv in selected:
        if inv.category != InvoiceCategory.B2C_SMALL:
            continue
        for line in inv.lines:
            acc = groups.setdefault((inv.place_of_supply, line.rate), [0, 0, 0, 0, 0])
            acc[0] += 1
            acc[1] += line.taxable_value
            acc[2] += line.cgst
            acc[3] += line.sgst
            acc[4] += line.igst
    b2c_small = tuple(
        B2CSmallRow(
            place_of_supply=pos, rate=rate, line_count=acc[0],
            taxable_value=acc[1], cgst=acc[2], sgst=acc[3], igst=acc[4],
        )
        for (pos, rate), acc in sorted(groups.items())
    )

    b2b_totals = _sum_totals(r.as_totals() for r in b2b)
    b2c_large_totals = _sum_totals(r.as_totals() for r in b2c_large)
    small_invoices = [inv for inv in selected if inv.category == InvoiceCategory.B2C_SMALL]
    b2c_small_totals = ReportTotals(
        count=len(small_invoices),
        taxable_value=sum(r.taxable_value for r in b2c_small),
        cgst=sum(r.cgst for r in b2c_small),
        sgst=sum(r.sgst for r in b2c_small),
        igst=sum(r.igst for r in b2c_small),
        invoice_value=sum(inv.gross_total for inv in small_invoices),
    )

    report = Gstr1Report(
        vendor_id=vendor_id,
        vendor_tax_id=_vendor_tax_id(selected),
        period=period.label,
        return_period=period.return_period,
        b2b=b2b,
        b2c_large=b2c_large,
        b2c_small=b2c_small,
        b2b_totals=b2b_totals,
        b2c_large_totals=b2c_large_totals,
        b2c_small_totals=b2c_small_totals,
        totals=_sum_totals([b2b_totals, b2c_large_totals, b2c_small_totals]),
        data_version=compute_data_version(selected),
    )
    return replace(report, report_id=_report_id("GSTR1", vendor_id, period.label, report.content_dict()))


@traced_engine("gstr3b", "1.0", fingerprint_fields=("vendor_id", "input_tax_credit"))
def build_gstr3b(
    *,
    vendor_id: str,
    period: ReportPeriod,
    invoices: Iterable[Invoice],
    fiscal_calendar: FiscalCalendar,
    input_tax_credit: int = 0,
) -> Gstr3bReport:
    """Summary return: outward supplies, exempt supplies, tax and net payable."""
    if isinstance(input_tax_credit, bool) or not isinstance(input_tax_credit, int) \
            or input_tax_credit < 0:
        raise InvalidAmount("input_tax_credit", input_tax_credit, "cannot be negative")

    selected = select_invoices(vendor_id, period, invoices, fiscal_calendar)

    taxable = intra = inter = exempt = cgst = sgst = igst = 0
    for inv in selected:
        for line in inv.lines:
            if line.rate == 0:
                exempt += line.taxable_value
                continue
            taxable += line.taxable_value
            if inv.tax_type == TaxType.CROSS_JURISDICTION:
                inter += line.taxable_value
            else:
                intra += line.taxable_value
            cgst += line.cgst
            sgst += line.sgst
            igst += line.igst

    report = Gstr3bReport(
        vendor_id=vendor_id,
        vendor_tax_id=_vendor_tax_id(selected),
        period=period.label,
        return_period=period.return_period,
        invoice_count=len(selected),
        outward_taxable_value=taxable,
        intra_state_taxable_value=intra,
        inter_state_taxable_value=inter,
        exempt_value=exempt,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        input_tax_credit=input_tax_credit,
        data_version=compute_data_version(selected),
    )
    return replace(report, report_id=_report_id("GSTR3B", vendor_id, period.label, report.content_dict()))


# =========================================================================
# Annual roll-up
# =========================================================================


@dataclass(frozen=True)
class AnnualGstSummary:
    """
    A fiscal year of GSTR-3B returns for one vendor, month by month.

    ``months`` always holds twelve reports (a month without invoices is a
    nil return); the annual figures are their sums.
    """

    vendor_id: str
    vendor_tax_id: str | None
    fiscal_year: str
    months: tuple[Gstr3bReport, ...]
    data_version: str
    report_id: str = ""

    kind = "gst_annual"

    @property
    def invoice_count(self) -> int:
        return sum(m.invoice_count for m in self.months)

    @property
    def outward_taxable_value(self) -> int:
        return sum(m.outward_taxable_value for m in self.months)

    @property
    def exempt_value(self) -> int:
        return sum(m.exempt_value for m in self.months)

    @property
    def total_tax(self) -> int:
        return sum(m.total_tax for m in self.months)

    @property
    def input_tax_credit(self) -> int:
        return sum(m.input_tax_credit for m in self.months)

    @property
    def net_cash_payment(self) -> int:
        return sum(m.net_cash_payment for m in self.months)

    def content_dict(self) -> dict[str, Any]:
        return {
            "report_type": "GST-ANNUAL",
            "vendor_id": self.vendor_id,
            "vendor_tax_id": self.vendor_tax_id,
            "fiscal_year": self.fiscal_year,
            "months": [
                {
                    "period": m.period,
                    "return_period": m.return_period,
                    "invoice_count": m.invoice_count,
                    "outward_taxable_value": m.outward_taxable_value,
                    "exempt_value": m.exempt_value,
                    "total_tax": m.total_tax,
                    "input_tax_credit": m.input_tax_credit,
                    "tax_payable": m.tax_payable,
                    "net_cash_payment": m.net_cash_payment,
                }
                for m in self.months
            ],
            "annual_total": {
                "invoice_count": self.invoice_count,
                "outward_taxable_value": self.outward_taxable_value,
                "exempt_value": self.exempt_value,
                "total_tax": self.total_tax,
                "input_tax_credit": self.input_tax_credit,
                "net_cash_payment": self.net_cash_payment,
            },
            "data_version": self.data_version,
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.content_dict()
        data["report_id"] = self.report_id
        return data


@traced_engine("gst_annual", "1.0", fingerprint_fields=("vendor_id", "fiscal_year"))
def build_annual_gst_summary(
    *,
    vendor_id: str,
    fiscal_year: str,
    invoices: Iterable[Invoice],
    fiscal_calendar: FiscalCalendar,
    input_tax_credit: dict[str, int] | None = None,
) -> AnnualGstSummary:
    """
    Roll a fiscal year up from twelve monthly GSTR-3B returns.

    ``input_tax_credit`` maps a month label (``"2024-07"``) to the credit
    claimed in that month's return; unlisted months claim none.
    """
    invoices = tuple(invoices)
    credits = input_tax_credit or {}
    periods = ReportPeriod.fiscal_months(fiscal_calendar, fiscal_year)
    unknown = set(credits) - {p.label for p in periods}
    if unknown:
        raise ValueError(f"input tax credit for months outside {fiscal_year}: {sorted(unknown)}")

    months = tuple(
        build_gstr3b(
            vendor_id=vendor_id,
            period=period,
            invoices=invoices,
            fiscal_calendar=fiscal_calendar,
            input_tax_credit=credits.get(period.label, 0),
        )
        for period in periods
    )
    year_invoices = tuple(
        inv
        for period in periods
        for inv in select_invoices(vendor_id, period, invoices, fiscal_calendar)
    )

    summary = AnnualGstSummary(
        vendor_id=vendor_id,
        vendor_tax_id=_vendor_tax_id(year_invoices),
        fiscal_year=fiscal_year,
        months=months,
        data_version=compute_data_version(year_invoices),
    )
    return replace(
        summary,
        report_id=_report_id("GSTANNUAL", vendor_id, fiscal_year, summary.content_dict()),
    )
