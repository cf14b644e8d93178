"""
Report Export (``gst_modules.reporting.export``).

Responsibility
--------------
Serializes reports to bytes (canonical JSON, CSV) and hands the bytes to
an ``ExportSink``.

Invariants enforced
-------------------
* Same report in, same bytes out.  JSON keys are sorted with compact
  separators; CSV columns and row order are fixed, with ``\\n`` line ends.
* CSV amounts are rupees with two decimals (``12345`` paise -> ``123.45``);
  JSON keeps integer paise.
* CSV dates are local dates in the fiscal calendar's timezone, the same
  dates the period filters use.
"""

from __future__ import annotations

import csv
import io
import os
import re
import tempfile
from abc import ABC, abstractmethod
from decimal import Decimal
from pathlib import Path
from typing import Any

from gst_engines.reports import AnnualGstSummary, Gstr1Report, Gstr3bReport, ReportTotals
from gst_engines.tds import TdsAnnualSummary, TdsQuarterlyStatement
from gst_kernel.domain.fiscal import FiscalCalendar
from gst_kernel.logging_config import get_logger
from gst_kernel.utils.hashing import canonicalize_json

logger = get_logger("modules.reporting.export")

_SAFE_NAME = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.\-]*")

GSTR1_COLUMNS = (
    "section", "invoice_number", "invoice_date", "customer_tax_id", "place_of_supply",
    "rate", "count", "taxable_value", "cgst", "sgst", "igst", "total_tax", "invoice_value",
)

Exportable = Gstr1Report | Gstr3bReport | AnnualGstSummary | TdsQuarterlyStatement | TdsAnnualSummary


def rupees(paise: int) -> str:
    return f"{Decimal(paise) / 100:.2f}"


def to_json_bytes(report: Exportable) -> bytes:
    return canonicalize_json(report.to_dict()).encode("utf-8")


def _writer(buffer: io.StringIO) -> Any:
    return csv.writer(buffer, lineterminator="\n")


def _gstr1_csv(report: Gstr1Report, out: Any) -> None:
    out.writerow(GSTR1_COLUMNS)
    for section, rows in (("B2B", report.b2b), ("B2CL", report.b2c_large)):
        for row in rows:
            out.writerow([
                section, row.invoice_number, row.invoice_date, row.customer_tax_id or "",
                row.place_of_supply, "", 1, rupees(row.taxable_value), rupees(row.cgst),
                rupees(row.sgst), rupees(row.igst), rupees(row.total_tax), rupees(row.invoice_value),
            ])
    for small in report.b2c_small:
        out.writerow([
            "B2CS", "", "", "", small.place_of_supply, f"{small.rate:.2f}", small.line_count,
            rupees(small.taxable_value), rupees(small.cgst), rupees(small.sgst),
            rupees(small.igst), rupees(small.total_tax), "",
        ])

    summaries: tuple[tuple[str, ReportTotals], ...] = (
        ("B2B", report.b2b_totals),
        ("B2CL", report.b2c_large_totals),
        ("B2CS", report.b2c_small_totals),
        ("TOTAL", report.totals),
    )
    for bucket, totals in summaries:
        out.writerow([
            "SUMMARY", bucket, "", "", "", "", totals.count, rupees(totals.taxable_value),
            rupees(totals.cgst), rupees(totals.sgst), rupees(totals.igst),
            rupees(totals.total_tax), rupees(totals.invoice_value),
        ])


def _gstr3b_csv(report: Gstr3bReport, out: Any) -> None:
    out.writerow(("field", "value"))
    out.writerow(("invoice_count", report.invoice_count))
    for name in (
        "outward_taxable_value", "intra_state_taxable_value", "inter_state_taxable_value",
        "exempt_value", "cgst", "sgst", "igst", "total_tax", "input_tax_credit",
        "tax_payable", "net_cash_payment",
    ):
        out.writerow((name, rupees(getattr(report, name))))


def _tds_csv(statement: TdsQuarterlyStatement, out: Any, fiscal_calendar: FiscalCalendar) -> None:
    out.writerow(("reference", "transaction_date", "gross_amount", "rate", "applicable",
                  "withheld_amount", "net_amount"))
    for record in statement.records:
        out.writerow((
            record.reference, fiscal_calendar.local_date(record.transaction_at).isoformat(),
            rupees(record.gross_amount), f"{record.rate:.2f}", "Y" if record.applicable else "N",
            rupees(record.withheld_amount), rupees(record.net_amount),
        ))
    out.writerow(("TOTAL", "", rupees(statement.total_gross), "", "",
                  rupees(statement.total_withheld), rupees(statement.total_net)))


def _tds_annual_csv(summary: TdsAnnualSummary, out: Any) -> None:
    out.writerow(("quarter", "certificate_number", "record_count", "gross_amount",
                  "withheld_amount", "net_amount"))
    for q in summary.quarters:
        out.writerow((f"Q{q.quarter}", q.certificate_number, len(q.records),
                      rupees(q.total_gross), rupees(q.total_withheld), rupees(q.total_net)))
    out.writerow(("TOTAL", "", summary.record_count, rupees(summary.total_gross),
                  rupees(summary.total_withheld), rupees(summary.total_net)))


def _gst_annual_csv(summary: AnnualGstSummary, out: Any) -> None:
    out.writerow(("period", "return_period", "invoice_count", "outward_taxable_value",
                  "exempt_value", "total_tax", "input_tax_credit", "net_cash_payment"))
    for m in summary.months:
        out.writerow((m.period, m.return_period, m.invoice_count,
                      rupees(m.outward_taxable_value), rupees(m.exempt_value),
                      rupees(m.total_tax), rupees(m.input_tax_credit),
                      rupees(m.net_cash_payment)))
    out.writerow(("TOTAL", "", summary.invoice_count, rupees(summary.outward_taxable_value),
                  rupees(summary.exempt_value), rupees(summary.total_tax),
                  rupees(summary.input_tax_credit), rupees(summary.net_cash_payment)))


def to_csv_bytes(report: Exportable, fiscal_calendar: FiscalCalendar | None = None) -> bytes:
    """
    CSV rendering: a metadata block, a blank row, then the body.

    ``fiscal_calendar`` supplies the timezone for TDS transaction dates
    (Asia/Kolkata when omitted).
    """
    buffer = io.StringIO()
    out = _writer(buffer)

    if isinstance(report, TdsQuarterlyStatement):
        out.writerow(("report_type", "vendor_id", "fiscal_year", "quarter", "section",
                      "certificate_number"))
        out.writerow(("TDS-16A", report.vendor_id, report.fiscal_year, report.quarter,
                      report.section, report.certificate_number))
        out.writerow(())
        _tds_csv(report, out, fiscal_calendar or FiscalCalendar())
        return buffer.getvalue().encode("utf-8")

    if isinstance(report, TdsAnnualSummary):
        out.writerow(("report_type", "vendor_id", "fiscal_year", "section"))
        out.writerow(("TDS-ANNUAL", report.vendor_id, report.fiscal_year, report.section))
        out.writerow(())
        _tds_annual_csv(report, out)
        return buffer.getvalue().encode("utf-8")

    if isinstance(report, AnnualGstSummary):
        out.writerow(("report_type", "vendor_id", "vendor_tax_id", "fiscal_year",
                      "report_id", "data_version"))
        out.writerow(("GST-ANNUAL", report.vendor_id, report.vendor_tax_id or "",
                      report.fiscal_year, report.report_id, report.data_version))
        out.writerow(())
        _gst_annual_csv(report, out)
        return buffer.getvalue().encode("utf-8")

    content = report.content_dict()
    out.writerow(("report_type", "vendor_id", "vendor_tax_id", "period", "return_period",
                  "report_id", "data_version"))
    out.writerow((content["report_type"], report.vendor_id, report.vendor_tax_id or "",
                  report.period, report.return_period, report.report_id, report.data_version))
    out.writerow(())
    if isinstance(report, Gstr1Report):
        _gstr1_csv(report, out)
    elif isinstance(report, Gstr3bReport):
        _gstr3b_csv(report, out)
    else:
        raise TypeError(f"cannot export {type(report).__name__} as CSV")
    return buffer.getvalue().encode("utf-8")


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


class ExportSink(ABC):
    """Destination for exported report bytes."""

    @abstractmethod
    def write(self, name: str, data: bytes) -> str:
        """Store ``data`` under ``name`` and return where it went."""


class FileSystemExportSink(ExportSink):
    """
    Writes exports into one directory.

    Files are written to a temporary name and renamed into place, so a
    reader never sees a half-written export.
    """

    def __init__(self, directory: Path | str):
        self._directory = Path(directory)

    def write(self, name: str, data: bytes) -> str:
        if not _SAFE_NAME.fullmatch(name):
            raise ValueError(f"unsafe export name {name!r}")
        self._directory.mkdir(parents=True, exist_ok=True)
        target = self._directory / name

        fd, tmp_path = tempfile.mkstemp(dir=self._directory, prefix=f".{name}.")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.info("report_exported", extra={"path": str(target), "size_bytes": len(data)})
        return str(target)
