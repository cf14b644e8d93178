"""
Reporting Service (``gst_modules.reporting.service``).

Responsibility
--------------
Reads a vendor's stored invoices and TDS records, runs the pure report
builders from ``gst_engines.reports`` / ``gst_engines.tds``, caches the
results and exports them.  Monthly and quarterly returns roll up into
annual GST and TDS summaries.

Invariants enforced
-------------------
* Read-only: generating a report never writes to storage.
* Cache entries are keyed by (kind, vendor, period, data version, ITC);
  any change to the vendor's invoices in the period changes the data
  version, so a stale report is never served.

Failure modes
-------------
* ``ReportNotFound``  -- unknown report kind.
* ``InvalidPeriod``  -- bad fiscal year or quarter.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Any

from gst_engines.reports import (
    AnnualGstSummary,
    Gstr1Report,
    Gstr3bReport,
    build_annual_gst_summary,
    build_gstr1,
    build_gstr3b,
    compute_data_version,
    select_invoices,
)
from gst_engines.tds import TDSCalculator, TdsAnnualSummary, TdsQuarterlyStatement
from gst_kernel.domain.fiscal import FiscalCalendar, ReportPeriod
from gst_kernel.exceptions import ReportNotFound
from gst_kernel.logging_config import get_logger
from gst_modules.invoicing.service import InvoiceService
from gst_modules.reporting.export import Exportable, ExportSink, to_csv_bytes, to_json_bytes
from gst_modules.settlement.tds_register import TdsRegister

logger = get_logger("modules.reporting")

REPORT_KINDS = ("gstr1", "gstr3b")
EXPORT_FORMATS = ("csv", "json")


class ReportingService:
    """Periodic returns and TDS statements for one vendor at a time."""

    def __init__(
        self,
        invoices: InvoiceService,
        tds: TDSCalculator,
        tds_register: TdsRegister,
        fiscal_calendar: FiscalCalendar,
        cache_size: int = 128,
        sink: ExportSink | None = None,
    ):
        self._invoices = invoices
        self._tds = tds
        self._tds_register = tds_register
        self._calendar = fiscal_calendar
        self._cache_size = cache_size
        self._cache: OrderedDict[tuple, Any] = OrderedDict()
        self._cache_lock = threading.Lock()
        self._sink = sink
        self.cache_hits = 0
        self.cache_misses = 0

    # -- cache ----------------------------------------------------------------

    def _cached(self, key: tuple) -> Any | None:
        with self._cache_lock:
            report = self._cache.get(key)
            if report is None:
                self.cache_misses += 1
                return None
            self._cache.move_to_end(key)
            self.cache_hits += 1
            return report

    def _remember(self, key: tuple, report: Any) -> None:
        with self._cache_lock:
            self._cache[key] = report
            self._cache.move_to_end(key)
            while len(self._cache) > self._cache_size:
                self._cache.popitem(last=False)

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    # -- reports --------------------------------------------------------------

    def _period_invoices(self, vendor_id: str, period: ReportPeriod) -> tuple:
        return select_invoices(
            vendor_id, period, self._invoices.list_for_vendor(vendor_id), self._calendar
        )

    def gstr1(self, vendor_id: str, period: ReportPeriod) -> Gstr1Report:
        invoices = self._period_invoices(vendor_id, period)
        key = ("gstr1", vendor_id, period.label, compute_data_version(invoices), 0)
        report = self._cached(key)
        if report is None:
            report = build_gstr1(
                vendor_id=vendor_id,
                period=period,
                invoices=invoices,
                fiscal_calendar=self._calendar,
            )
            self._remember(key, report)
            logger.info(
                "report_generated",
                extra={
                    "report_kind": "gstr1",
                    "vendor_id": vendor_id,
                    "period": period.label,
                    "report_id": report.report_id,
                    "invoice_count": len(invoices),
                },
            )
        return report

    def gstr3b(
        self, vendor_id: str, period: ReportPeriod, input_tax_credit: int = 0
    ) -> Gstr3bReport:
        invoices = self._period_invoices(vendor_id, period)
        key = ("gstr3b", vendor_id, period.label, compute_data_version(invoices), input_tax_credit)
        report = self._cached(key)
        if report is None:
            report = build_gstr3b(
                vendor_id=vendor_id,
                period=period,
                invoices=invoices,
                fiscal_calendar=self._calendar,
                input_tax_credit=input_tax_credit,
            )
            self._remember(key, report)
            logger.info(
                "report_generated",
                extra={
                    "report_kind": "gstr3b",
                    "vendor_id": vendor_id,
                    "period": period.label,
                    "report_id": report.report_id,
                    "invoice_count": len(invoices),
                },
            )
        return report

    def build(self, kind: str, vendor_id: str, period: ReportPeriod, **options: Any) -> Any:
        """Dispatch by report kind name (``gstr1`` or ``gstr3b``)."""
        if kind == "gstr1":
            return self.gstr1(vendor_id, period)
        if kind == "gstr3b":
            return self.gstr3b(vendor_id, period, **options)
        raise ReportNotFound(kind)

    def tds_statement(self, vendor_id: str, fiscal_year: str, quarter: int) -> TdsQuarterlyStatement:
        return self._tds.quarterly_statement(
            vendor_id=vendor_id,
            fiscal_year=fiscal_year,
            quarter=quarter,
            records=self._tds_register.records_for_quarter(vendor_id, fiscal_year, quarter),
        )

    def annual_gst_summary(
        self,
        vendor_id: str,
        fiscal_year: str,
        input_tax_credit: dict[str, int] | None = None,
    ) -> AnnualGstSummary:
        """Twelve monthly GSTR-3B returns for ``fiscal_year`` and their totals."""
        summary = build_annual_gst_summary(
            vendor_id=vendor_id,
            fiscal_year=fiscal_year,
            invoices=self._invoices.list_for_vendor(vendor_id),
            fiscal_calendar=self._calendar,
            input_tax_credit=input_tax_credit,
        )
        logger.info(
            "report_generated",
            extra={
                "report_kind": "gst_annual",
                "vendor_id": vendor_id,
                "period": fiscal_year,
                "report_id": summary.report_id,
                "invoice_count": summary.invoice_count,
            },
        )
        return summary

    def annual_tds_summary(self, vendor_id: str, fiscal_year: str) -> TdsAnnualSummary:
        """The four quarterly TDS statements for ``fiscal_year`` and their totals."""
        return self._tds.annual_summary(
            vendor_id=vendor_id,
            fiscal_year=fiscal_year,
            records=self._tds_register.records_for_year(vendor_id, fiscal_year),
        )

    # -- export ---------------------------------------------------------------

    def export(
        self,
        report: Exportable,
        fmt: str = "json",
        sink: ExportSink | None = None,
    ) -> str:
        """Serialize ``report`` and write it to ``sink`` (or the default sink)."""
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"unknown export format {fmt!r}; expected one of {sorted(EXPORT_FORMATS)}")
        target = sink or self._sink
        if target is None:
            raise ValueError("no export sink configured")

        if isinstance(report, TdsQuarterlyStatement):
            name = f"TDS_{report.vendor_id}_{report.fiscal_year}_Q{report.quarter}.{fmt}"
        elif isinstance(report, TdsAnnualSummary):
            name = f"TDS_{report.vendor_id}_{report.fiscal_year}_ANNUAL.{fmt}"
        elif isinstance(report, AnnualGstSummary):
            name = f"GST_{report.vendor_id}_{report.fiscal_year}_ANNUAL.{fmt}"
        else:
            name = f"{report.kind.upper()}_{report.vendor_id}_{report.period}.{fmt}"
        data = to_csv_bytes(report, self._calendar) if fmt == "csv" else to_json_bytes(report)
        return target.write(name, data)
