"""
Module: gst_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for gst_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import gst_kernel.domain, gst_kernel.exceptions,
    gst_kernel.utils and sibling engine modules.
    MUST NOT import gst_kernel.storage, gst_kernel.services or gst_modules.

Invariants enforced:
    - Purity: engines never read the wall clock.  Timestamps are passed in
      by the caller.
    - Integer paise for money, Decimal for rates; floats are refused.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine`` (see
    ``gst_engines.tracer``), emitting GST_ENGINE_TRACE records with engine
    name, version, input fingerprint and duration.
"""

from gst_engines.gst import (
    GSTCalculator,
    TaxCalculation,
    floor_percent,
    normalize_jurisdiction,
)
from gst_engines.gstin import (
    compute_check_character,
    is_valid_gstin,
    pan_of,
    state_code_of,
    validate_gstin,
)
from gst_engines.rates import RateEntry, RateResolver
from gst_engines.reports import (
    AnnualGstSummary,
    B2CSmallRow,
    Gstr1InvoiceRow,
    Gstr1Report,
    Gstr3bReport,
    ReportTotals,
    build_annual_gst_summary,
    build_gstr1,
    build_gstr3b,
    compute_data_version,
    select_invoices,
)
from gst_engines.split import PaymentSplitCalculator, PayoutSplit, to_percentage
from gst_engines.tds import (
    TDSCalculator,
    TdsAnnualSummary,
    TdsPolicy,
    TdsQuarterlyStatement,
    TDSRecord,
)
from gst_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "AnnualGstSummary",
    "B2CSmallRow",
    "GSTCalculator",
    "Gstr1InvoiceRow",
    "Gstr1Report",
    "Gstr3bReport",
    "PaymentSplitCalculator",
    "PayoutSplit",
    "RateEntry",
    "RateResolver",
    "ReportTotals",
    "TDSCalculator",
    "TDSRecord",
    "TaxCalculation",
    "TdsAnnualSummary",
    "TdsPolicy",
    "TdsQuarterlyStatement",
    "build_annual_gst_summary",
    "build_gstr1",
    "build_gstr3b",
    "compute_check_character",
    "compute_data_version",
    "compute_input_fingerprint",
    "floor_percent",
    "is_valid_gstin",
    "normalize_jurisdiction",
    "pan_of",
    "select_invoices",
    "state_code_of",
    "to_percentage",
    "traced_engine",
    "validate_gstin",
]
