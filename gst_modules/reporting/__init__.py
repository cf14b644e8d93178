"""
Reporting Module (``gst_modules.reporting``).

Responsibility
--------------
GSTR-1 / GSTR-3B returns and TDS quarterly statements, with caching and
JSON / CSV export.
"""

from gst_modules.reporting.export import (
    ExportSink,
    FileSystemExportSink,
    to_csv_bytes,
    to_json_bytes,
)
from gst_modules.reporting.service import REPORT_KINDS, ReportingService

__all__ = [
    "REPORT_KINDS",
    "ExportSink",
    "FileSystemExportSink",
    "ReportingService",
    "to_csv_bytes",
    "to_json_bytes",
]
