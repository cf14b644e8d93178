"""
Invoicing Module (``gst_modules.invoicing``).

Responsibility
--------------
Invoice generation from taxed orders, invoice storage and the invoice
status workflow.
"""

from gst_modules.invoicing.generator import InvoiceGenerator
from gst_modules.invoicing.service import InvoiceService
from gst_modules.invoicing.workflows import INVOICE_WORKFLOW

__all__ = [
    "INVOICE_WORKFLOW",
    "InvoiceGenerator",
    "InvoiceService",
]
