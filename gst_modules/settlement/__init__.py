"""
Settlement Module (``gst_modules.settlement``).

Responsibility
--------------
Order settlement: invoice, TDS, payment split and commission ledger entry
in one unit of work.
"""

from gst_modules.settlement.service import SettlementResult, SettlementService
from gst_modules.settlement.tds_register import TdsRegister

__all__ = [
    "SettlementResult",
    "SettlementService",
    "TdsRegister",
]
