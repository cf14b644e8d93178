"""
GST Kernel - settlement infrastructure

Shared infrastructure for the GST settlement engine:
- Typed, coded exceptions
- Structured JSON logging
- Storage port with in-memory and SQLAlchemy adapters
- Invoice sequence allocation and the commission ledger
"""

__version__ = "0.1.0"
