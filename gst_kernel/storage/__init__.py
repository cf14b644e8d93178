"""Storage port and adapters."""

from gst_kernel.storage.memory import InMemoryStorage
from gst_kernel.storage.port import Record, StoragePort
from gst_kernel.storage.sql import SqlAlchemyStorage

__all__ = [
    "InMemoryStorage",
    "Record",
    "SqlAlchemyStorage",
    "StoragePort",
]
