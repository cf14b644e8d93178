"""
StoragePort -- the persistence boundary of the settlement engine.

Responsibility:
    Declares the small key/value + counter contract that invoices, ledger
    entries, TDS records, payout instructions and invoice sequence counters
    are stored through.  Services depend on this port only, never on a
    concrete database.

Architecture position:
    Kernel > Storage.  Adapters: ``InMemoryStorage`` (tests, single
    process) and ``SqlAlchemyStorage`` (production).

Invariants enforced:
    - ``put_if_absent`` is the only way to create a record that must exist
      at most once (one invoice per order, one ledger entry per order).
    - ``increment`` commits on its own, outside any open unit of work.
      A consumed counter value is never handed out again, even when the
      caller's unit of work later rolls back.
    - ``add_to_total`` is the only way to move a running total (the TDS
      gross per vendor and fiscal year); read-modify-write through
      ``get`` / ``set`` would lose concurrent additions.
    - ``unit_of_work`` is all-or-nothing: every ``set`` / ``put_if_absent``
      issued inside it becomes visible together or not at all.

Failure modes:
    - ``StorageError`` for transient backend failures (retryable by the
      caller where the caller says so).
    - ``DuplicateRecordError`` when a concurrent writer created the same
      key inside an open unit of work; the unit of work is rolled back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any

Record = dict[str, Any]


class StoragePort(ABC):
    """
    Namespaced JSON record store with atomic counters.

    Contract:
        Values are JSON-compatible dicts.  Adapters serialize them so that a
        value read back is equal to, but never the same object as, the value
        written.  ``list`` returns ``(key, value)`` pairs sorted by key.
    """

    @abstractmethod
    def get(self, namespace: str, key: str) -> Record | None:
        """Return the record or None."""

    @abstractmethod
    def set(self, namespace: str, key: str, value: Record) -> None:
        """Create or overwrite a record."""

    @abstractmethod
    def put_if_absent(self, namespace: str, key: str, value: Record) -> bool:
        """Create the record only if the key is unused. True if written."""

    @abstractmethod
    def list(self, namespace: str, prefix: str = "") -> list[tuple[str, Record]]:
        """Records whose key starts with ``prefix``, sorted by key."""

    @abstractmethod
    def increment(self, counter: str) -> int:
        """Atomically add one to ``counter`` and return the new value (>= 1)."""

    @abstractmethod
    def current(self, counter: str) -> int:
        """Last value handed out by ``increment`` (0 if never used)."""

    @abstractmethod
    def add_to_total(self, name: str, amount: int) -> int:
        """
        Atomically add ``amount`` to the running total ``name`` and return
        the new total.

        Unlike ``increment`` this joins the open unit of work: a rollback
        undoes the addition.  Concurrent callers are serialized on the
        total, so each one sees every addition committed before it.
        """

    @abstractmethod
    def total(self, name: str) -> int:
        """Current value of a running total (0 if never added to)."""

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[StoragePort]:
        """All-or-nothing scope for record writes.  Nested scopes join the outer one."""
