"""
InMemoryStorage -- thread-safe StoragePort adapter for tests and single
process deployments.

Concurrency model:
    - Record reads and writes take ``_lock`` (an RLock).  A unit of work
      holds that lock for its whole duration, so units of work from
      different threads are serialized and each one commits atomically.
    - Counters have their own lock and never wait on an open unit of work.
    - Running totals go through ``_lock`` like records and are buffered
      with the unit of work.
    - Values are stored as canonical JSON strings, matching the SQL adapter.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from gst_kernel.logging_config import get_logger
from gst_kernel.storage.port import Record, StoragePort
from gst_kernel.utils.hashing import canonicalize_json

logger = get_logger("storage.memory")


class _PendingWrites(threading.local):
    def __init__(self) -> None:
        self.depth = 0
        self.writes: dict[tuple[str, str], str] = {}
        self.totals: dict[str, int] = {}


class InMemoryStorage(StoragePort):
    """Dict-backed storage.  See module docstring for locking."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, str]] = {}
        self._counters: dict[str, int] = {}
        self._totals: dict[str, int] = {}
        self._lock = threading.RLock()
        self._counter_lock = threading.Lock()
        self._pending = _PendingWrites()

    # -- records ------------------------------------------------------------

    def _lookup(self, namespace: str, key: str) -> str | None:
        if self._pending.depth:
            buffered = self._pending.writes.get((namespace, key))
            if buffered is not None:
                return buffered
        return self._records.get(namespace, {}).get(key)

    def _write(self, namespace: str, key: str, encoded: str) -> None:
        if self._pending.depth:
            self._pending.writes[(namespace, key)] = encoded
        else:
            self._records.setdefault(namespace, {})[key] = encoded

    def get(self, namespace: str, key: str) -> Record | None:
        with self._lock:
            encoded = self._lookup(namespace, key)
        return json.loads(encoded) if encoded is not None else None

    def set(self, namespace: str, key: str, value: Record) -> None:
        encoded = canonicalize_json(value)
        with self._lock:
            self._write(namespace, key, encoded)

    def put_if_absent(self, namespace: str, key: str, value: Record) -> bool:
        encoded = canonicalize_json(value)
        with self._lock:
            if self._lookup(namespace, key) is not None:
                return False
            self._write(namespace, key, encoded)
            return True

    def list(self, namespace: str, prefix: str = "") -> list[tuple[str, Record]]:
        with self._lock:
            merged = dict(self._records.get(namespace, {}))
            if self._pending.depth:
                for (ns, key), encoded in self._pending.writes.items():
                    if ns == namespace:
                        merged[key] = encoded
        return [
            (key, json.loads(encoded))
            for key, encoded in sorted(merged.items())
            if key.startswith(prefix)
        ]

    # -- counters -----------------------------------------------------------

    def increment(self, counter: str) -> int:
        with self._counter_lock:
            value = self._counters.get(counter, 0) + 1
            self._counters[counter] = value
        return value

    def current(self, counter: str) -> int:
        with self._counter_lock:
            return self._counters.get(counter, 0)

    # -- running totals -----------------------------------------------------

    def _current_total(self, name: str) -> int:
        if self._pending.depth and name in self._pending.totals:
            return self._pending.totals[name]
        return self._totals.get(name, 0)

    def add_to_total(self, name: str, amount: int) -> int:
        with self._lock:
            value = self._current_total(name) + amount
            if self._pending.depth:
                self._pending.totals[name] = value
            else:
                self._totals[name] = value
        return value

    def total(self, name: str) -> int:
        with self._lock:
            return self._current_total(name)

    # -- unit of work -------------------------------------------------------

    @contextmanager
    def unit_of_work(self) -> Iterator[InMemoryStorage]:
        with self._lock:
            outermost = self._pending.depth == 0
            self._pending.depth += 1
            try:
                yield self
            except BaseException:
                if outermost:
                    discarded = len(self._pending.writes) + len(self._pending.totals)
                    self._pending.writes.clear()
                    self._pending.totals.clear()
                    logger.debug("unit_of_work_rolled_back", extra={"discarded": discarded})
                raise
            else:
                if outermost:
                    for (namespace, key), encoded in self._pending.writes.items():
                        self._records.setdefault(namespace, {})[key] = encoded
                    self._pending.writes.clear()
                    self._totals.update(self._pending.totals)
                    self._pending.totals.clear()
            finally:
                self._pending.depth -= 1
