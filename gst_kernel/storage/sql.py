"""
SqlAlchemyStorage -- StoragePort adapter over SQLAlchemy.

Responsibility:
    Persists records as canonical JSON in ``gst_records`` and counters as
    rows in ``gst_counters``.  PostgreSQL in production; SQLite for tests.

Architecture position:
    Kernel > Storage.  Imports ``db/`` only.

Invariants enforced:
    - Counter increments are a single ``UPDATE ... SET current_value =
      current_value + 1`` executed by the database, committed in their own
      session, so an allocated value survives a rollback of the caller's
      unit of work.  The SQL aggregate-max-plus-one pattern is never used.
    - Running totals are added to the same way but inside the open unit of
      work; the row stays locked until that unit of work ends.
    - ``(namespace, record_key)`` is unique at the database level; the
      constraint, not the pre-check, is what makes ``put_if_absent`` safe
      under concurrency.
    - The open unit of work is tracked in a ContextVar, so each thread (and
      each asyncio task) has its own.

Failure modes:
    - IntegrityError during counter or total creation: another session
      created the row first; retried a bounded number of times (totals
      retry inside a savepoint so the unit of work survives).
    - OperationalError (lost connection, lock timeout): raised as
      ``StorageError`` for the caller to retry.
    - On a single-connection engine (in-memory SQLite) every session shares
      one connection, so ``increment`` must be called outside an open unit
      of work there.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from itertools import count

from sqlalchemy import BigInteger, String, Text, UniqueConstraint, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker

from gst_kernel.db.base import Base
from gst_kernel.db.engine import session_scope
from gst_kernel.exceptions import DuplicateRecordError, StorageError
from gst_kernel.logging_config import get_logger
from gst_kernel.storage.port import Record, StoragePort
from gst_kernel.utils.hashing import canonicalize_json

logger = get_logger("storage.sql")

_instance_ids = count(1)


class KeyValueRecord(Base):
    """One JSON record, addressed by (namespace, record_key)."""

    __tablename__ = "gst_records"
    __table_args__ = (
        UniqueConstraint("namespace", "record_key", name="uq_gst_records_namespace_key"),
    )

    namespace: Mapped[str] = mapped_column(String(64), nullable=False)
    record_key: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)


class CounterRecord(Base):
    """
    Named counter.

    Each row holds the last value handed out.  The database performs the
    increment, so concurrent callers never read the same value.
    """

    __tablename__ = "gst_counters"

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class TotalRecord(Base):
    """Named running total, written inside the unit of work."""

    __tablename__ = "gst_totals"

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SqlAlchemyStorage(StoragePort):
    """
    StoragePort over a SQLAlchemy session factory.

    Usage:
        init_engine_from_url(url)
        create_tables()
        storage = SqlAlchemyStorage(get_session_factory())
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        counter_create_attempts: int = 3,
    ):
        self._factory = session_factory
        self._counter_create_attempts = counter_create_attempts
        self._active: ContextVar[Session | None] = ContextVar(
            f"gst_storage_session_{next(_instance_ids)}", default=None
        )

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        active = self._active.get()
        if active is not None:
            yield active
            return
        try:
            with session_scope(self._factory) as session:
                yield session
        except OperationalError as exc:
            raise StorageError(operation, str(exc.orig)) from exc

    @staticmethod
    def _find(session: Session, namespace: str, key: str) -> KeyValueRecord | None:
        return session.execute(
            select(KeyValueRecord).where(
                KeyValueRecord.namespace == namespace,
                KeyValueRecord.record_key == key,
            )
        ).scalar_one_or_none()

    # -- records ------------------------------------------------------------

    def get(self, namespace: str, key: str) -> Record | None:
        with self._session("get") as session:
            row = self._find(session, namespace, key)
            return json.loads(row.payload) if row is not None else None

    def set(self, namespace: str, key: str, value: Record) -> None:
        payload = canonicalize_json(value)
        try:
            with self._session("set") as session:
                row = self._find(session, namespace, key)
                if row is None:
                    session.add(KeyValueRecord(namespace=namespace, record_key=key, payload=payload))
                else:
                    row.payload = payload
                session.flush()
        except IntegrityError as exc:
            raise StorageError("set", f"{namespace}/{key} was created concurrently") from exc

    def put_if_absent(self, namespace: str, key: str, value: Record) -> bool:
        payload = canonicalize_json(value)
        active = self._active.get()

        if active is not None:
            if self._find(active, namespace, key) is not None:
                return False
            active.add(KeyValueRecord(namespace=namespace, record_key=key, payload=payload))
            try:
                active.flush()
            except IntegrityError as exc:
                # The transaction is unusable now; the unit of work rolls back
                raise DuplicateRecordError(namespace, key) from exc
            return True

        try:
            with self._session("put_if_absent") as session:
                if self._find(session, namespace, key) is not None:
                    return False
                session.add(KeyValueRecord(namespace=namespace, record_key=key, payload=payload))
        except IntegrityError:
            logger.debug(
                "put_if_absent_race_lost",
                extra={"namespace": namespace, "key": key},
            )
            return False
        return True

    def list(self, namespace: str, prefix: str = "") -> list[tuple[str, Record]]:
        with self._session("list") as session:
            stmt = select(KeyValueRecord).where(KeyValueRecord.namespace == namespace)
            if prefix:
                stmt = stmt.where(KeyValueRecord.record_key.startswith(prefix, autoescape=True))
            rows = session.execute(stmt.order_by(KeyValueRecord.record_key)).scalars().all()
            return [(row.record_key, json.loads(row.payload)) for row in rows]

    # -- counters -----------------------------------------------------------

    def increment(self, counter: str) -> int:
        bump = (
            update(CounterRecord)
            .where(CounterRecord.name == counter)
            .values(current_value=CounterRecord.current_value + 1)
            .execution_options(synchronize_session=False)
        )
        for attempt in range(1, self._counter_create_attempts + 1):
            session = self._factory()
            try:
                if session.execute(bump).rowcount == 0:
                    # First use; a concurrent creator makes the commit fail
                    session.add(CounterRecord(name=counter, current_value=1))
                    value = 1
                else:
                    # The UPDATE holds the row lock until commit
                    value = session.execute(
                        select(CounterRecord.current_value).where(CounterRecord.name == counter)
                    ).scalar_one()
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.debug(
                    "counter_creation_race_retry",
                    extra={"counter": counter, "attempt": attempt},
                )
                continue
            except OperationalError as exc:
                session.rollback()
                raise StorageError("increment", str(exc.orig)) from exc
            finally:
                session.close()

            logger.debug("counter_incremented", extra={"counter": counter, "value": value})
            return value

        raise StorageError(
            "increment",
            f"counter {counter} creation raced {self._counter_create_attempts} times",
        )

    def current(self, counter: str) -> int:
        with self._session("current") as session:
            value = session.execute(
                select(CounterRecord.current_value).where(CounterRecord.name == counter)
            ).scalar_one_or_none()
            return value or 0

    # -- running totals -----------------------------------------------------

    def add_to_total(self, name: str, amount: int) -> int:
        bump = (
            update(TotalRecord)
            .where(TotalRecord.name == name)
            .values(value=TotalRecord.value + amount)
            .execution_options(synchronize_session=False)
        )
        read = select(TotalRecord.value).where(TotalRecord.name == name)

        with self._session("add_to_total") as session:
            for attempt in range(1, self._counter_create_attempts + 1):
                if session.execute(bump).rowcount:
                    return session.execute(read).scalar_one()
                savepoint = session.begin_nested()
                try:
                    session.add(TotalRecord(name=name, value=amount))
                    session.flush()
                    savepoint.commit()
                    return amount
                except IntegrityError:
                    # Created concurrently; the UPDATE now finds it
                    savepoint.rollback()
                    logger.debug(
                        "total_creation_race_retry",
                        extra={"total": name, "attempt": attempt},
                    )
        raise StorageError(
            "add_to_total",
            f"total {name} creation raced {self._counter_create_attempts} times",
        )

    def total(self, name: str) -> int:
        with self._session("total") as session:
            value = session.execute(
                select(TotalRecord.value).where(TotalRecord.name == name)
            ).scalar_one_or_none()
            return value or 0

    # -- unit of work -------------------------------------------------------

    @contextmanager
    def unit_of_work(self) -> Iterator[SqlAlchemyStorage]:
        if self._active.get() is not None:
            yield self
            return
        try:
            with session_scope(self._factory) as session:
                token = self._active.set(session)
                try:
                    yield self
                finally:
                    self._active.reset(token)
        except OperationalError as exc:
            raise StorageError("unit_of_work", str(exc.orig)) from exc
