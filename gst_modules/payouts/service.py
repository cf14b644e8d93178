"""
Payout Service (``gst_modules.payouts.service``).

Responsibility
--------------
Transfers a settled order's net vendor amount through a
``PayoutDispatcher`` and marks the ledger entry settled once the transfer
succeeds.

Architecture position
---------------------
**Modules layer**.  The gateway sits behind ``PayoutDispatcher``; this
package ships no concrete gateway.

Invariants enforced
-------------------
* One idempotency key per logical payout, sent unchanged on every attempt,
  so the gateway performs at most one transfer.
* Each attempt number is claimed with ``put_if_absent`` before the
  gateway is called, in the same unit of work that records the attempt
  count; two callers never run the same attempt and a crash never strands
  a claim.
* A completed instruction is never dispatched again.
* At most ``max_attempts`` attempts.

Failure modes
-------------
* ``PayoutDispatchError``  -- gateway failure; the instruction is marked
  failed and the error re-raised.  Retrying with the same key is safe.
* ``PayoutRetriesExhausted``  -- attempt limit reached.
* ``LedgerEntryNotFound``  -- the order was never settled.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import replace

from gst_kernel.domain.clock import Clock, SystemClock
from gst_kernel.exceptions import DuplicateRecordError, PayoutDispatchError, PayoutRetriesExhausted
from gst_kernel.logging_config import LogContext, get_logger
from gst_kernel.services.ledger_service import CommissionLedger
from gst_kernel.storage.port import StoragePort
from gst_kernel.utils.idempotency import generate_idempotency_key
from gst_modules.payouts.models import (
    PAYOUT_WORKFLOW,
    PayoutInstruction,
    PayoutStatus,
    TransferReceipt,
)

logger = get_logger("modules.payouts")


class PayoutDispatcher(ABC):
    """Port to the payment gateway."""

    @abstractmethod
    def transfer(self, vendor_id: str, amount: int, idempotency_key: str) -> TransferReceipt:
        """
        Move ``amount`` paise to the vendor.

        Implementations must treat a repeated ``idempotency_key`` as the
        same transfer.

        Raises:
            PayoutDispatchError: the transfer did not happen.
        """


class PayoutService:
    """Idempotent payout dispatch for settled orders."""

    NAMESPACE = "payouts"
    ATTEMPTS = "payout_attempts"

    def __init__(
        self,
        storage: StoragePort,
        ledger: CommissionLedger,
        dispatcher: PayoutDispatcher,
        max_attempts: int = 5,
        clock: Clock | None = None,
    ):
        self._storage = storage
        self._ledger = ledger
        self._dispatcher = dispatcher
        self._max_attempts = max_attempts
        self._clock = clock or SystemClock()

    @staticmethod
    def default_key(order_id: str) -> str:
        return generate_idempotency_key("settlement", "payout", order_id)

    def find(self, idempotency_key: str) -> PayoutInstruction | None:
        data = self._storage.get(self.NAMESPACE, idempotency_key)
        return PayoutInstruction.from_dict(data) if data is not None else None

    def _save(self, instruction: PayoutInstruction) -> None:
        self._storage.set(self.NAMESPACE, instruction.idempotency_key, instruction.to_dict())

    def _instruction_for(self, order_id: str, key: str) -> PayoutInstruction:
        entry = self._ledger.get(order_id)
        self._storage.put_if_absent(
            self.NAMESPACE,
            key,
            PayoutInstruction(
                idempotency_key=key,
                vendor_id=entry.vendor_id,
                order_id=order_id,
                amount=entry.net_vendor_amount,
                created_at=self._clock.now(),
            ).to_dict(),
        )
        instruction = self.find(key)
        if instruction.order_id != order_id:
            raise PayoutDispatchError(key, f"key already used for order {instruction.order_id}")
        return instruction

    def _claim_attempt(self, key: str, attempt: int) -> PayoutInstruction | None:
        """
        Claim ``attempt`` and record it on the instruction in one unit of
        work, so a crash never leaves a claim without its attempt count.

        None when another caller got there first.
        """
        try:
            with self._storage.unit_of_work():
                current = self.find(key)
                if current.status == PayoutStatus.COMPLETED or current.attempts != attempt - 1:
                    return None
                if not self._storage.put_if_absent(
                    self.ATTEMPTS,
                    f"{key}#{attempt}",
                    {"attempt": attempt, "claimed_at": self._clock.now().isoformat()},
                ):
                    return None
                claimed = replace(current, attempts=attempt)
                self._save(claimed)
        except DuplicateRecordError:
            return None
        return claimed

    def dispatch(self, order_id: str, idempotency_key: str | None = None) -> PayoutInstruction:
        """
        Pay the vendor for ``order_id``.

        Returns the instruction as it stands after this call.  When another
        caller holds the current attempt, the instruction is returned
        unchanged without calling the gateway.
        """
        key = idempotency_key or self.default_key(order_id)
        with LogContext.bind(order_id=order_id):
            instruction = self._instruction_for(order_id, key)

            if instruction.status == PayoutStatus.COMPLETED:
                self._ledger.mark_settled(order_id, instruction.transfer_reference)
                logger.info("payout_already_completed", extra={"idempotency_key": key})
                return instruction

            if instruction.attempts >= self._max_attempts:
                logger.error(
                    "payout_retries_exhausted",
                    extra={"idempotency_key": key, "attempts": instruction.attempts},
                )
                raise PayoutRetriesExhausted(key, instruction.attempts)

            claimed = self._claim_attempt(key, instruction.attempts + 1)
            if claimed is None:
                logger.info(
                    "payout_attempt_in_flight",
                    extra={"idempotency_key": key, "attempt": instruction.attempts + 1},
                )
                return self.find(key)

            instruction = claimed
            attempt = instruction.attempts
            logger.info(
                "payout_dispatch_started",
                extra={
                    "idempotency_key": key,
                    "vendor_id": instruction.vendor_id,
                    "amount": instruction.amount,
                    "attempt": attempt,
                },
            )

            try:
                receipt = self._dispatcher.transfer(
                    vendor_id=instruction.vendor_id,
                    amount=instruction.amount,
                    idempotency_key=key,
                )
            except PayoutDispatchError as exc:
                failed = replace(
                    instruction,
                    status=PayoutStatus(PAYOUT_WORKFLOW.next_state(instruction.status.value, "fail")),
                    last_error=exc.reason,
                )
                self._save(failed)
                logger.warning(
                    "payout_dispatch_failed",
                    extra={"idempotency_key": key, "attempt": attempt, "reason": exc.reason},
                )
                raise

            completed = replace(
                instruction,
                status=PayoutStatus(PAYOUT_WORKFLOW.next_state(instruction.status.value, "complete")),
                transfer_reference=receipt.reference,
                last_error=None,
            )
            self._save(completed)
            self._ledger.mark_settled(order_id, receipt.reference)
            logger.info(
                "payout_dispatch_completed",
                extra={
                    "idempotency_key": key,
                    "attempt": attempt,
                    "transfer_reference": receipt.reference,
                },
            )
            return completed
