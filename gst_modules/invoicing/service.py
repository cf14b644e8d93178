"""
Invoice Service (``gst_modules.invoicing.service``).

Responsibility
--------------
Stores and retrieves invoices and moves them through ``INVOICE_WORKFLOW``.

Storage layout
--------------
* ``invoices/{invoice_number}`` -- the invoice (``VENDOR/FY/SEQUENCE``, so
  a ``{vendor_id}/`` prefix scan yields one vendor's invoices).
* ``invoice_by_order/{order_id}`` -- ``{"invoice_number": ...}``; the
  one-invoice-per-order guard.

Failure modes
-------------
* ``DuplicateRecordError``  -- the order already has an invoice.
* ``SequenceConflictError``  -- the invoice number is already stored.
* ``InvoiceNotFound``  -- lookups of unknown numbers or orders.
* ``InvalidStatusTransition``  -- undeclared status change.
"""

from __future__ import annotations

from gst_kernel.domain.invoice import Invoice, InvoiceStatus
from gst_kernel.exceptions import DuplicateRecordError, InvoiceNotFound, SequenceConflictError
from gst_kernel.logging_config import get_logger
from gst_kernel.storage.port import StoragePort
from gst_modules.invoicing.workflows import INVOICE_WORKFLOW

logger = get_logger("modules.invoicing.service")


class InvoiceService:
    """Invoice persistence and status changes over the storage port."""

    NAMESPACE = "invoices"
    ORDER_INDEX = "invoice_by_order"

    def __init__(self, storage: StoragePort):
        self._storage = storage

    def add(self, invoice: Invoice) -> None:
        """
        Store a newly generated invoice.  Call inside a unit of work.

        Raises:
            DuplicateRecordError: the order already has an invoice.
            SequenceConflictError: the number is already taken.
        """
        if not self._storage.put_if_absent(
            self.ORDER_INDEX, invoice.order_id, {"invoice_number": invoice.invoice_number}
        ):
            raise DuplicateRecordError(self.ORDER_INDEX, invoice.order_id)

        if not self._storage.put_if_absent(self.NAMESPACE, invoice.invoice_number, invoice.to_dict()):
            logger.critical(
                "invoice_number_collision",
                extra={"invoice_number": invoice.invoice_number, "order_id": invoice.order_id},
            )
            raise SequenceConflictError(
                invoice.invoice_number, invoice.sequence, "invoice number already stored"
            )

    def find(self, invoice_number: str) -> Invoice | None:
        data = self._storage.get(self.NAMESPACE, invoice_number)
        return Invoice.from_dict(data) if data is not None else None

    def get(self, invoice_number: str) -> Invoice:
        invoice = self.find(invoice_number)
        if invoice is None:
            raise InvoiceNotFound(invoice_number)
        return invoice

    def find_for_order(self, order_id: str) -> Invoice | None:
        pointer = self._storage.get(self.ORDER_INDEX, order_id)
        if pointer is None:
            return None
        return self.find(pointer["invoice_number"])

    def for_order(self, order_id: str) -> Invoice:
        invoice = self.find_for_order(order_id)
        if invoice is None:
            raise InvoiceNotFound(f"order {order_id}")
        return invoice

    def list_for_vendor(self, vendor_id: str, fiscal_year: str | None = None) -> list[Invoice]:
        """The vendor's invoices in (fiscal year, sequence) order."""
        prefix = f"{vendor_id}/" if fiscal_year is None else f"{vendor_id}/{fiscal_year}/"
        invoices = [Invoice.from_dict(data) for _, data in self._storage.list(self.NAMESPACE, prefix)]
        return sorted(invoices, key=lambda inv: (inv.fiscal_year, inv.sequence))

    def transition(self, invoice_number: str, action: str) -> Invoice:
        """
        Apply a workflow action and store the new status.

        Raises:
            InvoiceNotFound: unknown invoice.
            InvalidStatusTransition: ``action`` not allowed from the current status.
        """
        with self._storage.unit_of_work():
            invoice = self.get(invoice_number)
            new_status = INVOICE_WORKFLOW.next_state(invoice.status.value, action)
            updated = invoice.with_status(InvoiceStatus(new_status))
            self._storage.set(self.NAMESPACE, invoice_number, updated.to_dict())

        logger.info(
            "invoice_status_changed",
            extra={
                "invoice_number": invoice_number,
                "action": action,
                "from_status": invoice.status.value,
                "to_status": new_status,
            },
        )
        return updated

    def send(self, invoice_number: str) -> Invoice:
        return self.transition(invoice_number, "send")

    def acknowledge(self, invoice_number: str) -> Invoice:
        return self.transition(invoice_number, "acknowledge")
