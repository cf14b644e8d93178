"""
Invoice Workflow (``gst_modules.invoicing.workflows``).

Responsibility
--------------
Declares the invoice lifecycle: ``generated -> sent -> acknowledged``.
Only the status moves; the financial content of an invoice is fixed when
it is generated.

Architecture position
---------------------
**Modules layer** -- declarative workflow definition.  Imports
``Transition`` and ``Workflow`` from ``gst_kernel.domain.workflow``.

Failure modes
-------------
* Any undeclared transition raises ``InvalidStatusTransition`` from
  ``Workflow.next_state``.
"""

from gst_kernel.domain.invoice import InvoiceStatus
from gst_kernel.domain.workflow import Transition, Workflow
from gst_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.workflows")


INVOICE_WORKFLOW = Workflow(
    name="gst_invoice",
    description="Tax invoice delivery to the customer",
    initial_state=InvoiceStatus.GENERATED.value,
    states=tuple(status.value for status in InvoiceStatus),
    transitions=(
        Transition(InvoiceStatus.GENERATED.value, InvoiceStatus.SENT.value, action="send"),
        Transition(InvoiceStatus.SENT.value, InvoiceStatus.ACKNOWLEDGED.value, action="acknowledge"),
    ),
    terminal_states=(InvoiceStatus.ACKNOWLEDGED.value,),
)

logger.info(
    "invoice_workflow_defined",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
    },
)
