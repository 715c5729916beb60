from datetime import date

from app.common.lifecycle import Lifecycle, Transition
from app.modules.invoices.models import InvoiceStatus

OVERDUE = "overdue"

MARK_SENT = "mark_sent"
MARK_PAID = "mark_paid"
CANCEL = "cancel"

INVOICE_LIFECYCLE = Lifecycle(
    entity_type="invoice",
    status_enum=InvoiceStatus,
    initial=InvoiceStatus.PENDING,
    transitions=[
        Transition(MARK_SENT, frozenset({InvoiceStatus.PENDING}), InvoiceStatus.SENT, stamp="sent_at"),
        # pending -> paid covers payments received before the invoice was emailed
        Transition(MARK_PAID, frozenset({InvoiceStatus.PENDING, InvoiceStatus.SENT}), InvoiceStatus.PAID, stamp="paid_at"),
        Transition(CANCEL, frozenset({InvoiceStatus.PENDING, InvoiceStatus.SENT}), InvoiceStatus.CANCELLED),
    ],
)

OPEN_STATUSES = frozenset({InvoiceStatus.PENDING, InvoiceStatus.SENT})


def is_overdue(invoice, today: date) -> bool:
    return INVOICE_LIFECYCLE.status_of(invoice) in OPEN_STATUSES and invoice.due_date < today


def effective_status(invoice, today: date) -> str:
    """Stored status, or ``overdue`` for an open invoice past its due date."""
    if is_overdue(invoice, today):
        return OVERDUE
    return INVOICE_LIFECYCLE.status_of(invoice).value
