"""
Invoicing module

- Monthly service invoices generated from customer service agreements,
  at most one per customer and month
- One-time invoices and credit notes (issued when an invoice is cancelled)
- Status lifecycle pending -> sent -> paid, with cancellation; ``overdue`` is
  derived at read time
- PDF download and email dispatch

Tables:
- invoices: invoices and credit notes
- document_sequences: numbering shared with quotes
"""

from .models import Invoice, InvoiceKind, InvoiceStatus
from .schemas import InvoiceOut, InvoiceList
from .service import InvoiceService

__all__ = [
    "Invoice", "InvoiceKind", "InvoiceStatus",
    "InvoiceOut", "InvoiceList",
    "InvoiceService"
]
