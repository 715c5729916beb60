"""
Numbering and ORM-to-document conversion.

``invoice_document`` and ``quote_document`` snapshot an entity into the frozen
value objects the renderer consumes, so rendering never reads the session.
"""
from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.modules.documents.models import DocumentSequence
from app.modules.documents.schemas import DocumentKind, DocumentLine, DocumentModel, Recipient

logger = logging.getLogger(__name__)

INVOICE_SEQUENCE = "invoice"
QUOTE_SEQUENCE = "quote"


def next_document_number(db: Session, name: str) -> int:
    """
    Hand out the next number in series ``name``.

    The counter row is locked until the caller commits. Numbers are unique
    but a rolled back transaction leaves a gap.
    """
    sequence = (
        db.query(DocumentSequence)
        .filter(DocumentSequence.name == name)
        .with_for_update()
        .first()
    )
    if not sequence:
        sequence = DocumentSequence(name=name, current_number=0)
        db.add(sequence)
        db.flush()

    sequence.current_number += 1
    db.flush()
    logger.debug(f"Allocated {name} number {sequence.current_number}")
    return sequence.current_number


def recipient_for(customer) -> Recipient:
    if customer is None:
        return Recipient()
    return Recipient(
        name=customer.full_name,
        company_name=customer.company_name,
        org_number=customer.org_number,
        address=customer.address,
        postal_code=customer.postal_code,
        city=customer.city,
        email=customer.email,
    )


def invoice_document(invoice) -> DocumentModel:
    kind = DocumentKind.CREDIT_NOTE if invoice.is_credit_note else DocumentKind.INVOICE
    line = DocumentLine(
        description=invoice.description or f"Serviceavtal {invoice.service_type or settings.DEFAULT_SERVICE_TYPE}",
        total=Decimal(invoice.amount),
    )
    return DocumentModel(
        kind=kind,
        number=invoice.invoice_number,
        issue_date=invoice.invoice_date,
        recipient=recipient_for(invoice.customer),
        subtotal=Decimal(invoice.amount),
        vat_rate=Decimal(invoice.vat_rate),
        vat_amount=Decimal(invoice.vat_amount),
        total=Decimal(invoice.total),
        lines=(line,),
        due_date=invoice.due_date,
        period_start=invoice.period_start,
        period_end=invoice.period_end,
    )


def quote_document(quote) -> DocumentModel:
    lines = tuple(
        DocumentLine(
            description=item.description,
            details=item.details,
            quantity=Decimal(item.quantity),
            unit=item.unit,
            unit_price=Decimal(item.unit_price),
            total=Decimal(item.total),
        )
        for item in sorted(quote.items, key=lambda i: i.sort_order)
    )
    return DocumentModel(
        kind=DocumentKind.QUOTE,
        number=quote.quote_number,
        issue_date=quote.valid_from or quote.created_at.date(),
        recipient=recipient_for(quote.customer),
        subtotal=Decimal(quote.subtotal),
        vat_rate=Decimal(quote.vat_rate),
        vat_amount=Decimal(quote.vat_amount),
        total=Decimal(quote.total),
        lines=lines,
        valid_until=quote.valid_until,
        title=quote.title,
        description=quote.description,
        notes=quote.notes,
        terms=quote.terms,
    )
