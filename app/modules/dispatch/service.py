"""
Render, email and mark as sent, in that order.

The entity row stays locked (``SELECT ... FOR UPDATE`` where the database
supports it) from the sendable check until the status write commits, so two
concurrent sends of the same document cannot both go out. A failure before
the email leaves the entity untouched. A failure after it is reported as
``PostSendTransitionFailure`` because the customer may already have the email.
Nothing is retried here.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.common.clock import utcnow
from app.common.errors import (
    DispatchTransportFailure, EntityNotFound, IllegalTransition, MissingRecipientEmail,
    PostSendTransitionFailure, RenderFailure, TransportOutcomeUnknown,
)
from app.common.lifecycle import Lifecycle
from app.core.config import settings
from app.modules.company.service import get_issuer_profile
from app.modules.documents import renderer
from app.modules.documents.formatting import month_label
from app.modules.documents.renderer import DocumentLayout
from app.modules.documents.schemas import PDF_CONTENT_TYPE, DocumentModel
from app.modules.documents.service import invoice_document, quote_document
from app.modules.email.service import (
    EmailAttachment, EmailMessage, EmailService, EmailTransportError, email_service as default_email_service,
)
from app.modules.invoices.lifecycle import INVOICE_LIFECYCLE, MARK_SENT as INVOICE_MARK_SENT
from app.modules.invoices.models import Invoice
from app.modules.quotes.lifecycle import QUOTE_LIFECYCLE, MARK_SENT as QUOTE_MARK_SENT
from app.modules.quotes.models import Quote

logger = logging.getLogger(__name__)


@dataclass
class Outgoing:
    """Everything needed to send one document, built before the send"""
    entity_type: str
    entity: Any
    lifecycle: Lifecycle
    action: str
    recipient: str
    document: DocumentModel
    subject: str
    template: str
    context: Dict[str, Any]
    on_sent: Optional[Callable[[], None]] = None


class DispatchCoordinator:
    def __init__(self, db: Session, email_service: Optional[EmailService] = None,
                 layout: Optional[DocumentLayout] = None):
        self.db = db
        self.email_service = email_service or default_email_service
        self.layout = layout

    def dispatch_invoice(self, invoice_id: UUID, now: Optional[datetime] = None) -> Invoice:
        """Email a pending invoice with its PDF and mark it as sent."""
        invoice = self._load(Invoice, "invoice", invoice_id)
        self._check_sendable(invoice, "invoice", INVOICE_LIFECYCLE, INVOICE_MARK_SENT)
        recipient = self._recipient_email(invoice, "invoice")

        document = invoice_document(invoice)
        period_label = month_label(invoice.period_start) if invoice.period_start else None
        subject = f"Faktura #{invoice.invoice_number}"
        if period_label:
            subject = f"{subject} - {period_label}"

        return self._send(Outgoing(
            entity_type="invoice",
            entity=invoice,
            lifecycle=INVOICE_LIFECYCLE,
            action=INVOICE_MARK_SENT,
            recipient=recipient,
            document=document,
            subject=subject,
            template="invoice_email.html",
            context={"period_label": period_label},
        ), now)

    def dispatch_quote(self, quote_id: UUID, now: Optional[datetime] = None) -> Quote:
        """Email a draft quote with its PDF and a response link, then mark it as sent."""
        quote = self._load(Quote, "quote", quote_id)
        self._check_sendable(quote, "quote", QUOTE_LIFECYCLE, QUOTE_MARK_SENT)
        recipient = self._recipient_email(quote, "quote")

        token = quote.public_token or secrets.token_hex(32)

        def on_sent():
            quote.sent_to_email = recipient
            quote.public_token = token

        return self._send(Outgoing(
            entity_type="quote",
            entity=quote,
            lifecycle=QUOTE_LIFECYCLE,
            action=QUOTE_MARK_SENT,
            recipient=recipient,
            document=quote_document(quote),
            subject=f"Offert #{quote.quote_number} - {quote.title}",
            template="quote_email.html",
            context={"quote_url": f"{settings.SITE_URL.rstrip('/')}/offert/{token}"},
            on_sent=on_sent,
        ), now)

    # ===== Steps =====

    def _load(self, model, entity_type: str, entity_id: UUID):
        entity = self.db.query(model).filter(model.id == entity_id).with_for_update().first()
        if not entity:
            self.db.rollback()
            raise EntityNotFound(entity_type, entity_id)
        return entity

    def _check_sendable(self, entity, entity_type: str, lifecycle: Lifecycle, action: str):
        if not lifecycle.can_apply(entity, action):
            self.db.rollback()
            raise IllegalTransition(entity_type, entity.status, "send")

    def _recipient_email(self, entity, entity_type: str) -> str:
        customer = entity.customer
        if customer is None or not customer.email:
            self.db.rollback()
            raise MissingRecipientEmail(f"The customer on {entity_type} {entity.id} has no email address")
        return customer.email

    def _send(self, outgoing: Outgoing, now: Optional[datetime]):
        entity = outgoing.entity
        entity_id = entity.id
        label = f"{outgoing.entity_type} #{outgoing.document.number}"

        issuer = get_issuer_profile(self.db)

        try:
            pdf = renderer.render(outgoing.document, issuer, self.layout)
            html = self.email_service.render_template(
                outgoing.template,
                {"doc": outgoing.document, "issuer": issuer, **outgoing.context},
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Rendering {label} failed: {str(e)}", exc_info=True)
            raise RenderFailure(
                f"Could not render {label}", outgoing.entity_type, entity_id, "render", cause=e
            ) from e

        message = EmailMessage(
            to=[outgoing.recipient],
            subject=outgoing.subject,
            html=html,
            attachments=[EmailAttachment(outgoing.document.filename, pdf, PDF_CONTENT_TYPE)],
        )
        logger.info(f"Sending {label} to {outgoing.recipient}")

        try:
            self.email_service.send(message)
        except EmailTransportError as e:
            self.db.rollback()
            raise DispatchTransportFailure(
                f"Email for {label} could not be delivered: {str(e)}",
                outgoing.entity_type, entity_id, "transport", cause=e,
            ) from e
        except Exception as e:
            self.db.rollback()
            logger.error(f"Unexpected error while sending {label} to {outgoing.recipient}", exc_info=True)
            raise TransportOutcomeUnknown(
                f"Sending {label} failed unexpectedly, check whether the email went out",
                outgoing.entity_type, entity_id, "transport", cause=e,
            ) from e

        try:
            outgoing.lifecycle.apply(entity, outgoing.action, now or utcnow())
            if outgoing.on_sent:
                outgoing.on_sent()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"{label} was emailed to {outgoing.recipient} but its status could not be saved",
                exc_info=True,
            )
            raise PostSendTransitionFailure(
                f"{label} was emailed but could not be marked as sent",
                outgoing.entity_type, entity_id, "transition", cause=e,
            ) from e

        self.db.refresh(entity)
        logger.info(f"{label} sent to {outgoing.recipient}")
        return entity
