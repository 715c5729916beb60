"""
Tests for sending invoices and quotes by email

The recording email transport from conftest stands in for SMTP; templates
and PDFs are rendered for real.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from app.common.errors import (
    DispatchTransportFailure, IllegalTransition, MissingRecipientEmail,
    PostSendTransitionFailure, RenderFailure, TransportOutcomeUnknown,
)
from app.core.config import settings
from app.modules.dispatch.service import DispatchCoordinator
from app.modules.documents.renderer import DocumentLayout
from app.modules.invoices.ledger import BillingPeriod
from app.modules.invoices.models import Invoice
from app.modules.invoices.service import InvoiceService
from app.modules.quotes.models import Quote
from app.modules.quotes.schemas import QuoteCreate, QuoteItemIn
from app.modules.quotes.service import QuoteService

NOW = datetime(2026, 3, 5, 9, 30, tzinfo=timezone.utc)


# ===== FIXTURES =====

@pytest.fixture
def invoice(db_session, service_customer, company):
    return InvoiceService(db_session).create_service_invoice(service_customer.id, BillingPeriod(2026, 3))


@pytest.fixture
def quote(db_session, make_customer, company):
    customer = make_customer()
    return QuoteService(db_session).create_quote(QuoteCreate(
        customer_id=customer.id,
        title="Ny webbplats",
        terms="Offerten gäller i 10 dagar.",
        items=[QuoteItemIn(description="Design", quantity=1, unit_price=Decimal("5000"))],
    ))


@pytest.fixture
def coordinator(db_session, fake_email):
    return DispatchCoordinator(db_session, fake_email)


def stored_invoice(db_session, invoice_id) -> Invoice:
    db_session.expire_all()
    return db_session.query(Invoice).filter(Invoice.id == invoice_id).one()


class BrokenLayout(DocumentLayout):
    def section_items(self, doc, issuer):
        raise RuntimeError("layout exploded")


# ===== INVOICES =====

class TestDispatchInvoice:

    def test_sends_pdf_and_marks_sent(self, coordinator, fake_email, invoice):
        sent = coordinator.dispatch_invoice(invoice.id, NOW)

        assert sent.status == "sent"
        assert sent.sent_at is not None
        assert len(fake_email.sent) == 1

        message = fake_email.sent[0]
        assert message.to == ["erik@example.se"]
        assert message.subject == f"Faktura #{invoice.invoice_number} - mars 2026"
        assert "994 kr" in message.html
        assert "123-4567" in message.html

        attachment = message.attachments[0]
        assert attachment.filename == f"faktura-{invoice.invoice_number}.pdf"
        assert attachment.content_type == "application/pdf"
        assert attachment.content.startswith(b"%PDF")

    def test_transport_failure_leaves_invoice_pending(self, coordinator, fake_email, invoice, db_session):
        fake_email.fail_with = "Connection refused"

        with pytest.raises(DispatchTransportFailure) as exc:
            coordinator.dispatch_invoice(invoice.id, NOW)

        assert exc.value.stage == "transport"
        assert exc.value.retryable is True
        assert exc.value.message_may_have_been_sent is False
        stored = stored_invoice(db_session, invoice.id)
        assert stored.status == "pending"
        assert stored.sent_at is None

    def test_unexpected_send_error_is_structured(self, coordinator, fake_email, invoice, db_session, monkeypatch):
        def broken_send(message):
            raise RuntimeError("socket closed mid-DATA")
        monkeypatch.setattr(fake_email, "send", broken_send)

        with pytest.raises(TransportOutcomeUnknown) as exc:
            coordinator.dispatch_invoice(invoice.id, NOW)

        assert exc.value.stage == "transport"
        assert exc.value.retryable is False
        assert exc.value.message_may_have_been_sent is True
        assert isinstance(exc.value.cause, RuntimeError)
        assert stored_invoice(db_session, invoice.id).status == "pending"

    def test_retry_after_transport_failure(self, coordinator, fake_email, invoice):
        fake_email.fail_with = "Timeout"
        with pytest.raises(DispatchTransportFailure):
            coordinator.dispatch_invoice(invoice.id, NOW)

        fake_email.fail_with = None
        assert coordinator.dispatch_invoice(invoice.id, NOW).status == "sent"
        assert len(fake_email.sent) == 1

    def test_already_sent_invoice_is_rejected(self, coordinator, fake_email, invoice):
        coordinator.dispatch_invoice(invoice.id, NOW)
        with pytest.raises(IllegalTransition) as exc:
            coordinator.dispatch_invoice(invoice.id, NOW)
        assert exc.value.action == "send"
        assert len(fake_email.sent) == 1

    def test_paid_invoice_is_rejected(self, coordinator, fake_email, invoice, db_session):
        InvoiceService(db_session).transition(invoice.id, "mark_paid", NOW)
        with pytest.raises(IllegalTransition):
            coordinator.dispatch_invoice(invoice.id, NOW)
        assert fake_email.sent == []

    def test_missing_email(self, coordinator, fake_email, invoice, db_session, service_customer):
        service_customer.email = None
        db_session.commit()
        with pytest.raises(MissingRecipientEmail):
            coordinator.dispatch_invoice(invoice.id, NOW)
        assert fake_email.sent == []
        assert stored_invoice(db_session, invoice.id).status == "pending"

    def test_render_failure(self, db_session, fake_email, invoice):
        coordinator = DispatchCoordinator(db_session, fake_email, layout=BrokenLayout())
        with pytest.raises(RenderFailure) as exc:
            coordinator.dispatch_invoice(invoice.id, NOW)
        assert exc.value.stage == "render"
        assert fake_email.sent == []
        assert stored_invoice(db_session, invoice.id).status == "pending"

    def test_status_write_failure_after_send(self, coordinator, fake_email, invoice, db_session, monkeypatch):
        def broken_commit():
            raise RuntimeError("database went away")

        monkeypatch.setattr(db_session, "commit", broken_commit)
        with pytest.raises(PostSendTransitionFailure) as exc:
            coordinator.dispatch_invoice(invoice.id, NOW)
        monkeypatch.undo()

        assert exc.value.stage == "transition"
        assert exc.value.message_may_have_been_sent is True
        assert exc.value.retryable is False
        assert len(fake_email.sent) == 1
        assert stored_invoice(db_session, invoice.id).status == "pending"


# ===== QUOTES =====

class TestDispatchQuote:

    def test_sends_link_and_stores_token(self, coordinator, fake_email, quote):
        sent = coordinator.dispatch_quote(quote.id, NOW)

        assert sent.status == "sent"
        assert sent.sent_to_email == "anna@example.se"
        assert len(sent.public_token) == 64

        message = fake_email.sent[0]
        assert message.subject == f"Offert #{quote.quote_number} - Ny webbplats"
        assert f"{settings.SITE_URL.rstrip('/')}/offert/{sent.public_token}" in message.html
        assert message.attachments[0].filename == f"offert-{quote.quote_number}.pdf"

    def test_transport_failure_keeps_draft_without_token(self, coordinator, fake_email, quote, db_session):
        fake_email.fail_with = "Connection refused"
        with pytest.raises(DispatchTransportFailure):
            coordinator.dispatch_quote(quote.id, NOW)

        db_session.expire_all()
        stored = db_session.query(Quote).filter(Quote.id == quote.id).one()
        assert stored.status == "draft"
        assert stored.public_token is None
        assert stored.sent_at is None

    def test_quote_without_customer(self, coordinator, db_session, company):
        quote = QuoteService(db_session).create_quote(QuoteCreate(title="Utan kund"))
        with pytest.raises(MissingRecipientEmail):
            coordinator.dispatch_quote(quote.id, NOW)


# ===== API =====

class TestSendEndpoints:

    def test_send_invoice(self, client, fake_email, invoice):
        response = client.post(f"/invoices/{invoice.id}/send")
        assert response.status_code == 200
        assert response.json()["status"] == "sent"
        assert len(fake_email.sent) == 1

    def test_transport_failure_is_502(self, client, fake_email, invoice):
        fake_email.fail_with = "Connection refused"
        response = client.post(f"/invoices/{invoice.id}/send")
        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "dispatch_transport_failure"
        assert body["stage"] == "transport"
        assert body["retryable"] is True
        assert body["message_may_have_been_sent"] is False
        assert body["entity_id"] == str(invoice.id)

    def test_unexpected_send_error_is_500(self, client, fake_email, invoice, monkeypatch):
        def broken_send(message):
            raise ValueError("bad header")
        monkeypatch.setattr(fake_email, "send", broken_send)

        response = client.post(f"/invoices/{invoice.id}/send")
        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "transport_outcome_unknown"
        assert body["stage"] == "transport"
        assert body["message_may_have_been_sent"] is True
        assert body["entity_id"] == str(invoice.id)

    def test_send_quote(self, client, fake_email, quote):
        response = client.post(f"/quotes/{quote.id}/send")
        assert response.status_code == 200
        assert response.json()["status"] == "sent"
        assert response.json()["sent_to_email"] == "anna@example.se"

    def test_send_twice_is_409(self, client, quote):
        client.post(f"/quotes/{quote.id}/send")
        response = client.post(f"/quotes/{quote.id}/send")
        assert response.status_code == 409
        assert response.json()["action"] == "send"
