"""
Tests for the invoices module

Covers:
- Billing period ledger (which customers still need a service invoice)
- Invoice lifecycle and the derived ``overdue`` status
- Monthly generation, one-time invoices, cancellation with credit notes
- HTTP endpoints
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

from app.common.clock import local_today
from app.common.errors import DuplicateBillingPeriod, EntityNotFound, IllegalTransition, InvalidLineItem
from app.modules.invoices.ledger import BillingPeriod, customers_needing_invoice, invoiced_keys
from app.modules.invoices.lifecycle import INVOICE_LIFECYCLE, effective_status
from app.modules.invoices.models import Invoice, InvoiceKind, InvoiceStatus
from app.modules.invoices.service import InvoiceService

NOW = datetime(2026, 3, 5, 9, 30, tzinfo=timezone.utc)


# ===== FIXTURES =====

def candidate(price=Decimal("795"), agreement=True):
    return SimpleNamespace(
        id=uuid4(),
        has_service_agreement=agreement,
        service_price=price,
        has_billable_agreement=bool(agreement and price and price > 0),
    )


def existing_invoice(customer_id, period_start, kind=InvoiceKind.SERVICE, status=InvoiceStatus.PENDING):
    return SimpleNamespace(customer_id=customer_id, period_start=period_start, kind=kind.value, status=status.value)


def stub_invoice(status=InvoiceStatus.PENDING, due_date=date(2026, 4, 30)):
    return SimpleNamespace(status=status.value, due_date=due_date, sent_at=None, paid_at=None)


@pytest.fixture
def service(db_session):
    return InvoiceService(db_session)


# ===== LEDGER =====

class TestBillingPeriod:

    def test_bounds(self):
        period = BillingPeriod(2026, 2)
        assert period.start == date(2026, 2, 1)
        assert period.end == date(2026, 2, 28)
        assert BillingPeriod(2024, 2).end == date(2024, 2, 29)

    def test_due_date_counts_from_period_end(self):
        assert BillingPeriod(2026, 3).due_date(30) == date(2026, 4, 30)

    def test_label(self):
        assert BillingPeriod(2026, 3).label == "mars 2026"

    def test_invalid_month(self):
        with pytest.raises(ValueError):
            BillingPeriod(2026, 13)


class TestLedger:

    def test_customer_already_invoiced_in_march_is_skipped(self):
        billed, unbilled = candidate(), candidate()
        invoices = [existing_invoice(billed.id, date(2026, 3, 1))]
        result = customers_needing_invoice(invoices, [billed, unbilled], BillingPeriod(2026, 3))
        assert result == [unbilled]

    def test_invoice_from_other_month_does_not_count(self):
        customer = candidate()
        invoices = [existing_invoice(customer.id, date(2026, 2, 1))]
        assert customers_needing_invoice(invoices, [customer], BillingPeriod(2026, 3)) == [customer]

    def test_unpriced_agreements_excluded(self):
        customers = [candidate(price=None), candidate(price=Decimal("0")), candidate(agreement=False)]
        assert customers_needing_invoice([], customers, BillingPeriod(2026, 3)) == []

    def test_one_time_and_credit_notes_do_not_occupy_period(self):
        customer = candidate()
        invoices = [
            existing_invoice(customer.id, date(2026, 3, 14), kind=InvoiceKind.ONE_TIME),
            existing_invoice(customer.id, date(2026, 3, 1), kind=InvoiceKind.CREDIT_NOTE),
        ]
        assert customers_needing_invoice(invoices, [customer], BillingPeriod(2026, 3)) == [customer]

    def test_cancelled_service_invoice_still_occupies_period(self):
        customer = candidate()
        invoices = [existing_invoice(customer.id, date(2026, 3, 1), status=InvoiceStatus.CANCELLED)]
        assert customers_needing_invoice(invoices, [customer], BillingPeriod(2026, 3)) == []

    def test_keys(self):
        customer_id = uuid4()
        keys = invoiced_keys([existing_invoice(customer_id, date(2026, 3, 1))])
        assert keys == {(customer_id, 2026, 3)}


# ===== LIFECYCLE =====

class TestInvoiceLifecycle:

    def test_mark_sent_sets_sent_at(self):
        invoice = stub_invoice()
        INVOICE_LIFECYCLE.apply(invoice, "mark_sent", NOW)
        assert invoice.status == "sent"
        assert invoice.sent_at == NOW

    def test_mark_paid_from_sent_and_pending(self):
        for status in (InvoiceStatus.PENDING, InvoiceStatus.SENT):
            invoice = stub_invoice(status)
            INVOICE_LIFECYCLE.apply(invoice, "mark_paid", NOW)
            assert invoice.status == "paid"
            assert invoice.paid_at == NOW

    def test_paid_invoice_cannot_be_sent(self):
        invoice = stub_invoice(InvoiceStatus.PAID)
        with pytest.raises(IllegalTransition) as exc:
            INVOICE_LIFECYCLE.apply(invoice, "mark_sent", NOW)
        assert exc.value.current_status == "paid"
        assert invoice.status == "paid"

    def test_terminal_states(self):
        assert INVOICE_LIFECYCLE.terminal_states == frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED})

    def test_cancelled_cannot_be_paid(self):
        with pytest.raises(IllegalTransition):
            INVOICE_LIFECYCLE.apply(stub_invoice(InvoiceStatus.CANCELLED), "mark_paid", NOW)

    def test_unknown_action(self):
        with pytest.raises(IllegalTransition):
            INVOICE_LIFECYCLE.apply(stub_invoice(), "archive", NOW)


class TestEffectiveStatus:

    def test_overdue_is_strictly_after_due_date(self):
        invoice = stub_invoice(due_date=date(2026, 4, 30))
        assert effective_status(invoice, date(2026, 4, 30)) == "pending"
        assert effective_status(invoice, date(2026, 5, 1)) == "overdue"

    def test_sent_invoice_can_be_overdue(self):
        assert effective_status(stub_invoice(InvoiceStatus.SENT), date(2026, 6, 1)) == "overdue"

    def test_paid_and_cancelled_never_overdue(self):
        assert effective_status(stub_invoice(InvoiceStatus.PAID), date(2027, 1, 1)) == "paid"
        assert effective_status(stub_invoice(InvoiceStatus.CANCELLED), date(2027, 1, 1)) == "cancelled"


# ===== SERVICE =====

class TestGeneration:

    def test_generates_one_invoice_per_billable_customer(self, service, service_customer, make_customer):
        make_customer(first_name="Utan", last_name="Avtal", email="utan@example.se")
        created, skipped = service.generate_invoices_for_period(BillingPeriod(2026, 3))

        assert skipped == 0
        assert len(created) == 1
        invoice = created[0]
        assert invoice.customer_id == service_customer.id
        assert invoice.kind == "service"
        assert invoice.status == "pending"
        assert invoice.period_start == date(2026, 3, 1)
        assert invoice.period_end == date(2026, 3, 31)
        assert invoice.due_date == date(2026, 4, 30)
        assert invoice.invoice_date == local_today()
        assert invoice.amount == Decimal("795")
        assert invoice.vat_amount == Decimal("199")
        assert invoice.total == Decimal("994")
        assert invoice.description == "Serviceavtal Webbhotell - mars 2026"

    def test_generation_is_idempotent(self, service, service_customer, db_session):
        period = BillingPeriod(2026, 3)
        service.generate_invoices_for_period(period)
        created, _ = service.generate_invoices_for_period(period)
        assert created == []
        assert db_session.query(Invoice).count() == 1

    def test_customer_billed_after_candidates_were_read_is_skipped(self, service, service_customer,
                                                                    db_session, monkeypatch):
        period = BillingPeriod(2026, 3)
        candidates = service.customers_needing_invoice(period)
        assert candidates == [service_customer]

        # Another request bills the customer before this run reaches the insert
        service.create_service_invoice(service_customer.id, period)
        monkeypatch.setattr(service, "customers_needing_invoice", lambda _period: candidates)

        created, skipped = service.generate_invoices_for_period(period)
        assert created == []
        assert skipped == 1
        assert db_session.query(Invoice).count() == 1

    def test_next_month_is_separate(self, service, service_customer):
        service.generate_invoices_for_period(BillingPeriod(2026, 3))
        created, _ = service.generate_invoices_for_period(BillingPeriod(2026, 4))
        assert len(created) == 1

    def test_numbers_increase(self, service, service_customer, make_customer):
        make_customer(email="b@example.se", has_service_agreement=True, service_price=Decimal("395"))
        created, _ = service.generate_invoices_for_period(BillingPeriod(2026, 3))
        assert sorted(i.invoice_number for i in created) == [1, 2]

    def test_default_service_type_in_description(self, service, make_customer):
        make_customer(has_service_agreement=True, service_price=Decimal("100"), service_type=None)
        created, _ = service.generate_invoices_for_period(BillingPeriod(2026, 1))
        assert created[0].description == "Serviceavtal Webbhotell - januari 2026"

    def test_create_service_invoice_rejects_duplicate(self, service, service_customer):
        period = BillingPeriod(2026, 3)
        service.create_service_invoice(service_customer.id, period)
        with pytest.raises(DuplicateBillingPeriod):
            service.create_service_invoice(service_customer.id, period)

    def test_create_service_invoice_requires_priced_agreement(self, service, make_customer):
        customer = make_customer()
        with pytest.raises(InvalidLineItem):
            service.create_service_invoice(customer.id, BillingPeriod(2026, 3))

    def test_pending_preview(self, service, service_customer):
        period = BillingPeriod(2026, 3)
        assert service.customers_needing_invoice(period) == [service_customer]
        service.generate_invoices_for_period(period)
        assert service.customers_needing_invoice(period) == []


class TestOneTimeInvoice:

    def test_create(self, service, make_customer):
        customer = make_customer()
        invoice = service.create_one_time_invoice(customer.id, "Extra support", Decimal("1200"), due_days=15)
        today = local_today()
        assert invoice.kind == "one_time"
        assert invoice.status == "pending"
        assert invoice.period_start == today
        assert invoice.due_date == today + timedelta(days=15)
        assert invoice.vat_amount == Decimal("300")
        assert invoice.total == Decimal("1500")

    @pytest.mark.parametrize("amount", [0, -100])
    def test_amount_must_be_positive(self, service, make_customer, amount):
        customer = make_customer()
        with pytest.raises(InvalidLineItem):
            service.create_one_time_invoice(customer.id, "Fel", amount)

    def test_unknown_customer(self, service):
        with pytest.raises(EntityNotFound):
            service.create_one_time_invoice(uuid4(), "Extra", Decimal("100"))

    def test_does_not_block_monthly_invoice(self, service, service_customer):
        service.create_one_time_invoice(service_customer.id, "Extra", Decimal("100"))
        today = local_today()
        created, _ = service.generate_invoices_for_period(BillingPeriod(today.year, today.month))
        assert len(created) == 1


class TestTransitions:

    def test_mark_sent_then_paid(self, service, service_customer):
        invoice = service.create_service_invoice(service_customer.id, BillingPeriod(2026, 3))
        invoice = service.transition(invoice.id, "mark_sent", NOW)
        assert invoice.status == "sent"
        assert invoice.sent_at is not None
        invoice = service.transition(invoice.id, "mark_paid", NOW)
        assert invoice.status == "paid"
        assert invoice.paid_at is not None

    def test_paid_then_mark_sent_is_illegal(self, service, service_customer, db_session):
        invoice = service.create_service_invoice(service_customer.id, BillingPeriod(2026, 3))
        service.transition(invoice.id, "mark_paid", NOW)
        with pytest.raises(IllegalTransition):
            service.transition(invoice.id, "mark_sent", NOW)
        db_session.expire_all()
        assert service.get_invoice_by_id(invoice.id).status == "paid"

    def test_cancel_creates_credit_note(self, service, service_customer):
        invoice = service.create_service_invoice(service_customer.id, BillingPeriod(2026, 3))
        cancelled, credit = service.cancel_invoice(invoice.id, NOW)

        assert cancelled.status == "cancelled"
        assert credit.kind == "credit_note"
        assert credit.status == "paid"
        assert credit.original_invoice_id == invoice.id
        assert credit.amount == -invoice.amount
        assert credit.vat_amount == -invoice.vat_amount
        assert credit.total == -invoice.total
        assert credit.period_start == invoice.period_start
        assert credit.invoice_number == invoice.invoice_number + 1
        assert credit.description == f"Kreditfaktura för faktura #{invoice.invoice_number}"

    def test_cancelled_month_is_not_regenerated(self, service, service_customer):
        period = BillingPeriod(2026, 3)
        invoice = service.create_service_invoice(service_customer.id, period)
        service.cancel_invoice(invoice.id, NOW)
        created, _ = service.generate_invoices_for_period(period)
        assert created == []

    def test_cancel_paid_is_illegal(self, service, service_customer, db_session):
        invoice = service.create_service_invoice(service_customer.id, BillingPeriod(2026, 3))
        service.transition(invoice.id, "mark_paid", NOW)
        with pytest.raises(IllegalTransition):
            service.cancel_invoice(invoice.id, NOW)
        assert db_session.query(Invoice).filter(Invoice.kind == "credit_note").count() == 0

    def test_delete_keeps_credit_note(self, service, service_customer, db_session):
        invoice = service.create_service_invoice(service_customer.id, BillingPeriod(2026, 3))
        _, credit = service.cancel_invoice(invoice.id, NOW)
        service.delete_invoice(invoice.id)
        db_session.expire_all()
        remaining = service.get_invoice_by_id(credit.id)
        assert remaining.original_invoice_id is None


# ===== API =====

class TestInvoiceEndpoints:

    def test_generate_and_list(self, client, service_customer):
        response = client.post("/invoices/billing-periods/2026/3/generate")
        assert response.status_code == 201
        assert len(response.json()["created"]) == 1

        again = client.post("/invoices/billing-periods/2026/3/generate")
        assert again.json()["created"] == []

        listing = client.get("/invoices").json()
        assert listing["total"] == 1
        assert listing["invoices"][0]["customer"]["email"] == service_customer.email

    def test_pending_preview(self, client, service_customer):
        response = client.get("/invoices/billing-periods/2026/3/pending")
        assert response.status_code == 200
        data = response.json()
        assert data["label"] == "mars 2026"
        assert [c["id"] for c in data["customers"]] == [str(service_customer.id)]

    def test_invalid_month(self, client):
        assert client.get("/invoices/billing-periods/2026/13/pending").status_code == 422

    def test_overdue_filter(self, client, service, service_customer):
        # Due date of a month long past
        service.create_service_invoice(service_customer.id, BillingPeriod(2020, 1))
        overdue = client.get("/invoices", params={"status": "overdue"}).json()
        assert overdue["total"] == 1
        assert overdue["invoices"][0]["effective_status"] == "overdue"
        assert overdue["invoices"][0]["status"] == "pending"
        assert client.get("/invoices", params={"status": "pending"}).json()["total"] == 0

    def test_one_time(self, client, make_customer):
        customer = make_customer()
        response = client.post("/invoices/one-time", json={
            "customer_id": str(customer.id), "description": "Ny logotyp", "amount": "2000",
        })
        assert response.status_code == 201
        assert Decimal(response.json()["total"]) == Decimal("2500")

    def test_one_time_zero_amount(self, client, make_customer):
        customer = make_customer()
        response = client.post("/invoices/one-time", json={
            "customer_id": str(customer.id), "description": "Noll", "amount": "0",
        })
        assert response.status_code == 422

    def test_cancel_returns_credit_note(self, client, service, service_customer):
        invoice = service.create_service_invoice(service_customer.id, BillingPeriod(2026, 3))
        response = client.post(f"/invoices/{invoice.id}/transitions", json={"action": "cancel"})
        assert response.status_code == 200
        body = response.json()
        assert body["invoice"]["status"] == "cancelled"
        assert body["credit_note"]["kind"] == "credit_note"
        assert Decimal(body["credit_note"]["total"]) == Decimal("-994")

    def test_illegal_transition_is_409(self, client, service, service_customer):
        invoice = service.create_service_invoice(service_customer.id, BillingPeriod(2026, 3))
        client.post(f"/invoices/{invoice.id}/transitions", json={"action": "mark_paid"})
        response = client.post(f"/invoices/{invoice.id}/transitions", json={"action": "mark_sent"})
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "illegal_transition"
        assert body["status"] == "paid"
        assert body["action"] == "mark_sent"

    def test_unknown_invoice_is_404(self, client):
        response = client.get(f"/invoices/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_pdf_download(self, client, service, service_customer, company):
        invoice = service.create_service_invoice(service_customer.id, BillingPeriod(2026, 3))
        response = client.get(f"/invoices/{invoice.id}/pdf")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert f"faktura-{invoice.invoice_number}.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    def test_credit_note_pdf(self, client, service, service_customer, company):
        invoice = service.create_service_invoice(service_customer.id, BillingPeriod(2026, 3))
        _, credit = service.cancel_invoice(invoice.id, NOW)
        response = client.get(f"/invoices/{credit.id}/pdf")
        assert response.status_code == 200
        assert f"kreditfaktura-{credit.invoice_number}.pdf" in response.headers["content-disposition"]

    def test_delete(self, client, service, service_customer):
        invoice = service.create_service_invoice(service_customer.id, BillingPeriod(2026, 3))
        assert client.delete(f"/invoices/{invoice.id}").status_code == 204
        assert client.get(f"/invoices/{invoice.id}").status_code == 404
