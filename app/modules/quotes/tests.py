"""
Tests for the quotes module
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from uuid import uuid4

from app.common.clock import local_today
from app.common.errors import EntityNotFound, IllegalTransition, InvalidLineItem
from app.modules.quotes.lifecycle import effective_status
from app.modules.quotes.models import Quote, QuoteItem
from app.modules.quotes.schemas import QuoteCreate, QuoteItemIn, QuoteStatusFilter, QuoteUpdate
from app.modules.quotes.service import QuoteService

NOW = datetime(2026, 3, 5, 9, 30, tzinfo=timezone.utc)


# ===== FIXTURES =====

@pytest.fixture
def service(db_session):
    return QuoteService(db_session)


def item(description="Design", quantity=1, unit_price=5000, **extra):
    return QuoteItemIn(description=description, quantity=quantity, unit_price=unit_price, **extra)


@pytest.fixture
def sent_quote(service, db_session, make_customer):
    """A sent quote with a public token, as after dispatch"""
    customer = make_customer()
    quote = service.create_quote(QuoteCreate(customer_id=customer.id, title="Ny webbplats", items=[item()]))
    quote = service.transition(quote.id, "mark_sent", NOW)
    quote.public_token = "a" * 64
    db_session.commit()
    return quote


# ===== SERVICE =====

class TestCreateQuote:

    def test_defaults(self, service):
        quote = service.create_quote(QuoteCreate(title="Ny webbplats", items=[item()]))
        today = local_today()
        assert quote.status == "draft"
        assert quote.valid_from == today
        assert quote.valid_until == today + timedelta(days=10)
        assert quote.vat_rate == Decimal("25")
        assert quote.subtotal == Decimal("5000")
        assert quote.vat_amount == Decimal("1250")
        assert quote.total == Decimal("6250")
        assert quote.effective_status == "draft"
        assert quote.is_editable is True

    def test_explicit_null_valid_until_is_open_ended(self, service):
        quote = service.create_quote(QuoteCreate(title="Löpande", valid_until=None))
        assert quote.valid_until is None

    def test_items_keep_their_order(self, service):
        quote = service.create_quote(QuoteCreate(title="Paket", items=[
            item("Design", 1, 5000),
            item("Utveckling", Decimal("12.5"), 950, unit="tim"),
            item("Hosting", 12, 99, details="Första året"),
        ]))
        assert [i.description for i in quote.items] == ["Design", "Utveckling", "Hosting"]
        assert [i.sort_order for i in quote.items] == [0, 1, 2]
        assert quote.items[1].total == Decimal("11875")
        assert quote.items[1].unit == "tim"
        assert quote.subtotal == Decimal("18063")

    def test_stored_totals_add_up_after_reload(self, service, db_session):
        quote = service.create_quote(QuoteCreate(title="Öresrader", items=[
            item("Timmar", Decimal("1.5"), Decimal("33.33")),
            item("Material", Decimal("0.333"), Decimal("10.01")),
        ]))
        db_session.expire_all()
        stored = service.get_quote_by_id(quote.id)

        for row in stored.items:
            assert row.total == (row.quantity * row.unit_price).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        assert stored.subtotal == sum(row.total for row in stored.items)
        assert stored.subtotal == Decimal("53.33")
        assert stored.total == stored.subtotal + stored.vat_amount

    def test_excess_precision_writes_nothing(self, service, db_session):
        with pytest.raises(InvalidLineItem):
            service.create_quote(QuoteCreate(title="Fel", items=[item(quantity=Decimal("0.3333"), unit_price=10)]))
        assert db_session.query(Quote).count() == 0

    def test_numbers_increase(self, service):
        first = service.create_quote(QuoteCreate(title="A"))
        second = service.create_quote(QuoteCreate(title="B"))
        assert second.quote_number == first.quote_number + 1

    def test_negative_price_writes_nothing(self, service, db_session):
        with pytest.raises(InvalidLineItem):
            service.create_quote(QuoteCreate(title="Fel", items=[item(unit_price=-1)]))
        assert db_session.query(Quote).count() == 0

    def test_unknown_customer(self, service):
        with pytest.raises(EntityNotFound):
            service.create_quote(QuoteCreate(customer_id=uuid4(), title="Ingen kund"))


class TestEditing:

    def test_replace_items_recomputes_totals(self, service, db_session):
        quote = service.create_quote(QuoteCreate(title="Paket", items=[item(), item("Extra", 1, 1000)]))
        quote = service.replace_items(quote.id, [item("Endast design", 2, 795)])
        assert [i.description for i in quote.items] == ["Endast design"]
        assert quote.subtotal == Decimal("1590")
        assert quote.vat_amount == Decimal("398")  # 397.5 -> 398
        assert quote.total == Decimal("1988")
        assert db_session.query(QuoteItem).count() == 1

    def test_update_vat_rate_recomputes_from_existing_items(self, service):
        quote = service.create_quote(QuoteCreate(title="Paket", items=[item()]))
        quote = service.update_quote(quote.id, QuoteUpdate(vat_rate=Decimal("12")))
        assert quote.vat_amount == Decimal("600")
        assert quote.total == Decimal("5600")

    def test_update_ignores_null_title(self, service):
        quote = service.create_quote(QuoteCreate(title="Behålls"))
        quote = service.update_quote(quote.id, QuoteUpdate(title=None, notes="Ny anteckning"))
        assert quote.title == "Behålls"
        assert quote.notes == "Ny anteckning"

    def test_sent_quote_is_still_editable(self, service, sent_quote):
        quote = service.replace_items(sent_quote.id, [item("Ändrad", 1, 100)])
        assert quote.total == Decimal("125")

    def test_answered_quote_is_frozen(self, service, sent_quote):
        service.transition(sent_quote.id, "accept", NOW)
        with pytest.raises(IllegalTransition):
            service.replace_items(sent_quote.id, [item()])
        with pytest.raises(IllegalTransition):
            service.update_quote(sent_quote.id, QuoteUpdate(title="Nej"))

    def test_delete_removes_items(self, service, db_session):
        quote = service.create_quote(QuoteCreate(title="Bort", items=[item(), item()]))
        service.delete_quote(quote.id)
        assert db_session.query(Quote).count() == 0
        assert db_session.query(QuoteItem).count() == 0


class TestQuoteLifecycle:

    def test_draft_cannot_be_accepted(self, service):
        quote = service.create_quote(QuoteCreate(title="Utkast"))
        with pytest.raises(IllegalTransition):
            service.transition(quote.id, "accept", NOW)

    def test_mark_sent_stamps_sent_at(self, service):
        quote = service.create_quote(QuoteCreate(title="Utkast"))
        quote = service.transition(quote.id, "mark_sent", NOW)
        assert quote.status == "sent"
        assert quote.sent_at is not None

    def test_expired_is_derived(self, service, db_session):
        quote = service.create_quote(QuoteCreate(title="Gammal", valid_until=date(2020, 1, 1)))
        assert quote.status == "draft"
        assert quote.effective_status == "expired"

    def test_answered_quote_never_expires(self, service, sent_quote):
        quote = service.transition(sent_quote.id, "decline", NOW)
        assert effective_status(quote, quote.valid_until + timedelta(days=365)) == "declined"

    def test_open_ended_quote_never_expires(self, service):
        quote = service.create_quote(QuoteCreate(title="Löpande", valid_until=None))
        assert effective_status(quote, date(2100, 1, 1)) == "draft"

    def test_expired_filter(self, service):
        service.create_quote(QuoteCreate(title="Gammal", valid_until=date(2020, 1, 1)))
        service.create_quote(QuoteCreate(title="Aktuell"))
        expired = service.get_quotes(QuoteStatusFilter.EXPIRED)
        drafts = service.get_quotes(QuoteStatusFilter.DRAFT)
        assert [q.title for q in expired["quotes"]] == ["Gammal"]
        assert [q.title for q in drafts["quotes"]] == ["Aktuell"]


class TestCustomerResponse:

    def test_accept_promotes_customer(self, service, sent_quote, db_session):
        quote = service.respond_to_quote("a" * 64, accept=True, note="Kör!", now=NOW)
        assert quote.status == "accepted"
        assert quote.customer_response_note == "Kör!"
        assert quote.customer_response_at is not None
        db_session.refresh(quote.customer)
        assert quote.customer.status == "customer"
        assert quote.customer.has_purchased is True

    def test_decline_leaves_customer(self, service, sent_quote):
        quote = service.respond_to_quote("a" * 64, accept=False)
        assert quote.status == "declined"
        assert quote.customer.status == "lead"
        assert quote.customer.has_purchased is False

    def test_second_answer_rejected(self, service, sent_quote):
        service.respond_to_quote("a" * 64, accept=False)
        with pytest.raises(IllegalTransition):
            service.respond_to_quote("a" * 64, accept=True)

    def test_unknown_token(self, service, sent_quote):
        with pytest.raises(EntityNotFound):
            service.respond_to_quote("b" * 64, accept=True)


# ===== API =====

class TestQuoteEndpoints:

    def test_create_and_get(self, client, make_customer):
        customer = make_customer()
        response = client.post("/quotes", json={
            "customer_id": str(customer.id),
            "title": "Ny webbplats",
            "items": [
                {"description": "Design", "quantity": 1, "unit_price": 5000},
                {"description": "Utveckling", "quantity": 10, "unit_price": 950, "unit": "tim"},
            ],
        })
        assert response.status_code == 201
        data = response.json()
        assert Decimal(data["subtotal"]) == Decimal("14500")
        assert Decimal(data["total"]) == Decimal("18125")
        assert data["customer"]["email"] == "anna@example.se"

        fetched = client.get(f"/quotes/{data['id']}").json()
        assert [i["description"] for i in fetched["items"]] == ["Design", "Utveckling"]

    def test_invalid_item_is_422(self, client):
        response = client.post("/quotes", json={
            "title": "Fel", "items": [{"description": "X", "quantity": -1, "unit_price": 10}],
        })
        assert response.status_code == 422
        assert response.json()["error"] == "invalid_line_item"

    def test_replace_items(self, client, service):
        quote = service.create_quote(QuoteCreate(title="Paket", items=[item()]))
        response = client.put(f"/quotes/{quote.id}/items", json={
            "items": [{"description": "Ny rad", "quantity": 2, "unit_price": 100}],
        })
        assert response.status_code == 200
        assert Decimal(response.json()["total"]) == Decimal("250")

    def test_edit_after_accept_is_409(self, client, service, sent_quote):
        service.transition(sent_quote.id, "accept", NOW)
        response = client.patch(f"/quotes/{sent_quote.id}", json={"title": "Sent ändrad"})
        assert response.status_code == 409
        assert response.json()["action"] == "edit"

    def test_respond(self, client, sent_quote):
        response = client.post("/quotes/respond", json={"token": "a" * 64, "accept": True})
        assert response.status_code == 200
        assert response.json() == {"success": True, "status": "accepted"}

    def test_respond_unknown_token(self, client):
        response = client.post("/quotes/respond", json={"token": "nope", "accept": True})
        assert response.status_code == 404

    def test_pdf_download(self, client, service, company):
        quote = service.create_quote(QuoteCreate(title="Paket", items=[item()]))
        response = client.get(f"/quotes/{quote.id}/pdf")
        assert response.status_code == 200
        assert f"offert-{quote.quote_number}.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    def test_delete(self, client, service):
        quote = service.create_quote(QuoteCreate(title="Bort"))
        assert client.delete(f"/quotes/{quote.id}").status_code == 204
        assert client.get(f"/quotes/{quote.id}").status_code == 404
