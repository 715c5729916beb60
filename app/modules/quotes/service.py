from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc, or_
from typing import Iterable, List, Optional, Tuple
from uuid import UUID
from datetime import date, datetime, timedelta
import logging

from app.common.clock import local_today, utcnow
from app.common.errors import EntityNotFound, IllegalTransition
from app.core.config import settings
from app.modules.customers.models import Customer, CustomerStatus
from app.modules.documents.service import QUOTE_SEQUENCE, next_document_number
from app.modules.quotes.lifecycle import (
    ACCEPT, ANSWERED_STATUSES, DECLINE, QUOTE_LIFECYCLE, effective_status, is_editable,
)
from app.modules.quotes.models import Quote, QuoteItem
from app.modules.quotes.schemas import QuoteCreate, QuoteItemIn, QuoteStatusFilter, QuoteUpdate
from app.modules.taxes.calculator import Totals, VatCalculator, to_decimal, vat_calculator

logger = logging.getLogger(__name__)

ANSWERED_STATUS_VALUES = [s.value for s in ANSWERED_STATUSES]


class QuoteService:
    def __init__(self, db: Session, calculator: VatCalculator = vat_calculator):
        self.db = db
        self.calculator = calculator

    def annotate(self, quote: Quote, today: Optional[date] = None) -> Quote:
        setattr(quote, "effective_status", effective_status(quote, today or local_today()))
        setattr(quote, "is_editable", is_editable(quote))
        return quote

    def get_quote_by_id(self, quote_id: UUID, lock: bool = False) -> Quote:
        query = self.db.query(Quote).filter(Quote.id == quote_id)
        if lock:
            query = query.with_for_update()
        quote = query.first()
        if not quote:
            raise EntityNotFound("quote", quote_id)
        return quote

    def get_quotes(self, status: Optional[QuoteStatusFilter] = None, customer_id: Optional[UUID] = None,
                   limit: int = 100, offset: int = 0) -> dict:
        today = local_today()
        query = self.db.query(Quote).options(selectinload(Quote.items), selectinload(Quote.customer))

        unanswered = Quote.status.notin_(ANSWERED_STATUS_VALUES)
        not_expired = or_(Quote.valid_until.is_(None), Quote.valid_until >= today)
        if status == QuoteStatusFilter.EXPIRED:
            query = query.filter(unanswered, Quote.valid_until < today)
        elif status in (QuoteStatusFilter.DRAFT, QuoteStatusFilter.SENT):
            query = query.filter(Quote.status == status.value, not_expired)
        elif status:
            query = query.filter(Quote.status == status.value)

        if customer_id:
            query = query.filter(Quote.customer_id == customer_id)

        total = query.count()
        quotes = query.order_by(desc(Quote.quote_number)).offset(offset).limit(limit).all()
        return {
            "quotes": [self.annotate(q, today) for q in quotes],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    # ===== Items and totals =====

    def _build_items(self, items: Iterable[QuoteItemIn], vat_rate) -> Tuple[List[QuoteItem], Totals]:
        """Validate every line and compute totals before anything is written"""
        items = list(items)
        rows = [
            QuoteItem(
                description=item.description,
                details=item.details or None,
                quantity=item.quantity,
                unit=item.unit or "st",
                unit_price=item.unit_price,
                total=self.calculator.compute_line_total(item.quantity, item.unit_price),
                sort_order=index,
            )
            for index, item in enumerate(items)
        ]
        return rows, self.calculator.compute_totals(items, vat_rate)

    def _set_totals(self, quote: Quote, totals: Totals):
        quote.subtotal = totals.subtotal
        quote.vat_amount = totals.vat_amount
        quote.total = totals.total

    def _ensure_customer(self, customer_id: Optional[UUID]):
        if customer_id and not self.db.query(Customer.id).filter(Customer.id == customer_id).first():
            raise EntityNotFound("customer", customer_id)

    def _ensure_editable(self, quote: Quote, action: str):
        if not is_editable(quote):
            raise IllegalTransition("quote", quote.status, action)

    # ===== Commands =====

    def create_quote(self, data: QuoteCreate) -> Quote:
        """
        Create a draft quote.

        Defaults: valid from today, valid for ``QUOTE_VALIDITY_DAYS`` unless
        ``valid_until`` is given (an explicit null means open-ended), VAT at
        ``DEFAULT_VAT_RATE``.
        """
        today = local_today()
        vat_rate = to_decimal(data.vat_rate if data.vat_rate is not None else settings.DEFAULT_VAT_RATE, "vat_rate")
        rows, totals = self._build_items(data.items, vat_rate)
        self._ensure_customer(data.customer_id)

        if "valid_until" in data.model_fields_set:
            valid_until = data.valid_until
        else:
            valid_until = today + timedelta(days=settings.QUOTE_VALIDITY_DAYS)

        try:
            quote = Quote(
                quote_number=next_document_number(self.db, QUOTE_SEQUENCE),
                customer_id=data.customer_id,
                title=data.title,
                description=data.description,
                status=QUOTE_LIFECYCLE.initial.value,
                valid_from=data.valid_from or today,
                valid_until=valid_until,
                vat_rate=vat_rate,
                notes=data.notes,
                terms=data.terms,
                items=rows,
            )
            self._set_totals(quote, totals)
            self.db.add(quote)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(quote)
        logger.info(f"Quote #{quote.quote_number} created with {len(rows)} items")
        return self.annotate(quote, today)

    def update_quote(self, quote_id: UUID, data: QuoteUpdate) -> Quote:
        """Update fields and, when ``items`` is given, replace all items. Only while editable."""
        fields = data.model_dump(exclude_unset=True, exclude={"items"})
        try:
            quote = self.get_quote_by_id(quote_id, lock=True)
            self._ensure_editable(quote, "edit")

            if "vat_rate" in fields:
                if fields["vat_rate"] is None:
                    fields.pop("vat_rate")
                else:
                    fields["vat_rate"] = to_decimal(fields["vat_rate"], "vat_rate")
            for required in ("title", "valid_from"):
                if required in fields and fields[required] is None:
                    fields.pop(required)
            self._ensure_customer(fields.get("customer_id"))

            vat_rate = fields.get("vat_rate", quote.vat_rate)
            if data.items is not None:
                rows, totals = self._build_items(data.items, vat_rate)
                quote.items = rows
            else:
                totals = self.calculator.compute_totals(quote.items, vat_rate)

            for field, value in fields.items():
                setattr(quote, field, value)
            self._set_totals(quote, totals)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(quote)
        logger.info(f"Quote #{quote.quote_number} updated")
        return self.annotate(quote)

    def replace_items(self, quote_id: UUID, items: List[QuoteItemIn]) -> Quote:
        """Delete all items and insert ``items``, recomputing cached totals, in one transaction."""
        try:
            quote = self.get_quote_by_id(quote_id, lock=True)
            self._ensure_editable(quote, "edit")
            rows, totals = self._build_items(items, quote.vat_rate)
            quote.items = rows
            self._set_totals(quote, totals)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(quote)
        logger.info(f"Quote #{quote.quote_number} items replaced ({len(rows)} items)")
        return self.annotate(quote)

    def delete_quote(self, quote_id: UUID) -> None:
        quote = self.get_quote_by_id(quote_id)
        number = quote.quote_number
        try:
            self.db.delete(quote)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Quote #{number} deleted")

    def transition(self, quote_id: UUID, action: str, now: Optional[datetime] = None) -> Quote:
        now = now or utcnow()
        try:
            quote = self.get_quote_by_id(quote_id, lock=True)
            old_status = quote.status
            QUOTE_LIFECYCLE.apply(quote, action, now)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(quote)
        logger.info(f"Quote #{quote.quote_number} status changed from {old_status} to {quote.status}")
        return self.annotate(quote)

    def respond_to_quote(self, token: str, accept: bool, note: Optional[str] = None,
                         now: Optional[datetime] = None) -> Quote:
        """
        Record the customer's answer from the public quote link.

        Accepting promotes the customer to status ``customer`` and marks them
        as having purchased.

        Raises:
            EntityNotFound: no quote carries ``token``
            IllegalTransition: the quote was already answered
        """
        now = now or utcnow()
        try:
            quote = self.db.query(Quote).filter(Quote.public_token == token).with_for_update().first()
            if not quote:
                raise EntityNotFound("quote", "token")

            QUOTE_LIFECYCLE.apply(quote, ACCEPT if accept else DECLINE, now)
            quote.customer_response_at = now
            quote.customer_response_note = note or None

            if accept and quote.customer is not None:
                quote.customer.status = CustomerStatus.CUSTOMER.value
                quote.customer.has_purchased = True
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(quote)
        logger.info(f"Quote #{quote.quote_number} {quote.status} by customer")
        return self.annotate(quote)
