from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc, text
from typing import List, Optional, Tuple
from uuid import UUID
from datetime import date, datetime, timedelta
from decimal import Decimal
import logging

from app.common.clock import local_today, utcnow
from app.common.errors import DuplicateBillingPeriod, EntityNotFound, InvalidLineItem
from app.core.config import settings
from app.modules.customers.models import Customer
from app.modules.documents.service import INVOICE_SEQUENCE, next_document_number
from app.modules.invoices.ledger import BillingPeriod, customers_needing_invoice, is_invoiced
from app.modules.invoices.lifecycle import CANCEL, INVOICE_LIFECYCLE, OPEN_STATUSES, effective_status
from app.modules.invoices.models import Invoice, InvoiceKind, InvoiceStatus
from app.modules.invoices.schemas import InvoiceFilters, InvoiceStatusFilter
from app.modules.taxes.calculator import VatCalculator, to_decimal, vat_calculator

logger = logging.getLogger(__name__)

# First key of pg_advisory_xact_lock(int, int); the second is YYYYMM
GENERATION_LOCK_NAMESPACE = 7301

OPEN_STATUS_VALUES = [s.value for s in OPEN_STATUSES]


class InvoiceService:
    def __init__(self, db: Session, calculator: VatCalculator = vat_calculator):
        self.db = db
        self.calculator = calculator

    # ===== Reads =====

    def annotate(self, invoice: Invoice, today: Optional[date] = None) -> Invoice:
        """Attach the read-time status so response schemas can map it"""
        setattr(invoice, "effective_status", effective_status(invoice, today or local_today()))
        return invoice

    def get_invoice_by_id(self, invoice_id: UUID, lock: bool = False) -> Invoice:
        query = self.db.query(Invoice).filter(Invoice.id == invoice_id)
        if lock:
            query = query.with_for_update()
        invoice = query.first()
        if not invoice:
            raise EntityNotFound("invoice", invoice_id)
        return invoice

    def get_invoices(self, filters: InvoiceFilters, limit: int = 100, offset: int = 0) -> dict:
        """List invoices, newest number first. ``overdue`` filters on the derived status."""
        today = local_today()
        query = self.db.query(Invoice).options(selectinload(Invoice.customer))

        if filters.status == InvoiceStatusFilter.OVERDUE:
            query = query.filter(Invoice.status.in_(OPEN_STATUS_VALUES), Invoice.due_date < today)
        elif filters.status in (InvoiceStatusFilter.PENDING, InvoiceStatusFilter.SENT):
            query = query.filter(Invoice.status == filters.status.value, Invoice.due_date >= today)
        elif filters.status:
            query = query.filter(Invoice.status == filters.status.value)

        if filters.customer_id:
            query = query.filter(Invoice.customer_id == filters.customer_id)
        if filters.date_from:
            query = query.filter(Invoice.invoice_date >= filters.date_from)
        if filters.date_to:
            query = query.filter(Invoice.invoice_date <= filters.date_to)

        total = query.count()
        invoices = query.order_by(desc(Invoice.invoice_number)).offset(offset).limit(limit).all()

        return {
            "invoices": [self.annotate(inv, today) for inv in invoices],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    def billable_customers(self) -> List[Customer]:
        return (
            self.db.query(Customer)
            .filter(
                Customer.has_service_agreement.is_(True),
                Customer.service_price.isnot(None),
                Customer.service_price > 0,
            )
            .order_by(Customer.last_name, Customer.first_name)
            .all()
        )

    def _service_invoices_in(self, period: BillingPeriod, customer_id: Optional[UUID] = None) -> List[Invoice]:
        query = self.db.query(Invoice).filter(
            Invoice.kind == InvoiceKind.SERVICE.value,
            Invoice.period_start >= period.start,
            Invoice.period_start <= period.end,
        )
        if customer_id:
            query = query.filter(Invoice.customer_id == customer_id)
        return query.all()

    def customers_needing_invoice(self, period: BillingPeriod) -> List[Customer]:
        return customers_needing_invoice(self._service_invoices_in(period), self.billable_customers(), period)

    # ===== Creation =====

    def _lock_period(self, period: BillingPeriod):
        """Serialize generation per month. Released at commit or rollback."""
        if self.db.get_bind().dialect.name != "postgresql":
            return
        self.db.execute(
            text("SELECT pg_advisory_xact_lock(:namespace, :key)"),
            {"namespace": GENERATION_LOCK_NAMESPACE, "key": period.year * 100 + period.month},
        )

    def _new_invoice(self, customer_id: UUID, kind: InvoiceKind, amount: Decimal,
                     vat_rate: Decimal, **fields) -> Invoice:
        totals = self.calculator.invoice_amounts(amount, vat_rate)
        invoice = Invoice(
            invoice_number=next_document_number(self.db, INVOICE_SEQUENCE),
            customer_id=customer_id,
            kind=kind.value,
            status=InvoiceStatus.PENDING.value,
            amount=totals.subtotal,
            vat_rate=vat_rate,
            vat_amount=totals.vat_amount,
            total=totals.total,
            **fields,
        )
        self.db.add(invoice)
        self.db.flush()
        return invoice

    def _service_invoice_for(self, customer: Customer, period: BillingPeriod, today: date) -> Invoice:
        service_type = customer.service_type or settings.DEFAULT_SERVICE_TYPE
        return self._new_invoice(
            customer.id,
            InvoiceKind.SERVICE,
            Decimal(customer.service_price),
            Decimal(settings.DEFAULT_VAT_RATE),
            invoice_date=today,
            due_date=period.due_date(settings.INVOICE_PAYMENT_TERMS_DAYS),
            period_start=period.start,
            period_end=period.end,
            description=f"Serviceavtal {service_type} - {period.label}",
            service_type=customer.service_type,
        )

    def create_service_invoice(self, customer_id: UUID, period: BillingPeriod) -> Invoice:
        """
        Create the service invoice for one customer and month.

        Raises:
            EntityNotFound: unknown customer
            InvalidLineItem: customer has no priced service agreement
            DuplicateBillingPeriod: the month is already invoiced
        """
        customer = self.db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise EntityNotFound("customer", customer_id)
        if not customer.has_billable_agreement:
            raise InvalidLineItem(f"Customer {customer_id} has no priced service agreement")

        try:
            self._lock_period(period)
            if is_invoiced(self._service_invoices_in(period, customer_id), customer_id, period):
                raise DuplicateBillingPeriod(customer_id, period.year, period.month)

            invoice = self._service_invoice_for(customer, period, local_today())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(invoice)
        logger.info(f"Service invoice #{invoice.invoice_number} created for customer {customer_id} ({period})")
        return self.annotate(invoice)

    def generate_invoices_for_period(self, period: BillingPeriod) -> Tuple[List[Invoice], int]:
        """
        Create one pending service invoice per customer still unbilled in ``period``.

        The invoice set is re-read right before each insert; a customer billed
        in the meantime is skipped, not duplicated.

        Returns:
            (created invoices, number of skipped customers)
        """
        today = local_today()
        created: List[Invoice] = []
        skipped = 0
        try:
            self._lock_period(period)
            for customer in self.customers_needing_invoice(period):
                if is_invoiced(self._service_invoices_in(period, customer.id), customer.id, period):
                    logger.info(f"Customer {customer.id} already invoiced for {period}, skipping")
                    skipped += 1
                    continue
                created.append(self._service_invoice_for(customer, period, today))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error generating invoices for {period}: {str(e)}", exc_info=True)
            raise

        for invoice in created:
            self.db.refresh(invoice)
            self.annotate(invoice, today)
        logger.info(f"Generated {len(created)} invoices for {period} ({skipped} skipped)")
        return created, skipped

    def create_one_time_invoice(self, customer_id: UUID, description: str, amount,
                                due_days: int = settings.INVOICE_PAYMENT_TERMS_DAYS) -> Invoice:
        amount = to_decimal(amount, "amount")
        if amount <= 0:
            raise InvalidLineItem("amount must be greater than zero")
        if not self.db.query(Customer.id).filter(Customer.id == customer_id).first():
            raise EntityNotFound("customer", customer_id)

        today = local_today()
        try:
            invoice = self._new_invoice(
                customer_id,
                InvoiceKind.ONE_TIME,
                amount,
                Decimal(settings.DEFAULT_VAT_RATE),
                invoice_date=today,
                due_date=today + timedelta(days=due_days),
                period_start=today,
                period_end=today,
                description=description,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(invoice)
        logger.info(f"One-time invoice #{invoice.invoice_number} created for customer {customer_id}")
        return self.annotate(invoice, today)

    # ===== Transitions =====

    def transition(self, invoice_id: UUID, action: str, now: Optional[datetime] = None) -> Invoice:
        """Apply ``action`` and persist it in one commit. Cancelling also issues a credit note."""
        if action == CANCEL:
            invoice, _ = self.cancel_invoice(invoice_id, now)
            return invoice

        now = now or utcnow()
        try:
            invoice = self.get_invoice_by_id(invoice_id, lock=True)
            old_status = invoice.status
            INVOICE_LIFECYCLE.apply(invoice, action, now)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(invoice)
        logger.info(f"Invoice #{invoice.invoice_number} status changed from {old_status} to {invoice.status}")
        return self.annotate(invoice)

    def cancel_invoice(self, invoice_id: UUID, now: Optional[datetime] = None) -> Tuple[Invoice, Invoice]:
        """
        Cancel an open invoice and create its credit note in the same transaction.

        The credit note carries the negated amounts, the original period and
        is settled immediately (status ``paid``).
        """
        now = now or utcnow()
        today = local_today()
        try:
            invoice = self.get_invoice_by_id(invoice_id, lock=True)
            INVOICE_LIFECYCLE.apply(invoice, CANCEL, now)

            credit_note = Invoice(
                invoice_number=next_document_number(self.db, INVOICE_SEQUENCE),
                customer_id=invoice.customer_id,
                kind=InvoiceKind.CREDIT_NOTE.value,
                status=InvoiceStatus.PAID.value,
                invoice_date=today,
                due_date=today,
                period_start=invoice.period_start,
                period_end=invoice.period_end,
                amount=-invoice.amount,
                vat_rate=invoice.vat_rate,
                vat_amount=-invoice.vat_amount,
                total=-invoice.total,
                description=f"Kreditfaktura för faktura #{invoice.invoice_number}",
                service_type=invoice.service_type,
                original_invoice_id=invoice.id,
                sent_at=now,
                paid_at=now,
            )
            self.db.add(credit_note)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(invoice)
        self.db.refresh(credit_note)
        logger.info(
            f"Invoice #{invoice.invoice_number} cancelled, credit note #{credit_note.invoice_number} created"
        )
        return self.annotate(invoice, today), self.annotate(credit_note, today)

    def delete_invoice(self, invoice_id: UUID) -> None:
        invoice = self.get_invoice_by_id(invoice_id)
        number = invoice.invoice_number
        try:
            # Credit notes keep their amounts but lose the link
            self.db.query(Invoice).filter(Invoice.original_invoice_id == invoice.id).update(
                {Invoice.original_invoice_id: None}, synchronize_session=False
            )
            self.db.delete(invoice)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Invoice #{number} deleted")
