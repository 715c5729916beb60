"""
Which customers still need a service invoice for a given month.

A customer is billed for a month when a service invoice exists whose
``period_start`` falls in that month. The key set is rebuilt from the live
invoices on every call, so running generation twice for the same month
creates nothing the second time.
"""
import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Set, Tuple
from uuid import UUID

from app.modules.documents.formatting import month_label
from app.modules.invoices.models import InvoiceKind

PeriodKey = Tuple[UUID, int, int]


@dataclass(frozen=True)
class BillingPeriod:
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def label(self) -> str:
        return month_label(self.start)

    def due_date(self, payment_terms_days: int) -> date:
        return self.end + timedelta(days=payment_terms_days)

    def __str__(self):
        return f"{self.year}-{self.month:02d}"


def period_key(customer_id: UUID, period_start: date) -> PeriodKey:
    return (customer_id, period_start.year, period_start.month)


def occupies_period(invoice) -> bool:
    """Only service invoices count. Cancelled ones still do."""
    return invoice.kind == InvoiceKind.SERVICE.value and invoice.period_start is not None


def invoiced_keys(invoices: Iterable) -> Set[PeriodKey]:
    return {
        period_key(invoice.customer_id, invoice.period_start)
        for invoice in invoices
        if occupies_period(invoice)
    }


def is_invoiced(invoices: Iterable, customer_id: UUID, period: BillingPeriod) -> bool:
    return (customer_id, period.year, period.month) in invoiced_keys(invoices)


def customers_needing_invoice(invoices: Iterable, customers: Iterable, period: BillingPeriod) -> List:
    """
    Customers with a priced, active agreement and no service invoice in ``period``.

    Args:
        invoices: Existing invoices (any kind, any status)
        customers: Candidate customers
        period: Target month

    Returns:
        Matching customers in the order they were given
    """
    keys = invoiced_keys(invoices)
    return [
        customer
        for customer in customers
        if customer.has_billable_agreement
        and (customer.id, period.year, period.month) not in keys
    ]
