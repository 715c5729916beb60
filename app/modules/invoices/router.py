from fastapi import APIRouter, Depends, Path, Query, Response, status
from typing import Optional
from uuid import UUID
from datetime import date

from app.dependencies.dbDependecies import db_dependency
from app.modules.company.service import get_issuer_profile
from app.modules.dispatch.service import DispatchCoordinator
from app.modules.documents import renderer
from app.modules.documents.schemas import PDF_CONTENT_TYPE
from app.modules.documents.service import invoice_document
from app.modules.email.service import EmailService, get_email_service
from app.modules.invoices.ledger import BillingPeriod
from app.modules.invoices.lifecycle import CANCEL
from app.modules.invoices.schemas import (
    GenerationResult, InvoiceFilters, InvoiceList, InvoiceOut, InvoiceStatusFilter,
    InvoiceTransitionRequest, InvoiceTransitionResult, OneTimeInvoiceCreate, PendingBillingOut,
)
from app.modules.invoices.service import InvoiceService

router = APIRouter(prefix="/invoices", tags=["Invoices"])

Year = Path(..., ge=2000, le=2100)
Month = Path(..., ge=1, le=12)


@router.get("", response_model=InvoiceList)
def list_invoices(
    db: db_dependency,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    status_filter: Optional[InvoiceStatusFilter] = Query(None, alias="status", description="Status, including derived 'overdue'"),
    customer_id: Optional[UUID] = Query(None),
    start_date: Optional[date] = Query(None, description="Invoice date from (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Invoice date to (YYYY-MM-DD)"),
):
    filters = InvoiceFilters(
        status=status_filter,
        customer_id=customer_id,
        date_from=start_date,
        date_to=end_date,
    )
    return InvoiceService(db).get_invoices(filters, limit, offset)


@router.get("/billing-periods/{year}/{month}/pending", response_model=PendingBillingOut)
def pending_billing(db: db_dependency, year: int = Year, month: int = Month):
    """Customers with a priced service agreement and no service invoice for the month."""
    period = BillingPeriod(year, month)
    customers = InvoiceService(db).customers_needing_invoice(period)
    return PendingBillingOut(year=year, month=month, label=period.label, customers=customers)


@router.post("/billing-periods/{year}/{month}/generate", response_model=GenerationResult,
             status_code=status.HTTP_201_CREATED)
def generate_invoices(db: db_dependency, year: int = Year, month: int = Month):
    """
    Generate monthly service invoices.

    Safe to call repeatedly: customers already invoiced for the month are
    left alone.
    """
    created, skipped = InvoiceService(db).generate_invoices_for_period(BillingPeriod(year, month))
    return GenerationResult(year=year, month=month, created=created, skipped=skipped)


@router.post("/one-time", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_one_time_invoice(data: OneTimeInvoiceCreate, db: db_dependency):
    return InvoiceService(db).create_one_time_invoice(
        data.customer_id, data.description, data.amount, data.due_days
    )


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(invoice_id: UUID, db: db_dependency):
    service = InvoiceService(db)
    return service.annotate(service.get_invoice_by_id(invoice_id))


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: UUID, db: db_dependency):
    InvoiceService(db).delete_invoice(invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{invoice_id}/transitions", response_model=InvoiceTransitionResult)
def transition_invoice(invoice_id: UUID, request: InvoiceTransitionRequest, db: db_dependency):
    """
    Apply a status transition: ``mark_sent``, ``mark_paid`` or ``cancel``.

    Cancelling returns the credit note created alongside.
    """
    service = InvoiceService(db)
    if request.action == CANCEL:
        invoice, credit_note = service.cancel_invoice(invoice_id)
        return InvoiceTransitionResult(invoice=invoice, credit_note=credit_note)
    return InvoiceTransitionResult(invoice=service.transition(invoice_id, request.action))


@router.post("/{invoice_id}/send", response_model=InvoiceOut)
def send_invoice(
    invoice_id: UUID,
    db: db_dependency,
    email_service: EmailService = Depends(get_email_service),
):
    """Render the PDF, email it to the customer and mark the invoice as sent."""
    invoice = DispatchCoordinator(db, email_service).dispatch_invoice(invoice_id)
    return InvoiceService(db).annotate(invoice)


@router.get("/{invoice_id}/pdf")
def download_invoice_pdf(invoice_id: UUID, db: db_dependency):
    document = invoice_document(InvoiceService(db).get_invoice_by_id(invoice_id))
    pdf = renderer.render(document, get_issuer_profile(db))
    return Response(
        content=pdf,
        media_type=PDF_CONTENT_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )
