from fastapi import APIRouter, Depends, Query, Response, status
from typing import Optional
from uuid import UUID

from app.dependencies.dbDependecies import db_dependency
from app.modules.company.service import get_issuer_profile
from app.modules.dispatch.service import DispatchCoordinator
from app.modules.documents import renderer
from app.modules.documents.schemas import PDF_CONTENT_TYPE
from app.modules.documents.service import quote_document
from app.modules.email.service import EmailService, get_email_service
from app.modules.quotes.schemas import (
    QuoteCreate, QuoteItemsReplace, QuoteList, QuoteOut, QuoteResponseRequest,
    QuoteResponseResult, QuoteStatusFilter, QuoteTransitionRequest, QuoteUpdate,
)
from app.modules.quotes.service import QuoteService

router = APIRouter(prefix="/quotes", tags=["Quotes"])


@router.get("", response_model=QuoteList)
def list_quotes(
    db: db_dependency,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    status_filter: Optional[QuoteStatusFilter] = Query(None, alias="status", description="Status, including derived 'expired'"),
    customer_id: Optional[UUID] = Query(None),
):
    return QuoteService(db).get_quotes(status_filter, customer_id, limit, offset)


@router.post("", response_model=QuoteOut, status_code=status.HTTP_201_CREATED)
def create_quote(data: QuoteCreate, db: db_dependency):
    return QuoteService(db).create_quote(data)


@router.post("/respond", response_model=QuoteResponseResult)
def respond_to_quote(data: QuoteResponseRequest, db: db_dependency):
    """
    Public endpoint behind the link in the quote email.

    The token identifies the quote; a quote can only be answered once.
    """
    quote = QuoteService(db).respond_to_quote(data.token, data.accept, data.note)
    return QuoteResponseResult(status=quote.status)


@router.get("/{quote_id}", response_model=QuoteOut)
def get_quote(quote_id: UUID, db: db_dependency):
    service = QuoteService(db)
    return service.annotate(service.get_quote_by_id(quote_id))


@router.patch("/{quote_id}", response_model=QuoteOut)
def update_quote(quote_id: UUID, data: QuoteUpdate, db: db_dependency):
    return QuoteService(db).update_quote(quote_id, data)


@router.put("/{quote_id}/items", response_model=QuoteOut)
def replace_quote_items(quote_id: UUID, data: QuoteItemsReplace, db: db_dependency):
    """Replace every item of the quote and recompute its totals."""
    return QuoteService(db).replace_items(quote_id, data.items)


@router.delete("/{quote_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_quote(quote_id: UUID, db: db_dependency):
    QuoteService(db).delete_quote(quote_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{quote_id}/transitions", response_model=QuoteOut)
def transition_quote(quote_id: UUID, request: QuoteTransitionRequest, db: db_dependency):
    return QuoteService(db).transition(quote_id, request.action)


@router.post("/{quote_id}/send", response_model=QuoteOut)
def send_quote(
    quote_id: UUID,
    db: db_dependency,
    email_service: EmailService = Depends(get_email_service),
):
    """Email the quote with its PDF and a response link, then mark it as sent."""
    quote = DispatchCoordinator(db, email_service).dispatch_quote(quote_id)
    return QuoteService(db).annotate(quote)


@router.get("/{quote_id}/pdf")
def download_quote_pdf(quote_id: UUID, db: db_dependency):
    document = quote_document(QuoteService(db).get_quote_by_id(quote_id))
    pdf = renderer.render(document, get_issuer_profile(db))
    return Response(
        content=pdf,
        media_type=PDF_CONTENT_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )
