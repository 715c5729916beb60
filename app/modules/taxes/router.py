from fastapi import APIRouter

from app.modules.taxes.calculator import vat_calculator
from app.modules.taxes.schemas import TotalsRequest, TotalsOut, LineTotalOut

taxes_router = APIRouter(prefix="/taxes", tags=["Taxes"])


@taxes_router.post("/quote-totals", response_model=TotalsOut)
def preview_quote_totals(request: TotalsRequest):
    """
    Preview subtotal, VAT and total for a set of quote lines.

    Uses the same calculator as persisted quotes so the preview always
    matches the saved document. Nothing is stored.
    """
    lines = [
        LineTotalOut(
            quantity=item.quantity,
            unit_price=item.unit_price,
            total=vat_calculator.compute_line_total(item.quantity, item.unit_price),
        )
        for item in request.items
    ]
    totals = vat_calculator.compute_totals(request.items, request.vat_rate)
    return TotalsOut(
        lines=lines,
        vat_rate=request.vat_rate,
        subtotal=totals.subtotal,
        vat_amount=totals.vat_amount,
        total=totals.total,
    )
