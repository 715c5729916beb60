from datetime import date

from app.common.lifecycle import Lifecycle, Transition
from app.modules.quotes.models import QuoteStatus

EXPIRED = "expired"

MARK_SENT = "mark_sent"
ACCEPT = "accept"
DECLINE = "decline"

QUOTE_LIFECYCLE = Lifecycle(
    entity_type="quote",
    status_enum=QuoteStatus,
    initial=QuoteStatus.DRAFT,
    transitions=[
        Transition(MARK_SENT, frozenset({QuoteStatus.DRAFT}), QuoteStatus.SENT, stamp="sent_at"),
        Transition(ACCEPT, frozenset({QuoteStatus.SENT}), QuoteStatus.ACCEPTED),
        Transition(DECLINE, frozenset({QuoteStatus.SENT}), QuoteStatus.DECLINED),
    ],
)

ANSWERED_STATUSES = frozenset({QuoteStatus.ACCEPTED, QuoteStatus.DECLINED})


def is_answered(quote) -> bool:
    return QUOTE_LIFECYCLE.status_of(quote) in ANSWERED_STATUSES


def is_editable(quote) -> bool:
    return not is_answered(quote)


def is_expired(quote, today: date) -> bool:
    return not is_answered(quote) and quote.valid_until is not None and quote.valid_until < today


def effective_status(quote, today: date) -> str:
    """Stored status, or ``expired`` once an unanswered quote is past valid_until."""
    if is_expired(quote, today):
        return EXPIRED
    return QUOTE_LIFECYCLE.status_of(quote).value
