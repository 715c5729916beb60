"""
Quotes module

- Draft quotes with line items; totals cached on the quote and recomputed
  on every item change
- Lifecycle draft -> sent -> accepted/declined; ``expired`` is derived from
  ``valid_until`` at read time
- Public accept/decline by token from the quote email
"""

from .models import Quote, QuoteItem, QuoteStatus
from .service import QuoteService

__all__ = ["Quote", "QuoteItem", "QuoteStatus", "QuoteService"]
