"""
Domain errors for the billing and quotation core.

Validation-class errors (everything that is not a ``DispatchError``) are raised
before any side effect happens, so the caller can fix the input and retry.
Dispatch errors describe how far a send got so an operator can tell whether a
message may already have reached the customer.
"""
from typing import Any, Dict, Optional
from uuid import UUID


class BillingError(Exception):
    """Base class for all errors raised by the billing services."""

    status_code = 400
    code = "billing_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "error": self.code, "detail": self.message}


class EntityNotFound(BillingError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(f"{entity_type} {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidLineItem(BillingError):
    """Negative or non-numeric quantity, price or VAT rate."""

    status_code = 422
    code = "invalid_line_item"


class DuplicateBillingPeriod(BillingError):
    status_code = 409
    code = "duplicate_billing_period"

    def __init__(self, customer_id: UUID, year: int, month: int):
        super().__init__(
            f"Customer {customer_id} already has an invoice for {year}-{month:02d}"
        )
        self.customer_id = customer_id
        self.year = year
        self.month = month


class IllegalTransition(BillingError):
    status_code = 409
    code = "illegal_transition"

    def __init__(self, entity_type: str, current_status: str, action: str):
        super().__init__(
            f"Cannot apply '{action}' to {entity_type} in status '{current_status}'"
        )
        self.entity_type = entity_type
        self.current_status = current_status
        self.action = action

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(status=self.current_status, action=self.action)
        return data


class MissingRecipientEmail(BillingError):
    status_code = 422
    code = "missing_recipient_email"


class DispatchError(BillingError):
    """Failure during render + send + transition, tagged with the stage reached."""

    status_code = 500
    code = "dispatch_error"
    retryable = False
    message_may_have_been_sent = False

    def __init__(self, message: str, entity_type: str, entity_id: UUID, stage: str,
                 cause: Optional[BaseException] = None):
        super().__init__(message)
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.stage = stage
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            entity_type=self.entity_type,
            entity_id=str(self.entity_id),
            stage=self.stage,
            retryable=self.retryable,
            message_may_have_been_sent=self.message_may_have_been_sent,
        )
        return data


class RenderFailure(DispatchError):
    """The document engine failed on input that was already validated."""

    code = "render_failure"


class DispatchTransportFailure(DispatchError):
    status_code = 502
    code = "dispatch_transport_failure"
    retryable = True


class TransportOutcomeUnknown(DispatchError):
    """The transport failed in an unexpected way; the email may or may not have gone out."""

    code = "transport_outcome_unknown"
    message_may_have_been_sent = True


class PostSendTransitionFailure(DispatchError):
    """The email went out but the status write failed. Needs manual reconciliation."""

    code = "post_send_transition_failure"
    message_may_have_been_sent = True
