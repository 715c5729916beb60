"""
Email module: SMTP transport and HTML templates for outgoing documents.
"""

from .service import (
    EmailAttachment,
    EmailMessage,
    EmailService,
    EmailTransportError,
    email_service,
    get_email_service,
)

__all__ = [
    'EmailAttachment',
    'EmailMessage',
    'EmailService',
    'EmailTransportError',
    'email_service',
    'get_email_service',
]
