import smtplib
import ssl
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.mime.application import MIMEApplication
from typing import List, Dict, Any
from pathlib import Path
import logging
from jinja2 import Environment, FileSystemLoader, select_autoescape
from app.core.config import settings
from app.modules.documents.formatting import format_currency, format_date, format_percent

logger = logging.getLogger(__name__)


class EmailTransportError(Exception):
    """SMTP connection, authentication or delivery failed."""


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass(frozen=True)
class EmailMessage:
    to: List[str]
    subject: str
    html: str
    attachments: List[EmailAttachment]


class EmailService:
    """
    Email service with Jinja2 templates and in-memory attachments.
    """

    def __init__(self):
        self.smtp_server = settings.EMAIL_SMTP_SERVER
        self.smtp_port = settings.EMAIL_SMTP_PORT
        self.username = settings.EMAIL_USERNAME
        self.password = settings.EMAIL_PASSWORD
        self.use_tls = settings.EMAIL_USE_TLS
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.timeout = settings.EMAIL_TIMEOUT_SECONDS

        template_dir = Path(__file__).parent / "templates"
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html', 'xml'])
        )
        self.jinja_env.filters["currency"] = format_currency
        self.jinja_env.filters["isodate"] = format_date
        self.jinja_env.filters["percent"] = format_percent

    def _create_smtp_connection(self):
        """Open an authenticated SMTP connection (STARTTLS or implicit SSL)."""
        context = ssl.create_default_context()
        if self.use_tls:
            server = smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.timeout)
        else:
            server = smtplib.SMTP_SSL(self.smtp_server, self.smtp_port, timeout=self.timeout, context=context)

        try:
            if self.use_tls:
                server.starttls(context=context)
            if self.username:
                server.login(self.username, self.password)
        except Exception:
            server.close()
            raise
        return server

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """
        Render an email template.

        Args:
            template_name: File name under ``templates/``
            context: Template variables

        Returns:
            Rendered HTML
        """
        template = self.jinja_env.get_template(template_name)
        return template.render(**context)

    def build_message(self, message: EmailMessage) -> MIMEMultipart:
        msg = MIMEMultipart('mixed')
        msg['Subject'] = message.subject
        msg['From'] = f"{self.from_name} <{self.from_email}>"
        msg['To'] = ', '.join(message.to)

        msg.attach(MIMEText(message.html, 'html', 'utf-8'))

        for attachment in message.attachments:
            _, _, subtype = attachment.content_type.partition("/")
            part = MIMEApplication(attachment.content, _subtype=subtype or "octet-stream")
            part.add_header('Content-Disposition', 'attachment', filename=attachment.filename)
            msg.attach(part)
        return msg

    def send(self, message: EmailMessage) -> None:
        """
        Send ``message`` once.

        Raises:
            EmailTransportError: on any SMTP or network failure. Nothing is
                retried here; the caller decides.
        """
        msg = self.build_message(message)
        try:
            with self._create_smtp_connection() as server:
                server.sendmail(self.from_email, message.to, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error sending email to {', '.join(message.to)}: {str(e)}")
            raise EmailTransportError(str(e)) from e

        logger.info(f"Email sent successfully to {', '.join(message.to)}")


# Singleton instance
email_service = EmailService()


def get_email_service() -> EmailService:
    return email_service
