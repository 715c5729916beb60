"""
Tests for the email module
"""

import smtplib

import pytest

from app.modules.email.service import EmailMessage, EmailService, EmailTransportError


class RecordingSMTP:
    """Stands in for smtplib.SMTP and records what the service did with it"""

    instances = []
    fail_starttls = False
    fail_login = False

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls = []
        RecordingSMTP.instances.append(self)

    def starttls(self, context=None):
        self.calls.append("starttls")
        if self.fail_starttls:
            raise smtplib.SMTPNotSupportedError("STARTTLS extension not supported by server.")

    def login(self, username, password):
        self.calls.append("login")
        if self.fail_login:
            raise smtplib.SMTPAuthenticationError(535, b"Authentication failed")

    def sendmail(self, from_addr, to_addrs, msg):
        self.calls.append("sendmail")

    def close(self):
        self.calls.append("close")

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.calls.append("quit")


@pytest.fixture
def smtp(monkeypatch):
    RecordingSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", RecordingSMTP)
    monkeypatch.setattr(RecordingSMTP, "fail_starttls", False)
    monkeypatch.setattr(RecordingSMTP, "fail_login", False)
    return RecordingSMTP


@pytest.fixture
def email_service():
    service = EmailService()
    service.use_tls = True
    service.username = "faktura@example.se"
    service.password = "hemligt"
    return service


def message():
    return EmailMessage(to=["kund@example.se"], subject="Faktura 1001", html="<p>Hej</p>", attachments=[])


class TestSend:

    def test_sends_and_closes(self, smtp, email_service):
        email_service.send(message())
        assert smtp.instances[0].calls == ["starttls", "login", "sendmail", "quit"]

    def test_starttls_failure_closes_socket(self, smtp, email_service):
        smtp.fail_starttls = True
        with pytest.raises(EmailTransportError):
            email_service.send(message())
        assert smtp.instances[0].calls == ["starttls", "close"]

    def test_login_failure_closes_socket(self, smtp, email_service):
        smtp.fail_login = True
        with pytest.raises(EmailTransportError):
            email_service.send(message())
        assert smtp.instances[0].calls == ["starttls", "login", "close"]
