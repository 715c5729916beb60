"""
Shared pytest fixtures: in-memory SQLite database, API client and a
recording email transport.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("EMAIL_FROM", "faktura@example.se")

from datetime import date
from decimal import Decimal
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database.database import Base, get_db
from app.main import app
from app.modules.company.models import CompanySettings
from app.modules.customers.models import Customer
from app.modules.email.service import EmailMessage, EmailService, EmailTransportError, get_email_service


class FakeEmailService(EmailService):
    """Renders templates for real but records messages instead of sending them"""

    def __init__(self):
        super().__init__()
        self.sent: List[EmailMessage] = []
        self.fail_with: Optional[str] = None

    def send(self, message: EmailMessage) -> None:
        if self.fail_with:
            raise EmailTransportError(self.fail_with)
        self.sent.append(message)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_email():
    return FakeEmailService()


@pytest.fixture
def client(db_session, fake_email):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: fake_email
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_customer(db_session):
    def _make(**overrides) -> Customer:
        data = {
            "first_name": "Anna",
            "last_name": "Svensson",
            "email": "anna@example.se",
            "status": "lead",
        }
        data.update(overrides)
        customer = Customer(**data)
        db_session.add(customer)
        db_session.commit()
        db_session.refresh(customer)
        return customer

    return _make


@pytest.fixture
def service_customer(make_customer):
    """Customer with a 795 kr/month hosting agreement"""
    return make_customer(
        first_name="Erik",
        last_name="Lund",
        email="erik@example.se",
        company_name="Lund Bygg AB",
        org_number="556677-8899",
        status="customer",
        has_service_agreement=True,
        service_type="Webbhotell",
        service_price=Decimal("795"),
        service_start_date=date(2025, 1, 1),
    )


@pytest.fixture
def company(db_session):
    row = CompanySettings(
        company_name="Webbstudio AB",
        org_number="559000-1234",
        address="Storgatan 1",
        postal_code="111 22",
        city="Stockholm",
        country="Sverige",
        email="hej@webbstudio.se",
        bankgiro="123-4567",
        swish="1234567890",
    )
    db_session.add(row)
    db_session.commit()
    return row
