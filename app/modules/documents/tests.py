"""
Tests for document formatting, numbering and PDF rendering
"""

import re
import pytest
from datetime import date
from decimal import Decimal

from app.modules.documents import renderer
from app.modules.documents.formatting import format_currency, format_number, format_quantity, month_label
from app.modules.documents.renderer import DocumentLayout
from app.modules.documents.schemas import DocumentKind, DocumentLine, DocumentModel, IssuerProfile, Recipient
from app.modules.documents.service import INVOICE_SEQUENCE, QUOTE_SEQUENCE, next_document_number

PAGE_OBJECT = re.compile(rb"/Type /Page[^s]")


# ===== FIXTURES =====

@pytest.fixture
def issuer():
    return IssuerProfile(
        name="Webbstudio AB",
        org_number="559000-1234",
        address="Storgatan 1",
        postal_code="111 22",
        city="Stockholm",
        email="hej@webbstudio.se",
        bankgiro="123-4567",
        swish="1234567890",
    )


@pytest.fixture
def invoice_doc():
    return DocumentModel(
        kind=DocumentKind.INVOICE,
        number=1042,
        issue_date=date(2026, 3, 2),
        recipient=Recipient(name="Erik Lund", company_name="Lund Bygg AB", org_number="556677-8899",
                            address="Byggvägen 3", postal_code="123 45", city="Solna", email="erik@example.se"),
        subtotal=Decimal("795"),
        vat_rate=Decimal("25"),
        vat_amount=Decimal("199"),
        total=Decimal("994"),
        lines=(DocumentLine(description="Serviceavtal Webbhotell - mars 2026", total=Decimal("795")),),
        due_date=date(2026, 4, 30),
        period_start=date(2026, 3, 1),
        period_end=date(2026, 3, 31),
    )


def quote_doc(line_count: int) -> DocumentModel:
    lines = tuple(
        DocumentLine(
            description=f"Rad {i} <med> & tecken",
            details="Detaljer\npå två rader",
            quantity=Decimal("2"),
            unit="tim",
            unit_price=Decimal("950"),
            total=Decimal("1900"),
        )
        for i in range(line_count)
    )
    subtotal = Decimal("1900") * line_count
    return DocumentModel(
        kind=DocumentKind.QUOTE,
        number=7,
        issue_date=date(2026, 3, 2),
        recipient=Recipient(name="Anna Svensson"),
        subtotal=subtotal,
        vat_rate=Decimal("25"),
        vat_amount=subtotal / 4,
        total=subtotal * Decimal("1.25"),
        lines=lines,
        valid_until=date(2026, 3, 12),
        title="Ny webbplats",
        terms="Offerten gäller i 10 dagar.",
    )


# ===== FORMATTING =====

class TestFormatting:

    def test_thousands_separator(self):
        assert format_number(Decimal("1234")) == "1 234"
        assert format_number(Decimal("1234567")) == "1 234 567"

    def test_decimals_use_comma(self):
        assert format_number(Decimal("1234.5")) == "1 234,50"

    def test_currency(self):
        assert format_currency(Decimal("994.00")) == "994 kr"
        assert format_currency(Decimal("-994")) == "-994 kr"
        assert format_currency(None) == ""

    def test_quantity(self):
        assert format_quantity(Decimal("2.000")) == "2"
        assert format_quantity(Decimal("1.5")) == "1,5"

    def test_month_label(self):
        assert month_label(date(2026, 3, 1)) == "mars 2026"
        assert month_label(date(2025, 12, 31)) == "december 2025"


class TestFilenames:

    def test_filename_per_kind(self, invoice_doc):
        assert invoice_doc.filename == "faktura-1042.pdf"
        assert quote_doc(1).filename == "offert-7.pdf"


# ===== RENDERING =====

class TestRender:

    def test_produces_pdf(self, invoice_doc, issuer):
        pdf = renderer.render(invoice_doc, issuer)
        assert pdf.startswith(b"%PDF")
        assert pdf.rstrip().endswith(b"%%EOF")

    def test_same_input_same_bytes(self, invoice_doc, issuer):
        assert renderer.render(invoice_doc, issuer) == renderer.render(invoice_doc, issuer)

    def test_long_item_table_spans_pages(self, issuer):
        short = renderer.render(quote_doc(2), issuer)
        long = renderer.render(quote_doc(120), issuer)
        assert len(PAGE_OBJECT.findall(short)) == 1
        assert len(PAGE_OBJECT.findall(long)) > 1

    def test_missing_optional_fields(self):
        doc = DocumentModel(
            kind=DocumentKind.INVOICE,
            number=1,
            issue_date=date(2026, 1, 1),
            recipient=Recipient(),
            subtotal=Decimal("0"),
            vat_rate=Decimal("25"),
            vat_amount=Decimal("0"),
            total=Decimal("0"),
        )
        assert renderer.render(doc, IssuerProfile()).startswith(b"%PDF")

    def test_credit_note_with_negative_amounts(self, invoice_doc, issuer):
        credit = DocumentModel(
            kind=DocumentKind.CREDIT_NOTE,
            number=1043,
            issue_date=invoice_doc.issue_date,
            recipient=invoice_doc.recipient,
            subtotal=-invoice_doc.subtotal,
            vat_rate=invoice_doc.vat_rate,
            vat_amount=-invoice_doc.vat_amount,
            total=-invoice_doc.total,
            lines=(DocumentLine(description="Kreditfaktura för faktura #1042", total=Decimal("-795")),),
        )
        assert credit.filename == "kreditfaktura-1043.pdf"
        assert renderer.render(credit, issuer).startswith(b"%PDF")


class TestLayoutSections:

    def test_payment_block_only_with_channels(self, invoice_doc, issuer):
        layout = DocumentLayout()
        assert layout.section_payment(invoice_doc, issuer)
        assert layout.section_payment(invoice_doc, IssuerProfile(name="Utan betalkanaler")) == []

    def test_no_payment_block_on_quotes(self, issuer):
        assert DocumentLayout().section_payment(quote_doc(1), issuer) == []

    def test_payment_channels_in_order(self, issuer):
        assert issuer.payment_channels == [("Bankgiro", "123-4567"), ("Swish", "1234567890")]

    def test_section_can_be_overridden(self, invoice_doc, issuer):
        class NoFooter(DocumentLayout):
            def section_footer(self, doc, issuer):
                return []

        pdf = renderer.render(invoice_doc, issuer, NoFooter())
        assert pdf.startswith(b"%PDF")
        assert pdf != renderer.render(invoice_doc, issuer)


# ===== NUMBERING =====

class TestDocumentNumbers:

    def test_series_are_independent(self, db_session):
        assert next_document_number(db_session, INVOICE_SEQUENCE) == 1
        assert next_document_number(db_session, INVOICE_SEQUENCE) == 2
        assert next_document_number(db_session, QUOTE_SEQUENCE) == 1
        db_session.commit()
        assert next_document_number(db_session, INVOICE_SEQUENCE) == 3
