"""
PDF layout for invoices, credit notes and quotes using reportlab.

``render(doc, issuer)`` is pure: it reads only its arguments and returns the
PDF bytes. ReportLab runs in invariant mode (fixed creation date and document
id), so the same input always produces the same bytes.

The item table is a platypus flowable and breaks across pages with its header
repeated. Subclass ``DocumentLayout`` and override a ``section_*`` method to
change one block without touching the rest.
"""
import io
import logging
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    HRFlowable, KeepTogether, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle,
)

from app.modules.documents.formatting import (
    format_currency, format_date, format_percent, format_quantity, month_label,
)
from app.modules.documents.schemas import DocumentKind, DocumentModel, IssuerProfile

logger = logging.getLogger(__name__)

BLUE = colors.HexColor("#3b82f6")
DARK = colors.HexColor("#1f2937")
MUTED = colors.HexColor("#6b7280")
FAINT = colors.HexColor("#9ca3af")
LIGHT_BG = colors.HexColor("#f9fafb")
BORDER = colors.HexColor("#e5e7eb")
GREEN = colors.HexColor("#22c55e")
AMBER_BG = colors.HexColor("#fef3c7")
AMBER_TEXT = colors.HexColor("#92400e")

TITLES = {
    DocumentKind.INVOICE: "FAKTURA",
    DocumentKind.CREDIT_NOTE: "KREDITFAKTURA",
    DocumentKind.QUOTE: "OFFERT",
}


def _p(text: Optional[str]) -> str:
    """Escape user text for a Paragraph and keep line breaks."""
    return escape(text or "").replace("\n", "<br/>")


class DocumentLayout:
    pagesize = A4
    margin = 20 * mm
    creator = "crm-billing"

    def __init__(self):
        base = getSampleStyleSheet()["Normal"]
        self.styles = {
            "brand": ParagraphStyle("brand", parent=base, fontName="Helvetica-Bold", fontSize=20, leading=24, textColor=BLUE),
            "title": ParagraphStyle("title", parent=base, fontName="Helvetica-Bold", fontSize=20, leading=24, textColor=DARK, alignment=TA_RIGHT),
            "body": ParagraphStyle("body", parent=base, fontName="Helvetica", fontSize=10, leading=13, textColor=DARK),
            "muted": ParagraphStyle("muted", parent=base, fontName="Helvetica", fontSize=10, leading=13, textColor=MUTED),
            "small": ParagraphStyle("small", parent=base, fontName="Helvetica", fontSize=8.5, leading=11, textColor=MUTED),
            "label": ParagraphStyle("label", parent=base, fontName="Helvetica", fontSize=8.5, leading=11, textColor=MUTED),
            "bold": ParagraphStyle("bold", parent=base, fontName="Helvetica-Bold", fontSize=11, leading=14, textColor=DARK),
            "heading": ParagraphStyle("heading", parent=base, fontName="Helvetica-Bold", fontSize=12, leading=15, textColor=DARK),
            "right": ParagraphStyle("right", parent=base, fontName="Helvetica", fontSize=10, leading=13, textColor=DARK, alignment=TA_RIGHT),
            "th": ParagraphStyle("th", parent=base, fontName="Helvetica-Bold", fontSize=10, leading=13, textColor=colors.white),
            "th_right": ParagraphStyle("th_right", parent=base, fontName="Helvetica-Bold", fontSize=10, leading=13, textColor=colors.white, alignment=TA_RIGHT),
            "pay_title": ParagraphStyle("pay_title", parent=base, fontName="Helvetica-Bold", fontSize=10, leading=13, textColor=AMBER_TEXT),
            "pay": ParagraphStyle("pay", parent=base, fontName="Helvetica", fontSize=9, leading=12, textColor=AMBER_TEXT),
            "footer": ParagraphStyle("footer", parent=base, fontName="Helvetica", fontSize=9, leading=12, textColor=FAINT, alignment=TA_CENTER),
        }

    @property
    def content_width(self) -> float:
        return self.pagesize[0] - 2 * self.margin

    def render(self, doc: DocumentModel, issuer: IssuerProfile) -> bytes:
        buffer = io.BytesIO()
        template = SimpleDocTemplate(
            buffer,
            pagesize=self.pagesize,
            leftMargin=self.margin,
            rightMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=f"{TITLES[doc.kind].capitalize()} {doc.number}",
            author=issuer.name or "",
            subject="",
            creator=self.creator,
            invariant=1,
        )
        template.build(
            self.build_story(doc, issuer),
            onFirstPage=self.draw_page_number,
            onLaterPages=self.draw_page_number,
        )
        pdf = buffer.getvalue()
        logger.debug(f"Rendered {doc.filename} ({len(pdf)} bytes)")
        return pdf

    def build_story(self, doc: DocumentModel, issuer: IssuerProfile) -> list:
        story = []
        for section in (
            self.section_header,
            self.section_issuer_and_meta,
            self.section_recipient,
            self.section_intro,
            self.section_items,
            self.section_totals,
            self.section_payment,
            self.section_notes,
            self.section_footer,
        ):
            flowables = section(doc, issuer)
            if flowables:
                story.extend(flowables)
                story.append(Spacer(1, 6 * mm))
        return story

    def draw_page_number(self, canvas, template):
        canvas.saveState()
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(FAINT)
        canvas.drawRightString(self.pagesize[0] - self.margin, self.margin / 2, f"Sida {template.page}")
        canvas.restoreState()

    # --- sections ---

    def section_header(self, doc: DocumentModel, issuer: IssuerProfile) -> list:
        brand = (issuer.name or "FÖRETAG").upper()
        table = Table(
            [[Paragraph(_p(brand), self.styles["brand"]), Paragraph(TITLES[doc.kind], self.styles["title"])]],
            colWidths=[self.content_width * 0.6, self.content_width * 0.4],
        )
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "BOTTOM"),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ]))
        return [table, Spacer(1, 3 * mm), HRFlowable(width="100%", thickness=0.5, color=BORDER)]

    def issuer_lines(self, issuer: IssuerProfile) -> List[str]:
        city_line = " ".join(part for part in (issuer.postal_code, issuer.city) if part)
        lines = [issuer.name, issuer.address, city_line, issuer.email, issuer.phone]
        if issuer.org_number:
            lines.append(f"Org.nr: {issuer.org_number}")
        return [line for line in lines if line]

    def meta_rows(self, doc: DocumentModel) -> List[tuple]:
        if doc.kind == DocumentKind.QUOTE:
            rows = [("Offertnummer:", f"#{doc.number}"), ("Offertdatum:", format_date(doc.issue_date))]
            if doc.valid_until:
                rows.append(("Giltig t.o.m.:", format_date(doc.valid_until)))
            return rows

        rows = [("Fakturanummer:", f"#{doc.number}"), ("Fakturadatum:", format_date(doc.issue_date))]
        if doc.due_date:
            rows.append(("Förfallodatum:", format_date(doc.due_date)))
        if doc.period_start:
            rows.append(("Period:", month_label(doc.period_start)))
        return rows

    def section_issuer_and_meta(self, doc: DocumentModel, issuer: IssuerProfile) -> list:
        left = [Paragraph(_p(line), self.styles["muted"]) for line in self.issuer_lines(issuer)]
        meta = Table(
            [[Paragraph(f"<b>{label}</b>", self.styles["body"]), Paragraph(_p(value), self.styles["right"])]
             for label, value in self.meta_rows(doc)],
            colWidths=[32 * mm, 33 * mm],
        )
        meta.setStyle(TableStyle([
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("RIGHTPADDING", (0, 0), (-1, -1), 0),
            ("TOPPADDING", (0, 0), (-1, -1), 1),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 1),
        ]))
        table = Table(
            [[left or "", meta]],
            colWidths=[self.content_width - 65 * mm, 65 * mm],
        )
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ]))
        return [table]

    def section_recipient(self, doc: DocumentModel, issuer: IssuerProfile) -> list:
        r = doc.recipient
        heading = "OFFERT TILL" if doc.kind == DocumentKind.QUOTE else "FAKTURERAS TILL"
        left = [Paragraph(heading, self.styles["label"]), Paragraph(_p(r.name), self.styles["bold"])]
        if r.company_name:
            left.append(Paragraph(_p(r.company_name), self.styles["body"]))
        if r.org_number:
            left.append(Paragraph(_p(f"Org.nr: {r.org_number}"), self.styles["muted"]))

        city_line = " ".join(part for part in (r.postal_code, r.city) if part)
        right = [Paragraph(_p(line), self.styles["muted"]) for line in (r.address, city_line, r.email) if line]

        table = Table([[left, right or ""]], colWidths=[self.content_width / 2] * 2)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), LIGHT_BG),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 5 * mm),
            ("TOPPADDING", (0, 0), (-1, -1), 4 * mm),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4 * mm),
        ]))
        return [table]

    def section_intro(self, doc: DocumentModel, issuer: IssuerProfile) -> list:
        flowables = []
        if doc.title:
            flowables.append(Paragraph(_p(doc.title), self.styles["heading"]))
        if doc.description:
            flowables.append(Paragraph(_p(doc.description), self.styles["muted"]))
        return flowables

    def section_items(self, doc: DocumentModel, issuer: IssuerProfile) -> list:
        if not doc.lines:
            return []
        itemized = any(line.quantity is not None for line in doc.lines)
        s = self.styles
        if itemized:
            header = [Paragraph("Beskrivning", s["th"]), Paragraph("Antal", s["th_right"]),
                      Paragraph("Á-pris", s["th_right"]), Paragraph("Summa", s["th_right"])]
            widths = [self.content_width - 85 * mm, 25 * mm, 30 * mm, 30 * mm]
        else:
            header = [Paragraph("Beskrivning", s["th"]), Paragraph("Belopp", s["th_right"])]
            widths = [self.content_width - 40 * mm, 40 * mm]

        rows = [header]
        for line in doc.lines:
            description = [Paragraph(_p(line.description), s["body"])]
            if line.details:
                description.append(Paragraph(_p(line.details), s["small"]))
            if itemized:
                quantity = " ".join(part for part in (format_quantity(line.quantity), line.unit or "") if part)
                rows.append([
                    description,
                    Paragraph(_p(quantity), s["right"]),
                    Paragraph(format_currency(line.unit_price), s["right"]),
                    Paragraph(format_currency(line.total), s["right"]),
                ])
            else:
                rows.append([description, Paragraph(format_currency(line.total), s["right"])])

        table = Table(rows, colWidths=widths, repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), BLUE),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LINEBELOW", (0, 1), (-1, -1), 0.5, BORDER),
            ("TOPPADDING", (0, 0), (-1, -1), 3 * mm),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3 * mm),
        ]))
        return [table]

    def section_totals(self, doc: DocumentModel, issuer: IssuerProfile) -> list:
        s = self.styles
        total_label = "TOTALT" if doc.kind == DocumentKind.QUOTE else "ATT BETALA"
        rows = [
            [Paragraph("Summa exkl. moms", s["muted"]), Paragraph(format_currency(doc.subtotal), s["right"])],
            [Paragraph(f"Moms ({format_percent(doc.vat_rate)}%)", s["muted"]), Paragraph(format_currency(doc.vat_amount), s["right"])],
            [Paragraph(f"<b>{total_label}</b>", s["th"]), Paragraph(f"<b>{format_currency(doc.total)}</b>", s["th_right"])],
        ]
        table = Table(rows, colWidths=[50 * mm, 35 * mm], hAlign="RIGHT")
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 2), (-1, 2), GREEN),
            ("TOPPADDING", (0, 2), (-1, 2), 3 * mm),
            ("BOTTOMPADDING", (0, 2), (-1, 2), 3 * mm),
        ]))
        return [KeepTogether(table)]

    def section_payment(self, doc: DocumentModel, issuer: IssuerProfile) -> list:
        if doc.kind != DocumentKind.INVOICE or not issuer.has_payment_channels:
            return []
        s = self.styles
        channels = "&nbsp;&nbsp;&nbsp;&nbsp;".join(
            f"{label}: {_p(value)}" for label, value in issuer.payment_channels
        )
        content = [
            Paragraph("Betalningsinformation", s["pay_title"]),
            Paragraph(channels, s["pay"]),
            Paragraph(f"Ange fakturanummer #{doc.number} vid betalning", s["pay"]),
        ]
        table = Table([[content]], colWidths=[self.content_width])
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), AMBER_BG),
            ("LEFTPADDING", (0, 0), (-1, -1), 5 * mm),
            ("TOPPADDING", (0, 0), (-1, -1), 4 * mm),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4 * mm),
        ]))
        return [KeepTogether(table)]

    def section_notes(self, doc: DocumentModel, issuer: IssuerProfile) -> list:
        flowables = []
        if doc.notes:
            flowables += [Paragraph("Anteckningar", self.styles["heading"]),
                          Paragraph(_p(doc.notes), self.styles["muted"])]
        if doc.terms:
            flowables += [Paragraph("Villkor", self.styles["heading"]),
                          Paragraph(_p(doc.terms), self.styles["muted"])]
        return flowables

    def section_footer(self, doc: DocumentModel, issuer: IssuerProfile) -> list:
        s = self.styles
        flowables = [Paragraph(_p(f"Tack för att du är kund hos {issuer.name or 'oss'}!"), s["footer"])]
        if issuer.email:
            flowables.append(Paragraph(_p(f"Vid frågor, kontakta oss på {issuer.email}"), s["footer"]))
        return flowables


default_layout = DocumentLayout()


def render(doc: DocumentModel, issuer: IssuerProfile, layout: Optional[DocumentLayout] = None) -> bytes:
    """Render ``doc`` to PDF bytes. Identical input gives identical output."""
    return (layout or default_layout).render(doc, issuer)
