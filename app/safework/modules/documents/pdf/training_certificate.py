"""
One-page SB 553 training certificate (landscape).
"""
from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, Spacer, Table

from app.safework.constants import TRAINING_TOPICS
from app.safework.modules.documents.pdf._common import BRAND, STYLE_BODY, build_pdf, fmt_date, text

if TYPE_CHECKING:
    from app.safework.modules.employees.models import Employee
    from app.safework.modules.organizations.models import Organization

_KICKER = ParagraphStyle("CertKicker", parent=STYLE_BODY, fontSize=11, alignment=TA_CENTER,
                         textColor=colors.gray, fontName="Helvetica-Bold")
_HEADLINE = ParagraphStyle("CertHeadline", parent=STYLE_BODY, fontSize=26, leading=30, alignment=TA_CENTER,
                           textColor=BRAND, fontName="Helvetica-Bold", spaceAfter=6)
_CENTER = ParagraphStyle("CertCenter", parent=STYLE_BODY, fontSize=11, alignment=TA_CENTER)
_NAME = ParagraphStyle("CertName", parent=STYLE_BODY, fontSize=24, leading=28, alignment=TA_CENTER,
                       fontName="Helvetica-BoldOblique")
_TOPIC = ParagraphStyle("CertTopic", parent=STYLE_BODY, fontSize=8, leading=10)
_SMALL = ParagraphStyle("CertSmall", parent=STYLE_BODY, fontSize=8, alignment=TA_CENTER, textColor=colors.gray)


def _topics_table() -> Table:
    half = (len(TRAINING_TOPICS) + 1) // 2
    left, right = TRAINING_TOPICS[:half], TRAINING_TOPICS[half:]
    rows = []
    for i in range(half):
        rows.append([
            Paragraph(f"&bull; {text(left[i])}", _TOPIC),
            Paragraph(f"&bull; {text(right[i])}", _TOPIC) if i < len(right) else "",
        ])
    t = Table(rows, colWidths=[4.2 * inch, 4.2 * inch])
    t.setStyle([("VALIGN", (0, 0), (-1, -1), "TOP"), ("BOTTOMPADDING", (0, 0), (-1, -1), 1)])
    return t


def _signatures(org: "Organization") -> Table:
    t = Table(
        [["", "", ""], [Paragraph(f"Authorized Representative<br/>{text(org.name)}", _SMALL), "",
                        Paragraph("Date", _SMALL)]],
        colWidths=[3.0 * inch, 1.5 * inch, 3.0 * inch],
    )
    t.setStyle([
        ("LINEABOVE", (0, 1), (0, 1), 0.5, colors.black),
        ("LINEABOVE", (2, 1), (2, 1), 0.5, colors.black),
        ("TOPPADDING", (0, 0), (-1, 0), 20),
    ])
    return t


def build_training_certificate_pdf(
    org: "Organization",
    employee: "Employee",
    completion_date: date | datetime | None,
) -> bytes:
    name = employee.full_name or "Employee"
    story = [
        Paragraph("CERTIFICATE OF COMPLETION", _KICKER),
        Spacer(1, 10),
        Paragraph("Workplace Violence<br/>Prevention Training", _HEADLINE),
        Paragraph("California Senate Bill 553 - Labor Code Section 6401.9", _CENTER),
        Spacer(1, 14),
        Paragraph("This certifies that", _CENTER),
        Spacer(1, 8),
        Paragraph(text(name), _NAME),
        Spacer(1, 8),
        Paragraph("has successfully completed the required SB 553 Workplace Violence Prevention Training", _CENTER),
        Paragraph(f"administered by {text(org.name)}.", _CENTER),
        Spacer(1, 10),
        _topics_table(),
        Spacer(1, 8),
        Paragraph("This training fulfills the annual requirement per California Labor Code Section 6401.9(c)(3).", _SMALL),
        Paragraph(f"<b>Date of Completion: {fmt_date(completion_date)}</b>", _CENTER),
        _signatures(org),
    ]
    return build_pdf(
        story,
        title=f"Training Certificate - {name}",
        footer="This certificate is generated by SafeWorkCA for compliance documentation purposes.",
        pagesize=landscape(letter),
    )
