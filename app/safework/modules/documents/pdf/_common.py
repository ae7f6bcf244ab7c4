"""
Shared reportlab building blocks for SafeWorkCA documents.
"""
from __future__ import annotations

import io
from datetime import date, datetime
from typing import Any, Iterable
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

BRAND = colors.HexColor("#1f3a5f")
SECTION_BG = colors.HexColor("#f0f4f8")
GRID = colors.HexColor("#dddddd")
CONTENT_WIDTH = 7.0 * inch

_base = getSampleStyleSheet()

STYLE_TITLE = ParagraphStyle(
    "SWTitle", parent=_base["Heading1"], fontSize=20, textColor=BRAND,
    alignment=TA_CENTER, spaceAfter=6, fontName="Helvetica-Bold",
)
STYLE_SUBTITLE = ParagraphStyle(
    "SWSubtitle", parent=_base["Normal"], fontSize=11, textColor=colors.gray,
    alignment=TA_CENTER, spaceAfter=14,
)
STYLE_SECTION = ParagraphStyle(
    "SWSection", parent=_base["Heading2"], fontSize=11, textColor=colors.white,
    fontName="Helvetica-Bold", leftIndent=4,
)
STYLE_SUBHEADING = ParagraphStyle(
    "SWSubheading", parent=_base["Normal"], fontSize=10, fontName="Helvetica-Bold",
    spaceBefore=6, spaceAfter=2,
)
STYLE_LABEL = ParagraphStyle(
    "SWLabel", parent=_base["Normal"], fontSize=9, fontName="Helvetica-Bold",
    textColor=colors.HexColor("#555555"),
)
STYLE_VALUE = ParagraphStyle("SWValue", parent=_base["Normal"], fontSize=9, fontName="Helvetica")
STYLE_BODY = ParagraphStyle("SWBody", parent=_base["Normal"], fontSize=10, leading=13, spaceAfter=4)
STYLE_FOOTER = ParagraphStyle(
    "SWFooter", parent=_base["Normal"], fontSize=8, textColor=colors.gray, alignment=TA_CENTER,
)


def text(value: Any) -> str:
    """Escape for Paragraph markup; blanks render as N/A."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return "N/A"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (datetime, date)):
        return fmt_date(value)
    return escape(str(value))


def fmt_date(value: Any) -> str:
    if not value:
        return "N/A"
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return f"{value:%B} {value.day}, {value.year}" if hasattr(value, "strftime") else str(value)


def section_header(title: str) -> Table:
    t = Table([[Paragraph(escape(title), STYLE_SECTION)]], colWidths=[CONTENT_WIDTH])
    t.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), BRAND),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ("LEFTPADDING", (0, 0), (-1, -1), 8),
    ]))
    return t


def kv_table(rows: list[tuple[str, Any]]) -> Table | None:
    """One (label, value) pair per row."""
    if not rows:
        return None
    data = [[Paragraph(escape(label), STYLE_LABEL), Paragraph(text(val), STYLE_VALUE)] for label, val in rows]
    t = Table(data, colWidths=[2.0 * inch, CONTENT_WIDTH - 2.0 * inch])
    t.setStyle(TableStyle([
        ("ROWBACKGROUNDS", (0, 0), (-1, -1), [colors.white, SECTION_BG]),
        ("GRID", (0, 0), (-1, -1), 0.25, GRID),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    return t


def grid_table(header: list[str], rows: list[list[Any]], col_widths: list[float]) -> Table:
    data = [[Paragraph(escape(h), STYLE_LABEL) for h in header]]
    data += [[Paragraph(text(c), STYLE_VALUE) for c in row] for row in rows]
    t = Table(data, colWidths=col_widths, repeatRows=1)
    t.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), SECTION_BG),
        ("GRID", (0, 0), (-1, -1), 0.25, GRID),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    return t


def paragraph(value: Any, style: ParagraphStyle = STYLE_BODY) -> Paragraph:
    return Paragraph(text(value), style)


def bullets(items: Iterable[Any]) -> list[Paragraph]:
    out = [Paragraph(f"&bull; {text(i)}", STYLE_BODY) for i in items if i]
    return out or [Paragraph("N/A", STYLE_BODY)]


def header_block(title: str, subtitle: str) -> list:
    return [
        Paragraph(escape(title), STYLE_TITLE),
        Paragraph(escape(subtitle), STYLE_SUBTITLE),
        HRFlowable(width="100%", thickness=1.5, color=BRAND),
        Spacer(1, 10),
    ]


def _page_footer(label: str):
    def draw(canvas, doc):
        canvas.saveState()
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(colors.gray)
        width, _ = doc.pagesize
        canvas.drawCentredString(width / 2, 0.5 * inch, f"{label} | Page {doc.page}")
        canvas.restoreState()

    return draw


def build_pdf(story: list, *, title: str, footer: str, pagesize=letter) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=pagesize, title=title, author="SafeWorkCA",
        leftMargin=0.75 * inch, rightMargin=0.75 * inch,
        topMargin=0.75 * inch, bottomMargin=0.85 * inch,
    )
    on_page = _page_footer(footer)
    doc.build([item for item in story if item is not None], onFirstPage=on_page, onLaterPages=on_page)
    return buf.getvalue()
