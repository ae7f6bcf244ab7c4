"""
SB 553 compliance report.

``scores`` is the dashboard score dict (overall, wvpp, training, annual_review,
incident_log). ``stats`` carries employee/incident counts, ``recent_incidents``
(Incident rows) and ``deadlines`` (dicts with label, date, overdue).
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import PageBreak, Paragraph, Spacer, Table

from app.safework.constants import INDUSTRIES
from app.safework.modules.documents.pdf._common import (
    STYLE_BODY,
    STYLE_FOOTER,
    bullets,
    build_pdf,
    fmt_date,
    header_block,
    kv_table,
    section_header,
    text,
)
from app.safework.utils import utcnow

if TYPE_CHECKING:
    from app.safework.modules.organizations.models import Organization

GOOD = colors.HexColor("#228b22")
WARN = colors.HexColor("#daa520")
BAD = colors.HexColor("#dc3545")

_SCORE = ParagraphStyle("ReportScore", parent=STYLE_BODY, fontSize=36, leading=42, alignment=TA_CENTER,
                        fontName="Helvetica-Bold")
_CAPTION = ParagraphStyle("ReportCaption", parent=STYLE_BODY, alignment=TA_CENTER)

DISCLAIMER = (
    "This report is generated by SafeWorkCA for informational and compliance documentation purposes. "
    "It does not constitute legal advice. Employers are responsible for ensuring their workplace violence "
    "prevention plans meet all requirements under California Labor Code Section 6401.9."
)


def score_color(score: int) -> colors.Color:
    if score >= 80:
        return GOOD
    if score >= 50:
        return WARN
    return BAD


def _score_bars(scores: dict) -> Table:
    rows = []
    style: list[tuple] = [("VALIGN", (0, 0), (-1, -1), "MIDDLE"), ("FONTSIZE", (0, 0), (-1, -1), 9)]
    for i, (label, key) in enumerate(
        (("WVPP Status", "wvpp"), ("Training", "training"), ("Annual Review", "annual_review"), ("Incident Log", "incident_log"))
    ):
        score = int(scores.get(key) or 0)
        # fill column scaled to the score; the remainder is a grey track
        fill = max(score, 1) / 100 * 4.0 * inch
        bar = Table([["", ""]], colWidths=[fill, 4.0 * inch - fill + 0.01], rowHeights=[0.15 * inch])
        bar.setStyle([
            ("BACKGROUND", (0, 0), (0, 0), score_color(score) if score else colors.lightgrey),
            ("BACKGROUND", (1, 0), (1, 0), colors.lightgrey),
        ])
        rows.append([label, bar, f"{score}%"])
        style.append(("FONTNAME", (0, i), (0, i), "Helvetica-Bold"))
    t = Table(rows, colWidths=[1.8 * inch, 4.3 * inch, 0.9 * inch])
    t.setStyle(style)
    return t


def recommendations(scores: dict, stats: dict) -> list[str]:
    recs: list[str] = []
    wvpp = scores.get("wvpp") or 0
    if wvpp == 0:
        recs.append("Create and publish a Workplace Violence Prevention Plan (WVPP) immediately. "
                    "This is a core requirement of SB 553.")
    elif wvpp < 100:
        recs.append("Review and update your WVPP to ensure it is current. Annual review is required under LC 6401.9.")
    if (scores.get("training") or 0) < 100:
        recs.append("Ensure all employees complete required SB 553 training. "
                    "Annual training is mandatory per LC 6401.9(c)(3).")
    if stats.get("overdue_training"):
        recs.append(f"{stats['overdue_training']} employee(s) have overdue training. Schedule training sessions immediately.")
    if (scores.get("annual_review") or 0) < 100:
        recs.append("Schedule your annual plan review. Plans must be reviewed at least annually "
                    "and after any workplace violence incident.")
    if stats.get("open_investigations"):
        recs.append(f"Complete {stats['open_investigations']} open incident investigation(s). "
                    "All incidents must be fully investigated and documented.")
    if not recs:
        recs.append("Your organization is currently meeting all SB 553 compliance requirements. "
                    "Continue to maintain training schedules and review your WVPP annually.")
    return recs


def _section(number: int, title: str) -> list:
    return [Spacer(1, 10), section_header(f"{number}. {title}"), Spacer(1, 6)]


def build_compliance_report_pdf(org: "Organization", scores: dict, stats: dict[str, Any]) -> bytes:
    overall = int(scores.get("overall") or 0)
    address = ", ".join(p for p in (org.street, org.city, org.state, org.zip) if p)
    story: list = header_block("SB 553 Compliance Report", f"{org.name} | {address} | Generated: {fmt_date(utcnow())}")
    big = ParagraphStyle("ReportScoreColored", parent=_SCORE, textColor=score_color(overall))
    story += [
        Spacer(1, 0.5 * inch),
        Paragraph(f"{overall}%", big),
        Paragraph("Overall Compliance Score", _CAPTION),
        PageBreak(),
    ]

    story += _section(1, "Compliance Score Breakdown")
    story.append(_score_bars(scores))
    story.append(Paragraph(
        "<i>Each component is weighted equally at 25%. Overall score = average of all four components.</i>",
        STYLE_FOOTER,
    ))

    story += _section(2, "Organization Summary")
    rows: list[tuple[str, Any]] = [("Organization", org.name)]
    if org.dba:
        rows.append(("DBA", org.dba))
    rows += [
        ("Industry", INDUSTRIES.get(org.industry, org.industry)),
        ("Employee Count", org.employee_count),
        ("Plan Tier", (org.plan or "free").capitalize()),
    ]
    story.append(kv_table(rows))

    wvpp = scores.get("wvpp") or 0
    story += _section(3, "Workplace Violence Prevention Plan")
    story.append(kv_table([
        ("WVPP Created", fmt_date(org.wvpp_created_at)),
        ("Last Plan Review", fmt_date(org.last_plan_review_date)),
        ("Next Review Due", fmt_date(org.next_plan_review_due_date)),
        ("Status", "Current" if wvpp >= 100 else "Needs Attention" if wvpp > 0 else "Missing"),
    ]))

    story += _section(4, "Training Compliance")
    story.append(kv_table([
        ("Total Active Employees", stats.get("total_employees", 0)),
        ("Employees Trained", stats.get("employees_trained", 0)),
        ("Training Completion Rate", f"{stats.get('training_completion_rate', 0)}%"),
        ("Overdue Training", stats.get("overdue_training", 0)),
        ("Last Training Date", fmt_date(org.last_training_date)),
        ("Next Training Due", fmt_date(org.next_training_due_date)),
    ]))

    story += _section(5, "Incident Log Summary")
    story.append(kv_table([
        ("Total Incidents", stats.get("total_incidents", 0)),
        ("Open Investigations", stats.get("open_investigations", 0)),
        ("Completed Investigations", stats.get("completed_investigations", 0)),
    ]))
    recent = list(stats.get("recent_incidents") or [])[:5]
    if recent:
        story += bullets(
            f"{fmt_date(inc.incident_date)}: {(inc.detailed_description or '')[:80]}... "
            f"[{(inc.investigation_status or 'pending').replace('_', ' ')}]"
            for inc in recent
        )

    number = 6
    deadlines = stats.get("deadlines") or []
    if deadlines:
        story += _section(number, "Upcoming Deadlines")
        story.append(kv_table([
            (f"{d['label']}{' [OVERDUE]' if d.get('overdue') else ''}", fmt_date(d.get("date")))
            for d in deadlines
        ]))
        number += 1

    story += _section(number, "Recommendations")
    story += bullets(recommendations(scores, stats))

    story += [Spacer(1, 16), Paragraph(f"<i>{text(DISCLAIMER)}</i>", STYLE_FOOTER)]
    return build_pdf(story, title=f"Compliance Report - {org.name}", footer=f"{org.name} - Compliance Report")
