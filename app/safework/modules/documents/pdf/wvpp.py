"""
Workplace Violence Prevention Plan PDF.
"""
from __future__ import annotations

import calendar
from typing import TYPE_CHECKING, Any

from reportlab.lib import colors
from reportlab.lib.units import inch
from reportlab.platypus import PageBreak, Paragraph, Spacer, Table

from app.safework.constants import ALERT_METHODS, VIOLENCE_TYPES
from app.safework.modules.documents.pdf._common import (
    STYLE_BODY,
    STYLE_FOOTER,
    STYLE_SUBHEADING,
    STYLE_SUBTITLE,
    STYLE_TITLE,
    bullets,
    build_pdf,
    fmt_date,
    kv_table,
    paragraph,
    section_header,
    text,
)
from app.safework.utils import utcnow

if TYPE_CHECKING:
    from app.safework.modules.organizations.models import Organization
    from app.safework.modules.plans.models import Plan

DISCLAIMER = (
    "This Workplace Violence Prevention Plan is prepared pursuant to California Labor Code "
    "Section 6401.9 (SB 553). This document does not constitute legal advice. Employers are "
    "responsible for ensuring compliance with all applicable laws."
)


def _title_page(org: "Organization", plan: "Plan") -> list:
    address = ", ".join(p for p in (org.street, org.city, org.state, org.zip) if p)
    story: list = [
        Spacer(1, 1.5 * inch),
        Paragraph("Workplace Violence<br/>Prevention Plan", STYLE_TITLE),
        Spacer(1, 0.3 * inch),
        Paragraph(text(org.name), STYLE_SUBTITLE),
    ]
    if org.dba:
        story.append(Paragraph(f"DBA: {text(org.dba)}", STYLE_SUBTITLE))
    if address:
        story.append(Paragraph(text(address), STYLE_SUBTITLE))
    if org.phone:
        story.append(Paragraph(f"Phone: {text(org.phone)}", STYLE_SUBTITLE))
    story += [
        Spacer(1, 0.4 * inch),
        Paragraph(f"<b>Version {plan.version or 1}</b>", STYLE_SUBTITLE),
        Paragraph(f"Status: {(plan.status or 'draft').capitalize()}", STYLE_SUBTITLE),
    ]
    if plan.published_at:
        story.append(Paragraph(f"Published: {fmt_date(plan.published_at)}", STYLE_SUBTITLE))
    story += [
        Paragraph(f"Generated: {fmt_date(utcnow())}", STYLE_SUBTITLE),
        Spacer(1, 2.0 * inch),
        Paragraph(f"<i>{DISCLAIMER}</i>", STYLE_FOOTER),
        PageBreak(),
    ]
    return story


def _sub(title: str) -> Paragraph:
    return Paragraph(text(title), STYLE_SUBHEADING)


def _list_block(title: str, items: Any) -> list:
    if not items:
        return []
    return [_sub(title), *bullets(items)]


def _section(number: int, title: str) -> list:
    return [Spacer(1, 10), section_header(f"{number}. {title}"), Spacer(1, 6)]


def _responsible_persons(plan: "Plan") -> list:
    story = _section(1, "Responsible Persons")
    persons = plan.responsible_persons or []
    if not persons:
        return story + [paragraph("No responsible persons designated.")]
    for i, p in enumerate(persons, start=1):
        story.append(_sub(f"Person {i}"))
        story.append(kv_table([("Name", p.get("name")), ("Title", p.get("title")),
                               ("Phone", p.get("phone")), ("Email", p.get("email"))]))
        story += _list_block("Responsibilities", p.get("responsibilities"))
    return story


def _involvement(plan: "Plan") -> list:
    ei = plan.employee_involvement or {}
    cp = plan.compliance_procedures or {}
    story = _section(2, "Employee Involvement & Compliance")
    story.append(_sub("Employee Involvement"))
    story.append(kv_table([("Meeting Frequency", ei.get("meeting_frequency"))]))
    for key in ("meeting_description", "training_involvement_description", "reporting_procedures_description"):
        if ei.get(key):
            story.append(paragraph(ei[key]))
    story.append(_sub("Compliance Procedures"))
    story.append(kv_table([
        ("Training", cp.get("training_description")),
        ("Supervision", cp.get("supervision_description")),
        ("Recognition Program", cp.get("recognition_program")),
        ("Disciplinary Process", cp.get("disciplinary_process")),
    ]))
    return story


def _communication(plan: "Plan") -> list:
    cs = plan.communication_system or {}
    rows: list[tuple[str, Any]] = [
        ("New Employee Orientation", bool(cs.get("new_employee_orientation"))),
        ("Regular Meetings", bool(cs.get("regular_meetings"))),
    ]
    if cs.get("regular_meetings"):
        rows.append(("Meeting Frequency", cs.get("meeting_frequency")))
    rows.append(("Posted Information", bool(cs.get("posted_information"))))
    if cs.get("posted_information"):
        rows.append(("Posting Locations", cs.get("posting_locations")))
    rows += [
        ("Reporting Hotline", cs.get("reporting_hotline")),
        ("Reporting Form", cs.get("reporting_form")),
        ("Anonymous Reporting", bool(cs.get("anonymous_reporting"))),
    ]
    return _section(3, "Communication System") + [kv_table(rows)]


def _emergency(plan: "Plan") -> list:
    er = plan.emergency_response or {}
    story = _section(4, "Emergency Response")
    story += _list_block("Alert Methods", [ALERT_METHODS.get(m, m) for m in er.get("alert_methods") or []])
    story.append(kv_table([("Evacuation Plan", er.get("evacuation_plan_description"))]))
    story += _list_block("Shelter Locations", er.get("shelter_locations"))
    story.append(kv_table([("Law Enforcement Contact", er.get("law_enforcement_contact"))]))
    contacts = er.get("emergency_contacts") or []
    if contacts:
        story.append(_sub("Emergency Contacts"))
        for c in contacts:
            story.append(kv_table([("Name", c.get("name")), ("Title", c.get("title")), ("Phone", c.get("phone"))]))
            story.append(Spacer(1, 4))
    return story


def _hazards(plan: "Plan") -> list:
    story = _section(5, "Hazard Assessment")
    hazards = plan.hazard_assessments or []
    if not hazards:
        return story + [paragraph("No hazard assessments recorded.")]
    for i, h in enumerate(hazards, start=1):
        story.append(_sub(f"Hazard {i}"))
        rows: list[tuple[str, Any]] = [
            ("Type", VIOLENCE_TYPES.get(h.get("hazard_type"), h.get("hazard_type"))),
            ("Description", h.get("description")),
            ("Risk Level", (h.get("risk_level") or "").capitalize()),
        ]
        if h.get("assessed_by"):
            rows.append(("Assessed By", h["assessed_by"]))
        if h.get("assessed_at"):
            rows.append(("Assessed Date", fmt_date(h["assessed_at"])))
        story.append(kv_table(rows))
        story += _list_block("Control Measures", h.get("control_measures"))
    return story


def _correction(plan: "Plan") -> list:
    hc = plan.hazard_correction_procedures or {}
    pi = plan.post_incident_procedures or {}
    story = _section(6, "Hazard Correction & Post-Incident Procedures")
    story.append(_sub("Hazard Correction"))
    story.append(kv_table([
        ("Immediate Threat Procedure", hc.get("immediate_threat_procedure")),
        ("Documentation Process", hc.get("documentation_process")),
    ]))
    story += _list_block("Engineering Controls", hc.get("engineering_controls"))
    story += _list_block("Work Practice Controls", hc.get("work_practice_controls"))
    story += _list_block("Administrative Controls", hc.get("administrative_controls"))

    story.append(_sub("Post-Incident Response"))
    story += _list_block("Investigation Steps", pi.get("investigation_steps"))
    story += _list_block("Support Resources", pi.get("support_resources"))
    rows: list[tuple[str, Any]] = [("Counseling Available", bool(pi.get("counseling_available")))]
    if pi.get("counseling_available") and pi.get("counseling_provider"):
        rows.append(("Counseling Provider", pi["counseling_provider"]))
    story.append(kv_table(rows))
    return story


def _training(plan: "Plan") -> list:
    tp = plan.training_program or {}
    story = _section(7, "Training Program")
    story.append(kv_table([
        ("Initial Training", tp.get("initial_training_description")),
        ("Annual Refresher", tp.get("annual_refresher_description")),
        ("New Hazard Training", tp.get("new_hazard_training_description")),
    ]))
    story += _list_block("Training Topics", tp.get("training_topics"))
    return story


def _recordkeeping(plan: "Plan") -> list:
    rk = plan.recordkeeping_procedures or {}
    pa = plan.plan_accessibility or {}
    story = _section(8, "Recordkeeping & Plan Access")
    story.append(kv_table([
        ("Hazard Records Retention", f"{rk.get('hazard_records_years') or 5} years"),
        ("Training Records Retention", f"{rk.get('training_records_years') or 1} year(s)"),
        ("Incident Log Retention", f"{rk.get('incident_log_years') or 5} years"),
        ("Access Procedure", rk.get("access_procedure")),
    ]))
    story.append(_sub("Plan Accessibility"))
    rows: list[tuple[str, Any]] = [
        ("Physical Location", pa.get("physical_location")),
        ("Electronic Access", bool(pa.get("electronic_access"))),
    ]
    if pa.get("electronic_access"):
        rows.append(("Electronic Location", pa.get("electronic_location")))
    story.append(kv_table(rows))
    return story


def _review(plan: "Plan") -> list:
    rs = plan.review_schedule or {}
    rows: list[tuple[str, Any]] = []
    month = rs.get("annual_review_month")
    if month is not None:
        # stored 0-based
        try:
            rows.append(("Annual Review Month", calendar.month_name[int(month) + 1]))
        except (ValueError, IndexError):
            rows.append(("Annual Review Month", None))
    rows += [
        ("Last Review", fmt_date(rs.get("last_review_date"))),
        ("Next Review", fmt_date(rs.get("next_review_date"))),
    ]
    story = _section(9, "Review Schedule") + [kv_table(rows)]
    if rs.get("review_procedure"):
        story.append(paragraph(rs["review_procedure"]))
    return story


def _authorization(plan: "Plan") -> list:
    az = plan.authorization or {}
    rows: list[tuple[str, Any]] = [("Authorized By", az.get("authorizer_name")), ("Title", az.get("authorizer_title"))]
    if az.get("signed_at"):
        rows.append(("Date Signed", fmt_date(az["signed_at"])))
    story = _section(10, "Authorization") + [kv_table(rows)]
    if az.get("authorization_statement"):
        story.append(paragraph(az["authorization_statement"]))
    signature = Table(
        [["", "", ""], ["Signature", "", "Date"]],
        colWidths=[3.0 * inch, 1.0 * inch, 3.0 * inch],
    )
    signature.setStyle([
        ("LINEABOVE", (0, 1), (0, 1), 0.5, colors.black),
        ("LINEABOVE", (2, 1), (2, 1), 0.5, colors.black),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("TOPPADDING", (0, 0), (-1, 0), 24),
    ])
    story += [Spacer(1, 12), signature]
    return story


def build_wvpp_pdf(org: "Organization", plan: "Plan") -> bytes:
    story = _title_page(org, plan)
    for part in (
        _responsible_persons,
        _involvement,
        _communication,
        _emergency,
        _hazards,
        _correction,
        _training,
        _recordkeeping,
        _review,
        _authorization,
    ):
        story += part(plan)
    story.append(Spacer(1, 12))
    story.append(Paragraph(DISCLAIMER, STYLE_BODY))
    return build_pdf(
        story,
        title=f"WVPP - {org.name} v{plan.version or 1}",
        footer=f"{org.name} - WVPP v{plan.version or 1}",
    )
