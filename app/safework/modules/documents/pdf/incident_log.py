"""
Violent Incident Log export (LC 6401.9(d)).
"""
from __future__ import annotations

import re
from datetime import date
from typing import TYPE_CHECKING, Iterable

from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.units import inch
from reportlab.platypus import PageBreak, Paragraph, Spacer

from app.safework.constants import INCIDENT_TYPES, PERPETRATOR_TYPES, VIOLENCE_TYPES
from app.safework.modules.documents.pdf._common import (
    STYLE_SUBHEADING,
    bullets,
    build_pdf,
    fmt_date,
    grid_table,
    header_block,
    kv_table,
    paragraph,
    section_header,
)
from app.safework.utils import utcnow

if TYPE_CHECKING:
    from app.safework.modules.incidents.models import Incident
    from app.safework.modules.organizations.models import Organization

_TYPE_PREFIX = re.compile(r"^Type \d - ")
COLUMNS = ["Date", "Time", "Location", "Violence Type", "Incident Type", "Perpetrator", "Investigation", "Injuries"]
COL_WIDTHS = [0.9 * inch, 0.6 * inch, 1.5 * inch, 1.4 * inch, 1.9 * inch, 1.3 * inch, 0.9 * inch, 1.0 * inch]


def _status_label(value: str | None) -> str:
    return (value or "pending").replace("_", " ").capitalize()


def _row(inc: "Incident") -> list:
    injuries = inc.injuries or {}
    return [
        inc.incident_date.strftime("%m/%d/%Y") if inc.incident_date else None,
        inc.incident_time,
        inc.location_description,
        ", ".join(_TYPE_PREFIX.sub("", VIOLENCE_TYPES.get(v, v)) for v in inc.workplace_violence_types or []),
        ", ".join(INCIDENT_TYPES.get(t, t) for t in inc.incident_types or []),
        PERPETRATOR_TYPES.get(inc.perpetrator_classification, inc.perpetrator_classification),
        _status_label(inc.investigation_status),
        f"Yes: {(injuries.get('description') or '')[:50]}" if injuries.get("occurred") else "No",
    ]


def _detail(idx: int, inc: "Incident") -> list:
    consequences = inc.consequences or {}
    injuries = inc.injuries or {}
    story: list = [
        Spacer(1, 8),
        section_header(f"Incident {idx} - {fmt_date(inc.incident_date)}"),
        Spacer(1, 4),
        kv_table([
            ("Date", fmt_date(inc.incident_date)),
            ("Time", inc.incident_time),
            ("Location", inc.location_description),
            ("Violence Type(s)", "; ".join(VIOLENCE_TYPES.get(v, v) for v in inc.workplace_violence_types or [])),
            ("Incident Type(s)", "; ".join(INCIDENT_TYPES.get(t, t) for t in inc.incident_types or [])),
            ("Perpetrator", PERPETRATOR_TYPES.get(inc.perpetrator_classification, inc.perpetrator_classification)),
            ("Security Contacted", bool(consequences.get("security_contacted"))),
            ("Law Enforcement", bool(consequences.get("law_enforcement_contacted"))),
            ("Injuries", f"Yes - {injuries.get('description') or 'No details'}" if injuries.get("occurred") else "No"),
            ("Investigation Status", _status_label(inc.investigation_status)),
            ("Completed By", f"{inc.completed_by_name}, {inc.completed_by_title}"),
        ]),
        Paragraph("Description", STYLE_SUBHEADING),
        paragraph(inc.detailed_description),
    ]
    if inc.investigation_notes:
        story += [Paragraph("Investigation Notes", STYLE_SUBHEADING), paragraph(inc.investigation_notes)]
    if inc.corrective_actions_taken:
        story += [Paragraph("Corrective Actions", STYLE_SUBHEADING), *bullets(inc.corrective_actions_taken)]
    return story


def build_incident_log_pdf(
    org: "Organization",
    incidents: Iterable["Incident"],
    start: date | None = None,
    end: date | None = None,
) -> bytes:
    incidents = list(incidents)
    subtitle = org.name
    if start or end:
        subtitle += f" | Date Range: {fmt_date(start)} to {fmt_date(end)}"
    subtitle += f" | Generated: {fmt_date(utcnow())}"

    story: list = header_block("Violent Incident Log", subtitle)
    story.append(paragraph("Per California Labor Code Section 6401.9(d). 5-year retention required."))
    story.append(paragraph(f"Total Incidents: {len(incidents)}"))
    story.append(Spacer(1, 6))
    if not incidents:
        story.append(paragraph("No incidents recorded for the specified period."))
    else:
        story.append(grid_table(COLUMNS, [_row(i) for i in incidents], COL_WIDTHS))
        story.append(PageBreak())
        story.append(Paragraph("Detailed Incident Records", STYLE_SUBHEADING))
        for idx, inc in enumerate(incidents, start=1):
            story += _detail(idx, inc)
    return build_pdf(
        story,
        title=f"Violent Incident Log - {org.name}",
        footer=f"{org.name} - Violent Incident Log - Confidential",
        pagesize=landscape(letter),
    )
