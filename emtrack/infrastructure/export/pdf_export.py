from __future__ import annotations

import io
from collections.abc import Iterable
from datetime import datetime
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from emtrack.application.dto.incident_dto import Incident
from emtrack.application.dto.task_dto import Task
from emtrack.infrastructure.export.common import format_timestamp
from emtrack.infrastructure.export.pdf_fonts import get_pdf_font_name

_PRIORITY_COLOURS = {
    "critical": colors.HexColor("#dc2626"),
    "urgent": colors.HexColor("#ea580c"),
    "normal": colors.HexColor("#2563eb"),
    "low": colors.HexColor("#16a34a"),
}


def tasks_pdf(tasks: Iterable[Task], incident: Incident | None, generated_at: datetime) -> bytes:
    items = list(tasks)
    font = get_pdf_font_name()
    styles = getSampleStyleSheet()
    heading = styles["Heading1"]
    heading.fontName = font
    body = styles["BodyText"]
    body.fontName = font

    summary_data = [
        ["Incident", incident.title if incident else "All Incidents"],
        ["Generated", format_timestamp(generated_at)],
        ["Total Tasks", str(len(items))],
    ]
    table_data = [["Task Name", "Priority", "Category", "Status", "Assigned To", "Due Date", "Created"]]
    for task in items:
        table_data.append(
            [
                Paragraph(escape(task.name), body),
                task.priority.value.upper(),
                task.category,
                task.status.value.upper(),
                task.assigned_to or "-",
                format_timestamp(task.due_date, "-"),
                format_timestamp(task.created_at),
            ]
        )

    summary_table = Table(summary_data)
    summary_table.setStyle(
        TableStyle(
            [
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("BACKGROUND", (0, 0), (0, -1), colors.lightgrey),
                ("FONTNAME", (0, 0), (-1, -1), font),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
            ]
        )
    )
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("FONTNAME", (0, 0), (-1, -1), font),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 2 * mm),
        ("RIGHTPADDING", (0, 0), (-1, -1), 2 * mm),
    ]
    for row, task in enumerate(items, start=1):
        colour = _PRIORITY_COLOURS.get(task.priority.value)
        if colour is not None:
            style.append(("TEXTCOLOR", (1, row), (1, row), colour))
    widths = [65 * mm, 20 * mm, 28 * mm, 22 * mm, 38 * mm, 32 * mm, 32 * mm]
    data_table = Table(table_data, repeatRows=1, colWidths=widths)
    data_table.setStyle(TableStyle(style))

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        title="Tasks Report",
        invariant=1,
    )
    doc.build([Paragraph("Tasks Report", heading), summary_table, Spacer(1, 6 * mm), data_table])
    return buffer.getvalue()
