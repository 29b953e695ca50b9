import re
from io import BytesIO
from typing import List, Optional
from urllib.parse import quote
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.logger import logger
from app.core.utils import calculate_age, format_doctor_name, utcnow
from app.db.models import Hospital, Patient, User
from app.schemas.appointment import AppointmentResponse
from app.services.appointment_service import AppointmentService


def _text(value) -> str:
    if value is None or value == "":
        return "N/A"
    return escape(str(value))


def _format_date(value, fmt: str = "%B %d, %Y") -> str:
    return value.strftime(fmt) if value else "N/A"


def render_patient_report(
    patient: Patient, hospital: Optional[Hospital], history: List[AppointmentResponse]
) -> bytes:
    """Render the patient's completed encounters, newest first, as an A4 PDF."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4,
        topMargin=20 * mm, bottomMargin=20 * mm, leftMargin=20 * mm, rightMargin=20 * mm,
        title=f"Medical report - {patient.full_name}",
    )
    styles = getSampleStyleSheet()
    story = [
        Paragraph(_text(hospital.name if hospital else None), styles["Title"]),
        Paragraph(_text(hospital.address if hospital else None), styles["Normal"]),
        Spacer(1, 6 * mm),
        Paragraph("Patient Medical Report", styles["Heading1"]),
    ]

    age = calculate_age(patient.date_of_birth)
    demographics = Table([
        ["Name", patient.full_name, "Phone", patient.phone_number],
        ["Age", f"{age} years" if age is not None else "N/A", "Sex", patient.sex or "N/A"],
        ["Height", patient.height or "N/A", "Weight", patient.weight or "N/A"],
    ], colWidths=[25 * mm, 55 * mm, 25 * mm, 55 * mm])
    demographics.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTNAME", (2, 0), (2, -1), "Helvetica-Bold"),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
    ]))
    story += [demographics, Spacer(1, 6 * mm)]

    if history:
        latest = history[0]
        story.append(Paragraph("Latest Visit", styles["Heading2"]))
        story.append(Paragraph(
            f"{_format_date(latest.appointment_time)} with {escape(format_doctor_name(latest.doctor_name))}",
            styles["Normal"],
        ))
        if latest.visit:
            story.append(Paragraph(f"<b>Assessment:</b> {_text(latest.visit.assessment)}", styles["Normal"]))
            story.append(Paragraph(
                f"<b>Next visit:</b> {_format_date(latest.visit.next_visit_date)}", styles["Normal"]
            ))
        story.append(Spacer(1, 6 * mm))

    story.append(Paragraph("Visit History", styles["Heading2"]))
    if not history:
        story.append(Paragraph("No completed visits on record.", styles["Normal"]))

    for appointment in history:
        story.append(Paragraph(
            f"{_format_date(appointment.appointment_time, '%B %d, %Y %I:%M %p')} - "
            f"{escape(format_doctor_name(appointment.doctor_name))}",
            styles["Heading3"],
        ))
        story.append(Paragraph(f"<b>Purpose:</b> {_text(appointment.visit_purpose)}", styles["Normal"]))
        visit = appointment.visit
        if visit:
            for label in ("subjective", "objective", "assessment", "plan"):
                story.append(Paragraph(
                    f"<b>{label.title()}:</b> {_text(getattr(visit, label))}", styles["Normal"]
                ))
            prescription = visit.prescription
            if prescription and prescription.line_items:
                rows = [["Medicine", "Dose", "Frequency", "Days", "Instructions"]]
                rows += [
                    [item.medicine_name, item.dose or "", item.frequency or "",
                     str(item.duration_days or ""), item.instructions or ""]
                    for item in prescription.line_items
                ]
                table = Table(rows, repeatRows=1)
                table.setStyle(TableStyle([
                    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ]))
                story += [Spacer(1, 2 * mm), table]
            elif prescription:
                story.append(Paragraph("Handwritten prescription on file.", styles["Italic"]))
        story.append(Spacer(1, 4 * mm))

    story.append(Paragraph(
        f"Generated on {utcnow().strftime('%B %d, %Y at %I:%M %p')} UTC", styles["Italic"]
    ))
    doc.build(story)
    return buffer.getvalue()


def report_filename(patient: Patient) -> str:
    return f"{'_'.join(patient.full_name.split())}-{patient.phone_number}.pdf"


def content_disposition(filename: str) -> str:
    # Header values must be latin-1; the UTF-8 name goes in filename* (RFC 5987)
    fallback = filename.encode("ascii", "ignore").decode("ascii")
    fallback = re.sub(r'["\\]', "", fallback).strip("_-") or "report"
    if not fallback.endswith(".pdf"):
        fallback = f"{fallback}.pdf"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


class ReportService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def build_patient_report(self, patient: Patient, viewer: User) -> bytes:
        hospital = await self.session.get(Hospital, patient.hospital_id)
        history = await AppointmentService(self.session).get_completed_history(patient, viewer)
        try:
            return await run_in_threadpool(render_patient_report, patient, hospital, history)
        except Exception:
            logger.exception(f"Error generating PDF report for patient {patient.id}")
            raise
