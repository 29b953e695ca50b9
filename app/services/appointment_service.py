from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from app.core.constants import AppointmentStatus, Sex, UserRole
from app.core.exceptions import Conflict, Forbidden, NotFound, ValidationError
from app.core.logger import logger
from app.core.notifications import NotificationSink
from app.core.utils import day_bounds, to_naive_utc, utcnow
from app.db.models import Appointment, ClinicalNote, Patient, Prescription, User, Visit
from app.schemas.appointment import (
    AppointmentCreate, AppointmentResponse, ClinicalNoteResponse, VisitComplete,
    VisitDetails, VisitResponse, VisitSavedResponse
)
from app.services.access import ensure_same_hospital, require_hospital
from app.services.audit_service import AuditService
from app.services.prescription_service import PrescriptionService, is_editable, to_response
from app.services.sms_service import SmsSender

SOAP_FIELDS = ("subjective", "objective", "assessment", "plan")

class AppointmentService:
    """
    Appointment lifecycle:

        Scheduled -> In-Consultation -> Completed (complete may be repeated to amend)
        Scheduled -> Cancelled
        Scheduled -> No-Show
    """

    def __init__(
        self,
        session: AsyncSession,
        notifier: Optional[NotificationSink] = None,
        sms_sender: Optional[SmsSender] = None,
    ):
        self.session = session
        self.notifier = notifier
        self.prescriptions = PrescriptionService(session, notifier, sms_sender)

    async def _get_appointment(self, appointment_id: UUID, current_user: User) -> Appointment:
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment:
            raise NotFound("Appointment not found")
        ensure_same_hospital(current_user, appointment.hospital_id, "Appointment not found")
        return appointment

    async def _notify(self, user_id: UUID, event: str, payload: dict) -> None:
        if self.notifier:
            await self.notifier.notify_user(user_id, event, payload)

    async def create_appointment(self, data: AppointmentCreate, current_user: User) -> AppointmentResponse:
        hospital_id = require_hospital(current_user)

        # 1. Validate Patient
        patient = await self.session.get(Patient, data.patient_id)
        if not patient or patient.hospital_id != hospital_id:
            raise NotFound("Patient not found")

        # 2. Validate Doctor
        doctor = await self.session.get(User, data.doctor_id)
        if not doctor or doctor.hospital_id != hospital_id:
            raise NotFound("Doctor not found")
        if doctor.role != UserRole.DOCTOR.value or not doctor.is_active:
            raise ValidationError("Appointments can only be booked with an active doctor")

        # 3. Create Appointment
        appointment = Appointment(
            hospital_id=hospital_id,
            patient_id=patient.id,
            doctor_id=doctor.id,
            created_by_id=current_user.id,
            appointment_time=to_naive_utc(data.appointment_time),
            status=AppointmentStatus.SCHEDULED.value,
            visit_purpose=data.visit_purpose
        )
        self.session.add(appointment)
        await self.session.commit()
        logger.info(f"Appointment {appointment.id} booked for patient {patient.id} with doctor {doctor.id}")

        await self._notify(doctor.id, "new_appointment", {
            "appointment_id": appointment.id,
            "patient_name": patient.full_name,
        })
        responses = await self.build_responses([appointment], current_user)
        return responses[0]

    async def get_appointments(
        self,
        current_user: User,
        appointment_date: Optional[date] = None,
        doctor_id: Optional[UUID] = None,
        patient_id: Optional[UUID] = None,
        patient_gender: Optional[Sex] = None,
        newest_first: bool = False,
    ) -> List[AppointmentResponse]:
        hospital_id = require_hospital(current_user)
        stmt = select(Appointment).where(Appointment.hospital_id == hospital_id)

        # Doctors see their own list unless they ask for a colleague's
        if doctor_id:
            stmt = stmt.where(Appointment.doctor_id == doctor_id)
        elif current_user.role == UserRole.DOCTOR.value:
            stmt = stmt.where(Appointment.doctor_id == current_user.id)

        if patient_id:
            stmt = stmt.where(Appointment.patient_id == patient_id)

        if appointment_date:
            start, end = day_bounds(appointment_date)
            stmt = stmt.where(Appointment.appointment_time >= start, Appointment.appointment_time < end)

        if patient_gender:
            stmt = stmt.join(Patient, Patient.id == Appointment.patient_id).where(
                Patient.sex == patient_gender.value
            )

        order = col(Appointment.appointment_time).desc() if newest_first else col(Appointment.appointment_time)
        result = await self.session.execute(stmt.order_by(order))
        return await self.build_responses(result.scalars().all(), current_user)

    async def get_completed_history(self, patient: Patient, viewer: Optional[User] = None) -> List[AppointmentResponse]:
        stmt = select(Appointment).where(
            Appointment.patient_id == patient.id,
            Appointment.status == AppointmentStatus.COMPLETED.value
        ).order_by(col(Appointment.appointment_time).desc())
        result = await self.session.execute(stmt)
        return await self.build_responses(result.scalars().all(), viewer)

    async def start_consultation(self, appointment_id: UUID, current_user: User) -> AppointmentResponse:
        appointment = await self._get_appointment(appointment_id, current_user)

        existing = await self.session.execute(select(Visit.id).where(Visit.appointment_id == appointment.id))
        if appointment.visit_id or existing.first():
            raise Conflict("Consultation has already been started.")
        if appointment.doctor_id != current_user.id:
            raise Forbidden("Not authorized for this appointment")
        if appointment.status != AppointmentStatus.SCHEDULED.value:
            raise Conflict(f"Cannot start a consultation for an appointment that is {appointment.status}.")

        visit = Visit(appointment_id=appointment.id, notes=[])
        self.session.add(visit)

        appointment.visit_id = visit.id
        appointment.status = AppointmentStatus.IN_CONSULTATION.value
        appointment.updated_at = utcnow()
        self.session.add(appointment)
        AuditService(self.session).record(
            current_user, "appointment.started", "appointment", appointment.id, {"visit_id": str(visit.id)}
        )
        await self.session.commit()
        logger.info(f"Consultation started for appointment {appointment.id}")

        responses = await self.build_responses([appointment], current_user)
        return responses[0]

    async def complete_consultation(
        self, appointment_id: UUID, payload: VisitComplete, current_user: User
    ) -> VisitSavedResponse:
        appointment = await self._get_appointment(appointment_id, current_user)
        if appointment.doctor_id != current_user.id:
            raise Forbidden("Not authorized to complete this visit.")

        visit = await self.session.get(Visit, appointment.visit_id) if appointment.visit_id else None
        if visit is None or appointment.status not in (
            AppointmentStatus.IN_CONSULTATION.value, AppointmentStatus.COMPLETED.value
        ):
            raise Conflict("Consultation not found or was not properly started.")

        # 1. Clinical note
        if payload.visit_details:
            self._apply_visit_details(visit, payload.visit_details, current_user)

        # 2. Prescription
        prescription: Optional[Prescription] = None
        created = changed = False
        if payload.prescription_details:
            prescription, created, changed = await self.prescriptions.save_from_consultation(
                visit, appointment, payload.prescription_details, current_user
            )
        else:
            prescription = await self.prescriptions.get_for_visit(visit.id)

        visit.updated_at = utcnow()
        self.session.add(visit)

        appointment.status = AppointmentStatus.COMPLETED.value
        appointment.updated_at = utcnow()
        self.session.add(appointment)
        AuditService(self.session).record(
            current_user, "appointment.completed", "appointment", appointment.id,
            {"prescription_created": created, "prescription_updated": changed}
        )
        await self.session.commit()
        logger.info(f"Visit {visit.id} saved for appointment {appointment.id}")

        if created:
            patient = await self.session.get(Patient, appointment.patient_id)
            await self.prescriptions.announce_new_prescription(prescription, patient)

        return VisitSavedResponse(
            msg="Visit details saved successfully.",
            visit_id=visit.id,
            prescription_id=prescription.id if prescription else None,
            prescription_updated=changed
        )

    def _apply_visit_details(self, visit: Visit, details: VisitDetails, author: User) -> None:
        provided = details.model_fields_set
        for field in SOAP_FIELDS:
            if field in provided:
                setattr(visit, field, getattr(details, field))

        if "next_visit_date" in provided:
            visit.next_visit_date = details.next_visit_date

        if details.private_note:
            # One note per doctor: rewrite it instead of appending another
            note = next((n for n in visit.notes if n.author_doctor_id == author.id), None)
            if note:
                note.content = details.private_note
                note.created_at = utcnow()
            else:
                visit.notes.append(ClinicalNote(author_doctor_id=author.id, content=details.private_note))

    async def cancel_appointment(self, appointment_id: UUID, current_user: User) -> AppointmentResponse:
        return await self._update_status(appointment_id, AppointmentStatus.CANCELLED, current_user)

    async def mark_no_show(self, appointment_id: UUID, current_user: User) -> AppointmentResponse:
        return await self._update_status(appointment_id, AppointmentStatus.NO_SHOW, current_user)

    async def _update_status(
        self, appointment_id: UUID, new_status: AppointmentStatus, current_user: User
    ) -> AppointmentResponse:
        appointment = await self._get_appointment(appointment_id, current_user)

        if current_user.role == UserRole.DOCTOR.value and appointment.doctor_id != current_user.id:
            raise Forbidden("Not authorized to modify this appointment")
        if appointment.status != AppointmentStatus.SCHEDULED.value:
            raise Conflict(f"Cannot mark a {appointment.status} appointment as {new_status.value}.")

        appointment.status = new_status.value
        appointment.updated_at = utcnow()
        self.session.add(appointment)
        AuditService(self.session).record(
            current_user, "appointment.status_changed", "appointment", appointment.id,
            {"status": new_status.value}
        )
        await self.session.commit()
        logger.info(f"Appointment {appointment.id} marked {new_status.value} by {current_user.id}")

        if appointment.doctor_id != current_user.id:
            await self._notify(appointment.doctor_id, "appointment_updated", {
                "appointment_id": appointment.id,
                "status": appointment.status,
            })
        responses = await self.build_responses([appointment], current_user)
        return responses[0]

    async def build_responses(
        self, appointments: List[Appointment], viewer: Optional[User] = None
    ) -> List[AppointmentResponse]:
        """
        Attach patient, doctor, visit and prescription data to each appointment.
        Private notes are only shown to their author; ``viewer=None`` shows all.
        """
        if not appointments:
            return []

        patient_ids = {a.patient_id for a in appointments}
        doctor_ids = {a.doctor_id for a in appointments}
        appointment_ids = [a.id for a in appointments]

        patients = (await self.session.execute(
            select(Patient).where(col(Patient.id).in_(patient_ids))
        )).scalars().all()
        doctors = (await self.session.execute(
            select(User).where(col(User.id).in_(doctor_ids))
        )).scalars().all()
        visits = (await self.session.execute(
            select(Visit).where(col(Visit.appointment_id).in_(appointment_ids))
        )).scalars().all()
        prescriptions = (await self.session.execute(
            select(Prescription).where(col(Prescription.visit_id).in_([v.id for v in visits]))
        )).scalars().all() if visits else []

        patients_by_id = {p.id: p for p in patients}
        doctors_by_id = {d.id: d for d in doctors}
        visits_by_appointment = {v.appointment_id: v for v in visits}
        prescriptions_by_visit = {p.visit_id: p for p in prescriptions}

        responses = []
        for appointment in appointments:
            patient = patients_by_id.get(appointment.patient_id)
            doctor = doctors_by_id.get(appointment.doctor_id)
            visit = visits_by_appointment.get(appointment.id)

            visit_response = None
            if visit:
                prescription = prescriptions_by_visit.get(visit.id)
                notes = [
                    ClinicalNoteResponse.model_validate(note) for note in visit.notes
                    if viewer is None or note.author_doctor_id == viewer.id
                ]
                visit_response = VisitResponse(
                    id=visit.id,
                    appointment_id=visit.appointment_id,
                    subjective=visit.subjective,
                    objective=visit.objective,
                    assessment=visit.assessment,
                    plan=visit.plan,
                    next_visit_date=visit.next_visit_date,
                    notes=notes,
                    prescription=to_response(prescription, patient_name=patient.full_name if patient else None)
                    if prescription else None,
                    is_editable=is_editable(prescription),
                    created_at=visit.created_at,
                    updated_at=visit.updated_at,
                )

            responses.append(AppointmentResponse(
                id=appointment.id,
                hospital_id=appointment.hospital_id,
                patient_id=appointment.patient_id,
                doctor_id=appointment.doctor_id,
                created_by_id=appointment.created_by_id,
                appointment_time=appointment.appointment_time,
                status=appointment.status,
                visit_purpose=appointment.visit_purpose,
                visit_id=appointment.visit_id,
                created_at=appointment.created_at,
                patient_name=patient.full_name if patient else None,
                patient_sex=patient.sex if patient else None,
                patient_date_of_birth=patient.date_of_birth if patient else None,
                doctor_name=doctor.full_name if doctor else None,
                visit=visit_response,
            ))
        return responses
