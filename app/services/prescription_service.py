from datetime import date
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, select

from app.core.config import settings
from app.core.constants import (
    PHARMACY_QUEUE, DispenseLineStatus, PrescriptionStatus, PrescriptionType
)
from app.core.exceptions import NotFound, ValidationError
from app.core.logger import logger
from app.core.notifications import NotificationSink
from app.core.utils import day_bounds, format_doctor_name, utcnow
from app.db.models import (
    Appointment, Hospital, Patient, Prescription, PrescriptionLineItem, User, Visit
)
from app.schemas.appointment import PrescriptionDetails
from app.schemas.prescription import (
    DispenseRequest, PharmacyStats, PrescriptionResponse, PublicLineItem, PublicPrescriptionView
)
from app.services.access import ensure_same_hospital, require_hospital
from app.services.audit_service import AuditService
from app.services.sms_service import SmsSender

DISPENSED_LINE_STATUSES = {DispenseLineStatus.GIVEN.value, DispenseLineStatus.SUBSTITUTED.value}
PENDING_STATUSES = [PrescriptionStatus.CREATED.value, PrescriptionStatus.PARTIALLY_DISPENSED.value]


def aggregate_status(line_statuses: Iterable[str]) -> PrescriptionStatus:
    """Overall prescription status implied by the dispense status of its line items."""
    statuses = list(line_statuses)
    if not statuses:
        return PrescriptionStatus.CREATED
    if all(s in DISPENSED_LINE_STATUSES for s in statuses):
        return PrescriptionStatus.FULLY_DISPENSED
    if any(s != DispenseLineStatus.NOT_GIVEN.value for s in statuses):
        return PrescriptionStatus.PARTIALLY_DISPENSED
    return PrescriptionStatus.CREATED


def is_editable(prescription: Optional[Prescription]) -> bool:
    # The doctor may rewrite a prescription until the pharmacy has touched it
    return prescription is None or prescription.status == PrescriptionStatus.CREATED.value


def normalize_override_status(status: str) -> str:
    if status == "Dispensed":
        return PrescriptionStatus.FULLY_DISPENSED.value
    try:
        return PrescriptionStatus(status).value
    except ValueError:
        raise ValidationError(f"Invalid prescription status: {status}")


def to_response(
    prescription: Prescription, patient_name: Optional[str] = None, doctor_name: Optional[str] = None
) -> PrescriptionResponse:
    response = PrescriptionResponse.model_validate(prescription)
    response.is_editable = is_editable(prescription)
    response.patient_name = patient_name
    response.doctor_name = doctor_name
    return response


class PrescriptionService:
    def __init__(
        self,
        session: AsyncSession,
        notifier: Optional[NotificationSink] = None,
        sms_sender: Optional[SmsSender] = None,
    ):
        self.session = session
        self.notifier = notifier
        self.sms_sender = sms_sender

    async def get_for_visit(self, visit_id: UUID) -> Optional[Prescription]:
        result = await self.session.execute(select(Prescription).where(Prescription.visit_id == visit_id))
        return result.scalars().first()

    async def save_from_consultation(
        self, visit: Visit, appointment: Appointment, details: PrescriptionDetails, doctor: User
    ) -> tuple[Prescription, bool, bool]:
        """
        Stage the doctor's prescription for a visit.

        Returns ``(prescription, created, changed)``. Nothing is committed here.
        An edit to a prescription the pharmacy has already worked on is dropped
        and reported as unchanged.
        """
        handwritten = details.type == PrescriptionType.HANDWRITTEN
        line_items = [] if handwritten else [
            PrescriptionLineItem(position=index, **item.model_dump())
            for index, item in enumerate(details.line_items)
        ]
        image = details.prescription_image if handwritten else None

        prescription = await self.get_for_visit(visit.id)
        if prescription is None:
            prescription = Prescription(
                hospital_id=appointment.hospital_id,
                visit_id=visit.id,
                patient_id=appointment.patient_id,
                doctor_id=doctor.id,
                prescription_type=details.type.value,
                prescription_image=image,
                line_items=line_items,
            )
            self.session.add(prescription)
            return prescription, True, True

        if not is_editable(prescription):
            logger.info(
                f"Ignoring edit of prescription {prescription.id}: already {prescription.status}"
            )
            return prescription, False, False

        prescription.prescription_type = details.type.value
        prescription.prescription_image = image
        prescription.line_items = line_items
        prescription.updated_at = utcnow()
        self.session.add(prescription)
        return prescription, False, True

    async def announce_new_prescription(self, prescription: Prescription, patient: Patient) -> None:
        """Tell the pharmacy queue and text the patient a link to the public view."""
        if self.notifier:
            await self.notifier.notify_topic(PHARMACY_QUEUE, "new_prescription", {
                "prescription_id": prescription.id,
                "patient_name": patient.full_name,
            })

        if self.sms_sender:
            hospital = await self.session.get(Hospital, prescription.hospital_id)
            hospital_name = hospital.name if hospital else "your recent visit"
            view_url = f"{settings.FRONTEND_URL}/view-prescription/{prescription.public_view_token}"
            body = f"Your e-prescription from {hospital_name} is ready. View it here: {view_url}"
            self.sms_sender.send_later(patient.phone_number, body)

    async def get_prescription(self, prescription_id: UUID, current_user: User) -> Prescription:
        prescription = await self.session.get(Prescription, prescription_id)
        if not prescription:
            raise NotFound("Prescription not found")
        ensure_same_hospital(current_user, prescription.hospital_id, "Prescription not found")
        return prescription

    async def get_detail(self, prescription_id: UUID, current_user: User) -> PrescriptionResponse:
        prescription = await self.get_prescription(prescription_id, current_user)
        patient = await self.session.get(Patient, prescription.patient_id)
        doctor = await self.session.get(User, prescription.doctor_id)
        return to_response(
            prescription,
            patient_name=patient.full_name if patient else None,
            doctor_name=doctor.full_name if doctor else None,
        )

    async def dispense(
        self, prescription_id: UUID, request: DispenseRequest, current_user: User
    ) -> PrescriptionResponse:
        prescription = await self.get_prescription(prescription_id, current_user)
        previous_status = prescription.status

        # 1. Digitization: a complete item list replaces whatever was there.
        # The overall status follows the supplied line statuses instead of being
        # forced to Fully Dispensed, so an all "Not Given" list stays Created.
        if request.line_items:
            prescription.line_items = [
                PrescriptionLineItem(
                    position=index,
                    status=item.status.value,
                    **item.model_dump(exclude={"status"}),
                )
                for index, item in enumerate(request.line_items)
            ]
            prescription.status = aggregate_status(item.status.value for item in request.line_items).value

        # 2. Incremental update of existing items
        elif request.updates is not None:
            items_by_id = {item.id: item for item in prescription.line_items}
            for update in request.updates:
                line_item = items_by_id.get(update.line_item_id)
                if line_item is None:
                    logger.warning(
                        f"Dispense update for unknown line item {update.line_item_id} on prescription {prescription.id}"
                    )
                    continue
                line_item.status = update.status.value
                line_item.substitution_info = update.substitution_info
                self.session.add(line_item)
            prescription.status = aggregate_status(item.status for item in prescription.line_items).value

        # 3. Direct override of the overall status
        else:
            prescription.status = normalize_override_status(request.status)

        prescription.updated_at = utcnow()
        self.session.add(prescription)
        AuditService(self.session).record(
            current_user, "prescription.dispensed", "prescription", prescription.id,
            {"from": previous_status, "to": prescription.status}
        )
        await self.session.commit()
        logger.info(f"Prescription {prescription.id} dispensed: {previous_status} -> {prescription.status}")

        if self.notifier:
            await self.notifier.notify_user(prescription.doctor_id, "dispense_update", {
                "prescription_id": prescription.id,
                "status": prescription.status,
            })

        patient = await self.session.get(Patient, prescription.patient_id)
        return to_response(prescription, patient_name=patient.full_name if patient else None)

    async def get_queue(self, current_user: User) -> List[PrescriptionResponse]:
        hospital_id = require_hospital(current_user)
        stmt = select(Prescription, Patient.full_name).join(
            Patient, Patient.id == Prescription.patient_id
        ).where(
            Prescription.hospital_id == hospital_id,
            Prescription.status.in_(PENDING_STATUSES)
        ).order_by(Prescription.created_at.desc())
        result = await self.session.execute(stmt)
        return [to_response(prescription, patient_name=name) for prescription, name in result.all()]

    async def get_stats(self, current_user: User, today: Optional[date] = None) -> PharmacyStats:
        hospital_id = require_hospital(current_user)
        start, end = day_bounds(today or utcnow().date())

        async def count(*conditions) -> int:
            stmt = select(func.count(Prescription.id)).where(
                Prescription.hospital_id == hospital_id, *conditions
            )
            result = await self.session.execute(stmt)
            return result.scalar() or 0

        new_prescriptions = await count(Prescription.status == PrescriptionStatus.CREATED.value)
        in_progress = await count(Prescription.status == PrescriptionStatus.PARTIALLY_DISPENSED.value)
        completed_today = await count(
            Prescription.status == PrescriptionStatus.FULLY_DISPENSED.value,
            Prescription.updated_at >= start,
            Prescription.updated_at < end
        )
        return PharmacyStats(
            new_prescriptions=new_prescriptions,
            in_progress=in_progress,
            completed_today=completed_today,
            total_pending=new_prescriptions + in_progress,
        )

    async def get_public_view(self, token: str) -> PublicPrescriptionView:
        result = await self.session.execute(
            select(Prescription).where(Prescription.public_view_token == token)
        )
        prescription = result.scalars().first()
        if not prescription:
            raise NotFound("Prescription not found or link is invalid.")

        patient = await self.session.get(Patient, prescription.patient_id)
        doctor = await self.session.get(User, prescription.doctor_id)
        hospital = await self.session.get(Hospital, prescription.hospital_id)
        if not (patient and doctor and hospital):
            raise NotFound("Prescription not found or link is invalid.")

        return PublicPrescriptionView(
            patient_name=patient.full_name,
            doctor_name=format_doctor_name(doctor.full_name),
            hospital_name=hospital.name,
            status=prescription.status,
            created_at=prescription.created_at,
            prescription_type=prescription.prescription_type,
            prescription_image=prescription.prescription_image,
            line_items=[PublicLineItem.model_validate(item) for item in prescription.line_items],
        )
