from sqlmodel import SQLModel
from .hospital import Hospital
from .user import User
from .patient import Patient
from .appointment import Appointment
from .visit import Visit, ClinicalNote
from .prescription import Prescription, PrescriptionLineItem
from .audit_log import AuditLog

__all__ = [
    "SQLModel",
    "Hospital",
    "User",
    "Patient",
    "Appointment",
    "Visit",
    "ClinicalNote",
    "Prescription",
    "PrescriptionLineItem",
    "AuditLog",
]
