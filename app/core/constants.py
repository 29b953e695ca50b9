from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    DOCTOR = "doctor"
    NURSE = "nurse"
    MEDICAL_SHOP = "medical_shop"


class AppointmentStatus(str, Enum):
    SCHEDULED = "Scheduled"
    IN_CONSULTATION = "In-Consultation"
    COMPLETED = "Completed"
    NO_SHOW = "No-Show"
    CANCELLED = "Cancelled"


class PrescriptionStatus(str, Enum):
    CREATED = "Created"
    PARTIALLY_DISPENSED = "Partially Dispensed"
    FULLY_DISPENSED = "Fully Dispensed"
    NOT_AVAILABLE = "Not Available"


class DispenseLineStatus(str, Enum):
    GIVEN = "Given"
    PARTIALLY_GIVEN = "Partially Given"
    NOT_GIVEN = "Not Given"
    SUBSTITUTED = "Substituted"


class PrescriptionType(str, Enum):
    DIGITAL = "digital"
    HANDWRITTEN = "handwritten"


class Sex(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


# Staff roles each creator may provision inside their own hospital
ROLE_CREATION_MATRIX: dict[UserRole, set[UserRole]] = {
    UserRole.ADMIN: {UserRole.DOCTOR, UserRole.NURSE, UserRole.MEDICAL_SHOP},
    UserRole.DOCTOR: {UserRole.NURSE, UserRole.MEDICAL_SHOP},
}

PHARMACY_QUEUE = "pharmacy_queue"
