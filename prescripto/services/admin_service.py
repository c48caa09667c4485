from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
import logging

from ..models.user import User
from ..models.doctor import Doctor
from ..models.appointment import Appointment
from ..core.config import settings
from ..core.email import EmailClient
from ..core.exceptions import ValidationFailed, NotFound, AuthenticationError, Conflict
from ..core.security import (
    get_password_hash, create_access_token, constant_time_equals, UserRole, Token
)
from ..schemas.appointment import serialize_appointment
from ..schemas.doctor import DoctorCreate
from .appointment_state import AppointmentAction, apply_transition
from .booking_service import release_doctor_slot, commit_slot_change
from .status_service import notify_cancellation
from .verification_service import normalize_email, is_valid_email

logger = logging.getLogger(__name__)

LATEST_APPOINTMENTS = 5


class AdminService:
    def __init__(self, db: Session, email_client: EmailClient):
        self.db = db
        self.email_client = email_client

    def login_admin(self, email: Optional[str], password: Optional[str]) -> Token:
        email = normalize_email(email)
        if not email or not password:
            raise ValidationFailed("Missing credentials")

        email_ok = constant_time_equals(email, settings.ADMIN_EMAIL.lower())
        password_ok = constant_time_equals(password, settings.ADMIN_PASSWORD)
        if not (email_ok and password_ok):
            raise AuthenticationError("Invalid credentials")

        return create_access_token(email, UserRole.ADMIN)

    def add_doctor(self, data: DoctorCreate) -> Doctor:
        required = [
            data.name, data.email, data.password, data.speciality,
            data.degree, data.experience, data.about, data.fees,
        ]
        if any(value is None or value == "" for value in required):
            raise ValidationFailed("Missing Details")

        email = normalize_email(data.email)
        if not is_valid_email(email):
            raise ValidationFailed("Please enter a valid email")
        if len(data.password) < settings.PASSWORD_MIN_LENGTH:
            raise ValidationFailed("Please enter a strong password")
        if data.fees < 0:
            raise ValidationFailed("Fees cannot be negative")
        if self.db.query(Doctor).filter(Doctor.email == email).first():
            raise Conflict("Doctor with this email already exists")

        doctor = Doctor(
            name=data.name.strip(),
            email=email,
            password_hash=get_password_hash(data.password),
            image=data.image,
            speciality=data.speciality,
            degree=data.degree,
            experience=data.experience,
            about=data.about,
            fees=data.fees,
            address=data.address or {"line1": "", "line2": ""},
            slots_booked={},
        )
        self.db.add(doctor)
        self.db.commit()
        self.db.refresh(doctor)

        logger.info(f"Admin added doctor {doctor.id} ({email})")
        return doctor

    def all_doctors(self) -> List[Doctor]:
        return self.db.query(Doctor).order_by(Doctor.id).all()

    def all_appointments(self) -> List[Appointment]:
        return self.db.query(Appointment).order_by(
            Appointment.created_at.desc(),
            Appointment.id.desc()
        ).all()

    def cancel_appointment(self, appointment_id: int, reason: Optional[str] = None) -> Appointment:
        """Cancel on the patient's behalf and hide it from their list."""
        appointment = self.db.get(Appointment, appointment_id)
        if not appointment:
            raise NotFound("Appointment not found")

        apply_transition(appointment, AppointmentAction.CANCEL, reason=reason)
        appointment.show_to_user = False
        release_doctor_slot(self.db, appointment)
        commit_slot_change(self.db, "Appointment was updated concurrently, please try again")

        logger.info(f"Admin cancelled appointment {appointment_id}")
        notify_cancellation(self.email_client, appointment)
        return appointment

    def dashboard(self) -> Dict[str, Any]:
        latest = self.db.query(Appointment).order_by(
            Appointment.created_at.desc(),
            Appointment.id.desc()
        ).limit(LATEST_APPOINTMENTS).all()

        return {
            "doctors": self.db.query(Doctor).count(),
            "patients": self.db.query(User).count(),
            "appointments": self.db.query(Appointment).count(),
            "latestAppointments": [serialize_appointment(a) for a in latest],
        }
