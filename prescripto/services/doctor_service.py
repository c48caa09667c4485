from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import date
from typing import Any, Dict, List, Optional
import logging

from ..models.doctor import Doctor
from ..models.appointment import Appointment, AppointmentStatus
from ..core.exceptions import ValidationFailed, NotFound, AuthenticationError
from ..core.security import verify_password, create_access_token, UserRole, Token
from ..schemas.appointment import serialize_appointment
from .slots import date_key

logger = logging.getLogger(__name__)

RECENT_APPOINTMENTS = 5
TOP_DOCTORS = 10


class DoctorService:
    def __init__(self, db: Session):
        self.db = db

    def login_doctor(self, email: Optional[str], password: Optional[str]) -> Token:
        email = (email or "").strip().lower()
        if not email or not password:
            raise ValidationFailed("Missing credentials")

        doctor = self.db.query(Doctor).filter(Doctor.email == email).first()
        if not doctor or not verify_password(password, doctor.password_hash):
            raise AuthenticationError("Invalid credentials")

        return create_access_token(doctor.id, UserRole.DOCTOR)

    def list_doctors(self) -> List[Doctor]:
        return self.db.query(Doctor).order_by(Doctor.id).all()

    def top_doctors(self, limit: int = TOP_DOCTORS) -> List[Doctor]:
        """Available doctors with the most completed appointments first."""
        completed = func.count(Appointment.id)
        rows = self.db.query(Doctor, completed).outerjoin(
            Appointment,
            (Appointment.doc_id == Doctor.id)
            & (Appointment.status == AppointmentStatus.COMPLETED)
        ).filter(
            Doctor.available == True  # noqa: E712
        ).group_by(
            Doctor.id
        ).order_by(
            completed.desc(),
            Doctor.id
        ).limit(limit).all()
        return [doctor for doctor, _ in rows]

    def get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.get(Doctor, doctor_id)
        if not doctor:
            raise NotFound("Doctor not found")
        return doctor

    def change_availability(self, doctor_id: int) -> Doctor:
        doctor = self.get_doctor(doctor_id)
        doctor.available = not doctor.available
        self.db.commit()

        logger.info(f"Doctor {doctor_id} availability set to {doctor.available}")
        return doctor

    def update_profile(
        self,
        doctor_id: int,
        fees: Optional[float] = None,
        address: Optional[Dict[str, Any]] = None,
        available: Optional[bool] = None,
    ) -> Doctor:
        doctor = self.get_doctor(doctor_id)
        if fees is not None:
            if fees < 0:
                raise ValidationFailed("Fees cannot be negative")
            doctor.fees = fees
        if address is not None:
            doctor.address = address
        if available is not None:
            doctor.available = available
        self.db.commit()
        return doctor

    def doctor_appointments(self, doctor_id: int) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.doc_id == doctor_id
        ).order_by(
            Appointment.created_at.desc(),
            Appointment.id.desc()
        ).all()

    def dashboard_stats(self, doctor_id: int, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()
        today_keys = {date_key(today), date_key(today, padded=False)}

        appointments = self.doctor_appointments(doctor_id)
        counts = {status: 0 for status in AppointmentStatus}
        earnings = 0.0
        for appointment in appointments:
            counts[appointment.status] += 1
            if appointment.status == AppointmentStatus.COMPLETED or appointment.payment:
                earnings += appointment.amount or 0

        todays = [
            a for a in appointments
            if a.slot_date in today_keys and a.status != AppointmentStatus.CANCELLED
        ]
        todays.sort(key=lambda a: a.slot_time)

        return {
            "totalAppointments": len(appointments),
            "pendingAppointments": counts[AppointmentStatus.PENDING],
            "confirmedAppointments": counts[AppointmentStatus.CONFIRMED],
            "completedAppointments": counts[AppointmentStatus.COMPLETED],
            "missedAppointments": counts[AppointmentStatus.MISSED],
            "cancelledAppointments": counts[AppointmentStatus.CANCELLED],
            "earnings": earnings,
            "patients": len({a.user_id for a in appointments}),
            "todayAppointments": [serialize_appointment(a) for a in todays],
            "recentAppointments": [
                serialize_appointment(a) for a in appointments[:RECENT_APPOINTMENTS]
            ],
        }
