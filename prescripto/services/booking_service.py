from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from datetime import datetime
from typing import List, Optional
import logging

from ..models.user import User
from ..models.doctor import Doctor
from ..models.appointment import Appointment, AppointmentStatus
from ..core.exceptions import ValidationFailed, NotFound, Conflict
from ..schemas.snapshot import capture_user, capture_doctor
from . import slots

logger = logging.getLogger(__name__)


def release_doctor_slot(db: Session, appointment: Appointment) -> None:
    """Give the appointment's slot back to its doctor (flushed with the caller's commit)."""
    doctor = db.get(Doctor, appointment.doc_id)
    if doctor is None:
        logger.warning(
            f"Doctor {appointment.doc_id} of appointment {appointment.id} no longer exists"
        )
        return
    doctor.slots_booked = slots.release(
        doctor.slots_booked, appointment.slot_date, appointment.slot_time
    )


def commit_slot_change(db: Session, conflict_message: str) -> None:
    """Commit, turning a lost optimistic-concurrency race on a doctor into a Conflict."""
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning(f"Concurrent slot update detected: {conflict_message}")
        raise Conflict(conflict_message)


class BookingService:
    def __init__(self, db: Session):
        self.db = db

    def book_appointment(
        self,
        user_id: int,
        doc_id: int,
        slot_date: str,
        slot_time: Optional[str],
    ) -> Appointment:
        """Reserve a slot and create the appointment in one transaction."""
        slot_time = (slot_time or "").strip()
        if not slot_time:
            raise ValidationFailed("Please select a time slot.")
        # One canonical key per calendar day
        slot_date = slots.date_key(slots.parse_date_key(slot_date))

        doctor = self.db.get(Doctor, doc_id)
        if not doctor:
            raise NotFound("Doctor not found")
        if not doctor.available:
            raise ValidationFailed("Doctor not available for booking.")

        user = self.db.get(User, user_id)
        if not user:
            raise NotFound("User data not found.")

        doctor.slots_booked = slots.reserve(doctor.slots_booked, slot_date, slot_time)

        appointment = Appointment(
            user_id=user.id,
            doc_id=doctor.id,
            user_data=capture_user(user),
            doc_data=capture_doctor(doctor),
            patient_email=user.email,
            amount=doctor.fees,
            slot_date=slot_date,
            slot_time=slot_time,
            status=AppointmentStatus.PENDING,
            created_at=datetime.utcnow(),
        )
        self.db.add(appointment)

        commit_slot_change(self.db, "Slot is not available")
        self.db.refresh(appointment)

        logger.info(
            f"User {user.id} booked doctor {doctor.id} on {slot_date} at {slot_time} "
            f"(appointment {appointment.id})"
        )
        return appointment

    def cancel_appointment(self, appointment_id: int, user_id: int) -> None:
        """Delete the user's appointment and free its slot."""
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.user_id == user_id
        ).first()

        if not appointment:
            raise NotFound("Appointment not found or unauthorized")

        # A doctor or admin cancellation already gave the slot back
        if not appointment.cancelled:
            release_doctor_slot(self.db, appointment)

        self.db.delete(appointment)
        commit_slot_change(self.db, "Appointment was updated concurrently, please try again")

        logger.info(f"User {user_id} cancelled appointment {appointment_id}")

    def delete_appointment_history(self, appointment_id: int, user_id: int) -> None:
        """Hard-delete a cancelled or completed appointment; the slot map is left alone."""
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.user_id == user_id,
            (Appointment.cancelled == True) | (Appointment.is_completed == True)  # noqa: E712
        ).first()

        if not appointment:
            raise NotFound("Appointment not found or cannot be deleted")

        self.db.delete(appointment)
        self.db.commit()

        logger.info(f"User {user_id} removed appointment {appointment_id} from history")

    def list_appointments(self, user_id: int) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.user_id == user_id,
            Appointment.show_to_user == True  # noqa: E712
        ).order_by(
            Appointment.created_at.desc(),
            Appointment.id.desc()
        ).all()

    def pay_cash(self, appointment_id: int, user_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.user_id == user_id,
            Appointment.cancelled == False  # noqa: E712
        ).first()

        if not appointment:
            raise NotFound("Appointment not found or unauthorized")

        appointment.payment = True
        appointment.payment_method = "cash"
        appointment.payment_info = {
            "method": "cash",
            "recordedAt": datetime.utcnow().isoformat(),
            "recordedBy": "user",
        }
        self.db.commit()

        logger.info(f"Cash payment recorded for appointment {appointment_id}")
        return appointment
