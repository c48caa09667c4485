from sqlalchemy.orm import Session
from concurrent.futures import Future
from typing import Optional
import logging

from ..models.appointment import Appointment
from ..core.email import EmailClient
from ..core.exceptions import NotFound
from .appointment_state import AppointmentAction, apply_transition
from .booking_service import release_doctor_slot, commit_slot_change

logger = logging.getLogger(__name__)


def notify_cancellation(email_client: EmailClient, appointment: Appointment) -> Future:
    """Queue the patient's cancellation email; the caller does not wait for SMTP."""
    # Read everything here, the mail worker must not touch the session
    return email_client.dispatch(
        f"Cancellation email for appointment {appointment.id}",
        email_client.send_appointment_cancellation_email,
        to=appointment.patient_email,
        patient_name=(appointment.user_data or {}).get("name"),
        doctor_name=(appointment.doc_data or {}).get("name"),
        slot_date=appointment.slot_date,
        slot_time=appointment.slot_time,
        reason=appointment.cancellation_reason,
    )


class StatusService:
    """Doctor-initiated appointment transitions."""

    def __init__(self, db: Session, email_client: EmailClient):
        self.db = db
        self.email_client = email_client

    def _get_owned(self, appointment_id: int, doctor_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.doc_id == doctor_id
        ).first()

        if not appointment:
            raise NotFound("Appointment not found or unauthorized")
        return appointment

    def confirm(self, appointment_id: int, doctor_id: int) -> Appointment:
        appointment = self._get_owned(appointment_id, doctor_id)
        apply_transition(appointment, AppointmentAction.CONFIRM)
        self.db.commit()

        logger.info(f"Doctor {doctor_id} confirmed appointment {appointment_id}")
        return appointment

    def complete(self, appointment_id: int, doctor_id: int, patient_visited: bool) -> Appointment:
        appointment = self._get_owned(appointment_id, doctor_id)
        apply_transition(appointment, AppointmentAction.COMPLETE, patient_visited=patient_visited)
        self.db.commit()

        logger.info(
            f"Doctor {doctor_id} completed appointment {appointment_id} "
            f"(patient visited: {patient_visited})"
        )
        return appointment

    def cancel(self, appointment_id: int, doctor_id: int, reason: Optional[str] = None) -> Appointment:
        appointment = self._get_owned(appointment_id, doctor_id)
        apply_transition(appointment, AppointmentAction.CANCEL, reason=reason)
        release_doctor_slot(self.db, appointment)
        commit_slot_change(self.db, "Appointment was updated concurrently, please try again")

        logger.info(f"Doctor {doctor_id} cancelled appointment {appointment_id}")
        notify_cancellation(self.email_client, appointment)
        return appointment
