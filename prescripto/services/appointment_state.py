"""
Appointment lifecycle.

The stored ``Appointment.status`` is a projection of four flags, recomputed
by :func:`apply_transition` whenever one of them changes:

1. ``cancelled`` -> cancelled
2. ``is_completed`` -> completed if ``patient_visited`` else missed
3. ``is_confirmed`` -> confirmed
4. otherwise pending

Cancelled, completed and missed are terminal.
"""

import enum
from typing import Optional

from ..core.exceptions import ValidationFailed
from ..models.appointment import Appointment, AppointmentStatus

TERMINAL_STATUSES = frozenset({
    AppointmentStatus.CANCELLED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.MISSED,
})


class AppointmentAction(str, enum.Enum):
    CONFIRM = "confirm"
    COMPLETE = "complete"
    CANCEL = "cancel"


def derive_status(
    cancelled: bool,
    is_completed: bool,
    is_confirmed: bool,
    patient_visited: bool,
) -> AppointmentStatus:
    if cancelled:
        return AppointmentStatus.CANCELLED
    if is_completed:
        return AppointmentStatus.COMPLETED if patient_visited else AppointmentStatus.MISSED
    if is_confirmed:
        return AppointmentStatus.CONFIRMED
    return AppointmentStatus.PENDING


def status_of(appointment: Appointment) -> AppointmentStatus:
    return derive_status(
        bool(appointment.cancelled),
        bool(appointment.is_completed),
        bool(appointment.is_confirmed),
        bool(appointment.patient_visited),
    )


def apply_transition(
    appointment: Appointment,
    action: AppointmentAction,
    patient_visited: Optional[bool] = None,
    reason: Optional[str] = None,
) -> AppointmentStatus:
    """Apply ``action`` to ``appointment`` in place and return the new status."""
    current = status_of(appointment)
    if current in TERMINAL_STATUSES:
        raise ValidationFailed(f"Appointment is already {current.value}")

    if action == AppointmentAction.CONFIRM:
        appointment.is_confirmed = True
    elif action == AppointmentAction.COMPLETE:
        appointment.is_completed = True
        appointment.patient_visited = bool(patient_visited)
    elif action == AppointmentAction.CANCEL:
        appointment.cancelled = True
        appointment.cancellation_reason = reason
    else:
        raise ValueError(f"Unknown appointment action: {action}")

    appointment.status = status_of(appointment)
    return appointment.status
