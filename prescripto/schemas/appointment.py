from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional
from datetime import datetime

from ..models.appointment import AppointmentStatus

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class BookAppointmentRequest(_CamelModel):
    doc_id: int
    slot_date: str
    slot_time: Optional[str] = None

class AppointmentRef(_CamelModel):
    appointment_id: int

class CompleteAppointmentRequest(AppointmentRef):
    patient_visited: bool = True

class CancelAppointmentRequest(AppointmentRef):
    reason: Optional[str] = Field(default=None, max_length=500)

class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    user_id: int
    doc_id: int
    user_data: Dict[str, Any]
    doc_data: Dict[str, Any]
    patient_email: Optional[str] = None
    amount: float
    slot_date: str
    slot_time: str
    cancelled: bool
    is_completed: bool
    is_confirmed: bool
    patient_visited: bool
    show_to_user: bool
    cancellation_reason: Optional[str] = None
    payment: bool
    payment_method: Optional[str] = None
    payment_info: Optional[Dict[str, Any]] = None
    status: AppointmentStatus
    created_at: datetime

def serialize_appointment(appointment) -> Dict[str, Any]:
    return AppointmentResponse.model_validate(appointment).model_dump(mode="json", by_alias=True)
