"""
Denormalized copies of a user and a doctor stored on each appointment.

Snapshots are captured once, when the appointment is booked, and are never
refreshed afterwards: a later profile or fee change does not alter past
appointments. The doctor snapshot carries neither the slot map nor any
credential or contact field, so booking state lives only on the doctor row.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UserSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    name: str
    email: str
    image: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    gender: Optional[str] = None
    dob: Optional[str] = None


class DoctorSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    name: str
    image: Optional[str] = None
    speciality: str
    degree: str
    experience: str
    about: str
    fees: float
    address: Optional[Dict[str, Any]] = None


def capture_user(user) -> Dict[str, Any]:
    return UserSnapshot.model_validate(user).model_dump(mode="json", by_alias=True)


def capture_doctor(doctor) -> Dict[str, Any]:
    return DoctorSnapshot.model_validate(doctor).model_dump(mode="json", by_alias=True)
