from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional

class DoctorLogin(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class DoctorCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    image: Optional[str] = None
    speciality: Optional[str] = None
    degree: Optional[str] = None
    experience: Optional[str] = None
    about: Optional[str] = None
    fees: Optional[float] = None
    address: Optional[Dict[str, Any]] = None

class DoctorProfileUpdate(BaseModel):
    fees: Optional[float] = None
    address: Optional[Dict[str, Any]] = None
    available: Optional[bool] = None

class DoctorAvailabilityRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    doc_id: int

class DoctorPublic(BaseModel):
    """Doctor as shown on the patient-facing listing."""

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
    available: bool
    slots_booked: Dict[str, List[str]]

class DoctorProfile(DoctorPublic):
    email: str
