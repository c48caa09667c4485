from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional
from datetime import datetime

# Request bodies keep every field optional: missing values are reported as a
# declined operation ("Missing Details"), not as a 422.

class UserRegister(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

class UserLogin(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    dob: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    image: Optional[str] = None

class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    name: str
    email: str
    image: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    gender: Optional[str] = None
    dob: Optional[str] = None
    is_email_verified: bool
    created_at: Optional[datetime] = None
