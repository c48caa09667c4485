from pydantic import BaseModel
from typing import Optional

class AdminLogin(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
