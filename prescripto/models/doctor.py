from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, Float, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    # Professional information
    image = Column(String(512), nullable=True)
    speciality = Column(String(100), nullable=False)
    degree = Column(String(100), nullable=False)
    experience = Column(String(50), nullable=False)
    about = Column(Text, nullable=False)
    fees = Column(Float, nullable=False)
    address = Column(JSON, default=lambda: {"line1": "", "line2": ""})

    # Availability
    available = Column(Boolean, default=True, nullable=False)

    # Booked slots: {"15_3_2025": ["10:00", "10:30"], ...}. Always replaced
    # wholesale so the change is flushed; see services/slots.py.
    slots_booked = Column(JSON, default=dict, nullable=False)

    # Optimistic concurrency: every UPDATE is "... WHERE version = <loaded>"
    version = Column(Integer, nullable=False)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    appointments = relationship("Appointment", back_populates="doctor")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}', speciality='{self.speciality}')>"
