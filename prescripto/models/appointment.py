from datetime import datetime
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Float, Text, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    MISSED = "missed"
    CANCELLED = "cancelled"

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doc_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)

    # Snapshots captured at booking time, never refreshed
    user_data = Column(JSON, nullable=False)
    doc_data = Column(JSON, nullable=False)
    patient_email = Column(String(255), nullable=True)

    # Appointment details
    amount = Column(Float, nullable=False)
    slot_date = Column(String(20), nullable=False, index=True)
    slot_time = Column(String(20), nullable=False)

    # Lifecycle flags; `status` is derived from them on every transition
    cancelled = Column(Boolean, default=False, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    is_confirmed = Column(Boolean, default=False, nullable=False)
    patient_visited = Column(Boolean, default=False, nullable=False)
    status = Column(
        SQLEnum(AppointmentStatus, values_callable=lambda e: [m.value for m in e]),
        default=AppointmentStatus.PENDING,
        nullable=False,
    )
    cancellation_reason = Column(Text, nullable=True)

    # Hidden from the patient's list without deleting the record
    show_to_user = Column(Boolean, default=True, nullable=False)

    # Payment
    payment = Column(Boolean, default=False, nullable=False)
    payment_method = Column(String(20), nullable=True)
    payment_info = Column(JSON, nullable=True)

    # Tracking; set client-side so ordering keeps sub-second resolution
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, user_id={self.user_id}, doc_id={self.doc_id}, "
            f"slot='{self.slot_date} {self.slot_time}', status='{self.status}')>"
        )
