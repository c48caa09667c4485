from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...core.email import EmailClient
from ...core.exceptions import ValidationFailed
from ...api.deps import get_current_user, get_email_client, rate_limit_check
from ...models.user import User
from ...services.verification_service import VerificationService
from ...services.booking_service import BookingService
from ...services.doctor_service import DoctorService
from ...schemas.user import UserRegister, UserLogin, ProfileUpdate, UserProfile
from ...schemas.doctor import DoctorPublic
from ...schemas.appointment import (
    BookAppointmentRequest, AppointmentRef, serialize_appointment
)

router = APIRouter(prefix="/user", tags=["User"])

@router.post("/register")
async def register(
    user_data: UserRegister,
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
    _: None = Depends(rate_limit_check)
):
    """Register a new patient and send the verification email."""
    service = VerificationService(db, email_client)
    message = service.register_user(user_data.name, user_data.email, user_data.password)
    return {"success": True, "message": message}

@router.post("/login")
async def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
    _: None = Depends(rate_limit_check)
):
    """Authenticate a verified patient and return a session token."""
    service = VerificationService(db, email_client)
    token = service.login_user(login_data.email, login_data.password)
    return {"success": True, "token": token.access_token, "expiresIn": token.expires_in}

@router.get("/verify-email")
async def verify_email(
    token: Optional[str] = None,
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
    _: None = Depends(rate_limit_check)
):
    service = VerificationService(db, email_client)
    return {"success": True, "message": service.verify_email(token)}

@router.get("/get-profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    user_data = UserProfile.model_validate(current_user).model_dump(mode="json", by_alias=True)
    return {"success": True, "userData": user_data}

@router.post("/update-profile")
async def update_profile(
    profile: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not profile.name or not profile.phone or not profile.dob or not profile.gender:
        raise ValidationFailed("Data Missing")

    current_user.name = profile.name.strip()
    current_user.phone = profile.phone
    current_user.dob = profile.dob
    current_user.gender = profile.gender
    if profile.address is not None:
        current_user.address = profile.address
    if profile.image:
        current_user.image = profile.image
    db.commit()

    return {"success": True, "message": "Profile Updated"}

@router.get("/doctors")
async def list_doctors(db: Session = Depends(get_db)):
    """Public doctor listing."""
    doctors = DoctorService(db).list_doctors()
    return {
        "success": True,
        "doctors": [
            DoctorPublic.model_validate(d).model_dump(mode="json", by_alias=True)
            for d in doctors
        ],
    }

@router.get("/doctor/{doctor_id}")
async def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    doctor = DoctorService(db).get_doctor(doctor_id)
    return {
        "success": True,
        "doctor": DoctorPublic.model_validate(doctor).model_dump(mode="json", by_alias=True),
    }

@router.post("/book-appointment")
async def book_appointment(
    booking: BookAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    appointment = BookingService(db).book_appointment(
        current_user.id, booking.doc_id, booking.slot_date, booking.slot_time
    )
    return {
        "success": True,
        "message": "Appointment booked successfully",
        "appointmentId": appointment.id,
    }

@router.get("/appointments")
async def list_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    appointments = BookingService(db).list_appointments(current_user.id)
    return {
        "success": True,
        "appointments": [serialize_appointment(a) for a in appointments],
    }

@router.post("/cancel-appointment")
async def cancel_appointment(
    action: AppointmentRef,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    BookingService(db).cancel_appointment(action.appointment_id, current_user.id)
    return {"success": True, "message": "Appointment canceled successfully"}

@router.delete("/appointment-history/{appointment_id}")
async def delete_appointment_history(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    BookingService(db).delete_appointment_history(appointment_id, current_user.id)
    return {"success": True, "message": "Appointment removed from history successfully"}

@router.post("/pay-cash")
async def pay_cash(
    action: AppointmentRef,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    BookingService(db).pay_cash(action.appointment_id, current_user.id)
    return {"success": True, "message": "Cash payment recorded successfully"}
