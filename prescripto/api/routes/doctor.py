from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.email import EmailClient
from ...api.deps import get_current_doctor, get_email_client, rate_limit_check
from ...models.doctor import Doctor
from ...services.doctor_service import DoctorService
from ...services.status_service import StatusService
from ...schemas.doctor import DoctorLogin, DoctorProfileUpdate, DoctorPublic, DoctorProfile
from ...schemas.appointment import (
    AppointmentRef, CompleteAppointmentRequest, CancelAppointmentRequest,
    serialize_appointment
)

router = APIRouter(prefix="/doctor", tags=["Doctor"])

@router.post("/login")
async def login(
    login_data: DoctorLogin,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    token = DoctorService(db).login_doctor(login_data.email, login_data.password)
    return {"success": True, "token": token.access_token}

@router.get("/list")
async def doctor_list(db: Session = Depends(get_db)):
    doctors = DoctorService(db).list_doctors()
    return {
        "success": True,
        "doctors": [
            DoctorPublic.model_validate(d).model_dump(mode="json", by_alias=True)
            for d in doctors
        ],
    }

@router.get("/top-doctors")
async def top_doctors(db: Session = Depends(get_db)):
    doctors = DoctorService(db).top_doctors()
    return {
        "success": True,
        "doctors": [
            DoctorPublic.model_validate(d).model_dump(mode="json", by_alias=True)
            for d in doctors
        ],
    }

@router.get("/appointments")
async def appointments(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    items = DoctorService(db).doctor_appointments(doctor.id)
    return {"success": True, "appointments": [serialize_appointment(a) for a in items]}

@router.put("/confirm-appointment")
async def confirm_appointment(
    action: AppointmentRef,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client)
):
    StatusService(db, email_client).confirm(action.appointment_id, doctor.id)
    return {"success": True, "message": "Appointment confirmed"}

@router.put("/complete-appointment")
async def complete_appointment(
    action: CompleteAppointmentRequest,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client)
):
    StatusService(db, email_client).complete(
        action.appointment_id, doctor.id, action.patient_visited
    )
    return {"success": True, "message": "Appointment completed"}

@router.put("/cancel-appointment")
async def cancel_appointment(
    action: CancelAppointmentRequest,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client)
):
    StatusService(db, email_client).cancel(action.appointment_id, doctor.id, action.reason)
    return {"success": True, "message": "Appointment cancelled"}

@router.post("/change-availability")
async def change_availability(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    updated = DoctorService(db).change_availability(doctor.id)
    return {"success": True, "message": "Availability changed", "available": updated.available}

@router.get("/profile")
async def profile(doctor: Doctor = Depends(get_current_doctor)):
    return {
        "success": True,
        "profileData": DoctorProfile.model_validate(doctor).model_dump(mode="json", by_alias=True),
    }

@router.post("/update-profile")
async def update_profile(
    update: DoctorProfileUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    DoctorService(db).update_profile(doctor.id, update.fees, update.address, update.available)
    return {"success": True, "message": "Profile Updated"}

@router.get("/dashboard-stats")
async def dashboard_stats(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    return {"success": True, "stats": DoctorService(db).dashboard_stats(doctor.id)}
