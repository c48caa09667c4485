from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.email import EmailClient
from ...api.deps import get_current_admin, get_email_client, rate_limit_check
from ...services.admin_service import AdminService
from ...services.doctor_service import DoctorService
from ...schemas.admin import AdminLogin
from ...schemas.doctor import DoctorCreate, DoctorProfile, DoctorAvailabilityRequest
from ...schemas.appointment import CancelAppointmentRequest, serialize_appointment

router = APIRouter(prefix="/admin", tags=["Admin"])

@router.post("/login")
async def login(
    login_data: AdminLogin,
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
    _: None = Depends(rate_limit_check)
):
    token = AdminService(db, email_client).login_admin(login_data.email, login_data.password)
    return {"success": True, "token": token.access_token}

@router.post("/add-doctor")
async def add_doctor(
    doctor_data: DoctorCreate,
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
    _admin: str = Depends(get_current_admin)
):
    doctor = AdminService(db, email_client).add_doctor(doctor_data)
    return {"success": True, "message": "Doctor Added", "doctorId": doctor.id}

@router.get("/all-doctors")
async def all_doctors(
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
    _admin: str = Depends(get_current_admin)
):
    doctors = AdminService(db, email_client).all_doctors()
    return {
        "success": True,
        "doctors": [
            DoctorProfile.model_validate(d).model_dump(mode="json", by_alias=True)
            for d in doctors
        ],
    }

@router.get("/appointments")
async def all_appointments(
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
    _admin: str = Depends(get_current_admin)
):
    items = AdminService(db, email_client).all_appointments()
    return {"success": True, "appointments": [serialize_appointment(a) for a in items]}

@router.post("/cancel-appointment")
async def cancel_appointment(
    action: CancelAppointmentRequest,
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
    _admin: str = Depends(get_current_admin)
):
    AdminService(db, email_client).cancel_appointment(action.appointment_id, action.reason)
    return {"success": True, "message": "Appointment Cancelled"}

@router.post("/change-availability")
async def change_availability(
    request: DoctorAvailabilityRequest,
    db: Session = Depends(get_db),
    _admin: str = Depends(get_current_admin)
):
    doctor = DoctorService(db).change_availability(request.doc_id)
    return {"success": True, "message": "Availability Changed", "available": doctor.available}

@router.get("/dashboard")
async def dashboard(
    db: Session = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
    _admin: str = Depends(get_current_admin)
):
    return {"success": True, "dashData": AdminService(db, email_client).dashboard()}
