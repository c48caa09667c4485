import pytest

from prescripto.core.database import SessionLocal
from prescripto.core.exceptions import Conflict, NotFound, ValidationFailed
from prescripto.models.appointment import Appointment, AppointmentStatus
from prescripto.models.doctor import Doctor
from prescripto.services.booking_service import BookingService
from prescripto.services.status_service import StatusService

from .conftest import login_headers

SLOT_DATE = "15_03_2025"


def fresh_doctor(db, doctor_id):
    db.expire_all()
    return db.get(Doctor, doctor_id)


class TestBookingService:

    def test_book_appointment(self, db, make_doctor, make_user):
        doctor = make_doctor(fees=75.0, slots_booked={"14_03_2025": ["09:00"]})
        user = make_user()

        appointment = BookingService(db).book_appointment(user.id, doctor.id, SLOT_DATE, "10:00")

        assert appointment.status == AppointmentStatus.PENDING
        assert appointment.amount == 75.0
        assert appointment.patient_email == user.email
        assert appointment.user_data["name"] == user.name
        assert appointment.doc_data["name"] == doctor.name
        assert "slotsBooked" not in appointment.doc_data
        assert "passwordHash" not in appointment.doc_data
        assert "email" not in appointment.doc_data
        assert fresh_doctor(db, doctor.id).slots_booked == {
            "14_03_2025": ["09:00"],
            SLOT_DATE: ["10:00"],
        }

    def test_double_booking_declined(self, db, make_doctor, make_user):
        doctor = make_doctor()
        first, second = make_user(), make_user()
        service = BookingService(db)
        service.book_appointment(first.id, doctor.id, SLOT_DATE, "10:00")

        with pytest.raises(Conflict) as exc:
            service.book_appointment(second.id, doctor.id, SLOT_DATE, "10:00")
        assert exc.value.message == "Slot is not available"
        assert db.query(Appointment).count() == 1

    def test_unpadded_stored_key_blocks_booking(self, db, make_doctor, make_user):
        doctor = make_doctor(slots_booked={"5_3_2025": ["10:00"]})
        user = make_user()

        with pytest.raises(Conflict):
            BookingService(db).book_appointment(user.id, doctor.id, "05_03_2025", "10:00")
        assert db.query(Appointment).count() == 0
        assert fresh_doctor(db, doctor.id).slots_booked == {"5_3_2025": ["10:00"]}

    def test_date_key_is_canonical(self, db, make_doctor, make_user):
        doctor = make_doctor()
        first, second = make_user(), make_user()
        service = BookingService(db)

        appointment = service.book_appointment(first.id, doctor.id, "5_3_2025", "10:00")
        assert appointment.slot_date == "05_03_2025"
        with pytest.raises(Conflict):
            service.book_appointment(second.id, doctor.id, "05_03_2025", "10:00")

    def test_declines(self, db, make_doctor, make_user):
        user = make_user()
        service = BookingService(db)

        with pytest.raises(ValidationFailed, match="select a time slot"):
            service.book_appointment(user.id, 1, SLOT_DATE, "  ")
        with pytest.raises(NotFound, match="Doctor not found"):
            service.book_appointment(user.id, 999, SLOT_DATE, "10:00")

        busy = make_doctor(available=False)
        with pytest.raises(ValidationFailed, match="not available"):
            service.book_appointment(user.id, busy.id, SLOT_DATE, "10:00")

        doctor = make_doctor()
        with pytest.raises(NotFound, match="User data not found"):
            service.book_appointment(999, doctor.id, SLOT_DATE, "10:00")
        with pytest.raises(ValidationFailed, match="Invalid slot date"):
            service.book_appointment(user.id, doctor.id, "2025-03-15", "10:00")

        assert fresh_doctor(db, doctor.id).slots_booked == {}

    def test_snapshot_is_not_refreshed(self, db, make_doctor, make_user):
        doctor = make_doctor(fees=40.0)
        user = make_user()
        appointment = BookingService(db).book_appointment(user.id, doctor.id, SLOT_DATE, "10:00")

        doctor = fresh_doctor(db, doctor.id)
        doctor.fees = 90.0
        doctor.name = "Dr. Renamed"
        db.commit()

        db.expire_all()
        stored = db.get(Appointment, appointment.id)
        assert stored.amount == 40.0
        assert stored.doc_data["fees"] == 40.0
        assert stored.doc_data["name"] != "Dr. Renamed"

    def test_concurrent_booking_lost_race_is_declined(self, make_doctor, make_user):
        """Two sessions read the same slot map; only the first writer wins."""
        doctor = make_doctor()
        first, second = make_user(), make_user()

        session_a = SessionLocal()
        session_b = SessionLocal()
        try:
            # Session A reads the doctor before B books, as a concurrent request would
            stale = session_a.get(Doctor, doctor.id)
            assert stale.slots_booked == {}

            BookingService(session_b).book_appointment(first.id, doctor.id, SLOT_DATE, "10:00")

            with pytest.raises(Conflict):
                BookingService(session_a).book_appointment(second.id, doctor.id, SLOT_DATE, "10:00")
        finally:
            session_a.close()
            session_b.close()

        check = SessionLocal()
        try:
            assert check.query(Appointment).count() == 1
            assert check.get(Doctor, doctor.id).slots_booked == {SLOT_DATE: ["10:00"]}
        finally:
            check.close()

    def test_book_then_cancel_restores_slot_map(self, db, make_doctor, make_user):
        before = {"14_03_2025": ["09:00"], SLOT_DATE: ["08:00"]}
        doctor = make_doctor(slots_booked=before)
        user = make_user()
        service = BookingService(db)

        appointment = service.book_appointment(user.id, doctor.id, SLOT_DATE, "10:00")
        service.cancel_appointment(appointment.id, user.id)
        assert fresh_doctor(db, doctor.id).slots_booked == before

        appointment = service.book_appointment(user.id, doctor.id, "16_03_2025", "10:00")
        service.cancel_appointment(appointment.id, user.id)
        assert "16_03_2025" not in fresh_doctor(db, doctor.id).slots_booked
        assert db.query(Appointment).count() == 0

    def test_cancel_requires_owner(self, db, make_doctor, make_user):
        doctor = make_doctor()
        owner, other = make_user(), make_user()
        service = BookingService(db)
        appointment = service.book_appointment(owner.id, doctor.id, SLOT_DATE, "10:00")

        with pytest.raises(NotFound, match="not found or unauthorized"):
            service.cancel_appointment(appointment.id, other.id)
        assert fresh_doctor(db, doctor.id).slots_booked == {SLOT_DATE: ["10:00"]}

    def test_cancel_after_doctor_cancellation_keeps_rebooked_slot(
        self, db, email_client, make_doctor, make_user
    ):
        doctor = make_doctor()
        first, second = make_user(), make_user()
        service = BookingService(db)
        appointment = service.book_appointment(first.id, doctor.id, SLOT_DATE, "10:00")

        # Doctor cancels, the slot is given back and taken by someone else
        StatusService(db, email_client).cancel(appointment.id, doctor.id)
        assert fresh_doctor(db, doctor.id).slots_booked == {}
        service.book_appointment(second.id, doctor.id, SLOT_DATE, "10:00")

        service.cancel_appointment(appointment.id, first.id)
        assert db.get(Appointment, appointment.id) is None
        assert fresh_doctor(db, doctor.id).slots_booked == {SLOT_DATE: ["10:00"]}

    def test_delete_history_only_for_finished(self, db, make_doctor, make_user):
        doctor = make_doctor()
        user = make_user()
        service = BookingService(db)
        appointment = service.book_appointment(user.id, doctor.id, SLOT_DATE, "10:00")

        with pytest.raises(NotFound, match="cannot be deleted"):
            service.delete_appointment_history(appointment.id, user.id)

        stored = db.get(Appointment, appointment.id)
        stored.is_confirmed = True
        stored.status = AppointmentStatus.CONFIRMED
        db.commit()
        with pytest.raises(NotFound):
            service.delete_appointment_history(appointment.id, user.id)

        stored.is_completed = True
        stored.patient_visited = True
        stored.status = AppointmentStatus.COMPLETED
        db.commit()
        service.delete_appointment_history(appointment.id, user.id)

        assert db.query(Appointment).count() == 0
        # Completed appointments consumed their slot; history removal leaves it
        assert fresh_doctor(db, doctor.id).slots_booked == {SLOT_DATE: ["10:00"]}

    def test_list_appointments_newest_first_and_visible_only(self, db, make_doctor, make_user):
        doctor = make_doctor()
        user = make_user()
        service = BookingService(db)
        first = service.book_appointment(user.id, doctor.id, SLOT_DATE, "10:00")
        second = service.book_appointment(user.id, doctor.id, SLOT_DATE, "11:00")
        hidden = service.book_appointment(user.id, doctor.id, SLOT_DATE, "12:00")

        stored = db.get(Appointment, hidden.id)
        stored.show_to_user = False
        db.commit()

        listed = service.list_appointments(user.id)
        assert [a.id for a in listed] == [second.id, first.id]

    def test_pay_cash(self, db, make_doctor, make_user):
        doctor = make_doctor()
        user, other = make_user(), make_user()
        service = BookingService(db)
        appointment = service.book_appointment(user.id, doctor.id, SLOT_DATE, "10:00")

        with pytest.raises(NotFound):
            service.pay_cash(appointment.id, other.id)

        paid = service.pay_cash(appointment.id, user.id)
        assert paid.payment is True
        assert paid.payment_method == "cash"
        assert paid.payment_info["method"] == "cash"
        assert paid.payment_info["recordedBy"] == "user"
        assert "recordedAt" in paid.payment_info

        stored = db.get(Appointment, appointment.id)
        stored.cancelled = True
        db.commit()
        with pytest.raises(NotFound):
            service.pay_cash(appointment.id, user.id)


class TestBookingAPI:

    def test_book_list_cancel(self, client, make_doctor, make_user):
        doctor = make_doctor()
        user = make_user()
        headers = login_headers(client, user.email)

        response = client.post(
            "/api/user/book-appointment",
            headers=headers,
            json={"docId": doctor.id, "slotDate": SLOT_DATE, "slotTime": "10:00"},
        )
        assert response.status_code == 200
        assert response.json()["success"] is True
        appointment_id = response.json()["appointmentId"]

        response = client.post(
            "/api/user/book-appointment",
            headers=headers,
            json={"docId": doctor.id, "slotDate": SLOT_DATE, "slotTime": "10:00"},
        )
        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "Slot is not available"}

        appointments = client.get("/api/user/appointments", headers=headers).json()["appointments"]
        assert len(appointments) == 1
        assert appointments[0]["id"] == appointment_id
        assert appointments[0]["status"] == "pending"
        assert appointments[0]["slotDate"] == SLOT_DATE
        assert appointments[0]["docData"]["name"] == doctor.name

        response = client.post(
            "/api/user/cancel-appointment",
            headers=headers,
            json={"appointmentId": appointment_id},
        )
        assert response.json() == {"success": True, "message": "Appointment canceled successfully"}

        doctor_view = client.get(f"/api/user/doctor/{doctor.id}").json()["doctor"]
        assert doctor_view["slotsBooked"] == {}

    def test_public_doctor_listing_hides_credentials(self, client, make_doctor):
        make_doctor()
        doctors = client.get("/api/user/doctors").json()["doctors"]
        assert len(doctors) == 1
        assert "email" not in doctors[0]
        assert "passwordHash" not in doctors[0]

        response = client.get("/api/user/doctor/999")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Doctor not found"}

    def test_booking_requires_login(self, client, make_doctor):
        doctor = make_doctor()
        response = client.post(
            "/api/user/book-appointment",
            json={"docId": doctor.id, "slotDate": SLOT_DATE, "slotTime": "10:00"},
        )
        assert response.status_code == 401

    def test_delete_history_and_pay_cash_routes(self, client, db, make_doctor, make_user):
        doctor = make_doctor()
        user = make_user()
        headers = login_headers(client, user.email)
        appointment = BookingService(db).book_appointment(user.id, doctor.id, SLOT_DATE, "10:00")

        response = client.post(
            "/api/user/pay-cash", headers=headers, json={"appointmentId": appointment.id}
        )
        assert response.json() == {"success": True, "message": "Cash payment recorded successfully"}

        response = client.delete(f"/api/user/appointment-history/{appointment.id}", headers=headers)
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_invalid_body_uses_envelope(self, client, make_user):
        user = make_user()
        headers = login_headers(client, user.email)
        response = client.post("/api/user/book-appointment", headers=headers, json={"slotTime": "10:00"})
        assert response.status_code == 422
        assert response.json()["success"] is False
