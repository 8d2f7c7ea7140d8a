import asyncio

import pytest

from app.database import SessionLocal
from app.models.appointment import Appointment
from app.models.doctor import Doctor
from app.services import appointment_service
from app.utils.errors import ConflictError

from conftest import auth_header, create_doctor, create_user


def _doctor(doctor_id):
    session = SessionLocal()
    try:
        return session.query(Doctor).filter(Doctor.id == doctor_id).first()
    finally:
        session.close()


def _appointment(appointment_id):
    session = SessionLocal()
    try:
        return session.query(Appointment).filter(Appointment.id == appointment_id).first()
    finally:
        session.close()


def _book(client, token, doctor, slot_date="2025-01-10", slot_time="10:00 AM"):
    return client.post(
        "/api/user/book-appointment",
        json={"docId": doctor.id, "slotDate": slot_date, "slotTime": slot_time},
        headers=auth_header(token),
    ).json()


def test_booking_reserves_slot_and_snapshots_parties(client, user_token, make_doctor):
    user, token = user_token
    doctor = make_doctor(fees=750.0)

    payload = _book(client, token, doctor)

    assert payload["success"] is True
    assert payload["message"] == "Appointment Booked"
    appointment = _appointment(payload["appointmentId"])
    assert appointment.amount == 750.0
    assert appointment.user_data["email"] == user.email
    assert appointment.doc_data["name"] == doctor.name
    assert "password" not in appointment.doc_data
    assert _doctor(doctor.id).slots_booked == {"2025-01-10": ["10:00 AM"]}


def test_second_booking_of_same_slot_fails(client, user_token, make_doctor, db):
    _, token = user_token
    doctor = make_doctor()
    other = create_user(db, email="other@example.com", phone="+919876543211")
    other_token = client.post(
        "/api/user/login", json={"email": other.email, "password": "patient-pass-1"}
    ).json()["token"]

    assert _book(client, token, doctor)["success"] is True
    second = _book(client, other_token, doctor)

    assert second == {"success": False, "message": "Slot Not Available"}
    session = SessionLocal()
    try:
        assert session.query(Appointment).count() == 1
    finally:
        session.close()


def test_booking_unavailable_doctor(client, user_token, make_doctor):
    _, token = user_token
    doctor = make_doctor(available=False)

    assert _book(client, token, doctor) == {"success": False, "message": "Doctor Not Available"}


def test_cancel_restores_ledger(client, user_token, make_doctor):
    _, token = user_token
    doctor = make_doctor()
    appointment_id = _book(client, token, doctor)["appointmentId"]

    response = client.post(
        "/api/user/cancel-appointment", json={"appointmentId": appointment_id}, headers=auth_header(token)
    ).json()

    assert response == {"success": True, "message": "Appointment Cancelled"}
    assert _appointment(appointment_id).cancelled is True
    assert _doctor(doctor.id).slots_booked == {}

    again = client.post(
        "/api/user/cancel-appointment", json={"appointmentId": appointment_id}, headers=auth_header(token)
    ).json()
    assert again["success"] is False


def test_cancelled_slot_can_be_booked_again(client, user_token, make_doctor):
    _, token = user_token
    doctor = make_doctor()
    appointment_id = _book(client, token, doctor)["appointmentId"]
    client.post("/api/user/cancel-appointment", json={"appointmentId": appointment_id}, headers=auth_header(token))

    assert _book(client, token, doctor)["success"] is True


def test_user_cannot_cancel_someone_elses_appointment(client, user_token, make_doctor, db):
    _, token = user_token
    doctor = make_doctor()
    appointment_id = _book(client, token, doctor)["appointmentId"]
    intruder = create_user(db, email="intruder@example.com", phone="+919876543212")
    intruder_token = client.post(
        "/api/user/login", json={"email": intruder.email, "password": "patient-pass-1"}
    ).json()["token"]

    response = client.post(
        "/api/user/cancel-appointment",
        json={"appointmentId": appointment_id},
        headers=auth_header(intruder_token),
    ).json()

    assert response == {"success": False, "message": "Unauthorized action"}
    assert _appointment(appointment_id).cancelled is False


def test_doctor_completes_and_both_parties_are_emailed(client, user_token, make_doctor, doctor_login, outbox):
    user, token = user_token
    doctor = make_doctor()
    appointment_id = _book(client, token, doctor)["appointmentId"]
    doctor_token = doctor_login(doctor)

    response = client.post(
        "/api/doctor/complete-appointment",
        json={"appointmentId": appointment_id},
        headers=auth_header(doctor_token),
    ).json()

    assert response["success"] is True
    assert _appointment(appointment_id).is_completed is True
    assert outbox.emails_to(user.email)
    assert len(outbox.emails_to(doctor.email)) == 2  # login code + completion


def test_completion_stands_when_an_email_fails(client, user_token, make_doctor, doctor_login, outbox):
    user, token = user_token
    doctor = make_doctor()
    appointment_id = _book(client, token, doctor)["appointmentId"]
    doctor_token = doctor_login(doctor)
    outbox.failing.add(user.email)

    response = client.post(
        "/api/doctor/complete-appointment",
        json={"appointmentId": appointment_id},
        headers=auth_header(doctor_token),
    ).json()

    assert response["success"] is False
    assert "user" in response["message"]
    assert _appointment(appointment_id).is_completed is True


def test_meeting_link_is_sent_to_both(client, user_token, make_doctor, doctor_login, outbox):
    user, token = user_token
    doctor = make_doctor()
    appointment_id = _book(client, token, doctor)["appointmentId"]
    doctor_token = doctor_login(doctor)

    response = client.post(
        "/api/doctor/send-meeting-link",
        json={"appointmentId": appointment_id, "meetingLink": "https://meet.example.com/abc"},
        headers=auth_header(doctor_token),
    ).json()

    assert response["success"] is True
    assert "https://meet.example.com/abc" in outbox.emails_to(user.email)[-1]["html"]


def test_doctor_cannot_accept_another_doctors_appointment(client, user_token, make_doctor, doctor_login):
    _, token = user_token
    doctor = make_doctor()
    other_doctor = make_doctor(email="other-doc@example.com")
    appointment_id = _book(client, token, doctor)["appointmentId"]
    other_token = doctor_login(other_doctor)

    response = client.post(
        "/api/doctor/accept-appointment",
        json={"appointmentId": appointment_id},
        headers=auth_header(other_token),
    ).json()

    assert response == {"success": False, "message": "Unauthorized action"}


def test_user_lists_own_appointments(client, user_token, make_doctor):
    _, token = user_token
    doctor = make_doctor()
    _book(client, token, doctor, slot_time="10:00 AM")
    _book(client, token, doctor, slot_time="11:00 AM")

    payload = client.get("/api/user/appointments", headers=auth_header(token)).json()

    assert payload["success"] is True
    assert [item["slot_time"] for item in payload["appointments"]] == ["11:00 AM", "10:00 AM"]


def test_stale_cancel_does_not_release_a_rebooked_slot(db):
    doctor = create_doctor(db)
    first = create_user(db)
    second = create_user(db, email="bob@example.com", phone="+919876543213")

    original = appointment_service.book_appointment(db, first.id, doctor.id, "2025-01-10", "10:00 AM")

    # A second request loaded the appointment before it was cancelled
    stale = SessionLocal()
    try:
        stale_copy = appointment_service.get_appointment(stale, original.id)
        assert stale_copy.cancelled is False

        appointment_service.cancel_appointment(db, original.id, appointment_service.ROLE_ADMIN)
        rebooked = appointment_service.book_appointment(db, second.id, doctor.id, "2025-01-10", "10:00 AM")

        with pytest.raises(ConflictError):
            appointment_service.cancel_appointment(stale, original.id, appointment_service.ROLE_ADMIN)
    finally:
        stale.close()

    assert _doctor(doctor.id).slots_booked == {"2025-01-10": ["10:00 AM"]}
    assert _appointment(rebooked.id).cancelled is False


def test_cancelled_appointment_cannot_be_completed_from_stale_copy(db):
    doctor = create_doctor(db)
    patient = create_user(db)
    booked = appointment_service.book_appointment(db, patient.id, doctor.id, "2025-01-10", "10:00 AM")

    stale = SessionLocal()
    try:
        appointment_service.get_appointment(stale, booked.id)
        appointment_service.cancel_appointment(db, booked.id, appointment_service.ROLE_ADMIN)

        with pytest.raises(ConflictError):
            asyncio.run(
                appointment_service.complete_appointment(stale, booked.id, appointment_service.ROLE_ADMIN)
            )
    finally:
        stale.close()

    stored = _appointment(booked.id)
    assert stored.cancelled is True
    assert stored.is_completed is False


def test_admin_accept_notifies_both_and_leaves_row_unchanged(client, admin_token, user_token, make_doctor, outbox):
    user, token = user_token
    doctor = make_doctor()
    appointment_id = _book(client, token, doctor)["appointmentId"]

    response = client.post(
        "/api/admin/accept-appointment",
        json={"appointmentId": appointment_id},
        headers=auth_header(admin_token),
    ).json()

    assert response == {"success": True, "message": "Notifications sent to both user and doctor"}
    assert outbox.emails_to(user.email)[-1]["subject"] == "Appointment Accepted"
    assert outbox.emails_to(doctor.email)[-1]["subject"] == "Appointment Accepted"
    stored = _appointment(appointment_id)
    assert stored.cancelled is False
    assert stored.is_completed is False
    assert stored.payment is False
    assert _doctor(doctor.id).slots_booked == {"2025-01-10": ["10:00 AM"]}
