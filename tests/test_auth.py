from app.database import SessionLocal
from app.models.user import User
from app.services.auth_service import verify_password

from conftest import auth_header


REGISTRATION = {
    "name": "Asha Rao",
    "email": "Asha@Example.com",
    "password": "secret-pass-1",
    "phone": "9876543210",
}


def _user(user_id):
    session = SessionLocal()
    try:
        return session.query(User).filter(User.id == user_id).first()
    finally:
        session.close()


def _register(client):
    return client.post("/api/user/register", json=REGISTRATION).json()


def test_register_verify_and_login(client, outbox):
    payload = _register(client)

    assert payload["success"] is True
    user_id = payload["userId"]
    stored = _user(user_id)
    assert stored.email == "asha@example.com"
    assert stored.phone == "+919876543210"
    assert stored.is_verified is False

    # Unverified users cannot log in
    login = client.post("/api/user/login", json={"email": "asha@example.com", "password": "secret-pass-1"}).json()
    assert login["success"] is False

    phone_code = outbox.last_sms_code("+919876543210")
    email_code = outbox.last_email_code("asha@example.com")
    verified = client.post(
        "/api/user/verify",
        json={"userId": user_id, "phoneCode": phone_code, "emailCode": email_code},
    ).json()

    assert verified["success"] is True
    assert verified["token"]
    assert _user(user_id).is_verified is True

    login = client.post("/api/user/login", json={"email": "asha@example.com", "password": "secret-pass-1"}).json()
    assert login["success"] is True

    profile = client.get("/api/user/get-profile", headers=auth_header(login["token"])).json()
    assert profile["userData"]["email"] == "asha@example.com"
    assert "password" not in profile["userData"]


def test_verify_with_one_wrong_code_keeps_user_unverified(client, outbox):
    user_id = _register(client)["userId"]
    phone_code = outbox.last_sms_code("+919876543210")
    email_code = outbox.last_email_code("asha@example.com")
    wrong = "000000" if email_code != "000000" else "111111"

    failed = client.post(
        "/api/user/verify",
        json={"userId": user_id, "phoneCode": phone_code, "emailCode": wrong},
    ).json()
    assert failed["success"] is False
    assert _user(user_id).is_verified is False

    # Both codes are still live after the failed attempt
    ok = client.post(
        "/api/user/verify",
        json={"userId": user_id, "phoneCode": phone_code, "emailCode": email_code},
    ).json()
    assert ok["success"] is True


def test_duplicate_email_rejected(client):
    _register(client)
    second = _register(client)

    assert second == {"success": False, "message": "Email already exists"}


def test_register_rejects_weak_password_and_bad_phone(client):
    weak = client.post("/api/user/register", json={**REGISTRATION, "password": "short"}).json()
    bad_phone = client.post("/api/user/register", json={**REGISTRATION, "phone": "12"}).json()

    assert weak["success"] is False
    assert "strong password" in weak["message"]
    assert bad_phone == {"success": False, "message": "Please enter a valid phone number"}


def test_register_reports_failed_delivery_but_keeps_user(client, outbox):
    outbox.failing.add("+919876543210")

    payload = _register(client)

    assert payload["success"] is False
    assert _user(payload["userId"]) is not None


def test_wrong_password(client, make_user):
    user = make_user()

    payload = client.post("/api/user/login", json={"email": user.email, "password": "wrong-pass-1"}).json()

    assert payload == {"success": False, "message": "Invalid credentials"}


def test_password_reset_requires_verified_otp(client, make_user, outbox):
    user = make_user()

    premature = client.post("/api/user/reset-password", json={"userId": user.id, "newPassword": "brand-new-pass"}).json()
    assert premature["success"] is False

    client.post("/api/user/forgot-password", json={"email": user.email})
    code = outbox.last_email_code(user.email)

    checked = client.post("/api/user/verify-reset-otp", json={"userId": user.id, "otp": code}).json()
    assert checked["success"] is True

    reset = client.post("/api/user/reset-password", json={"userId": user.id, "newPassword": "brand-new-pass"}).json()
    assert reset["success"] is True
    assert verify_password("brand-new-pass", _user(user.id).password)

    # The gate closes after a successful reset
    replay = client.post("/api/user/reset-password", json={"userId": user.id, "newPassword": "another-pass-1"}).json()
    assert replay == {"success": False, "message": "OTP not verified"}
    assert verify_password("brand-new-pass", _user(user.id).password)


def test_logout_revokes_token(client, user_token):
    _, token = user_token

    assert client.post("/api/user/logout", headers=auth_header(token)).json()["success"] is True

    after = client.get("/api/user/get-profile", headers=auth_header(token)).json()
    assert after == {"success": False, "message": "Session expired or logged out"}


def test_user_token_is_rejected_on_doctor_routes(client, user_token):
    _, token = user_token

    payload = client.get("/api/doctor/appointments", headers=auth_header(token)).json()

    assert payload["success"] is False
