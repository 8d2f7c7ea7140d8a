def test_home_endpoint(client):
    response = client.get("/")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"] == "Clinic Booking API running"
    assert payload["service"] == "clinic-booking-backend"


def test_missing_token_uses_envelope(client):
    response = client.get("/api/user/get-profile")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is False
    assert payload["message"]


def test_invalid_body_reports_missing_field(client):
    response = client.post("/api/user/login", json={"email": "someone@example.com"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is False
    assert payload["message"] == "Missing Details: password"
