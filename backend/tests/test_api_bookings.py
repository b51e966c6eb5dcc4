from datetime import date, time, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from spa_booking.database import get_db
from spa_booking.main import app
from spa_booking.models import Booking, BookingStatus

from conftest import create_access_token, make_booking, make_service, make_therapist

DAY = date(2030, 5, 20)


@pytest.fixture
def client(Session):
    def override_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def staff_headers(role="staff"):
    token = create_access_token("staff-1", role=role, email="desk@spa.test")
    return {"Authorization": f"Bearer {token}"}


def booking_payload(service_id, **overrides):
    data = {
        "service_id": service_id,
        "booking_date": DAY.isoformat(),
        "booking_time": "18:00",
        "guest_name": "Maria",
        "guest_phone": "09171234567",
    }
    data.update(overrides)
    return data


def test_create_booking_returns_view(client, Session):
    db = Session()
    service = make_service(db, title="Foot Spa", price=600)
    db.close()

    res = client.post(
        "/api/v1/bookings",
        json=booking_payload(service.id),
        headers={"X-Visitor-Id": "v-api-1"},
    )

    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "pending"
    assert body["visitor_id"] == "v-api-1"
    assert body["service"]["title"] == "Foot Spa"
    assert Decimal(body["service"]["price"]) == Decimal("600")
    assert body["therapist"] is None


def test_bot_submission_gets_accepted_without_row(client, Session):
    db = Session()
    service = make_service(db)

    res = client.post(
        "/api/v1/bookings",
        json=booking_payload(service.id, website="buy-now"),
        headers={"X-Visitor-Id": "v-bot"},
    )

    assert res.status_code == 202
    assert res.json() == {"detail": "Booking request received."}
    assert db.query(Booking).count() == 0
    db.close()


def test_second_attempt_is_rate_limited(client, Session):
    db = Session()
    service = make_service(db)
    db.close()
    headers = {"X-Visitor-Id": "v-api-2"}

    assert client.post("/api/v1/bookings", json=booking_payload(service.id), headers=headers).status_code == 201
    res = client.post("/api/v1/bookings", json=booking_payload(service.id), headers=headers)

    assert res.status_code == 429
    assert res.json()["detail"]["reason"] == "RateLimited"
    assert int(res.headers["Retry-After"]) > 0


def test_cap_exceeded_is_409(client, Session, fake_redis):
    db = Session()
    service = make_service(db)
    make_booking(db, service, visitor_id="v-api-3")
    db.close()

    res = client.post(
        "/api/v1/bookings",
        json=booking_payload(service.id),
        headers={"X-Visitor-Id": "v-api-3"},
    )

    assert res.status_code == 409
    detail = res.json()["detail"]
    assert detail["reason"] == "CapExceeded"
    assert (detail["current_count"], detail["cap"]) == (1, 1)


def test_missing_guest_phone_is_422(client, Session):
    db = Session()
    service = make_service(db)
    db.close()

    res = client.post(
        "/api/v1/bookings",
        json=booking_payload(service.id, guest_phone="09"),
        headers={"X-Visitor-Id": "v-api-4"},
    )

    assert res.status_code == 422
    assert "guest_phone" in res.json()["detail"]["field_errors"]


def test_malformed_date_is_422(client):
    res = client.post("/api/v1/bookings", json=booking_payload(1, booking_date="not-a-date"))
    assert res.status_code == 422


def test_registered_token_sets_user(client, Session):
    db = Session()
    service = make_service(db)
    db.close()
    token = create_access_token("user-9", email="maria@example.com", name="Maria")

    res = client.post(
        "/api/v1/bookings",
        json=booking_payload(service.id, guest_phone=None),
        headers={"Authorization": f"Bearer {token}"},
    )

    assert res.status_code == 201
    assert res.json()["user_id"] == "user-9"
    assert res.json()["user_email"] == "maria@example.com"


def test_invalid_token_is_401(client):
    res = client.post(
        "/api/v1/bookings",
        json=booking_payload(1),
        headers={"Authorization": "Bearer nope"},
    )
    assert res.status_code == 401


def test_staff_routes_require_staff_role(client):
    assert client.get("/api/v1/bookings").status_code == 401
    customer = create_access_token("user-1")
    res = client.get("/api/v1/bookings", headers={"Authorization": f"Bearer {customer}"})
    assert res.status_code == 403


def test_status_patch_flow(client, Session):
    db = Session()
    service = make_service(db, price=1000)
    therapist = make_therapist(db)
    booking = make_booking(db, service)
    db.close()
    url = f"/api/v1/bookings/{booking.id}/status"

    res = client.patch(url, json={"status": "completed"}, headers=staff_headers())
    assert res.status_code == 409
    assert res.json()["detail"]["reason"] == "IllegalTransition"

    res = client.patch(url, json={"status": "confirmed", "therapist_id": therapist.id}, headers=staff_headers())
    assert res.status_code == 200
    assert res.json()["therapist"]["name"] == "Ana"

    res = client.patch(
        url,
        json={"status": "completed", "tip_amount": "150", "tip_recipient": "therapist"},
        headers=staff_headers("admin"),
    )
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "completed"
    assert body["completed_at"] is not None
    assert Decimal(body["commission_amount"]) == Decimal("300")
    assert Decimal(body["tip_amount"]) == Decimal("150")

    res = client.patch(url, json={"status": "pending"}, headers=staff_headers())
    assert res.status_code == 409


def test_list_stats_and_delete(client, Session):
    db = Session()
    service = make_service(db)
    therapist = make_therapist(db)
    keep = make_booking(db, service, therapist, BookingStatus.CONFIRMED)
    gone = make_booking(db, service, therapist, BookingStatus.CANCELLED)
    make_booking(db, service, status=BookingStatus.PENDING)
    db.close()

    res = client.get("/api/v1/bookings?status=upcoming", headers=staff_headers())
    assert res.status_code == 200
    assert len(res.json()) == 2

    assert client.delete(f"/api/v1/bookings/{gone.id}", headers=staff_headers()).status_code == 204
    assert client.get(f"/api/v1/bookings/{gone.id}", headers=staff_headers()).status_code == 404

    stats = client.get("/api/v1/bookings/stats", headers=staff_headers()).json()
    assert stats == {"total": 2, "pending": 1, "confirmed": 1, "completed": 0, "cancelled": 0}

    res = client.get(f"/api/v1/bookings/{keep.id}", headers=staff_headers())
    assert res.json()["therapist"]["name"] == "Ana"


def test_manual_booking_endpoint(client, Session):
    db = Session()
    service = make_service(db, price=1200)
    therapist = make_therapist(db)
    db.close()

    payload = {
        "service_id": service.id,
        "therapist_id": therapist.id,
        "booking_date": DAY.isoformat(),
        "booking_time": "21:00",
        "guest_name": "Walk-in",
        "guest_phone": "09",
    }
    res = client.post("/api/v1/bookings/manual", json=payload, headers=staff_headers())
    assert res.status_code == 201
    assert Decimal(res.json()["price_at_booking"]) == Decimal("1200")

    res = client.post("/api/v1/bookings/manual", json=payload, headers=staff_headers())
    assert res.status_code == 409
    assert res.json()["detail"]["reason"] == "ScheduleConflict"


def test_returning_guest_endpoint(client, Session):
    db = Session()
    service = make_service(db)
    make_booking(db, service, visitor_id="v-api-5", guest_name="Lia", guest_phone="09175555555")
    db.close()

    res = client.get("/api/v1/bookings/returning-guest", headers={"X-Visitor-Id": "v-api-5"})
    assert res.json() == {"guest_name": "Lia", "guest_phone": "09175555555"}


def test_timeline_endpoint(client, Session):
    db = Session()
    service = make_service(db)
    therapist = make_therapist(db)
    late = make_booking(db, service, therapist, BookingStatus.CONFIRMED, DAY, time(23, 30))
    early = make_booking(db, service, therapist, BookingStatus.CONFIRMED, DAY + timedelta(days=1), time(1, 15))
    db.close()

    res = client.get(f"/api/v1/timeline?date={DAY.isoformat()}", headers=staff_headers())

    assert res.status_code == 200
    slots = {slot["hour"]: [b["id"] for b in slot["bookings"]] for slot in res.json()["slots"]}
    assert slots[21] == [late.id]
    assert slots[24] == [early.id]
    assert slots[0] == []


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_edit_booking_endpoint(client, Session):
    db = Session()
    service = make_service(db, duration_minutes=60)
    therapist = make_therapist(db)
    make_booking(db, service, therapist, BookingStatus.CONFIRMED, DAY, time(20, 0))
    booking = make_booking(db, service, therapist, BookingStatus.CONFIRMED, DAY, time(17, 0))
    done = make_booking(db, service, therapist, BookingStatus.COMPLETED, DAY, time(12, 0))
    db.close()
    url = f"/api/v1/bookings/{booking.id}"

    res = client.patch(url, json={"booking_time": "18:00", "guest_name": "Lia"}, headers=staff_headers())
    assert res.status_code == 200
    assert res.json()["booking_time"] == "18:00:00"
    assert res.json()["guest_name"] == "Lia"
    assert res.json()["status"] == "confirmed"

    res = client.patch(url, json={"booking_time": "19:30"}, headers=staff_headers())
    assert res.status_code == 409
    assert res.json()["detail"]["reason"] == "ScheduleConflict"

    res = client.patch(f"/api/v1/bookings/{done.id}", json={"booking_time": "13:00"}, headers=staff_headers())
    assert res.status_code == 409
    assert res.json()["detail"]["reason"] == "IllegalTransition"

    assert client.patch(url, json={"booking_time": "18:30"}).status_code == 401
