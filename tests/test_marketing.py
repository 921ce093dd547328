import json
from datetime import date, datetime, timedelta
from urllib.parse import quote, unquote

import pytest

from calltechcare.models import Booking, ContactMessage, QuoteRequest
from calltechcare.routes import marketing
from calltechcare.routes.consent import parse_consent_cookie
from calltechcare.shared.time_slots import is_time_slot_available, list_time_slots

NOON = datetime(2026, 3, 10, 12, 0)


# ============================================================================
# TIME SLOTS
# ============================================================================


def test_same_day_slots_need_three_hours_notice():
    slots = {s["value"]: s["available"] for s in list_time_slots("2026-03-10", now=NOON)}
    assert slots == {"08:00-11:00": False, "11:00-14:00": False, "14:00-17:00": False, "17:00-20:00": True}
    assert is_time_slot_available("2026-03-10", 15, now=NOON)


def test_past_and_future_dates():
    assert not is_time_slot_available("2026-03-09", 17, now=NOON)
    assert is_time_slot_available("2026-03-11", 8, now=NOON)
    assert is_time_slot_available(None, 8, now=NOON)


def test_time_slots_endpoint(client):
    tomorrow = (date.today() + timedelta(days=1)).isoformat()
    body = client.get("/api/time-slots", params={"date": tomorrow}).json()

    assert body["date"] == tomorrow
    assert [s["value"] for s in body["slots"]] == ["08:00-11:00", "11:00-14:00", "14:00-17:00", "17:00-20:00"]
    assert all(s["available"] for s in body["slots"])


# ============================================================================
# FORMS
# ============================================================================


def test_contact_form_stores_message(client, db, monkeypatch):
    notified = []

    async def fake_notify(name, email, company, message):
        notified.append(email)
        return {"id": "email-1"}

    monkeypatch.setattr(marketing, "send_contact_notification", fake_notify)
    response = client.post(
        "/api/contact", json={"name": "Jane", "email": "jane@example.com", "message": "Need help with <b>Wi-Fi</b>"}
    )

    assert response.status_code == 200
    assert response.json()["ok"] is True
    stored = db.query(ContactMessage).one()
    assert stored.message == "Need help with Wi-Fi"
    assert notified == ["jane@example.com"]


def test_contact_form_requires_fields(client):
    response = client.post("/api/contact", json={"name": "Jane", "email": "  "})
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required fields"


def test_quote_request_gets_reference_number(client, db):
    tomorrow = (date.today() + timedelta(days=1)).isoformat()
    response = client.post(
        "/api/quote-request",
        json={
            "service": {"category": "Home", "service": "TV Mounting"},
            "contact": {"firstName": " Jane ", "email": "jane@example.com"},
            "details": {"preferredDate": tomorrow, "preferredTime": "08:00-11:00"},
        },
    )

    assert response.status_code == 201
    reference = response.json()["referenceNumber"]
    assert reference.startswith("QR-") and len(reference) == 11
    stored = db.query(QuoteRequest).one()
    assert stored.status == "new"
    assert stored.contact["firstName"] == "Jane"


def test_quote_request_retries_reference_collisions(client, db, monkeypatch):
    references = iter(["QR-AAAAAAAA", "QR-AAAAAAAA", "QR-BBBBBBBB"])
    monkeypatch.setattr(marketing, "generate_reference_number", lambda: next(references))

    first = client.post("/api/quote-request", json={"contact": {"email": "a@example.com"}})
    second = client.post("/api/quote-request", json={"contact": {"email": "b@example.com"}})

    assert first.json()["referenceNumber"] == "QR-AAAAAAAA"
    assert second.json()["referenceNumber"] == "QR-BBBBBBBB"
    assert db.query(QuoteRequest).count() == 2


def test_quote_request_rejects_past_slot(client):
    yesterday = (date.today() - timedelta(days=1)).isoformat()
    response = client.post(
        "/api/quote-request", json={"details": {"preferredDate": yesterday, "preferredTime": "08:00-11:00"}}
    )
    assert response.status_code == 400


def test_booking(client, db):
    response = client.post(
        "/api/bookings",
        json={
            "name": "Jane",
            "email": "jane@example.com",
            "serviceTitle": "TV Mounting",
            "serviceSlug": "tv-mounting",
            "price": 99,
            "options": [{"name": "Soundbar", "price": 30}],
        },
    )

    assert response.status_code == 200
    booking = response.json()["booking"]
    assert booking["status"] == "pending"
    assert booking["quantity"] == 1
    assert db.query(Booking).count() == 1


def test_booking_rejects_invalid_email(client):
    response = client.post(
        "/api/bookings",
        json={"name": "Jane", "email": "nope", "serviceTitle": "TV", "serviceSlug": "tv", "price": 1},
    )
    assert response.status_code == 400


# ============================================================================
# CONSENT
# ============================================================================


def test_consent_defaults_when_cookie_missing(client):
    body = client.get("/api/consent").json()

    assert body["stored"] is False
    assert body["consent"]["version"] == 1
    assert body["consent"]["analytics"] is False


def test_consent_round_trips_through_cookie(client):
    response = client.post("/api/consent", json={"analytics": True, "marketing": False, "functional": True})

    stored = json.loads(unquote(response.cookies.get("ctc_consent")))
    assert stored["analytics"] is True
    assert stored["version"] == 1

    body = client.get("/api/consent").json()
    assert body["stored"] is True
    assert body["consent"]["functional"] is True


@pytest.mark.parametrize("raw", [None, "", "not-json", quote("[1, 2]")])
def test_invalid_consent_cookie_is_ignored(raw):
    assert parse_consent_cookie(raw) is None


# ============================================================================
# FEEDS
# ============================================================================


def test_robots_txt(client):
    response = client.get("/robots.txt")

    assert response.status_code == 200
    assert "Disallow: /account" in response.text
    assert "Sitemap: https://www.calltechcare.com/sitemap.xml" in response.text
