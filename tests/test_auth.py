from datetime import datetime, timedelta

import pytest

from calltechcare.domain.accounts import service as account_service
from calltechcare.models import User
from calltechcare.security_utils import create_auth_cookie_token, create_session_token, verify_password
from calltechcare.services.mailchimp_service import MailchimpError


@pytest.fixture
def reset_emails(monkeypatch):
    sent = []

    async def fake_send(to, link):
        sent.append((to, link))
        return {"id": "email-1"}

    monkeypatch.setattr(account_service, "send_password_reset_email", fake_send)
    return sent


# ============================================================================
# SIGN UP
# ============================================================================


def test_signup_stores_hashed_lowercase_email(client, db):
    response = client.post(
        "/api/signup", json={"name": "Jane Doe", "email": "Jane@Example.com", "password": "s3cure-pass"}
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "redirect": "/login"}
    user = db.query(User).one()
    assert user.email == "jane@example.com"
    assert user.password_hash != "s3cure-pass"
    assert verify_password("s3cure-pass", user.password_hash)


def test_signup_adds_customer_to_audience(client, configured_mailchimp):
    client.post(
        "/api/signup",
        json={"name": "Jane Doe", "email": "jane@example.com", "password": "s3cure-pass"},
    )

    customer = configured_mailchimp.synced[0]
    assert customer.email == "jane@example.com"
    assert (customer.first_name, customer.last_name) == ("Jane", "Doe")
    assert customer.service_type == "account-signup"


def test_signup_succeeds_when_audience_sync_fails(client, db, configured_mailchimp):
    configured_mailchimp.error = MailchimpError("Mailchimp sync failed (HTTP 500): Internal")

    response = client.post("/api/signup", json={"name": "Jane", "email": "jane@example.com", "password": "s3cure-pass"})

    assert response.status_code == 200
    assert db.query(User).count() == 1


@pytest.mark.parametrize(
    "payload, detail",
    [
        ({"email": "jane@example.com", "password": "s3cure-pass"}, "Missing fields"),
        ({"name": "Jane", "email": "not-an-email", "password": "s3cure-pass"}, "Invalid email"),
        ({"name": "Jane", "email": "jane@example.com", "password": "short"}, "Password must be at least 8 characters long"),
    ],
)
def test_signup_rejects_bad_input(client, payload, detail):
    response = client.post("/api/signup", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"] == detail


def test_signup_rejects_registered_email(client, user):
    response = client.post("/api/signup", json={"name": "Other", "email": "JANE@example.com", "password": "s3cure-pass"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


# ============================================================================
# SIGN IN / SESSION
# ============================================================================


def test_signin_returns_token_and_sets_cookie(client, user):
    response = client.post("/api/auth/signin", json={"email": "jane@example.com", "password": "s3cure-pass"})

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["user"]["email"] == "jane@example.com"
    assert response.cookies.get("session_token") == body["token"]

    session = client.get("/api/auth/session").json()
    assert session["user"]["id"] == user.id


def test_signin_unknown_email_is_404(client):
    response = client.post("/api/auth/signin", json={"email": "ghost@example.com", "password": "s3cure-pass"})
    assert response.status_code == 404


def test_signin_wrong_password_is_401(client, user):
    response = client.post("/api/auth/signin", json={"email": "jane@example.com", "password": "wrong-pass"})
    assert response.status_code == 401


def test_custom_login_sets_auth_cookie(client, user):
    response = client.post("/api/login", json={"email": "jane@example.com", "password": "s3cure-pass"})

    assert response.json() == {"ok": True, "user": {"name": "Jane Doe", "email": "jane@example.com"}}
    assert response.cookies.get("auth")
    assert client.get("/api/auth/session").json()["user"]["email"] == "jane@example.com"


def test_logout_clears_both_cookies(client, user):
    client.post("/api/login", json={"email": "jane@example.com", "password": "s3cure-pass"})
    client.post("/api/auth/signin", json={"email": "jane@example.com", "password": "s3cure-pass"})

    client.post("/api/logout")

    assert client.get("/api/auth/session").json() == {"user": None}


def test_bearer_token_takes_precedence_over_cookies(client, user, make_user):
    other = make_user(email="other@example.com", name="Other")
    client.cookies.set("session_token", create_session_token(other.id, other.email))
    client.cookies.set("auth", create_auth_cookie_token(other.id, other.email))

    headers = {"Authorization": f"Bearer {create_session_token(user.id, user.email)}"}
    assert client.get("/api/auth/session", headers=headers).json()["user"]["id"] == user.id
    assert client.get("/api/auth/session").json()["user"]["id"] == other.id


def test_invalid_bearer_is_not_retried_against_cookies(client, user):
    client.cookies.set("auth", create_auth_cookie_token(user.id, user.email))

    response = client.get("/api/auth/session", headers={"Authorization": "Bearer garbage"})

    assert response.json() == {"user": None}


def test_expired_session_token_is_anonymous(client, user):
    token = create_session_token(user.id, user.email, expires_delta=timedelta(seconds=-10))
    response = client.get("/api/auth/session", headers={"Authorization": f"Bearer {token}"})
    assert response.json() == {"user": None}


def test_signin_is_rate_limited(client, user):
    statuses = [
        client.post("/api/auth/signin", json={"email": "jane@example.com", "password": "wrong-pass"}).status_code
        for _ in range(11)
    ]
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429


# ============================================================================
# PASSWORD RESET
# ============================================================================


def test_forgot_password_stores_token_and_emails_link(client, db, user, reset_emails):
    response = client.post("/api/auth/forgot", json={"email": "jane@example.com"})

    assert response.json() == {"ok": True, "message": "Reset link sent"}
    db.refresh(user)
    assert len(user.reset_token) == 64
    assert user.reset_token_expires_at > datetime.utcnow()
    assert reset_emails[0][0] == "jane@example.com"
    assert reset_emails[0][1].endswith(f"/reset-password?token={user.reset_token}")


def test_forgot_password_unknown_email_is_404(client, reset_emails):
    assert client.post("/api/auth/forgot", json={"email": "ghost@example.com"}).status_code == 404
    assert reset_emails == []


def test_reset_password_updates_hash_and_clears_token(client, db, user):
    user.reset_token = "a" * 64
    user.reset_token_expires_at = datetime.utcnow() + timedelta(minutes=10)
    db.commit()

    response = client.post("/api/auth/reset", json={"token": "a" * 64, "password": "brand-new-pass"})

    assert response.json() == {"ok": True, "message": "Password updated"}
    db.refresh(user)
    assert user.reset_token is None
    assert verify_password("brand-new-pass", user.password_hash)


def test_reset_password_with_expired_token_is_400(client, db, user):
    user.reset_token = "b" * 64
    user.reset_token_expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.commit()

    response = client.post("/api/auth/reset", json={"token": "b" * 64, "password": "brand-new-pass"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or expired token"


# ============================================================================
# PROFILE
# ============================================================================


def test_profile_update(client, auth_headers):
    response = client.patch("/api/profile", json={"name": "<b>Janet</b>", "phone": "(305) 555-0100"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Janet"
    assert response.json()["user"]["phone"] == "3055550100"


def test_profile_requires_sign_in(client):
    assert client.patch("/api/profile", json={"name": "Janet"}).status_code == 401
