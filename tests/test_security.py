import time

from calltechcare import rate_limiter
from calltechcare.rate_limiter import check_rate_limit
from calltechcare.security_utils import (
    constant_time_equals,
    create_auth_cookie_token,
    hash_password,
    sanitize_text,
    verify_auth_cookie_token,
    verify_password,
)
from calltechcare.webhook_security import (
    create_stripe_signature,
    parse_stripe_signature_header,
    verify_stripe_signature,
)

SECRET = "whsec_unit"
PAYLOAD = b'{"type": "checkout.session.completed"}'


# ============================================================================
# RATE LIMITING
# ============================================================================


def test_fixed_window_allows_limit_then_blocks():
    results = [check_rate_limit("unit:1.2.3.4", limit=3, window_seconds=60)[0] for _ in range(4)]
    assert results == [True, True, True, False]


def test_counters_are_per_key():
    for _ in range(3):
        check_rate_limit("unit:a", limit=3, window_seconds=60)
    assert check_rate_limit("unit:b", limit=3, window_seconds=60)[0] is True


def test_window_resets(monkeypatch):
    now = [1_000_000]
    monkeypatch.setattr(rate_limiter.time, "time", lambda: now[0])

    assert check_rate_limit("unit:w", limit=1, window_seconds=10)[0] is True
    assert check_rate_limit("unit:w", limit=1, window_seconds=10)[0] is False
    now[0] += 11
    assert check_rate_limit("unit:w", limit=1, window_seconds=10)[0] is True


def test_rate_limited_endpoint_sends_retry_after(client):
    for _ in range(10):
        client.post("/api/contact", json={})
    response = client.post("/api/contact", json={})

    assert response.status_code == 429
    assert int(response.headers["retry-after"]) > 0


# ============================================================================
# WEBHOOK SIGNATURES
# ============================================================================


def test_signature_round_trip():
    header = create_stripe_signature(SECRET, PAYLOAD)
    assert verify_stripe_signature(PAYLOAD, header, SECRET)


def test_signature_rejects_tampered_payload_and_wrong_secret():
    header = create_stripe_signature(SECRET, PAYLOAD)
    assert not verify_stripe_signature(PAYLOAD + b" ", header, SECRET)
    assert not verify_stripe_signature(PAYLOAD, header, "whsec_other")


def test_signature_rejects_old_timestamp():
    header = create_stripe_signature(SECRET, PAYLOAD, timestamp=int(time.time()) - 301)
    assert not verify_stripe_signature(PAYLOAD, header, SECRET)


def test_signature_accepts_any_matching_v1():
    valid = create_stripe_signature(SECRET, PAYLOAD)
    timestamp, signatures = parse_stripe_signature_header(valid)
    header = f"t={timestamp},v1=deadbeef,v1={signatures[0]},v0=ignored"
    assert verify_stripe_signature(PAYLOAD, header, SECRET)


def test_malformed_signature_headers():
    assert not verify_stripe_signature(PAYLOAD, "garbage", SECRET)
    assert not verify_stripe_signature(PAYLOAD, "t=abc,v1=00", SECRET)
    assert not verify_stripe_signature(PAYLOAD, "", SECRET)


# ============================================================================
# CREDENTIALS & SANITIZING
# ============================================================================


def test_password_hashing():
    hashed = hash_password("s3cure-pass")
    assert hashed != "s3cure-pass"
    assert verify_password("s3cure-pass", hashed)
    assert not verify_password("wrong-pass", hashed)


def test_auth_cookie_token():
    token = create_auth_cookie_token(7, "jane@example.com")
    assert verify_auth_cookie_token(token, max_age=60)["uid"] == 7
    assert verify_auth_cookie_token(token + "x", max_age=60) is None


def test_constant_time_equals():
    assert constant_time_equals("user:pass", "user:pass")
    assert not constant_time_equals("user:pass", "user:past")
    assert not constant_time_equals("", "")


def test_sanitize_text_strips_markup_and_truncates():
    assert sanitize_text("<img src=x onerror=alert(1)>Hi <b>there</b>") == "Hi there"
    assert sanitize_text("abcdef", max_length=3) == "abc"
    assert sanitize_text(None) == ""
