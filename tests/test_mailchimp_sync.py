import base64
import hashlib

import pytest

from calltechcare import config
from calltechcare.services.mailchimp_service import MailchimpError, build_address_merge_field, get_subscriber_hash


def basic(credentials):
    return {"Authorization": "Basic " + base64.b64encode(credentials.encode()).decode()}


@pytest.fixture
def sync_secret(monkeypatch):
    monkeypatch.setattr(config, "MAILCHIMP_SYNC_BASIC_AUTH", "zapier:hunter2")
    return "zapier:hunter2"


def test_disabled_without_secret(client):
    response = client.post("/api/mailchimp/sync", json={"email": "a@example.com"}, headers=basic("zapier:hunter2"))

    assert response.status_code == 403
    assert response.json()["ok"] is False


@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": "Bearer zapier:hunter2"}, {"Authorization": "Basic !!!"}, basic("zapier:wrong")],
)
def test_rejects_bad_credentials(client, sync_secret, headers):
    response = client.post("/api/mailchimp/sync", json={"email": "a@example.com"}, headers=headers)

    assert response.status_code == 401
    assert response.json() == {"ok": False, "error": "Unauthorized"}


def test_rejects_invalid_payload(client, sync_secret):
    response = client.post("/api/mailchimp/sync", json={"email": "not-an-email"}, headers=basic(sync_secret))

    assert response.status_code == 400
    assert response.json()["details"] == ["email is required and must be a valid email address"]

    response = client.post("/api/mailchimp/sync", json=["a@example.com"], headers=basic(sync_secret))
    assert response.json()["details"] == ["Body must be a JSON object"]


def test_syncs_customer(client, sync_secret, fake_mailchimp):
    response = client.post(
        "/api/mailchimp/sync",
        json={"email": "Ann@Example.com", "firstName": "Ann", "serviceType": "tv-mounting"},
        headers=basic(sync_secret),
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "subscriberHash": "hash-ann@example.com"}
    customer = fake_mailchimp.synced[0]
    assert customer.first_name == "Ann"
    assert customer.service_type == "tv-mounting"
    assert customer.last_name is None


def test_upstream_failure_is_500(client, sync_secret, fake_mailchimp):
    fake_mailchimp.error = MailchimpError("Mailchimp sync failed (HTTP 400): Member Exists")

    response = client.post("/api/mailchimp/sync", json={"email": "a@example.com"}, headers=basic(sync_secret))

    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "Mailchimp sync failed (HTTP 400): Member Exists"}


def test_get_is_method_not_allowed(client):
    response = client.get("/api/mailchimp/sync")

    assert response.status_code == 405
    assert response.headers["allow"] == "POST"


def test_subscriber_hash_is_md5_of_lowercased_email():
    expected = hashlib.md5(b"ann@example.com").hexdigest()
    assert get_subscriber_hash(" Ann@Example.com ") == expected


def test_sync_passes_address(client, sync_secret, fake_mailchimp):
    address = {"addr1": "1 Ocean Dr", "city": "Miami", "zip": "33139"}

    response = client.post(
        "/api/mailchimp/sync", json={"email": "ann@example.com", "address": address}, headers=basic(sync_secret)
    )

    assert response.status_code == 200
    assert fake_mailchimp.synced[0].address == address


def test_sync_rejects_non_object_address(client, sync_secret):
    response = client.post(
        "/api/mailchimp/sync", json={"email": "ann@example.com", "address": "1 Ocean Dr"}, headers=basic(sync_secret)
    )

    assert response.status_code == 400
    assert response.json()["details"] == ["address must be an object"]


def test_address_merge_field_defaults_and_blanks():
    merged = build_address_merge_field({"addr1": " 1 Ocean Dr ", "city": "Miami", "zip": 33139})

    assert merged == {"addr1": "1 Ocean Dr", "city": "Miami", "state": "FL", "zip": "33139", "country": "US"}
    assert build_address_merge_field({"state": "NY"}) is None
    assert build_address_merge_field(None) is None
