import json
import time

import pytest

from calltechcare.domain.checkout import service as checkout_service
from calltechcare.domain.checkout.service import ALL_PLANS_QUERY, PLAN_QUERY, parse_metadata_json
from calltechcare.models import Cart, Notification, Order
from calltechcare.webhook_security import create_stripe_signature


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    async def fake_send(to, title, base_price, add_ons, total):
        sent.append({"to": to, "title": title, "base_price": base_price, "add_ons": add_ons, "total": total})
        return {"id": "email-1"}

    monkeypatch.setattr(checkout_service, "send_order_confirmation_email", fake_send)
    return sent


def fill_cart(client):
    client.post(
        "/api/cart",
        json={"slug": "tv-mounting", "title": "TV Mounting", "price": 99, "options": [{"name": "Soundbar", "price": 30}]},
    )
    client.put("/api/cart", json={"contact": {"name": "Jane", "email": "jane@example.com"}})
    return client.cookies.get("sessionId")


def completed_event(session_id, cart_session_id, mode="payment", metadata=None, **fields):
    meta = {
        "items": json.dumps([{"slug": "tv-mounting", "title": "TV Mounting", "price": 99, "options": [], "quantity": 2}]),
        "sessionId": cart_session_id,
    }
    meta.update(metadata or {})
    session = {
        "id": session_id,
        "mode": mode,
        "amount_total": 19800,
        "customer": "cus_123",
        "customer_details": {"email": "jane@example.com"},
        "metadata": meta,
    }
    session.update(fields)
    return {"id": "evt_1", "type": "checkout.session.completed", "data": {"object": session}}


# ============================================================================
# CHECKOUT SESSIONS
# ============================================================================


def test_checkout_builds_payment_session_from_cart(client, fake_stripe):
    cart_session_id = fill_cart(client)

    response = client.post("/api/checkout")

    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.test/cs_test_1"}

    session = fake_stripe.sessions[0]
    assert session["mode"] == "payment"
    assert session["automatic_tax"] is True
    line_item = session["line_items"][0]
    assert line_item["price_data"]["unit_amount"] == 12900
    assert line_item["price_data"]["product_data"]["description"] == "Soundbar (+$30)"
    assert session["metadata"]["sessionId"] == cart_session_id
    assert json.loads(session["metadata"]["contact"])["email"] == "jane@example.com"
    assert json.loads(session["metadata"]["items"])[0]["slug"] == "tv-mounting"


def test_checkout_accepts_explicit_items(client, fake_stripe):
    response = client.post("/api/checkout", json={"items": [{"title": "Wi-Fi Setup", "price": 75.5, "quantity": 2}]})

    assert response.status_code == 200
    line_item = fake_stripe.sessions[0]["line_items"][0]
    assert line_item["price_data"]["unit_amount"] == 7550
    assert line_item["quantity"] == 2


def test_checkout_with_empty_cart_is_400(client):
    client.get("/api/cart")
    response = client.post("/api/checkout")
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid cart items"


def test_checkout_without_stripe_is_503(client, fake_stripe):
    fake_stripe.available = False
    fill_cart(client)
    assert client.post("/api/checkout").status_code == 503


def test_signed_in_checkout_carries_buyer(client, user, auth_headers, fake_stripe):
    fill_cart(client)

    client.post("/api/checkout", headers=auth_headers)

    session = fake_stripe.sessions[0]
    assert session["metadata"]["userId"] == str(user.id)
    assert session["customer_email"] == "jane@example.com"


def test_checkout_collapses_add_ons_to_fit_metadata(client, fake_stripe):
    options = [{"name": f"Add-on {n} " + "x" * 40, "price": 10} for n in range(4)]
    items = [{"slug": f"svc-{n}", "title": "T" * 60, "price": 50, "options": options} for n in range(3)]

    response = client.post("/api/checkout", json={"items": items})

    assert response.status_code == 200
    metadata_items = fake_stripe.sessions[0]["metadata"]["items"]
    assert len(metadata_items) <= 500
    snapshot = json.loads(metadata_items)
    assert snapshot[0]["options"] == [{"name": "Add-ons", "price": 40.0}]
    assert "title" not in snapshot[0]
    assert fake_stripe.sessions[0]["line_items"][0]["price_data"]["unit_amount"] == 9000


def test_checkout_too_large_for_metadata_is_400(client, fake_stripe):
    items = [
        {"slug": f"service-number-{n}", "title": "Service", "price": 50, "options": [{"name": "Extra", "price": 5}]}
        for n in range(12)
    ]

    response = client.post("/api/checkout", json={"items": items})

    assert response.status_code == 400
    assert response.json()["detail"] == "Too many items for a single checkout, please split the order"
    assert fake_stripe.sessions == []


def test_parse_metadata_json_defaults_on_bad_input():
    metadata = {"items": "not json", "contact": json.dumps(["wrong", "type"])}
    assert parse_metadata_json(metadata, "items", []) == []
    assert parse_metadata_json(metadata, "contact", {}) == {}
    assert parse_metadata_json(metadata, "schedule", {}) == {}


# ============================================================================
# WEBHOOK: checkout.session.completed
# ============================================================================


def test_completed_checkout_creates_paid_order_and_clears_cart(client, db, user, send_webhook, sent_emails):
    cart_session_id = fill_cart(client)

    response = send_webhook(completed_event("cs_live_1", cart_session_id, metadata={"contact": "{broken"}))

    assert response.status_code == 200
    assert response.json() == {"received": True}

    db.expire_all()
    order = db.query(Order).one()
    assert order.status == "paid"
    assert order.total == 198
    assert order.quantity == 2
    assert order.user_id == user.id
    assert order.contact is None
    assert order.is_subscription is False

    cart = db.query(Cart).filter(Cart.session_id == cart_session_id).one()
    assert cart.items == []

    notification = db.query(Notification).one()
    assert notification.type == "success"
    assert notification.message == "Your order has been placed successfully! Total: $198.00"

    db.refresh(user)
    assert user.stripe_customer_id == "cus_123"
    assert sent_emails[0]["to"] == "jane@example.com"


def test_completed_checkout_links_buyer_case_insensitively(client, db, user, auth_headers, send_webhook, sent_emails):
    event = completed_event("cs_mixed_case", "cart-y", customer_details={"email": "Jane@Example.com"})

    assert send_webhook(event).status_code == 200

    db.expire_all()
    order = db.query(Order).one()
    assert order.email == "jane@example.com"
    assert order.user_id == user.id

    orders = client.get("/api/orders", headers=auth_headers).json()["orders"]
    notifications = client.get("/api/notifications", headers=auth_headers).json()["notifications"]
    assert len(orders) == 1
    assert len(notifications) == 1
    assert sent_emails[0]["total"] == 198


def test_replayed_checkout_event_creates_one_order(client, db, user, send_webhook, sent_emails):
    cart_session_id = fill_cart(client)
    event = completed_event("cs_live_1", cart_session_id)

    assert send_webhook(event).status_code == 200
    assert send_webhook(event).status_code == 200

    db.expire_all()
    assert db.query(Order).count() == 1
    assert db.query(Notification).count() == 1
    assert len(sent_emails) == 1


def test_completed_subscription_keeps_cart(client, db, user, send_webhook, sent_emails):
    cart_session_id = fill_cart(client)
    event = completed_event(
        "cs_sub_1",
        cart_session_id,
        mode="subscription",
        subscription="sub_1",
        metadata={"userId": str(user.id), "planName": "Pro Care", "planPrice": "29.99", "planInterval": "month"},
    )

    assert send_webhook(event).status_code == 200

    db.expire_all()
    order = db.query(Order).one()
    assert order.is_subscription is True
    assert order.plan_name == "Pro Care"
    assert order.plan_price == 29.99
    assert order.stripe_subscription_id == "sub_1"

    cart = db.query(Cart).filter(Cart.session_id == cart_session_id).one()
    assert len(cart.items) == 1
    assert db.query(Notification).one().message == "Your Pro Care subscription is now active!"
    assert sent_emails == []


def test_subscription_deleted_cancels_orders(client, db, user, fake_stripe, send_webhook, sent_emails):
    send_webhook(
        completed_event("cs_sub_1", "cart-x", mode="subscription", metadata={"userId": str(user.id), "planName": "Pro"})
    )
    fake_stripe.customer_email = user.email

    response = send_webhook(
        {"id": "evt_2", "type": "customer.subscription.deleted", "data": {"object": {"id": "sub_1", "customer": "cus_123"}}}
    )

    assert response.status_code == 200
    db.expire_all()
    assert db.query(Order).one().status == "canceled"
    warning = db.query(Notification).filter(Notification.type == "warning").one()
    assert warning.message == "Your subscription has been canceled. We're sorry to see you go!"


def test_unhandled_event_is_acknowledged(send_webhook):
    response = send_webhook({"id": "evt_3", "type": "invoice.paid", "data": {"object": {}}})
    assert response.status_code == 200


def test_processing_error_is_400_with_message(send_webhook):
    response = send_webhook({"id": "evt_4", "type": "checkout.session.completed", "data": "broken"})

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Webhook error:")


def test_bad_signature_is_rejected(db, send_webhook):
    response = send_webhook(completed_event("cs_live_1", "cart-x"), secret="whsec_wrong")

    assert response.status_code == 400
    assert db.query(Order).count() == 0


def test_missing_signature_is_rejected(send_webhook):
    assert send_webhook(completed_event("cs_live_1", "cart-x"), signature="").status_code == 400


def test_stale_signature_is_rejected(send_webhook):
    event = completed_event("cs_live_1", "cart-x")
    payload = json.dumps(event).encode("utf-8")
    stale = create_stripe_signature("whsec_test", payload, timestamp=int(time.time()) - 3600)

    assert send_webhook(event, signature=stale).status_code == 400


# ============================================================================
# SUBSCRIPTIONS
# ============================================================================


def test_subscribe_replaces_stale_price_and_records_it(client, auth_headers, fake_stripe, fake_sanity):
    fake_sanity.results[PLAN_QUERY] = {
        "_id": "plan-pro",
        "title": "Pro Care",
        "price": 29.99,
        "duration": "Monthly",
        "stripeProductId": "prod_1",
    }
    fake_stripe.prices = [{"id": "price_old", "active": True, "unit_amount": 1999, "interval": "month"}]

    response = client.post("/api/subscribe", json={"planName": "Pro Care"}, headers=auth_headers)

    assert response.status_code == 200
    assert fake_stripe.deactivated == ["price_old"]
    assert fake_stripe.created_prices[0]["unit_amount"] == 2999
    assert fake_sanity.patches == [("plan-pro", {"lastSyncedPrice": 29.99})]

    session = fake_stripe.sessions[0]
    assert session["mode"] == "subscription"
    assert session["line_items"] == [{"price": "price_new_1", "quantity": 1}]
    assert session["metadata"]["planName"] == "Pro Care"
    assert session["metadata"]["planInterval"] == "month"


def test_subscribe_reuses_matching_price(client, auth_headers, fake_stripe, fake_sanity):
    fake_sanity.results[PLAN_QUERY] = {"_id": "p", "title": "Basic", "price": 19.99, "duration": "Monthly", "stripeProductId": "prod_1"}
    fake_stripe.prices = [{"id": "price_ok", "active": True, "unit_amount": 1999, "interval": "month"}]

    client.post("/api/subscribe", json={"planName": "Basic"}, headers=auth_headers)

    assert fake_stripe.created_prices == []
    assert fake_sanity.patches == []
    assert fake_stripe.sessions[0]["line_items"][0]["price"] == "price_ok"


def test_subscribe_requires_sign_in(client):
    assert client.post("/api/subscribe", json={"planName": "Pro Care"}).status_code == 401


def test_subscribe_unknown_plan_is_404(client, auth_headers):
    response = client.post("/api/subscribe", json={"planName": "Nope"}, headers=auth_headers)
    assert response.status_code == 404


def test_check_subscription(client, db, user, auth_headers, send_webhook):
    assert client.get("/api/check-subscription").json() == {"hasSubscription": False}
    assert client.get("/api/check-subscription", headers=auth_headers).json() == {"hasSubscription": False}

    send_webhook(completed_event("cs_sub_1", "cart-x", mode="subscription", metadata={"userId": str(user.id)}))

    assert client.get("/api/check-subscription", headers=auth_headers).json() == {"hasSubscription": True}


def test_manage_subscription_links_customer(client, db, user, auth_headers, fake_stripe):
    fake_stripe.customer_id = "cus_portal"

    response = client.post("/api/manage-subscription", headers=auth_headers)

    assert response.json() == {"url": "https://billing.stripe.test/cus_portal"}
    db.refresh(user)
    assert user.stripe_customer_id == "cus_portal"


def test_manage_subscription_without_customer_is_404(client, auth_headers):
    assert client.post("/api/manage-subscription", headers=auth_headers).status_code == 404


def test_sync_prices_creates_missing_prices(client, fake_stripe, fake_sanity):
    fake_sanity.results[ALL_PLANS_QUERY] = [
        {"_id": "p1", "title": "Pro Care", "price": 29.99, "annualPrice": 299, "stripeProductId": "prod_1"},
        {"_id": "p2", "title": "Draft", "price": 5},
    ]

    response = client.post("/api/sync-prices")

    assert response.status_code == 200
    assert response.json() == {
        "message": "Stripe prices synced successfully",
        "updated": ["Pro Care (month)", "Pro Care (year)"],
    }
    assert [p["interval"] for p in fake_stripe.created_prices] == ["month", "year"]


def test_sync_prices_noop(client, fake_sanity):
    fake_sanity.results[ALL_PLANS_QUERY] = []
    assert client.get("/api/sync-prices").json() == {"message": "No updates needed"}


def test_send_order_email_requires_address(client):
    assert client.post("/api/send-order-email", json={"serviceTitle": "TV Mounting"}).status_code == 400
