import json
import os

# Settings are read at import time, so the environment is pinned before the app loads
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["SANITY_PROJECT_ID"] = ""
os.environ["NEXT_PUBLIC_SANITY_PROJECT_ID"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["MAILCHIMP_API_KEY"] = ""
os.environ["MAILCHIMP_SYNC_BASIC_AUTH"] = ""
os.environ["REDIS_URL"] = ""
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from calltechcare.database import Base, SessionLocal, engine  # noqa: E402
from calltechcare.domain.checkout.stripe_service import get_stripe_service  # noqa: E402
from calltechcare.main import app  # noqa: E402
from calltechcare.models import User  # noqa: E402
from calltechcare.rate_limiter import reset_rate_limits  # noqa: E402
from calltechcare.security_utils import create_session_token, hash_password  # noqa: E402
from calltechcare.services import mailchimp_service  # noqa: E402
from calltechcare.services.mailchimp_service import get_mailchimp_service  # noqa: E402
from calltechcare.services.sanity_client import get_sanity_client  # noqa: E402
from calltechcare.webhook_security import create_stripe_signature  # noqa: E402

WEBHOOK_SECRET = "whsec_test"


class FakeStripe:
    """Records calls instead of talking to Stripe"""

    def __init__(self):
        self.available = True
        self.sessions = []
        self.refunds = []
        self.prices = []
        self.deactivated = []
        self.created_prices = []
        self.customer_id = None
        self.customer_email = None
        self.payment_intent = "pi_test_1"

    def is_available(self):
        return self.available

    async def create_checkout_session(self, **kwargs):
        self.sessions.append(kwargs)
        session_id = f"cs_test_{len(self.sessions)}"
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}

    async def retrieve_checkout_session(self, session_id):
        return {"id": session_id, "payment_intent": self.payment_intent, "customer": self.customer_id, "mode": "payment"}

    async def create_refund(self, payment_intent):
        self.refunds.append(payment_intent)
        return {"id": "re_test_1", "status": "succeeded"}

    async def list_prices(self, product_id, active_only=False, limit=100):
        return list(self.prices)

    async def deactivate_price(self, price_id):
        self.deactivated.append(price_id)

    async def create_recurring_price(self, product_id, unit_amount, interval, make_default=False):
        price_id = f"price_new_{len(self.created_prices) + 1}"
        self.created_prices.append(
            {"id": price_id, "product": product_id, "unit_amount": unit_amount, "interval": interval, "default": make_default}
        )
        return price_id

    async def find_customer_id_by_email(self, email):
        return self.customer_id

    async def get_customer_email(self, customer_id):
        return self.customer_email

    async def create_billing_portal_session(self, customer_id, return_url):
        return f"https://billing.stripe.test/{customer_id}"


class FakeSanity:
    """GROQ results keyed by query text; mutations are recorded"""

    def __init__(self):
        self.configured = True
        self.writable = True
        self.results = {}
        self.queries = []
        self.created = []
        self.patches = []
        self.increments = []
        self.uploads = []

    def is_configured(self):
        return self.configured

    def can_write(self):
        return self.writable

    async def fetch(self, query, params=None):
        self.queries.append((query, params or {}))
        result = self.results.get(query)
        return result(params or {}) if callable(result) else result

    async def create(self, document):
        self.created.append(document)
        return {"_id": f"doc-{len(self.created)}", **document}

    async def patch_set(self, document_id, fields):
        self.patches.append((document_id, fields))
        return {}

    async def patch_inc(self, document_id, fields):
        self.increments.append((document_id, fields))
        return {}

    async def upload_asset(self, content, filename, content_type, kind="images"):
        self.uploads.append((filename, content_type, kind, len(content)))
        return {"_id": f"file-{len(self.uploads)}"}


class FakeMailchimp:
    def __init__(self):
        self.synced = []
        self.error = None

    def is_configured(self):
        return True

    async def sync_customer(self, customer):
        if self.error:
            raise self.error
        self.synced.append(customer)
        return "hash-" + customer.email.lower()


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    reset_rate_limits()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_stripe():
    return FakeStripe()


@pytest.fixture
def fake_sanity():
    return FakeSanity()


@pytest.fixture
def fake_mailchimp():
    return FakeMailchimp()


@pytest.fixture
def client(fake_stripe, fake_sanity, fake_mailchimp):
    app.dependency_overrides[get_stripe_service] = lambda: fake_stripe
    app.dependency_overrides[get_sanity_client] = lambda: fake_sanity
    app.dependency_overrides[get_mailchimp_service] = lambda: fake_mailchimp
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def configured_mailchimp(monkeypatch, fake_mailchimp):
    """Route the best-effort audience sync used by sign-up flows to the fake"""
    monkeypatch.setattr(mailchimp_service, "_mailchimp_service", fake_mailchimp)
    return fake_mailchimp


@pytest.fixture
def make_user(db):
    def _make_user(email="jane@example.com", password="s3cure-pass", name="Jane Doe", **fields):
        user = User(name=name, email=email, password_hash=hash_password(password), **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_session_token(user.id, user.email)}"}


@pytest.fixture
def send_webhook(client):
    """POST an event to the webhook signed with the test secret"""

    def _send(event, secret=WEBHOOK_SECRET, signature=None):
        payload = json.dumps(event).encode("utf-8")
        header = signature if signature is not None else create_stripe_signature(secret, payload)
        return client.post(
            "/api/webhook",
            content=payload,
            headers={"Stripe-Signature": header, "Content-Type": "application/json"},
        )

    return _send
