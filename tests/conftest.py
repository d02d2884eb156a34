import hashlib
import hmac
import itertools
import json
import os
import tempfile
import time
from datetime import timedelta

# Must be set before dropstore.config is imported.
_IMPORT_DIR = tempfile.mkdtemp(prefix="dropstore-")
os.environ["DATABASE_URL"] = f"sqlite:///{_IMPORT_DIR}/import.sqlite"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["ADMIN_PASSWORD"] = ""

import pytest
from fastapi.testclient import TestClient

from dropstore import crud
from dropstore.emailer import BrevoMailer
from dropstore.helpers import utcnow
from dropstore.main import create_app
from dropstore.payments import StripeGateway

WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_EMAIL = "admin@freak.local"
ADMIN_PASSWORD = "FreakAdmin123!"
DROP_KEY = "Freak-Drop-01"


class FakeGateway(StripeGateway):
    """Records checkout sessions instead of calling Stripe; webhook parsing is real."""

    def __init__(self):
        super().__init__(secret_key="sk_test_fake", webhook_secret=WEBHOOK_SECRET)
        self.sessions = []
        self._ids = itertools.count(1)

    def create_checkout_session(self, **kwargs):
        call = dict(kwargs)
        call["id"] = f"cs_test_{next(self._ids)}"
        call["metadata"] = self.build_metadata(kwargs["lines"], kwargs["drop_id"], kwargs["reservation_id"])
        self.sessions.append(call)
        return {"id": call["id"], "url": "https://checkout.stripe.test/pay"}


class FakeMailer(BrevoMailer):
    def __init__(self):
        super().__init__(api_key="brevo-test-key")
        self.sent = []

    def send_newsletter(self, *, recipients, subject, html_content):
        self.sent.append({"recipients": list(recipients), "subject": subject, "html_content": html_content})
        return "<msg-1@brevo>"


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path}/test.sqlite"


@pytest.fixture
def app(database_url):
    app = create_app(database_url)
    app.state.payments = FakeGateway()
    app.state.mailer = FakeMailer()
    yield app
    app.state.engine.dispose()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def db(app):
    session = app.state.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin_headers(client, db):
    crud.ensure_admin_user(db, ADMIN_EMAIL, ADMIN_PASSWORD)
    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def make_product(db):
    def _make(title="FREAK Classic Tee", variants=None, images=None, category="t-shirt"):
        if variants is None:
            variants = [{"size": "M", "price": 4500, "stock_total": 5}]
        return crud.create_product(
            db,
            {
                "title": title,
                "description": "Premium cotton",
                "images": images if images is not None else ["/images/tee-black.jpg"],
                "category": category,
                "variants": variants,
            },
        )

    return _make


@pytest.fixture
def make_drop(db):
    def _make(title="Drop 01", start=None, end=None, key=DROP_KEY, **extra):
        start = start if start is not None else utcnow() - timedelta(hours=1)
        end = end if end is not None else start + timedelta(days=7)
        drop = crud.create_drop(
            db,
            {"title": title, "description": "Limited", "start_at": start, "end_at": end, "key": key},
        )
        if extra:
            drop = crud.update_drop(db, drop.id, extra)
        return drop

    return _make


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def completed_event(session_id, items, drop_id=None, email="buyer@example.com", amount_total=None, **obj):
    data_object = {
        "id": session_id,
        "object": "checkout.session",
        "customer_email": email,
        "amount_total": amount_total,
        "payment_status": "paid",
        "metadata": {
            "items": json.dumps(items),
            "dropId": str(drop_id) if drop_id else "",
        },
    }
    data_object.update(obj)
    return {
        "id": f"evt_{session_id}",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {"object": data_object},
    }


def session_event(call, event_type="checkout.session.completed", **obj):
    """Webhook event for a session recorded by FakeGateway."""
    data_object = {
        "id": call["id"],
        "object": "checkout.session",
        "customer_email": call["email"],
        "amount_total": sum(line.price * line.quantity for line in call["lines"]),
        "payment_status": "paid",
        "metadata": dict(call["metadata"]),
    }
    data_object.update(obj)
    return {"id": f"evt_{call['id']}_{event_type}", "object": "event", "type": event_type, "data": {"object": data_object}}


def start_checkout(client, items, drop_id=None, email="buyer@example.com"):
    body = {"items": [{"variantId": vid, "quantity": qty} for vid, qty in items], "email": email}
    if drop_id:
        body["dropId"] = drop_id
    return client.post("/api/checkout", json=body)


def post_webhook(client, event, secret=WEBHOOK_SECRET):
    payload = json.dumps(event).encode()
    return client.post(
        "/webhook",
        content=payload,
        headers={"stripe-signature": sign_payload(payload, secret), "content-type": "application/json"},
    )
