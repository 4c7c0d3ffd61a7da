from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any, Dict, List, Optional, Tuple

import jwt
import pytest
import stripe

from treeofhope import create_app
from treeofhope.config import TestingConfig
from treeofhope.extensions import db as _db

OPERATOR_EMAIL = "ops@treeofhope.test"


@pytest.fixture()
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


# ----------------------------
# Bearer tokens
# ----------------------------
@pytest.fixture()
def make_token(app):
    def _make(sub: str = "user-1", email: str = "supporter@example.com", **claims: Any) -> str:
        payload = {
            "sub": sub,
            "email": email,
            "aud": app.config["AUTH_JWT_AUDIENCE"],
            "exp": int(time.time()) + 3600,
        }
        payload.update(claims)
        return jwt.encode(payload, app.config["AUTH_JWT_SECRET"], algorithm="HS256")

    return _make


@pytest.fixture()
def auth_headers(make_token):
    def _headers(sub: str = "user-1", email: str = "supporter@example.com") -> Dict[str, str]:
        return {"Authorization": f"Bearer {make_token(sub=sub, email=email)}"}

    return _headers


@pytest.fixture()
def admin_headers(auth_headers):
    return auth_headers(sub="operator-1", email=OPERATOR_EMAIL)


# ----------------------------
# Stripe
# ----------------------------
@pytest.fixture()
def stripe_signature(app):
    """Build a real v1 Stripe-Signature header for a raw payload."""

    def _sign(payload: bytes, secret: Optional[str] = None, timestamp: Optional[int] = None) -> str:
        secret = secret or app.config["STRIPE_WEBHOOK_SECRET"]
        ts = int(timestamp or time.time())
        signed = f"{ts}.".encode("utf-8") + payload
        digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
        return f"t={ts},v1={digest}"

    return _sign


@pytest.fixture()
def send_event(client, stripe_signature):
    def _send(event: Dict[str, Any], signature: Optional[str] = None):
        payload = json.dumps(event).encode("utf-8")
        return client.post(
            "/billing/webhook",
            data=payload,
            headers={
                "Stripe-Signature": signature if signature is not None else stripe_signature(payload),
                "Content-Type": "application/json",
            },
        )

    return _send


class StripeStub:
    """Stands in for the outbound Stripe API calls the app makes."""

    def __init__(self) -> None:
        self.sessions: List[Dict[str, Any]] = []
        self.modified: List[Tuple[str, Dict[str, Any]]] = []
        self.line_items: Dict[str, int] = {}
        self.fail_create = False
        self.fail_modify = False

    def create_session(self, **params: Any) -> Dict[str, Any]:
        if self.fail_create:
            raise stripe.APIConnectionError("stripe unreachable")
        self.sessions.append(params)
        sid = f"cs_test_{len(self.sessions)}"
        return {"id": sid, "url": f"https://checkout.stripe.test/pay/{sid}"}

    def list_line_items(self, session_id: str, **params: Any) -> Dict[str, Any]:
        amount = self.line_items.get(session_id)
        if amount is None:
            raise stripe.APIConnectionError("stripe unreachable")
        return {
            "object": "list",
            "data": [
                {"price": {"type": "recurring", "unit_amount": amount}},
                {"price": {"type": "one_time", "unit_amount": 999}},
            ],
        }

    def modify_subscription(self, subscription_id: str, **params: Any) -> Dict[str, Any]:
        self.modified.append((subscription_id, params))
        if self.fail_modify:
            raise stripe.APIConnectionError("stripe unreachable")
        return {"id": subscription_id}


@pytest.fixture(autouse=True)
def stripe_stub(monkeypatch):
    stub = StripeStub()
    monkeypatch.setattr(stripe.checkout.Session, "create", staticmethod(stub.create_session))
    monkeypatch.setattr(stripe.checkout.Session, "list_line_items", staticmethod(stub.list_line_items))
    monkeypatch.setattr(stripe.Subscription, "modify", staticmethod(stub.modify_subscription))
    return stub


# ----------------------------
# Domain builders
# ----------------------------
@pytest.fixture()
def campaign(app):
    from treeofhope.services.campaigns import create_campaign

    return create_campaign(
        {
            "title": "Sarah's Tree",
            "slug": "sarah",
            "patient_name": "Sarah",
            "description": "Standing with Sarah.",
            "status": "active",
        }
    )


@pytest.fixture()
def scouted_bridge(app):
    from treeofhope.services import bridge

    return bridge.scout(
        {
            "source_url": "https://www.gofundme.com/f/help-sam-beat-cancer",
            "title": "Help Sam beat cancer",
            "organiser_name": "Jamie Lee",
            "raised_cents": 1_240_000,
            "goal_cents": 2_500_000,
            "donor_count": 87,
            "category": "Medical",
        }
    )


@pytest.fixture()
def prebuilt_bridge(scouted_bridge):
    from treeofhope.services import bridge

    bridge.pre_build(scouted_bridge.id, "Sam", "Help Sam Beat Cancer", "Sam was diagnosed in March.")
    return bridge.get_bridge(scouted_bridge.id)
