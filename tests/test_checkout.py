import pytest

from treeofhope.models import AnalyticsEvent, Leaf


@pytest.fixture()
def demo_prices(app, monkeypatch):
    monkeypatch.setitem(app.config, "STRIPE_PRICE_SUSTAIN", "price_placeholder_sustain")


# ----------------------------
# /billing/config
# ----------------------------
def test_billing_config_lists_tiers(client):
    body = client.get("/billing/config").get_json()
    assert body["enabled"] is True
    assert [t["key"] for t in body["monthly_tiers"]] == ["nurture", "sustain", "flourish"]
    assert [t["amount_cents"] for t in body["joining_gifts"]] == [999, 2499, 9900]


def test_billing_config_reports_demo_mode(client, demo_prices):
    assert client.get("/billing/config").get_json()["enabled"] is False


# ----------------------------
# /billing/checkout-session
# ----------------------------
def test_checkout_session_carries_metadata(client, campaign, stripe_stub):
    resp = client.post(
        "/billing/checkout-session",
        json={
            "campaign_id": "sarah",
            "monthly_tier": "sustain",
            "joining_gift_tier": "mightyoak",
            "email": "Friend@Example.com",
        },
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body == {
        "session_id": "cs_test_1",
        "url": "https://checkout.stripe.test/pay/cs_test_1",
        "ok": True,
    }

    params = stripe_stub.sessions[0]
    assert params["mode"] == "subscription"
    assert params["line_items"] == [
        {"price": "price_sustain_test", "quantity": 1},
        {"price": "price_mighty_oak_test", "quantity": 1},
    ]
    assert params["metadata"] == {
        "campaign_id": campaign.id,
        "user_id": "friend@example.com",
        "monthly_tier": "sustain",
        "joining_gift_tier": "mighty_oak",
    }
    assert params["subscription_data"]["metadata"] == params["metadata"]
    assert params["customer_email"] == "friend@example.com"
    assert params["success_url"] == (
        f"https://treeofhope.test/c/{campaign.id}/thank-you?session_id={{CHECKOUT_SESSION_ID}}"
    )
    assert params["cancel_url"] == f"https://treeofhope.test/c/{campaign.id}/commitment"
    assert AnalyticsEvent.query.filter_by(event_name="checkout_started").count() == 1


def test_checkout_session_uses_signed_in_user(client, campaign, stripe_stub, auth_headers):
    resp = client.post(
        "/billing/checkout-session",
        json={"campaign_id": campaign.id, "monthly_tier": "nurture", "user_id": "someone-else"},
        headers=auth_headers(sub="user-42", email="me@example.com"),
    )
    assert resp.status_code == 200
    params = stripe_stub.sessions[0]
    assert params["metadata"]["user_id"] == "user-42"
    assert params["customer_email"] == "me@example.com"
    assert params["line_items"] == [{"price": "price_nurture_test", "quantity": 1}]


@pytest.mark.parametrize(
    "payload",
    [
        {"campaign_id": "sarah", "monthly_tier": "gold", "email": "a@b.co"},
        {"campaign_id": "sarah", "monthly_tier": "sustain", "joining_gift_tier": "redwood", "email": "a@b.co"},
        {"monthly_tier": "sustain", "email": "a@b.co"},
        {"campaign_id": "sarah", "monthly_tier": "sustain"},
    ],
)
def test_checkout_session_rejects_bad_input(client, campaign, stripe_stub, payload):
    resp = client.post("/billing/checkout-session", json=payload)
    assert resp.status_code == 400
    assert stripe_stub.sessions == []


def test_checkout_session_unknown_campaign(client, stripe_stub):
    resp = client.post("/billing/checkout-session", json={"campaign_id": "nobody", "monthly_tier": "sustain", "email": "a@b.co"})
    assert resp.status_code == 404
    assert stripe_stub.sessions == []


def test_checkout_session_in_demo_mode(client, campaign, stripe_stub, demo_prices):
    resp = client.post("/billing/checkout-session", json={"campaign_id": "sarah", "monthly_tier": "sustain", "email": "a@b.co"})
    assert resp.status_code == 503
    body = resp.get_json()
    assert body["ok"] is False
    assert body["demo"] is True
    assert "hello@treeofhope.com" in body["message"]
    assert stripe_stub.sessions == []


def test_checkout_session_stripe_failure(client, campaign, stripe_stub):
    stripe_stub.fail_create = True
    resp = client.post("/billing/checkout-session", json={"campaign_id": "sarah", "monthly_tier": "sustain", "email": "a@b.co"})
    assert resp.status_code == 500
    assert resp.get_json()["message"] == "Failed to create checkout session"
    failed = AnalyticsEvent.query.filter_by(event_name="checkout_started").one()
    assert failed.properties["success"] is False


# ----------------------------
# /api/bridge/activate
# ----------------------------
def _activate_payload(campaign, **overrides):
    payload = {
        "campaign_id": campaign.id,
        "author_name": "Jo",
        "message": "We're all rooting for you",
        "email": "Jo@Example.com",
        "monthly_tier": "nurture",
        "joining_gift_tier": "seedling",
    }
    payload.update(overrides)
    return payload


def test_activate_leaves_leaf_and_starts_checkout(client, campaign, stripe_stub):
    resp = client.post("/api/bridge/activate", json=_activate_payload(campaign))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["checkout_url"] == "https://checkout.stripe.test/pay/cs_test_1"
    assert body["session_id"] == "cs_test_1"

    leaf = Leaf.query.one()
    assert body["leaf_id"] == leaf.id
    assert leaf.author_name == "Jo"
    assert (leaf.position_x, leaf.position_y) == (500, 300)

    metadata = stripe_stub.sessions[0]["metadata"]
    assert metadata["leaf_id"] == leaf.id
    assert metadata["source"] == "bridge"
    assert metadata["user_id"] == "jo@example.com"
    assert metadata["joining_gift_tier"] == "seedling"
    assert AnalyticsEvent.query.filter_by(event_name="bridge_activated").count() == 1


def test_activate_by_signed_in_supporter(client, campaign, stripe_stub, auth_headers):
    resp = client.post("/api/bridge/activate", json=_activate_payload(campaign), headers=auth_headers(sub="user-7"))
    assert resp.status_code == 200
    assert stripe_stub.sessions[0]["metadata"]["user_id"] == "user-7"


@pytest.mark.parametrize(
    "overrides",
    [{"author_name": ""}, {"email": ""}, {"email": "not-an-email"}, {"message": " "}, {"monthly_tier": "gold"}, {"joining_gift_tier": "redwood"}],
)
def test_activate_validates_before_writing(client, campaign, stripe_stub, overrides):
    resp = client.post("/api/bridge/activate", json=_activate_payload(campaign, **overrides))
    assert resp.status_code == 400
    assert Leaf.query.count() == 0
    assert stripe_stub.sessions == []


def test_activate_leaf_stands_when_checkout_fails(client, campaign, stripe_stub):
    stripe_stub.fail_create = True
    resp = client.post("/api/bridge/activate", json=_activate_payload(campaign))
    assert resp.status_code == 500
    leaf = Leaf.query.one()
    assert resp.get_json()["leaf_id"] == leaf.id


def test_activate_in_demo_mode_keeps_leaf(client, campaign, stripe_stub, demo_prices):
    resp = client.post("/api/bridge/activate", json=_activate_payload(campaign, monthly_tier="sustain"))
    assert resp.status_code == 503
    body = resp.get_json()
    assert body["demo"] is True
    assert body["leaf_id"] == Leaf.query.one().id
