from treeofhope.extensions import db
from treeofhope.models import BridgeCampaign, Campaign, Membership


# ----------------------------
# Sanctuary claim
# ----------------------------
def test_sanctuary_claim_requires_bearer(client, campaign):
    resp = client.post("/api/sanctuary/sarah/claim", json={"user_id": "user-1"})
    assert resp.status_code == 401
    db.session.refresh(campaign)
    assert campaign.sanctuary_claimed is False


def test_sanctuary_claim_rejects_mismatched_user(client, campaign, auth_headers):
    resp = client.post("/api/sanctuary/sarah/claim", json={"user_id": "someone-else"}, headers=auth_headers(sub="user-1"))
    assert resp.status_code == 401
    db.session.refresh(campaign)
    assert campaign.sanctuary_claimed is False
    assert campaign.sanctuary_claimed_by is None
    assert Membership.query.count() == 0


def test_sanctuary_claim_rejects_bad_token(client, campaign):
    resp = client.post("/api/sanctuary/sarah/claim", json={}, headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_claims_require_user_id(client, campaign, prebuilt_bridge, auth_headers):
    headers = auth_headers(sub="user-1")
    resp = client.post("/api/sanctuary/sarah/claim", json={}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "User ID is required"
    db.session.refresh(campaign)
    assert campaign.sanctuary_claimed is False
    assert Membership.query.count() == 0

    resp = client.post("/api/bridge/claim", json={"bridge_id": prebuilt_bridge.id}, headers=headers)
    assert resp.status_code == 400
    assert db.session.get(BridgeCampaign, prebuilt_bridge.id).status == "pre_built"


def test_sanctuary_claim_marks_campaign_and_bridge(client, prebuilt_bridge, auth_headers):
    slug = prebuilt_bridge.slug
    resp = client.post(f"/api/sanctuary/{slug}/claim", json={"user_id": "patient-1"}, headers=auth_headers(sub="patient-1"))
    assert resp.status_code == 200
    body = resp.get_json()["campaign"]
    assert body["sanctuary_claimed"] is True
    assert body["sanctuary_claimed_by"] == "patient-1"
    assert body["sanctuary_start_date"] is not None

    assert Membership.query.filter_by(user_id="patient-1", role="patient").count() == 1
    record = db.session.get(BridgeCampaign, prebuilt_bridge.id)
    assert record.status == "claimed"
    assert record.claimed_by == "patient-1"


def test_sanctuary_claim_is_idempotent_for_same_user(client, campaign, auth_headers):
    headers = auth_headers(sub="patient-1")
    first = client.post("/api/sanctuary/sarah/claim", json={"user_id": "patient-1"}, headers=headers).get_json()["campaign"]
    second = client.post("/api/sanctuary/sarah/claim", json={"user_id": "patient-1"}, headers=headers)
    assert second.status_code == 200
    assert second.get_json()["campaign"]["sanctuary_start_date"] == first["sanctuary_start_date"]
    assert Membership.query.filter_by(user_id="patient-1", role="patient").count() == 1


def test_sanctuary_claimed_by_someone_else(client, campaign, auth_headers):
    client.post("/api/sanctuary/sarah/claim", json={"user_id": "patient-1"}, headers=auth_headers(sub="patient-1"))
    resp = client.post("/api/sanctuary/sarah/claim", json={"user_id": "intruder"}, headers=auth_headers(sub="intruder"))
    assert resp.status_code == 401
    assert db.session.get(Campaign, campaign.id).sanctuary_claimed_by == "patient-1"


def test_sanctuary_claim_unknown_campaign(client, auth_headers):
    assert client.post("/api/sanctuary/nobody/claim", json={"user_id": "user-1"}, headers=auth_headers()).status_code == 404


# ----------------------------
# Organiser claim
# ----------------------------
def test_bridge_claim_requires_pre_built_record(client, scouted_bridge, auth_headers):
    resp = client.post("/api/bridge/claim", json={"bridge_id": scouted_bridge.id, "user_id": "organiser-1"}, headers=auth_headers(sub="organiser-1"))
    assert resp.status_code == 400
    assert db.session.get(BridgeCampaign, scouted_bridge.id).status == "scouted"


def test_bridge_claim_creates_caregiver_membership(client, prebuilt_bridge, auth_headers):
    headers = auth_headers(sub="organiser-1")
    resp = client.post("/api/bridge/claim", json={"bridge_id": prebuilt_bridge.id, "user_id": "organiser-1"}, headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()["bridge"]
    assert body["status"] == "claimed"
    assert body["claimed_by"] == "organiser-1"

    membership = Membership.query.one()
    assert (membership.campaign_id, membership.user_id, membership.role) == (
        prebuilt_bridge.campaign_id,
        "organiser-1",
        "caregiver",
    )

    again = client.post("/api/bridge/claim", json={"bridge_id": prebuilt_bridge.id, "user_id": "organiser-1"}, headers=headers)
    assert again.status_code == 200
    assert Membership.query.count() == 1

    other = client.post("/api/bridge/claim", json={"bridge_id": prebuilt_bridge.id, "user_id": "organiser-2"}, headers=auth_headers(sub="organiser-2"))
    assert other.status_code == 401


def test_bridge_claim_auth_checks(client, prebuilt_bridge, auth_headers):
    assert client.post("/api/bridge/claim", json={"bridge_id": prebuilt_bridge.id}).status_code == 401
    mismatch = client.post(
        "/api/bridge/claim",
        json={"bridge_id": prebuilt_bridge.id, "user_id": "someone-else"},
        headers=auth_headers(sub="organiser-1"),
    )
    assert mismatch.status_code == 401
    assert db.session.get(BridgeCampaign, prebuilt_bridge.id).status == "pre_built"

    assert client.post("/api/bridge/claim", json={"user_id": "user-1"}, headers=auth_headers()).status_code == 400
    assert client.post("/api/bridge/claim", json={"bridge_id": "nope", "user_id": "user-1"}, headers=auth_headers()).status_code == 404
