import pytest

from treeofhope.extensions import db
from treeofhope.models import AnalyticsEvent, BridgeCampaign, BridgeOutreach, Campaign, Leaf
from treeofhope.services import bridge as bridge_svc


# ----------------------------
# Scout
# ----------------------------
def test_scout_requires_source_url(client, admin_headers):
    resp = client.post("/admin/bridge/scout", json={"title": "No link"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Source URL is required"
    assert BridgeCampaign.query.count() == 0


def test_scout_accepts_intake_field_names_and_dollar_amounts(client, admin_headers):
    resp = client.post(
        "/admin/bridge/scout",
        json={
            "gofundme_url": "https://www.gofundme.com/f/help-ana",
            "gofundme_title": "Help Ana",
            "raised": "$12,400",
            "goal_cents": 2_500_000,
            "donor_count": "42",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201
    record = resp.get_json()["bridge"]
    assert record["status"] == "scouted"
    assert record["source_url"] == "https://www.gofundme.com/f/help-ana"
    assert record["title"] == "Help Ana"
    assert record["raised_cents"] == 1_240_000
    assert record["goal_cents"] == 2_500_000
    assert record["donor_count"] == 42
    assert record["campaign_id"] is None
    assert record["outreach_attempts"] == 0
    assert AnalyticsEvent.query.filter_by(event_name="bridge_scouted").count() == 1


@pytest.mark.parametrize("field,value", [("donor_count", -1), ("raised", "lots"), ("goal_cents", "abc")])
def test_scout_rejects_bad_numbers(client, admin_headers, field, value):
    payload = {"source_url": "https://www.gofundme.com/f/x", field: value}
    resp = client.post("/admin/bridge/scout", json=payload, headers=admin_headers)
    assert resp.status_code == 400
    assert BridgeCampaign.query.count() == 0


# ----------------------------
# Pre-build
# ----------------------------
def test_pre_build_requires_all_fields(client, admin_headers, scouted_bridge):
    resp = client.post(
        "/admin/bridge/pre-build",
        json={"bridge_id": scouted_bridge.id, "patient_name": "Sam", "campaign_title": "Help Sam"},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert Campaign.query.count() == 0


def test_pre_build_unknown_bridge_is_404(client, admin_headers):
    resp = client.post(
        "/admin/bridge/pre-build",
        json={"bridge_id": "no-such-bridge", "patient_name": "Sam", "campaign_title": "Help Sam", "story": "..."},
        headers=admin_headers,
    )
    assert resp.status_code == 404
    assert Campaign.query.count() == 0


def test_pre_build_creates_seeded_campaign(client, admin_headers, scouted_bridge):
    resp = client.post(
        "/admin/bridge/pre-build",
        json={
            "bridge_id": scouted_bridge.id,
            "patient_name": "Sam",
            "campaign_title": "Help Sam Beat Cancer!",
            "story": "Sam was diagnosed in March.",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201
    body = resp.get_json()
    campaign = body["campaign"]
    assert body["bridge_id"] == scouted_bridge.id
    assert campaign["slug"] == "help-sam-beat-cancer"
    assert campaign["status"] == "draft"
    assert campaign["leaf_count"] == 3
    assert campaign["story"] == "Sam was diagnosed in March."

    leaves = Leaf.query.filter_by(campaign_id=campaign["id"]).all()
    assert len(leaves) == 3
    assert {lf.author_name for lf in leaves} == {bridge_svc.SEED_AUTHOR}
    assert sorted((lf.position_x, lf.position_y) for lf in leaves) == sorted([(500, 300), (478, 320), (504, 258)])

    record = db.session.get(BridgeCampaign, scouted_bridge.id)
    assert record.status == "pre_built"
    assert record.campaign_id == campaign["id"]
    assert record.slug == "help-sam-beat-cancer"

    assert AnalyticsEvent.query.filter_by(event_name="bridge_pre_built").count() == 1


def test_pre_build_twice_is_rejected(client, admin_headers, prebuilt_bridge):
    resp = client.post(
        "/admin/bridge/pre-build",
        json={"bridge_id": prebuilt_bridge.id, "patient_name": "Sam", "title": "Another", "story": "again"},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert Campaign.query.count() == 1


def test_pre_build_slug_collision_is_an_insert_failure(client, admin_headers, campaign, scouted_bridge):
    resp = client.post(
        "/admin/bridge/pre-build",
        json={"bridge_id": scouted_bridge.id, "patient_name": "Sarah", "campaign_title": "Sarah", "story": "story"},
        headers=admin_headers,
    )
    assert resp.status_code == 500
    assert resp.get_json()["message"] == "Failed to create campaign"
    assert Campaign.query.count() == 1
    assert db.session.get(BridgeCampaign, scouted_bridge.id).status == "scouted"


def test_pre_build_title_without_slug_characters(app, scouted_bridge):
    from treeofhope.errors import ValidationError

    with pytest.raises(ValidationError):
        bridge_svc.pre_build(scouted_bridge.id, "Sam", "!!!", "story")
    assert Campaign.query.count() == 0


# ----------------------------
# Outreach / skip / patch
# ----------------------------
def test_outreach_is_logged_and_counted(client, admin_headers, scouted_bridge):
    resp = client.post(
        f"/admin/bridge/{scouted_bridge.id}/outreach",
        json={"channel": "Email", "message_summary": "Sent intro note", "response_status": "no_reply"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.get_json()["outreach"]["channel"] == "email"

    client.post(
        f"/admin/bridge/{scouted_bridge.id}/outreach",
        json={"channel": "phone", "message": "Left voicemail"},
        headers=admin_headers,
    )

    shown = client.get(f"/admin/bridge/{scouted_bridge.id}", headers=admin_headers).get_json()["bridge"]
    assert shown["outreach_attempts"] == 2
    assert len(shown["outreach"]) == 2
    assert AnalyticsEvent.query.filter_by(event_name="bridge_outreach_sent").count() == 2


def test_outreach_rejects_unknown_channel(client, admin_headers, scouted_bridge):
    resp = client.post(
        f"/admin/bridge/{scouted_bridge.id}/outreach",
        json={"channel": "carrier-pigeon", "message_summary": "coo"},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert BridgeOutreach.query.count() == 0
    assert db.session.get(BridgeCampaign, scouted_bridge.id).outreach_attempts == 0


def test_skip_leaves_record_scouted(client, admin_headers, scouted_bridge, prebuilt_bridge):
    other = bridge_svc.scout({"source_url": "https://www.gofundme.com/f/other"})
    resp = client.post(f"/admin/bridge/{other.id}/skip", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["bridge"]["status"] == "scouted"

    assert client.post(f"/admin/bridge/{prebuilt_bridge.id}/skip", headers=admin_headers).status_code == 400


def test_patch_status_is_forward_only(client, admin_headers, scouted_bridge):
    url = f"/admin/bridge/{scouted_bridge.id}"

    resp = client.patch(url, json={"status": "pre_built"}, headers=admin_headers)
    assert resp.status_code == 400
    assert "pre-build" in resp.get_json()["message"]

    bridge_svc.pre_build(scouted_bridge.id, "Sam", "Help Sam", "story")

    assert client.patch(url, json={"status": "scouted"}, headers=admin_headers).status_code == 400

    resp = client.patch(url, json={"status": "active", "gofundme_title": "Help Sam (updated)"}, headers=admin_headers)
    assert resp.status_code == 200
    body = resp.get_json()["bridge"]
    assert body["status"] == "active"
    assert body["title"] == "Help Sam (updated)"


def test_patch_requires_editable_fields(client, admin_headers, scouted_bridge):
    resp = client.patch(f"/admin/bridge/{scouted_bridge.id}", json={"outreach_attempts": 9}, headers=admin_headers)
    assert resp.status_code == 400


def test_list_filters_by_status(client, admin_headers, scouted_bridge):
    bridge_svc.scout({"source_url": "https://www.gofundme.com/f/two"})
    bridge_svc.pre_build(scouted_bridge.id, "Sam", "Help Sam", "story")

    all_rows = client.get("/admin/bridge", headers=admin_headers).get_json()["bridges"]
    assert len(all_rows) == 2

    scouted = client.get("/admin/bridge?status=scouted", headers=admin_headers).get_json()["bridges"]
    assert [b["source_url"] for b in scouted] == ["https://www.gofundme.com/f/two"]

    assert client.get("/admin/bridge?status=bogus", headers=admin_headers).status_code == 400


# ----------------------------
# Public landing
# ----------------------------
def test_landing_returns_campaign_bridge_and_leaves(client, prebuilt_bridge):
    resp = client.get(f"/api/bridge/{prebuilt_bridge.slug}")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["campaign"]["patient_name"] == "Sam"
    assert body["bridge"]["id"] == prebuilt_bridge.id
    assert body["bridge"]["organiser_name"] == "Jamie Lee"
    assert len(body["leaves"]) == 3


def test_landing_unknown_slug(client):
    assert client.get("/api/bridge/nobody-here").status_code == 404
