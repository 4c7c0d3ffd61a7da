# treeofhope/routes/api.py
"""
Public + supporter JSON API, mounted at /api.

  GET  /api/campaigns/<ref>              campaign by slug or id
  GET  /api/public/campaigns/<slug>      active campaign + public leaves
  GET  /api/campaigns/<ref>/leaves       public, visible leaves
  POST /api/campaigns/<ref>/leaves       leave a message (201)
  GET  /api/bridge/<slug>                Bridge landing page data
  POST /api/bridge/activate              leaf + subscription checkout
  POST /api/bridge/claim                 organiser claim          (bearer)
  POST /api/sanctuary/<ref>/claim        patient Sanctuary claim  (bearer)
  GET  /api/me                           principal profile        (bearer)
  GET  /api/me/commitments               own commitments          (bearer)
  POST /api/me/commitment/pause          hardship pause           (bearer)
"""

from __future__ import annotations

from flask import Blueprint, g

from treeofhope.routes import json_ok, request_payload
from treeofhope.security import current_principal, require_auth
from treeofhope.services import billing, bridge
from treeofhope.services.campaigns import add_leaf, list_public_leaves, resolve_campaign

bp = Blueprint("api", __name__)


# ----------------------------
# Campaigns + leaves
# ----------------------------
@bp.get("/campaigns/<ref>")
def get_campaign(ref: str):
    return json_ok({"campaign": resolve_campaign(ref).to_dict()})


@bp.get("/public/campaigns/<slug>")
def get_public_campaign(slug: str):
    campaign = resolve_campaign(slug, status="active")
    leaves = list_public_leaves(campaign)
    return json_ok({"campaign": campaign.to_dict(), "leaves": [lf.to_dict() for lf in leaves]})


@bp.get("/campaigns/<ref>/leaves")
def get_leaves(ref: str):
    campaign = resolve_campaign(ref)
    return json_ok({"leaves": [lf.to_dict() for lf in list_public_leaves(campaign)]})


@bp.post("/campaigns/<ref>/leaves")
def post_leaf(ref: str):
    campaign = resolve_campaign(ref)
    data = request_payload()
    leaf = add_leaf(campaign, data.get("author_name"), data.get("message"), data.get("is_public", True))
    return json_ok({"leaf": leaf.to_dict()}, 201)


# ----------------------------
# Bridge (public side)
# ----------------------------
@bp.get("/bridge/<slug>")
def bridge_landing(slug: str):
    return json_ok(bridge.landing(slug))


@bp.post("/bridge/activate")
def bridge_activate():
    return json_ok(bridge.activate(request_payload(), principal=current_principal()))


@bp.post("/bridge/claim")
def bridge_claim():
    data = request_payload()
    claimed = bridge.claim_bridge(data.get("bridge_id"), data.get("user_id"), current_principal())
    return json_ok({"bridge": claimed.to_dict()})


@bp.post("/sanctuary/<ref>/claim")
def sanctuary_claim(ref: str):
    data = request_payload()
    campaign = bridge.claim_sanctuary(ref, data.get("user_id"), current_principal())
    return json_ok({"campaign": campaign.to_dict()})


# ----------------------------
# Signed-in supporter
# ----------------------------
@bp.get("/me")
@require_auth
def me():
    return json_ok({"user": g.principal.to_dict()})


@bp.get("/me/commitments")
@require_auth
def my_commitments():
    rows = billing.list_commitments(g.principal.id)
    return json_ok({"commitments": [c.to_dict(include_campaign=True) for c in rows]})


@bp.post("/me/commitment/pause")
@require_auth
def pause_my_commitment():
    data = request_payload()
    commitment = billing.pause_commitment(
        data.get("commitment_id"),
        g.principal,
        reason=data.get("reason"),
        note=data.get("note"),
        resume_date=data.get("resume_date"),
    )
    return json_ok({"commitment": commitment.to_dict()})
