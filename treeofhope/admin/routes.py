"""
Operator blueprint, mounted at /admin. Every route needs an operator bearer
token (see security.require_admin).

Campaigns:
  GET/POST /admin/campaigns
  PATCH    /admin/campaigns/<ref>
  PATCH    /admin/leaves/<id>              moderation toggle

Bridge pipeline:
  GET   /admin/bridge?status=
  POST  /admin/bridge/scout                201
  POST  /admin/bridge/pre-build            201
  GET   /admin/bridge/<id>                 record + outreach log
  PATCH /admin/bridge/<id>
  POST  /admin/bridge/<id>/outreach        201
  POST  /admin/bridge/<id>/skip
"""

from __future__ import annotations

from flask import Blueprint, request

from treeofhope.routes import json_ok, request_payload
from treeofhope.security import require_admin
from treeofhope.services import bridge
from treeofhope.services.campaigns import (
    create_campaign,
    list_campaigns,
    resolve_campaign,
    set_leaf_hidden,
    update_campaign,
)

bp = Blueprint("admin", __name__)


@require_admin
def _operator_only():
    return None


@bp.before_request
def _guard():
    if request.method == "OPTIONS":
        return None
    return _operator_only()


# ── Campaigns ────────────────────────────────────────────────────────────────
@bp.get("/campaigns")
def campaigns_index():
    return json_ok({"campaigns": [c.to_dict() for c in list_campaigns()]})


@bp.post("/campaigns")
def campaigns_create():
    campaign = create_campaign(request_payload())
    return json_ok({"campaign": campaign.to_dict()}, 201)


@bp.patch("/campaigns/<ref>")
def campaigns_update(ref: str):
    campaign = update_campaign(resolve_campaign(ref), request_payload())
    return json_ok({"campaign": campaign.to_dict()})


@bp.patch("/leaves/<leaf_id>")
def leaves_moderate(leaf_id: str):
    leaf = set_leaf_hidden(leaf_id, request_payload().get("is_hidden"))
    return json_ok({"leaf": leaf.to_dict()})


# ── Bridge pipeline ──────────────────────────────────────────────────────────
@bp.get("/bridge")
def bridge_index():
    rows = bridge.list_bridges(request.args.get("status"))
    return json_ok({"bridges": [b.to_dict() for b in rows]})


@bp.post("/bridge/scout")
def bridge_scout():
    record = bridge.scout(request_payload())
    return json_ok({"bridge": record.to_dict()}, 201)


@bp.post("/bridge/pre-build")
def bridge_pre_build():
    data = request_payload()
    campaign = bridge.pre_build(
        data.get("bridge_id"),
        data.get("patient_name"),
        data.get("campaign_title") or data.get("title"),
        data.get("story"),
    )
    return json_ok({"campaign": campaign.to_dict(), "bridge_id": campaign.bridge.id if campaign.bridge else None}, 201)


@bp.get("/bridge/<bridge_id>")
def bridge_show(bridge_id: str):
    record = bridge.get_bridge(bridge_id)
    out = record.to_dict()
    out["outreach"] = [o.to_dict() for o in record.outreach]
    return json_ok({"bridge": out})


@bp.patch("/bridge/<bridge_id>")
def bridge_update(bridge_id: str):
    record = bridge.update_bridge(bridge_id, request_payload())
    return json_ok({"bridge": record.to_dict()})


@bp.post("/bridge/<bridge_id>/outreach")
def bridge_outreach(bridge_id: str):
    data = request_payload()
    row = bridge.log_outreach(
        bridge_id,
        data.get("channel"),
        data.get("message_summary") or data.get("message"),
        data.get("response_status"),
    )
    return json_ok({"outreach": row.to_dict()}, 201)


@bp.post("/bridge/<bridge_id>/skip")
def bridge_skip(bridge_id: str):
    record = bridge.skip(bridge_id)
    return json_ok({"bridge": record.to_dict()})
