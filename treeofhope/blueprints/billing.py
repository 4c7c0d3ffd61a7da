"""
Tree of Hope Billing Blueprint (Stripe)

Mount: /billing  (register blueprint with url_prefix="/billing")

Endpoints:
  GET  /billing/config
  POST /billing/checkout-session
  POST /billing/webhook

Webhook contract:
- bad or missing Stripe-Signature -> 400, nothing written
- anything after verification     -> 200 {"received": true}
  (duplicates, unhandled types and processing failures included; failures
   are logged with the event id)
"""

from __future__ import annotations

import logging

from flask import Blueprint, request

from treeofhope.errors import ValidationError
from treeofhope.helpers import clean_str
from treeofhope.routes import json_ok, json_response, request_payload
from treeofhope.security import current_principal
from treeofhope.services import billing
from treeofhope.services.campaigns import resolve_campaign

log = logging.getLogger(__name__)

bp = Blueprint("billing", __name__)


@bp.get("/config")
def billing_config():
    return json_ok(billing.public_config())


@bp.post("/checkout-session")
def checkout_session():
    data = request_payload()
    if not clean_str(data.get("campaign_id")) or not clean_str(data.get("monthly_tier")):
        raise ValidationError("Missing required fields")

    campaign = resolve_campaign(data.get("campaign_id"))

    principal = current_principal()
    email = clean_str(data.get("email"), 254).lower()
    user_id = principal.id if principal else (clean_str(data.get("user_id"), 64) or email)
    if not user_id:
        raise ValidationError("user_id or email is required")

    session = billing.create_checkout_session(
        campaign_id=campaign.id,
        monthly_tier=data.get("monthly_tier"),
        joining_gift_tier=data.get("joining_gift_tier"),
        success_url=data.get("success_url"),
        cancel_url=data.get("cancel_url"),
        user_id=user_id,
        customer_email=(principal.email if principal and principal.email else email) or None,
    )
    return json_ok(session)


@bp.post("/webhook")
def stripe_webhook():
    payload = request.get_data(cache=False, as_text=False)
    sig = (request.headers.get("Stripe-Signature") or "").strip()

    try:
        event = billing.verify_and_parse(payload, sig)
    except ValidationError as e:
        return json_response({"received": False, "error": e.message}, 400)

    outcome = billing.handle_event(event)
    log.info("Webhook %s (%s): %s", event.event_id, event.type, outcome)
    return json_response({"received": True})
