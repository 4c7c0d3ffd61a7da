"""
Billing: Stripe Checkout + the commitment lifecycle.

Inbound webhook payloads are verified, then parsed into one of a small set
of typed events before dispatch:

  checkout.session.completed     -> create Commitment + supporter Membership,
                                    bump campaign aggregates
  invoice.payment_failed         -> commitment past_due
  customer.subscription.deleted  -> commitment cancelled
  customer.subscription.updated  -> commitment status mapped from Stripe
  anything else                  -> logged, acknowledged

Each delivery is recorded in `stripe_events` before it is applied; a
redelivered event id is acknowledged without side effects. When a handler
fails the row is released again. A database or Stripe failure is still
answered with 200, so Stripe will not retry it: recovering such an event
needs a manual resend from the Stripe dashboard. Any other exception is
re-raised and answered with 500, and Stripe's own retry reapplies it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time as dt_time, timezone
from typing import Any, Callable, Dict, List, Optional, Union

import stripe
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from treeofhope.errors import (
    NotFoundError,
    PaymentsNotConfiguredError,
    UpstreamError,
    ValidationError,
)
from treeofhope.extensions import db, tx_commit
from treeofhope.helpers import clean_str, parse_date
from treeofhope.models import BridgeCampaign, Campaign, Commitment, Membership, StripeEvent
from treeofhope.models.bridge import can_advance
from treeofhope.models.mixins import utcnow
from treeofhope.security import Principal
from treeofhope.services.analytics import track_server_event
from treeofhope.services.campaigns import increment_supporters

log = logging.getLogger(__name__)


# ----------------------------
# Tier catalogue
# ----------------------------
@dataclass(frozen=True)
class Tier:
    key: str
    name: str
    amount_cents: int
    price_config_key: str

    def price_id(self) -> str:
        return str(current_app.config.get(self.price_config_key) or "").strip()


MONTHLY_TIERS: Dict[str, Tier] = {
    "nurture": Tier("nurture", "Monthly Commitment - Nurture", 900, "STRIPE_PRICE_NURTURE"),
    "sustain": Tier("sustain", "Monthly Commitment - Sustain", 1900, "STRIPE_PRICE_SUSTAIN"),
    "flourish": Tier("flourish", "Monthly Commitment - Flourish", 3500, "STRIPE_PRICE_FLOURISH"),
}

JOINING_GIFTS: Dict[str, Tier] = {
    "seedling": Tier("seedling", "Joining Gift - Seedling", 999, "STRIPE_PRICE_SEEDLING"),
    "sapling": Tier("sapling", "Joining Gift - Sapling", 2499, "STRIPE_PRICE_SAPLING"),
    "mighty_oak": Tier("mighty_oak", "Joining Gift - Mighty Oak", 9900, "STRIPE_PRICE_MIGHTY_OAK"),
}

_TIER_ALIASES = {"mightyoak": "mighty_oak", "mighty-oak": "mighty_oak"}

_PLACEHOLDER = "placeholder"


def _tier_key(raw: Any) -> str:
    k = clean_str(raw).lower()
    return _TIER_ALIASES.get(k, k)


def get_monthly_tier(raw: Any) -> Tier:
    tier = MONTHLY_TIERS.get(_tier_key(raw))
    if tier is None:
        raise ValidationError("Invalid monthly tier")
    return tier


def get_joining_gift(raw: Any) -> Optional[Tier]:
    key = _tier_key(raw)
    if not key or key == "none":
        return None
    gift = JOINING_GIFTS.get(key)
    if gift is None:
        raise ValidationError("Invalid joining gift tier")
    return gift


def _is_placeholder(value: str) -> bool:
    return (not value) or (_PLACEHOLDER in value)


def payments_configured() -> bool:
    """True only when the secret key and every monthly price id are real values."""
    sk = str(current_app.config.get("STRIPE_SECRET_KEY") or "")
    if _is_placeholder(sk):
        return False
    return all(not _is_placeholder(t.price_id()) for t in MONTHLY_TIERS.values())


def public_config() -> Dict[str, Any]:
    return {
        "enabled": payments_configured(),
        "mode": current_app.config.get("STRIPE_MODE", "disabled"),
        "monthly_tiers": [{"key": t.key, "name": t.name, "amount_cents": t.amount_cents} for t in MONTHLY_TIERS.values()],
        "joining_gifts": [{"key": t.key, "name": t.name, "amount_cents": t.amount_cents} for t in JOINING_GIFTS.values()],
    }


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


# ----------------------------
# Checkout
# ----------------------------
def create_checkout_session(
    *,
    campaign_id: str,
    monthly_tier: Any,
    joining_gift_tier: Any = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
    user_id: Optional[str] = None,
    customer_email: Optional[str] = None,
    extra_metadata: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Create a subscription-mode Checkout Session. Returns {session_id, url}."""
    if not campaign_id or not clean_str(monthly_tier):
        raise ValidationError("Missing required fields")

    tier = get_monthly_tier(monthly_tier)
    gift = get_joining_gift(joining_gift_tier)

    if not payments_configured():
        raise PaymentsNotConfiguredError(extra={"demo": True})

    line_items: List[Dict[str, Any]] = [{"price": tier.price_id(), "quantity": 1}]
    if gift and not _is_placeholder(gift.price_id()):
        line_items.append({"price": gift.price_id(), "quantity": 1})

    base = str(current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
    success_url = clean_str(success_url) or f"{base}/c/{campaign_id}/thank-you?session_id={{CHECKOUT_SESSION_ID}}"
    cancel_url = clean_str(cancel_url) or f"{base}/c/{campaign_id}/commitment"

    metadata: Dict[str, str] = {
        "campaign_id": campaign_id,
        "user_id": user_id or "",
        "monthly_tier": tier.key,
        "joining_gift_tier": gift.key if gift else "",
    }
    metadata.update(extra_metadata or {})

    params: Dict[str, Any] = {
        "mode": "subscription",
        "payment_method_types": ["card"],
        "line_items": line_items,
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
        "subscription_data": {"metadata": dict(metadata)},
    }
    if customer_email:
        params["customer_email"] = customer_email

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        log.error("Stripe checkout session creation failed: %s", e, exc_info=True)
        track_server_event(
            "checkout_started",
            {"success": False, "error": str(e)[:300]},
            campaign_id=campaign_id,
            user_id=user_id,
        )
        raise UpstreamError("Failed to create checkout session", detail=e) from e

    session_id = _get(session, "id")
    if not session_id:
        raise UpstreamError("Failed to create checkout session", detail="session without id")

    track_server_event(
        "checkout_started",
        {"monthly_tier": tier.key, "joining_gift_tier": gift.key if gift else None},
        campaign_id=campaign_id,
        user_id=user_id,
        session_id=session_id,
    )
    return {"session_id": session_id, "url": _get(session, "url")}


# ----------------------------
# Webhook events (tagged union)
# ----------------------------
@dataclass(frozen=True)
class CheckoutSessionCompleted:
    event_id: str
    livemode: bool
    session_id: str
    subscription_id: Optional[str]
    customer_id: Optional[str]
    metadata: Dict[str, str] = field(default_factory=dict)
    type = "checkout.session.completed"

    @property
    def object_id(self) -> str:
        return self.session_id


@dataclass(frozen=True)
class InvoicePaymentFailed:
    event_id: str
    livemode: bool
    invoice_id: str
    subscription_id: Optional[str]
    type = "invoice.payment_failed"

    @property
    def object_id(self) -> str:
        return self.invoice_id


@dataclass(frozen=True)
class SubscriptionDeleted:
    event_id: str
    livemode: bool
    subscription_id: str
    type = "customer.subscription.deleted"

    @property
    def object_id(self) -> str:
        return self.subscription_id


@dataclass(frozen=True)
class SubscriptionUpdated:
    event_id: str
    livemode: bool
    subscription_id: str
    status: str
    pause_collection: bool
    type = "customer.subscription.updated"

    @property
    def object_id(self) -> str:
        return self.subscription_id


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: str
    livemode: bool
    type: str
    object_id: str = ""


BillingEvent = Union[
    CheckoutSessionCompleted,
    InvoicePaymentFailed,
    SubscriptionDeleted,
    SubscriptionUpdated,
    UnhandledEvent,
]


def _id_of(value: Any) -> Optional[str]:
    """Stripe fields may hold an id string or an expanded object."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get("id") or None
    return None


def _invoice_subscription(obj: Dict[str, Any]) -> Optional[str]:
    sub = _id_of(obj.get("subscription"))
    if sub:
        return sub
    # newer API versions nest it under parent.subscription_details
    parent = obj.get("parent") or {}
    details = parent.get("subscription_details") if isinstance(parent, dict) else None
    return _id_of((details or {}).get("subscription"))


def parse_event(ev: Dict[str, Any]) -> BillingEvent:
    """Validate a raw event dict and narrow it to a typed event."""
    if not isinstance(ev, dict):
        raise ValidationError("Malformed event")
    event_id = str(ev.get("id") or "")
    etype = str(ev.get("type") or "")
    obj = (ev.get("data") or {}).get("object") if isinstance(ev.get("data"), dict) else None
    if not event_id or not etype or not isinstance(obj, dict):
        raise ValidationError("Malformed event")

    livemode = bool(ev.get("livemode") or False)
    obj_id = str(obj.get("id") or "")

    if etype == CheckoutSessionCompleted.type:
        md = obj.get("metadata") if isinstance(obj.get("metadata"), dict) else {}
        return CheckoutSessionCompleted(
            event_id=event_id,
            livemode=livemode,
            session_id=obj_id,
            subscription_id=_id_of(obj.get("subscription")),
            customer_id=_id_of(obj.get("customer")),
            metadata={str(k): str(v) for k, v in (md or {}).items() if v is not None},
        )
    if etype == InvoicePaymentFailed.type:
        return InvoicePaymentFailed(
            event_id=event_id,
            livemode=livemode,
            invoice_id=obj_id,
            subscription_id=_invoice_subscription(obj),
        )
    if etype == SubscriptionDeleted.type:
        return SubscriptionDeleted(event_id=event_id, livemode=livemode, subscription_id=obj_id)
    if etype == SubscriptionUpdated.type:
        return SubscriptionUpdated(
            event_id=event_id,
            livemode=livemode,
            subscription_id=obj_id,
            status=str(obj.get("status") or ""),
            pause_collection=bool(obj.get("pause_collection")),
        )
    return UnhandledEvent(event_id=event_id, livemode=livemode, type=etype, object_id=obj_id)


def verify_and_parse(payload: bytes, signature: str) -> BillingEvent:
    """Check the Stripe-Signature header, then parse. Any failure is a ValidationError."""
    secret = str(current_app.config.get("STRIPE_WEBHOOK_SECRET") or "").strip()
    if not secret:
        log.error("STRIPE_WEBHOOK_SECRET not configured; rejecting webhook")
        raise ValidationError("Invalid signature")

    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        log.warning("Webhook signature verification failed: %s", e)
        raise ValidationError("Invalid signature") from e

    try:
        raw = json.loads(payload.decode("utf-8") if isinstance(payload, bytes) else payload)
    except ValueError as e:
        raise ValidationError("Malformed event") from e
    return parse_event(raw)


# ----------------------------
# Commitment state machine
# ----------------------------
COMMITMENT_TRANSITIONS: Dict[str, frozenset] = {
    "active": frozenset({"past_due", "cancelled", "paused"}),
    "past_due": frozenset({"active", "cancelled", "paused"}),
    "paused": frozenset({"active", "past_due", "cancelled"}),
    "cancelled": frozenset(),
}


def can_transition(current: str, new: str) -> bool:
    return current == new or new in COMMITMENT_TRANSITIONS.get(current, frozenset())


def map_subscription_status(status: str, pause_collection: bool) -> str:
    if status == "past_due":
        return "past_due"
    if status == "canceled":
        return "cancelled"
    if pause_collection:
        return "paused"
    return "active"


def set_status_by_subscription(subscription_id: str, new_status: str) -> int:
    """Move every commitment on this subscription to `new_status`. Returns rows changed."""
    changed = 0
    for c in Commitment.query.filter_by(stripe_subscription_id=subscription_id).all():
        if c.status == new_status:
            continue
        if not can_transition(c.status, new_status):
            log.info("Commitment %s: ignoring %s -> %s", c.id, c.status, new_status)
            continue
        c.status = new_status
        changed += 1
    tx_commit()
    return changed


# ----------------------------
# Event handlers
# ----------------------------
def _recurring_amount_cents(session_id: str, tier_key: str) -> int:
    """Unit amount of the session's recurring line item; tier list price as fallback."""
    try:
        items = stripe.checkout.Session.list_line_items(session_id, limit=10)
        for item in _get(items, "data") or []:
            price = _get(item, "price")
            if _get(price, "type") == "recurring":
                return int(_get(price, "unit_amount") or 0)
    except stripe.StripeError:
        log.warning("Could not list line items for %s; using tier price", session_id, exc_info=True)

    tier = MONTHLY_TIERS.get(_tier_key(tier_key))
    return tier.amount_cents if tier else 0


def ensure_membership(campaign_id: str, user_id: str, role: str) -> Membership:
    existing = Membership.query.filter_by(campaign_id=campaign_id, user_id=user_id, role=role).first()
    if existing:
        return existing
    m = Membership(campaign_id=campaign_id, user_id=user_id, role=role, joined_at=utcnow())
    db.session.add(m)
    tx_commit()
    return m


def mark_bridge_active(campaign_id: str) -> Optional[BridgeCampaign]:
    bridge = BridgeCampaign.query.filter_by(campaign_id=campaign_id).first()
    if bridge is None or not can_advance(bridge.status, "active"):
        return None
    bridge.status = "active"
    tx_commit()
    log.info("Bridge %s advanced to active (first supporter)", bridge.id)
    return bridge


def _on_checkout_completed(ev: CheckoutSessionCompleted) -> None:
    campaign_id = ev.metadata.get("campaign_id", "")
    user_id = ev.metadata.get("user_id", "")
    monthly_tier = ev.metadata.get("monthly_tier", "")

    if not campaign_id or not user_id:
        log.warning("Incomplete metadata in checkout session %s; skipping", ev.session_id)
        return

    if db.session.get(Campaign, campaign_id) is None:
        log.warning("Checkout session %s references unknown campaign %s", ev.session_id, campaign_id)
        return

    if ev.subscription_id and Commitment.query.filter_by(
        campaign_id=campaign_id, stripe_subscription_id=ev.subscription_id
    ).first():
        log.info("Commitment for %s already exists; skipping", ev.subscription_id)
        return

    monthly_cents = _recurring_amount_cents(ev.session_id, monthly_tier)

    commitment = Commitment(
        campaign_id=campaign_id,
        user_id=user_id,
        stripe_subscription_id=ev.subscription_id,
        stripe_customer_id=ev.customer_id,
        monthly_tier=monthly_tier or None,
        joining_gift_tier=(ev.metadata.get("joining_gift_tier") or None),
        monthly_amount_cents=monthly_cents,
        status="active",
        started_at=utcnow(),
    )
    db.session.add(commitment)
    try:
        tx_commit()
    except IntegrityError:
        log.info("Commitment for %s created concurrently; skipping", ev.subscription_id)
        return

    try:
        ensure_membership(campaign_id, user_id, "supporter")
    except SQLAlchemyError:
        log.error("Failed to create membership for %s on %s", user_id, campaign_id, exc_info=True)

    try:
        increment_supporters(campaign_id, monthly_cents)
    except SQLAlchemyError:
        log.error("Failed to update campaign %s aggregates", campaign_id, exc_info=True)

    try:
        mark_bridge_active(campaign_id)
    except SQLAlchemyError:
        log.error("Failed to advance bridge for campaign %s", campaign_id, exc_info=True)

    track_server_event(
        "checkout_succeeded",
        {"monthly_tier": monthly_tier, "subscription_id": ev.subscription_id},
        campaign_id=campaign_id,
        user_id=user_id,
        session_id=ev.session_id,
    )


def _on_payment_failed(ev: InvoicePaymentFailed) -> None:
    if not ev.subscription_id:
        log.info("Invoice %s has no subscription; nothing to do", ev.invoice_id)
        return
    set_status_by_subscription(ev.subscription_id, "past_due")


def _on_subscription_deleted(ev: SubscriptionDeleted) -> None:
    set_status_by_subscription(ev.subscription_id, "cancelled")


def _on_subscription_updated(ev: SubscriptionUpdated) -> None:
    set_status_by_subscription(ev.subscription_id, map_subscription_status(ev.status, ev.pause_collection))


_HANDLERS: Dict[type, Callable[[Any], None]] = {
    CheckoutSessionCompleted: _on_checkout_completed,
    InvoicePaymentFailed: _on_payment_failed,
    SubscriptionDeleted: _on_subscription_deleted,
    SubscriptionUpdated: _on_subscription_updated,
}


def _record_event(ev: BillingEvent) -> Optional[StripeEvent]:
    row = StripeEvent(
        event_id=ev.event_id[:120],
        type=ev.type[:120],
        livemode=ev.livemode,
        object_id=(ev.object_id[:120] or None),
    )
    db.session.add(row)
    try:
        tx_commit()
    except IntegrityError:
        return None
    return row


def handle_event(ev: BillingEvent) -> str:
    """
    Apply a verified event. Returns "processed", "duplicate", "ignored" or "failed".
    Never raises for processing problems; the caller always acknowledges.
    """
    row = _record_event(ev)
    if row is None:
        log.info("Duplicate webhook delivery %s (%s); acknowledged", ev.event_id, ev.type)
        return "duplicate"

    handler = _HANDLERS.get(type(ev))
    if handler is None:
        log.info("Unhandled event type: %s", ev.type)
        return "ignored"

    try:
        handler(ev)
    except (SQLAlchemyError, stripe.StripeError):
        log.exception("Webhook processing failed for %s (%s)", ev.event_id, ev.type)
        _release_event(row)
        return "failed"
    except Exception:
        _release_event(row)
        raise
    return "processed"


def _release_event(row: StripeEvent) -> None:
    """Forget a delivery so a replay can apply it."""
    db.session.rollback()
    event_id = row.event_id
    try:
        db.session.delete(row)
        tx_commit()
    except SQLAlchemyError:
        log.error("Could not release event %s for replay", event_id, exc_info=True)


# ----------------------------
# Supporter self-service
# ----------------------------
def list_commitments(user_id: str) -> List[Commitment]:
    return Commitment.query.filter_by(user_id=user_id).order_by(Commitment.started_at.desc()).all()


def pause_commitment(
    commitment_id: Any,
    principal: Principal,
    *,
    reason: Any = None,
    note: Any = None,
    resume_date: Any = None,
) -> Commitment:
    """Hardship pause: owner-only, sets `paused` and asks Stripe to stop collecting."""
    commitment_id = clean_str(commitment_id)
    if not commitment_id:
        raise ValidationError("Commitment ID is required")

    commitment = Commitment.query.filter_by(id=commitment_id, user_id=principal.id).first()
    if commitment is None:
        raise NotFoundError("Commitment not found")
    if not can_transition(commitment.status, "paused"):
        raise ValidationError(f"Cannot pause a {commitment.status} commitment")

    try:
        resume: Optional[date] = parse_date(resume_date)
    except ValueError as e:
        raise ValidationError("resume_date must be an ISO date") from e

    reason_s = clean_str(reason, 200)
    note_s = clean_str(note, 290)
    commitment.status = "paused"
    commitment.paused_at = utcnow()
    commitment.resume_date = resume
    commitment.pause_reason = " | ".join(p for p in (reason_s, note_s) if p) or None
    try:
        tx_commit()
    except SQLAlchemyError as e:
        raise UpstreamError("Failed to pause commitment", detail=e) from e

    if commitment.stripe_subscription_id:
        pause: Dict[str, Any] = {"behavior": "mark_uncollectible"}
        if resume:
            pause["resumes_at"] = int(datetime.combine(resume, dt_time.min, tzinfo=timezone.utc).timestamp())
        try:
            stripe.Subscription.modify(commitment.stripe_subscription_id, pause_collection=pause)
        except stripe.StripeError:
            log.error("Failed to pause Stripe subscription %s", commitment.stripe_subscription_id, exc_info=True)

    track_server_event(
        "commitment_paused",
        {"commitment_id": commitment.id, "reason": reason_s or None, "resume_date": resume.isoformat() if resume else None},
        campaign_id=commitment.campaign_id,
        user_id=principal.id,
    )
    return commitment
