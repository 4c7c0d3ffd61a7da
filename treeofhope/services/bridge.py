"""
Bridge pipeline: external fundraiser -> Tree of Hope campaign.

    scouted --pre_build--> pre_built --first supporter--> active --claim--> claimed
                               \\________________________claim_________________/

Each step commits on its own. When a later step fails the earlier ones
stand (a pre-built campaign survives a failed Bridge update); the failure is
logged and the caller still gets the primary resource back.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError

from treeofhope.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    TreeOfHopeError,
    UpstreamError,
    ValidationError,
)
from treeofhope.extensions import db, tx_commit
from treeofhope.helpers import clean_str, slugify_title, to_cents, today_utc
from treeofhope.models import (
    BRIDGE_STATUSES,
    OUTREACH_CHANNELS,
    BridgeCampaign,
    BridgeOutreach,
    Campaign,
    Leaf,
)
from treeofhope.models.bridge import can_advance
from treeofhope.security import Principal
from treeofhope.services import billing
from treeofhope.services.analytics import track_server_event
from treeofhope.services.campaigns import add_leaf, insert_leaf, list_public_leaves, resolve_campaign

log = logging.getLogger(__name__)

SEED_AUTHOR = "Tree of Hope"
SEED_MESSAGES = (
    "Wishing you strength and healing on this journey.",
    "Your story matters. We are here to support you.",
    "May this tree grow with love and hope for your recovery.",
)

# Intake forms post the external site's field names; both spellings are accepted.
_FIELD_ALIASES = {
    "gofundme_url": "source_url",
    "url": "source_url",
    "gofundme_title": "title",
    "gofundme_organiser_name": "organiser_name",
    "gofundme_raised_cents": "raised_cents",
    "gofundme_goal_cents": "goal_cents",
    "gofundme_donor_count": "donor_count",
    "gofundme_category": "category",
}

_PATCHABLE = ("slug", "source_url", "title", "organiser_name", "raised_cents", "goal_cents", "donor_count", "category", "status")
_INT_FIELDS = ("raised_cents", "goal_cents", "donor_count")


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in (data or {}).items():
        out[_FIELD_ALIASES.get(k, k)] = v
    return out


def _non_negative_int(value: Any, name: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a whole number")
    try:
        n = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a whole number") from e
    if n < 0:
        raise ValidationError(f"{name} must be >= 0")
    return n


def _amount_cents(data: Dict[str, Any], base: str) -> int:
    """`<base>_cents` as an integer, or `<base>` as a dollar string ("$12,400")."""
    if data.get(f"{base}_cents") not in (None, ""):
        return _non_negative_int(data.get(f"{base}_cents"), f"{base}_cents")
    raw = data.get(base)
    if raw in (None, ""):
        return 0
    try:
        return to_cents(raw)
    except ValueError as e:
        raise ValidationError(f"{base} is not a valid amount") from e


def _get_bridge(bridge_id: Any) -> BridgeCampaign:
    bridge = db.session.get(BridgeCampaign, clean_str(bridge_id)) if clean_str(bridge_id) else None
    if bridge is None:
        raise NotFoundError("Bridge not found")
    return bridge


# ----------------------------
# Operator pipeline
# ----------------------------
def scout(payload: Dict[str, Any]) -> BridgeCampaign:
    data = _normalize(payload)
    source_url = clean_str(data.get("source_url"), 500)
    if not source_url:
        raise ValidationError("Source URL is required")

    bridge = BridgeCampaign(
        source_url=source_url,
        title=clean_str(data.get("title"), 200) or None,
        organiser_name=clean_str(data.get("organiser_name"), 160) or None,
        raised_cents=_amount_cents(data, "raised"),
        goal_cents=_amount_cents(data, "goal"),
        donor_count=_non_negative_int(data.get("donor_count"), "donor_count"),
        category=clean_str(data.get("category"), 80) or None,
        status="scouted",
        outreach_attempts=0,
    )
    db.session.add(bridge)
    try:
        tx_commit()
    except SQLAlchemyError as e:
        raise UpstreamError("Failed to scout bridge", detail=e) from e

    track_server_event("bridge_scouted", {"title": bridge.title, "organiser_name": bridge.organiser_name})
    return bridge


def _seed_leaves(campaign_id: str) -> int:
    seeded = 0
    for index, message in enumerate(SEED_MESSAGES):
        try:
            insert_leaf(campaign_id, index=index, author_name=SEED_AUTHOR, message=message)
        except SQLAlchemyError:
            log.error("Failed to seed leaf %d for campaign %s", index, campaign_id, exc_info=True)
            continue
        seeded += 1
    return seeded


def pre_build(bridge_id: Any, patient_name: Any, title: Any, story: Any) -> Campaign:
    """
    Materialise a draft campaign from a scouted record, link it, and seed the
    three welcome leaves at spiral indices 0, 1, 2.
    """
    bridge_id = clean_str(bridge_id)
    patient_name = clean_str(patient_name, 160)
    title = clean_str(title, 200)
    story = clean_str(story)
    if not bridge_id or not patient_name or not title or not story:
        raise ValidationError("Missing required fields")

    bridge = _get_bridge(bridge_id)
    if not can_advance(bridge.status, "pre_built"):
        raise ValidationError(f"Bridge is already {bridge.status}")

    slug = slugify_title(title)
    if not slug:
        raise ValidationError("Title must contain letters or numbers")

    campaign = Campaign(
        slug=slug,
        title=title,
        patient_name=patient_name,
        description=story,
        story=story,
        status="draft",
        leaf_count=0,
        supporter_count=0,
        monthly_total_cents=0,
    )
    db.session.add(campaign)
    try:
        tx_commit()
    except SQLAlchemyError as e:
        log.error("Failed to create campaign for bridge %s", bridge_id, exc_info=True)
        raise UpstreamError("Failed to create campaign", detail=e) from e

    campaign_id = campaign.id

    try:
        bridge.campaign_id = campaign_id
        bridge.status = "pre_built"
        bridge.slug = slug
        tx_commit()
    except SQLAlchemyError:
        log.error("Failed to link bridge %s to campaign %s", bridge_id, campaign_id, exc_info=True)

    seeded = _seed_leaves(campaign_id)
    try:
        db.session.execute(sa_update(Campaign).where(Campaign.id == campaign_id).values(leaf_count=seeded))
        tx_commit()
    except SQLAlchemyError:
        log.error("Failed to set leaf count for campaign %s", campaign_id, exc_info=True)

    track_server_event(
        "bridge_pre_built",
        {"bridge_id": bridge_id, "patient_name": patient_name, "campaign_title": title},
        campaign_id=campaign_id,
    )
    db.session.refresh(campaign)
    return campaign


def skip(bridge_id: Any) -> BridgeCampaign:
    """Acknowledge a scouted record without advancing it."""
    bridge = _get_bridge(bridge_id)
    if bridge.status != "scouted":
        raise ValidationError("Only scouted records can be skipped")
    log.info("Bridge %s skipped; stays scouted", bridge.id)
    return bridge


def log_outreach(bridge_id: Any, channel: Any, message_summary: Any, response_status: Any = None) -> BridgeOutreach:
    bridge = _get_bridge(bridge_id)
    channel = clean_str(channel).lower()
    summary = clean_str(message_summary)
    if not channel or not summary:
        raise ValidationError("Channel and message summary are required")
    if channel not in OUTREACH_CHANNELS:
        raise ValidationError(f"Invalid channel (expected one of {', '.join(OUTREACH_CHANNELS)})")

    row = BridgeOutreach(
        bridge_id=bridge.id,
        channel=channel,
        message_summary=summary,
        response_status=clean_str(response_status, 40) or None,
    )
    db.session.add(row)
    try:
        tx_commit()
    except SQLAlchemyError as e:
        raise UpstreamError("Failed to log outreach", detail=e) from e

    try:
        db.session.execute(
            sa_update(BridgeCampaign)
            .where(BridgeCampaign.id == bridge.id)
            .values(outreach_attempts=BridgeCampaign.outreach_attempts + 1)
        )
        tx_commit()
    except SQLAlchemyError:
        log.error("Failed to bump outreach attempts for bridge %s", bridge.id, exc_info=True)

    track_server_event("bridge_outreach_sent", {"bridge_id": bridge.id, "channel": channel})
    return row


def list_bridges(status: Optional[str] = None) -> List[BridgeCampaign]:
    q = BridgeCampaign.query
    status = clean_str(status)
    if status:
        if status not in BRIDGE_STATUSES:
            raise ValidationError(f"Invalid status (expected one of {', '.join(BRIDGE_STATUSES)})")
        q = q.filter(BridgeCampaign.status == status)
    return q.order_by(BridgeCampaign.created_at.desc()).all()


def get_bridge(bridge_id: Any) -> BridgeCampaign:
    return _get_bridge(bridge_id)


def update_bridge(bridge_id: Any, fields: Dict[str, Any]) -> BridgeCampaign:
    bridge = _get_bridge(bridge_id)
    data = {k: v for k, v in _normalize(fields).items() if k in _PATCHABLE}
    if not data:
        raise ValidationError("No editable fields supplied")

    if "status" in data:
        new_status = clean_str(data["status"])
        if new_status not in BRIDGE_STATUSES:
            raise ValidationError(f"Invalid status (expected one of {', '.join(BRIDGE_STATUSES)})")
        if new_status != bridge.status:
            if not can_advance(bridge.status, new_status):
                raise ValidationError(f"Cannot move bridge from {bridge.status} to {new_status}")
            if not bridge.campaign_id:
                raise ValidationError("Bridge has no campaign yet; use pre-build")
        data["status"] = new_status

    if "source_url" in data and not clean_str(data["source_url"]):
        raise ValidationError("source_url cannot be empty")

    for key, value in data.items():
        if key in _INT_FIELDS:
            value = _non_negative_int(value, key)
        elif key != "status":
            value = clean_str(value) or None
        setattr(bridge, key, value)

    try:
        tx_commit()
    except SQLAlchemyError as e:
        raise UpstreamError("Failed to update bridge", detail=e) from e
    return bridge


# ----------------------------
# Public landing + activation
# ----------------------------
def landing(slug: Any) -> Dict[str, Any]:
    campaign = resolve_campaign(slug)
    leaves: List[Leaf] = list_public_leaves(campaign)
    return {
        "campaign": campaign.to_dict(),
        "bridge": campaign.bridge.to_dict() if campaign.bridge else None,
        "leaves": [lf.to_dict() for lf in leaves],
    }


def activate(payload: Dict[str, Any], principal: Optional[Principal] = None) -> Dict[str, Any]:
    """
    Leave a leaf on a Bridge campaign and start a subscription checkout.
    The leaf is written first and stands whether or not payment completes.
    """
    campaign_ref = clean_str(payload.get("campaign_id"))
    author_name = clean_str(payload.get("author_name"), 160)
    message = clean_str(payload.get("message"))
    email = clean_str(payload.get("email"), 254).lower()
    monthly_tier = clean_str(payload.get("monthly_tier"))
    if not campaign_ref or not author_name or not message or not email or not monthly_tier:
        raise ValidationError("Missing required fields")
    if "@" not in email:
        raise ValidationError("Invalid email")

    tier = billing.get_monthly_tier(monthly_tier)
    gift = billing.get_joining_gift(payload.get("joining_gift_tier"))

    campaign = resolve_campaign(campaign_ref)
    leaf = add_leaf(campaign, author_name, message, payload.get("is_public", True))

    user_id = principal.id if principal else email
    try:
        session = billing.create_checkout_session(
            campaign_id=campaign.id,
            monthly_tier=tier.key,
            joining_gift_tier=gift.key if gift else None,
            success_url=payload.get("success_url"),
            cancel_url=payload.get("cancel_url"),
            user_id=user_id,
            customer_email=email,
            extra_metadata={"leaf_id": leaf.id, "source": "bridge"},
        )
    except TreeOfHopeError as e:
        e.extra.setdefault("leaf_id", leaf.id)
        raise

    track_server_event(
        "bridge_activated",
        {"author_name": leaf.author_name, "monthly_tier": tier.key, "leaf_id": leaf.id},
        campaign_id=campaign.id,
        user_id=user_id,
        session_id=session["session_id"],
    )
    return {"checkout_url": session["url"], "session_id": session["session_id"], "leaf_id": leaf.id}


# ----------------------------
# Claims
# ----------------------------
def _claimant(user_id: Any, principal: Optional[Principal]) -> str:
    if principal is None:
        raise AuthenticationError("Unauthorized")
    user_id = clean_str(user_id)
    if not user_id:
        raise ValidationError("User ID is required")
    if user_id != principal.id:
        raise AuthorizationError("Unauthorized: user can only claim for themselves")
    return user_id


def claim_sanctuary(campaign_ref: Any, user_id: Any, principal: Optional[Principal]) -> Campaign:
    """The patient takes ownership of the campaign's Sanctuary."""
    user_id = _claimant(user_id, principal)
    campaign = resolve_campaign(campaign_ref)

    if campaign.sanctuary_claimed and campaign.sanctuary_claimed_by not in (None, user_id):
        raise AuthorizationError("Sanctuary already claimed")

    campaign.sanctuary_claimed = True
    campaign.sanctuary_claimed_by = user_id
    if campaign.sanctuary_start_date is None:
        campaign.sanctuary_start_date = today_utc()
    try:
        tx_commit()
    except SQLAlchemyError as e:
        raise UpstreamError("Failed to claim sanctuary", detail=e) from e

    try:
        billing.ensure_membership(campaign.id, user_id, "patient")
    except SQLAlchemyError:
        log.error("Failed to create patient membership on %s", campaign.id, exc_info=True)

    bridge = campaign.bridge
    if bridge is not None and can_advance(bridge.status, "claimed"):
        try:
            bridge.status = "claimed"
            bridge.claimed_by = bridge.claimed_by or user_id
            tx_commit()
        except SQLAlchemyError:
            log.error("Failed to mark bridge %s claimed", bridge.id, exc_info=True)

    track_server_event("sanctuary_claimed", {"user_id": user_id}, campaign_id=campaign.id, user_id=user_id)
    return campaign


def claim_bridge(bridge_id: Any, user_id: Any, principal: Optional[Principal]) -> BridgeCampaign:
    """The original organiser takes ownership of a pre-built or active record."""
    user_id = _claimant(user_id, principal)
    if not clean_str(bridge_id):
        raise ValidationError("Bridge ID and user ID are required")
    bridge = _get_bridge(bridge_id)

    if bridge.status == "claimed":
        if bridge.claimed_by == user_id:
            return bridge
        raise AuthorizationError("Bridge already claimed")
    if not bridge.campaign_id or not can_advance(bridge.status, "claimed"):
        raise ValidationError("Bridge has not been pre-built")

    bridge.claimed_by = user_id
    bridge.status = "claimed"
    try:
        tx_commit()
    except SQLAlchemyError as e:
        raise UpstreamError("Failed to claim bridge", detail=e) from e

    try:
        billing.ensure_membership(bridge.campaign_id, user_id, "caregiver")
    except SQLAlchemyError:
        log.error("Failed to create caregiver membership on %s", bridge.campaign_id, exc_info=True)

    track_server_event(
        "bridge_organiser_claimed",
        {"bridge_id": bridge.id, "user_id": user_id},
        campaign_id=bridge.campaign_id,
        user_id=user_id,
    )
    return bridge
