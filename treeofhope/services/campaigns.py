"""
Campaign + leaf operations.

Aggregate counters are bumped with SQL-side increments
(`SET leaf_count = leaf_count + 1`) so concurrent writers never lose an
update. Leaf *positions* still come from the count read before insert, so
two simultaneous submissions can share a spot on the canvas.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, update as sa_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from treeofhope.errors import NotFoundError, UpstreamError, ValidationError
from treeofhope.extensions import db, tx_commit
from treeofhope.helpers import clean_str, is_uuid, parse_bool
from treeofhope.models import ANONYMOUS, CAMPAIGN_STATUSES, Campaign, Leaf
from treeofhope.services.analytics import track_server_event
from treeofhope.services.placement import leaf_position

log = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "slug", "description", "story", "patient_name", "status", "image_url")


# ----------------------------
# Lookup
# ----------------------------
def resolve_campaign(ref: str, *, status: Optional[str] = None) -> Campaign:
    """Find a campaign by slug or id (ids are UUIDs, slugs never are)."""
    ref = clean_str(ref)
    if not ref:
        raise NotFoundError("Campaign not found")

    q = Campaign.query
    if is_uuid(ref):
        q = q.filter(or_(Campaign.id == ref, Campaign.slug == ref))
    else:
        q = q.filter(Campaign.slug == ref)
    if status:
        q = q.filter(Campaign.status == status)

    campaign = q.first()
    if campaign is None:
        raise NotFoundError("Campaign not found")
    return campaign


def list_campaigns() -> List[Campaign]:
    return Campaign.query.order_by(Campaign.created_at.desc()).all()


# ----------------------------
# Admin create / edit
# ----------------------------
def _validate_status(status: str) -> str:
    if status not in CAMPAIGN_STATUSES:
        raise ValidationError(f"Invalid status (expected one of {', '.join(CAMPAIGN_STATUSES)})")
    return status


def create_campaign(data: Dict[str, Any]) -> Campaign:
    title = clean_str(data.get("title"), 200)
    slug = clean_str(data.get("slug"), 80)
    description = clean_str(data.get("description"))
    patient_name = clean_str(data.get("patient_name"), 160)

    if not title or not slug or not description or not patient_name:
        raise ValidationError("Missing required fields")

    campaign = Campaign(
        title=title,
        slug=slug,
        description=description,
        patient_name=patient_name,
        status=_validate_status(clean_str(data.get("status")) or "draft"),
        image_url=clean_str(data.get("image_url"), 500) or None,
        story=clean_str(data.get("story")) or None,
        leaf_count=0,
        supporter_count=0,
        monthly_total_cents=0,
    )
    db.session.add(campaign)
    try:
        tx_commit()
    except IntegrityError as e:
        raise ValidationError("Slug already in use") from e
    except SQLAlchemyError as e:
        raise UpstreamError("Failed to create campaign", detail=e) from e
    return campaign


def update_campaign(campaign: Campaign, data: Dict[str, Any]) -> Campaign:
    changed = False
    for key in EDITABLE_FIELDS:
        if key not in data:
            continue
        value = clean_str(data.get(key))
        if key == "status":
            value = _validate_status(value)
        elif key in ("title", "slug", "patient_name") and not value:
            raise ValidationError(f"{key} cannot be empty")
        if key in ("description", "story", "image_url"):
            value = value or None
        setattr(campaign, key, value)
        changed = True

    if not changed:
        raise ValidationError("No editable fields supplied")

    try:
        tx_commit()
    except IntegrityError as e:
        raise ValidationError("Slug already in use") from e
    except SQLAlchemyError as e:
        raise UpstreamError("Failed to update campaign", detail=e) from e
    return campaign


# ----------------------------
# Counters
# ----------------------------
def bump_leaf_count(campaign_id: str, by: int = 1) -> None:
    db.session.execute(
        sa_update(Campaign)
        .where(Campaign.id == campaign_id)
        .values(leaf_count=Campaign.leaf_count + by)
    )
    tx_commit()


def increment_supporters(campaign_id: str, monthly_cents: int) -> bool:
    """supporter_count += 1, monthly_total_cents += monthly_cents. False if no such campaign."""
    res = db.session.execute(
        sa_update(Campaign)
        .where(Campaign.id == campaign_id)
        .values(
            supporter_count=Campaign.supporter_count + 1,
            monthly_total_cents=Campaign.monthly_total_cents + max(0, int(monthly_cents or 0)),
        )
    )
    tx_commit()
    return bool(getattr(res, "rowcount", 0))


# ----------------------------
# Leaves
# ----------------------------
def insert_leaf(
    campaign_id: str,
    *,
    index: int,
    author_name: str,
    message: str,
    is_public: bool = True,
) -> Leaf:
    x, y = leaf_position(index)
    leaf = Leaf(
        campaign_id=campaign_id,
        author_name=author_name or ANONYMOUS,
        message=message,
        is_public=is_public,
        is_hidden=False,
        position_x=x,
        position_y=y,
    )
    db.session.add(leaf)
    tx_commit()
    return leaf


def add_leaf(campaign: Campaign, author_name: Any, message: Any, is_public: Any = True) -> Leaf:
    """Place a new leaf at the next spiral index and bump `leaf_count`."""
    message = clean_str(message, 2000)
    if not message:
        raise ValidationError("Message is required")
    author = clean_str(author_name, 160) or ANONYMOUS
    public = parse_bool(is_public, default=True)

    db.session.refresh(campaign)
    index = int(campaign.leaf_count or 0)

    try:
        leaf = insert_leaf(campaign.id, index=index, author_name=author, message=message, is_public=public)
    except SQLAlchemyError as e:
        log.error("Leaf creation failed for campaign %s", campaign.id, exc_info=True)
        raise UpstreamError("Failed to create leaf", detail=e) from e

    try:
        bump_leaf_count(campaign.id)
    except SQLAlchemyError:
        log.error("Failed to update leaf count for campaign %s", campaign.id, exc_info=True)

    track_server_event("leaf_submitted", {"campaign_id": campaign.id, "is_public": public}, campaign_id=campaign.id)
    return leaf


def list_public_leaves(campaign: Campaign) -> List[Leaf]:
    return (
        Leaf.query.filter_by(campaign_id=campaign.id, is_public=True, is_hidden=False)
        .order_by(Leaf.created_at.desc())
        .all()
    )


def set_leaf_hidden(leaf_id: str, hidden: Any) -> Leaf:
    leaf = db.session.get(Leaf, clean_str(leaf_id))
    if leaf is None:
        raise NotFoundError("Leaf not found")
    if hidden is None:
        raise ValidationError("is_hidden is required")

    leaf.is_hidden = parse_bool(hidden)
    try:
        tx_commit()
    except SQLAlchemyError as e:
        raise UpstreamError("Failed to update leaf", detail=e) from e
    return leaf
