from __future__ import annotations

# -----------------------------------------------------------------------------
# Bridge pipeline models
# BridgeCampaign tracks an external fundraiser through
#   scouted -> pre_built -> active -> claimed
# BridgeOutreach is an append-only contact log.
# -----------------------------------------------------------------------------
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from treeofhope.extensions import db

from .mixins import TimestampMixin, iso, new_id, utcnow

BRIDGE_STATUSES = ("scouted", "pre_built", "active", "claimed")
OUTREACH_CHANNELS = ("email", "phone", "sms", "message", "meeting")

# Forward-only; a status never moves back.
BRIDGE_TRANSITIONS: Dict[str, frozenset] = {
    "scouted": frozenset({"pre_built"}),
    "pre_built": frozenset({"active", "claimed"}),
    "active": frozenset({"claimed"}),
    "claimed": frozenset(),
}


def can_advance(current: str, new: str) -> bool:
    return new in BRIDGE_TRANSITIONS.get(current, frozenset())


class BridgeCampaign(db.Model, TimestampMixin):
    __tablename__ = "bridge_campaigns"
    __table_args__ = (
        CheckConstraint("outreach_attempts >= 0", name="ck_bridge_outreach_attempts_nonneg"),
        Index("ix_bridge_campaigns_status_created", "status", "created_at"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    slug: Mapped[Optional[str]] = mapped_column(db.String(80), nullable=True, index=True)

    # ---- External fundraiser snapshot (cents) ----
    source_url: Mapped[str] = mapped_column(db.String(500), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(db.String(200), nullable=True)
    organiser_name: Mapped[Optional[str]] = mapped_column(db.String(160), nullable=True)
    raised_cents: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    goal_cents: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    donor_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    category: Mapped[Optional[str]] = mapped_column(db.String(80), nullable=True)

    # ---- Pipeline ----
    status: Mapped[str] = mapped_column(
        db.String(20),
        nullable=False,
        default="scouted",
        index=True,
        doc="scouted / pre_built / active / claimed",
    )
    campaign_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("campaigns.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        doc="Set iff status is pre_built or later",
    )
    claimed_by: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True)
    outreach_attempts: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)

    campaign = relationship("Campaign", back_populates="bridge", lazy="joined")
    outreach = relationship(
        "BridgeOutreach",
        back_populates="bridge",
        lazy="dynamic",
        order_by="BridgeOutreach.outreach_date.desc()",
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "slug": self.slug,
            "source_url": self.source_url,
            "title": self.title,
            "organiser_name": self.organiser_name,
            "raised_cents": int(self.raised_cents or 0),
            "goal_cents": int(self.goal_cents or 0),
            "donor_count": int(self.donor_count or 0),
            "category": self.category,
            "status": self.status,
            "campaign_id": self.campaign_id,
            "claimed_by": self.claimed_by,
            "outreach_attempts": int(self.outreach_attempts or 0),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<BridgeCampaign {self.title!r} status={self.status}>"


class BridgeOutreach(db.Model):
    __tablename__ = "bridge_outreach"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    bridge_id: Mapped[str] = mapped_column(
        db.ForeignKey("bridge_campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    channel: Mapped[str] = mapped_column(db.String(20), nullable=False)
    message_summary: Mapped[str] = mapped_column(db.Text, nullable=False)
    response_status: Mapped[Optional[str]] = mapped_column(db.String(40), nullable=True)
    outreach_date: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow, index=True)

    bridge = relationship("BridgeCampaign", back_populates="outreach")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "bridge_id": self.bridge_id,
            "channel": self.channel,
            "message_summary": self.message_summary,
            "response_status": self.response_status,
            "outreach_date": iso(self.outreach_date),
        }
