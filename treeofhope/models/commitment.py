from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional

from sqlalchemy import Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from treeofhope.extensions import db

from .mixins import TimestampMixin, iso, new_id, utcnow

COMMITMENT_STATUSES = ("active", "past_due", "cancelled", "paused")


class Commitment(db.Model, TimestampMixin):
    """Recurring monthly support, mutated by Stripe lifecycle events."""

    __tablename__ = "commitments"
    __table_args__ = (
        UniqueConstraint("campaign_id", "stripe_subscription_id", name="uq_commitments_campaign_subscription"),
        Index("ix_commitments_user_started", "user_id", "started_at"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    campaign_id: Mapped[str] = mapped_column(
        db.ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(db.String(64), nullable=False, index=True)

    # ---- Stripe linkage ----
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(
        db.String(120),
        nullable=True,
        index=True,
        doc="Stripe subscription id (sub_...)",
    )
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(
        db.String(120),
        nullable=True,
        doc="Stripe customer id (cus_...)",
    )

    monthly_tier: Mapped[Optional[str]] = mapped_column(db.String(40), nullable=True)
    joining_gift_tier: Mapped[Optional[str]] = mapped_column(db.String(40), nullable=True)
    monthly_amount_cents: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(
        db.String(20),
        nullable=False,
        default="active",
        index=True,
        doc="active / past_due / cancelled / paused",
    )
    started_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)

    # ---- Hardship pause ----
    paused_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    resume_date: Mapped[Optional[date]] = mapped_column(db.Date, nullable=True)
    pause_reason: Mapped[Optional[str]] = mapped_column(db.String(500), nullable=True)

    campaign = relationship("Campaign", lazy="joined")

    def to_dict(self, include_campaign: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "user_id": self.user_id,
            "stripe_subscription_id": self.stripe_subscription_id,
            "monthly_tier": self.monthly_tier,
            "joining_gift_tier": self.joining_gift_tier,
            "monthly_amount_cents": int(self.monthly_amount_cents or 0),
            "status": self.status,
            "started_at": iso(self.started_at),
            "paused_at": iso(self.paused_at),
            "resume_date": iso(self.resume_date),
        }
        if include_campaign and self.campaign:
            data["campaign"] = {
                "id": self.campaign.id,
                "slug": self.campaign.slug,
                "title": self.campaign.title,
                "patient_name": self.campaign.patient_name,
            }
        return data

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Commitment {self.stripe_subscription_id} status={self.status}>"
