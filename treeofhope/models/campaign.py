from __future__ import annotations

# -----------------------------------------------------------------------------
# Campaign Model
# A patient's Tree page. Aggregate counters are denormalized and maintained
# with SQL-side increments (see services.campaigns).
# -----------------------------------------------------------------------------
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from treeofhope.extensions import db

from .mixins import TimestampMixin, iso, new_id

CAMPAIGN_STATUSES = ("draft", "active", "paused")


class Campaign(db.Model, TimestampMixin):
    __tablename__ = "campaigns"
    __table_args__ = (
        CheckConstraint("leaf_count >= 0", name="ck_campaigns_leaf_count_nonneg"),
        CheckConstraint("supporter_count >= 0", name="ck_campaigns_supporter_count_nonneg"),
        CheckConstraint("monthly_total_cents >= 0", name="ck_campaigns_monthly_total_nonneg"),
        Index("ix_campaigns_status_created", "status", "created_at"),
    )

    # ---- Identifiers ----
    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    slug: Mapped[str] = mapped_column(db.String(80), unique=True, nullable=False, index=True)

    # ---- Content ----
    title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    patient_name: Mapped[str] = mapped_column(db.String(160), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    story: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(db.String(500), nullable=True)

    status: Mapped[str] = mapped_column(
        db.String(20),
        nullable=False,
        default="draft",
        index=True,
        doc="draft / active / paused",
    )

    # ---- Aggregates (denormalized) ----
    leaf_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    supporter_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    monthly_total_cents: Mapped[int] = mapped_column(
        db.Integer,
        nullable=False,
        default=0,
        doc="Sum of active recurring commitments, in cents",
    )

    # ---- Sanctuary claim ----
    sanctuary_claimed: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    sanctuary_claimed_by: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True, index=True)
    sanctuary_start_date: Mapped[Optional[date]] = mapped_column(db.Date, nullable=True)

    # ---- Relationships ----
    leaves = relationship(
        "Leaf",
        back_populates="campaign",
        lazy="dynamic",
        passive_deletes=True,
    )
    bridge = relationship(
        "BridgeCampaign",
        back_populates="campaign",
        uselist=False,
        lazy="select",
    )

    # ==========================================================
    # Serialization
    # ==========================================================
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "patient_name": self.patient_name,
            "description": self.description,
            "story": self.story,
            "image_url": self.image_url,
            "status": self.status,
            "leaf_count": int(self.leaf_count or 0),
            "supporter_count": int(self.supporter_count or 0),
            "monthly_total_cents": int(self.monthly_total_cents or 0),
            "bridge_id": self.bridge.id if self.bridge else None,
            "sanctuary_claimed": bool(self.sanctuary_claimed),
            "sanctuary_claimed_by": self.sanctuary_claimed_by,
            "sanctuary_start_date": iso(self.sanctuary_start_date),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Campaign {self.slug!r} status={self.status} leaves={self.leaf_count}>"
