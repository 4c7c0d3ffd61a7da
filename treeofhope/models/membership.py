from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from treeofhope.extensions import db

from .mixins import iso, new_id, utcnow

MEMBERSHIP_ROLES = ("supporter", "patient", "caregiver")


class Membership(db.Model):
    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("campaign_id", "user_id", "role", name="uq_memberships_campaign_user_role"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    campaign_id: Mapped[str] = mapped_column(
        db.ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(db.String(64), nullable=False, index=True)
    role: Mapped[str] = mapped_column(db.String(20), nullable=False, doc="supporter / patient / caregiver")
    joined_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "user_id": self.user_id,
            "role": self.role,
            "joined_at": iso(self.joined_at),
        }
