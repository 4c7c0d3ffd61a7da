from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from treeofhope.extensions import db

from .mixins import iso, new_id, utcnow

ANONYMOUS = "Anonymous"


class Leaf(db.Model):
    """A supporter's message on a campaign's tree."""

    __tablename__ = "leaves"
    __table_args__ = (
        Index("ix_leaves_campaign_visible", "campaign_id", "is_public", "is_hidden"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    campaign_id: Mapped[str] = mapped_column(
        db.ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_name: Mapped[str] = mapped_column(db.String(160), nullable=False, default=ANONYMOUS)
    message: Mapped[str] = mapped_column(db.Text, nullable=False)

    # Spiral coordinates, fixed at insertion time
    position_x: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    position_y: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)

    is_public: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)
    is_hidden: Mapped[bool] = mapped_column(
        db.Boolean,
        nullable=False,
        default=False,
        doc="Admin moderation flag",
    )
    created_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow, index=True)

    campaign = relationship("Campaign", back_populates="leaves")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "author_name": self.author_name,
            "message": self.message,
            "position_x": self.position_x,
            "position_y": self.position_y,
            "is_public": bool(self.is_public),
            "is_hidden": bool(self.is_hidden),
            "created_at": iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Leaf {self.author_name!r} @({self.position_x},{self.position_y})>"
