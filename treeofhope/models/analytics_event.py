from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Index
from sqlalchemy.orm import Mapped, mapped_column

from treeofhope.extensions import db

from .mixins import new_id, utcnow


class AnalyticsEvent(db.Model):
    __tablename__ = "analytics_events"
    __table_args__ = (
        Index("ix_analytics_events_name_created", "event_name", "created_at"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    event_name: Mapped[str] = mapped_column(db.String(80), nullable=False)
    campaign_id: Mapped[Optional[str]] = mapped_column(db.String(36), nullable=True, index=True)
    user_id: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)
    properties: Mapped[Dict[str, Any]] = mapped_column(db.JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)
