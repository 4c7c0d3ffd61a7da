"""Fire-and-forget server-side analytics."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from treeofhope.extensions import db
from treeofhope.models import AnalyticsEvent

log = logging.getLogger(__name__)


def track_server_event(
    event_name: str,
    properties: Optional[Dict[str, Any]] = None,
    campaign_id: Optional[str] = None,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> bool:
    """Record an analytics row. Never raises; returns False when the write failed."""
    try:
        db.session.add(
            AnalyticsEvent(
                event_name=event_name[:80],
                campaign_id=campaign_id,
                user_id=user_id,
                session_id=session_id,
                properties=dict(properties or {}),
            )
        )
        db.session.commit()
        return True
    except SQLAlchemyError:
        db.session.rollback()
        log.exception("Server analytics tracking error (%s)", event_name)
        return False
