"""Raw Stripe event payloads for webhook tests."""

from __future__ import annotations

from typing import Any, Dict


def make_event(event_type: str, obj: Dict[str, Any], event_id: str = "evt_1") -> Dict[str, Any]:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "livemode": False,
        "data": {"object": obj},
    }


def checkout_completed(
    campaign_id: str,
    *,
    user_id: str = "user-1",
    subscription_id: str = "sub_1",
    session_id: str = "cs_live_1",
    monthly_tier: str = "sustain",
    event_id: str = "evt_checkout_1",
) -> Dict[str, Any]:
    metadata = {"campaign_id": campaign_id, "user_id": user_id, "monthly_tier": monthly_tier, "joining_gift_tier": ""}
    return make_event(
        "checkout.session.completed",
        {
            "id": session_id,
            "object": "checkout.session",
            "mode": "subscription",
            "subscription": subscription_id,
            "customer": "cus_1",
            "metadata": metadata,
        },
        event_id=event_id,
    )


def subscription_event(event_type: str, subscription_id: str, event_id: str, **fields: Any) -> Dict[str, Any]:
    obj = {"id": subscription_id, "object": "subscription", "status": "active", "pause_collection": None}
    obj.update(fields)
    return make_event(event_type, obj, event_id=event_id)


