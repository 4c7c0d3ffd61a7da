from __future__ import annotations

from treeofhope.extensions import db
from treeofhope.models.analytics_event import AnalyticsEvent
from treeofhope.models.bridge import BRIDGE_STATUSES, OUTREACH_CHANNELS, BridgeCampaign, BridgeOutreach
from treeofhope.models.campaign import CAMPAIGN_STATUSES, Campaign
from treeofhope.models.commitment import COMMITMENT_STATUSES, Commitment
from treeofhope.models.leaf import ANONYMOUS, Leaf
from treeofhope.models.membership import MEMBERSHIP_ROLES, Membership
from treeofhope.models.stripe_event import StripeEvent

__all__ = [
    "db",
    "Campaign",
    "Leaf",
    "BridgeCampaign",
    "BridgeOutreach",
    "Commitment",
    "Membership",
    "AnalyticsEvent",
    "StripeEvent",
    "ANONYMOUS",
    "BRIDGE_STATUSES",
    "CAMPAIGN_STATUSES",
    "COMMITMENT_STATUSES",
    "MEMBERSHIP_ROLES",
    "OUTREACH_CHANNELS",
]
