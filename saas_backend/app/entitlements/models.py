"""Domain models for entitlement projection."""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ..billing.models import SubscriptionRecord


class Tier(str, Enum):
    """Plan tiers that gate product features."""

    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]


_TIER_RANKS = {Tier.FREE: 0, Tier.PRO: 1, Tier.BUSINESS: 2}


class Entitlement(BaseModel):
    """Read-side view of an account's subscription state."""

    subscribed: bool
    tier: Tier
    record: Optional[SubscriptionRecord] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def free(cls) -> "Entitlement":
        return cls(subscribed=False, tier=Tier.FREE, record=None)

    def grants(self, tier: Tier) -> bool:
        """Return whether this entitlement meets or exceeds ``tier``."""

        return self.tier.rank >= tier.rank
