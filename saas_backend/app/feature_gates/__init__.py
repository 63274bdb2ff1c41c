"""Feature gating utilities coordinating entitlement enforcement."""
from .enforcement import assert_subscribed, assert_tier, require_subscription, require_tier
from .exceptions import FeatureGateError

__all__ = [
    "FeatureGateError",
    "assert_subscribed",
    "assert_tier",
    "require_subscription",
    "require_tier",
]
