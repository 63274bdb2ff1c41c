"""Helpers for enforcing subscription and tier checks on API routes."""
from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends

from ..entitlements import Entitlement, Tier
from ..identity import IdentityClaims
from ..identity.dependencies import get_current_identity
from ..services.billing import get_entitlement_projector
from .exceptions import FeatureGateError


def assert_subscribed(
    entitlement: Entitlement,
    *,
    error_code: str = "subscription_required",
    message: Optional[str] = None,
) -> None:
    """Raise :class:`FeatureGateError` unless the entitlement is an active subscription."""

    if not entitlement.subscribed:
        raise FeatureGateError(
            code=error_code,
            message=message or "An active subscription is required.",
            detail={"tier": entitlement.tier.value},
        )


def assert_tier(
    entitlement: Entitlement,
    tier: Tier,
    *,
    error_code: str = "tier_required",
    message: Optional[str] = None,
) -> None:
    """Ensure the entitlement meets or exceeds ``tier``.

    A lapsed subscription never satisfies a paid tier, even if the record
    still references a paid product.
    """

    if tier is not Tier.FREE and not entitlement.subscribed:
        assert_subscribed(entitlement)
    if not entitlement.grants(tier):
        raise FeatureGateError(
            code=error_code,
            message=message or f"The {tier.value} plan is required.",
            detail={"required_tier": tier.value, "tier": entitlement.tier.value},
        )


def require_subscription(
    current_user: IdentityClaims = Depends(get_current_identity),
) -> Entitlement:
    entitlement = get_entitlement_projector().project(current_user.uid)
    assert_subscribed(entitlement)
    return entitlement


def require_tier(tier: Tier) -> Callable[..., Entitlement]:
    """Build a dependency that admits callers on ``tier`` or above."""

    def dependency(current_user: IdentityClaims = Depends(get_current_identity)) -> Entitlement:
        entitlement = get_entitlement_projector().project(current_user.uid)
        assert_tier(entitlement, tier)
        return entitlement

    return dependency
