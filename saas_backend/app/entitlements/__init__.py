"""Entitlement projection over reconciled subscription records."""

from .catalog import PlanDefinition, build_plan_catalog, tier_for_product
from .models import Entitlement, Tier
from .service import EntitlementProjector, SubscriptionReader

__all__ = [
    "Entitlement",
    "EntitlementProjector",
    "PlanDefinition",
    "SubscriptionReader",
    "Tier",
    "build_plan_catalog",
    "tier_for_product",
]
