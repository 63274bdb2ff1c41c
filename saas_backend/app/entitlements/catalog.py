"""Static catalog definitions for plans and product tiers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from .models import Tier


@dataclass(frozen=True)
class PlanDefinition:
    """Describes a plan shown on the pricing page."""

    tier: Tier
    display_name: str
    description: str
    monthly_price: int
    price_id: Optional[str]
    product_id: Optional[str]
    features: Tuple[str, ...]
    popular: bool = False


def build_plan_catalog(
    *,
    price_pro: str,
    price_business: str,
    product_pro: str,
    product_business: str,
) -> Dict[Tier, PlanDefinition]:
    """Return the plan catalog bound to the configured provider price ids."""

    return {
        Tier.FREE: PlanDefinition(
            tier=Tier.FREE,
            display_name="Free",
            description="Best for individual use",
            monthly_price=0,
            price_id=None,
            product_id=None,
            features=(
                "Up to 3 projects",
                "Community support",
                "Core features",
            ),
        ),
        Tier.PRO: PlanDefinition(
            tier=Tier.PRO,
            display_name="Pro",
            description="For professional needs",
            monthly_price=2000,
            price_id=price_pro,
            product_id=product_pro,
            features=(
                "Unlimited projects",
                "Priority support",
                "Access to every feature",
                "API access",
                "Team features",
            ),
            popular=True,
        ),
        Tier.BUSINESS: PlanDefinition(
            tier=Tier.BUSINESS,
            display_name="Business",
            description="For teams and larger organizations",
            monthly_price=5000,
            price_id=price_business,
            product_id=product_business,
            features=(
                "Unlimited projects",
                "24/7 support",
                "Access to every feature",
                "Advanced API access",
                "Extended team features",
                "Custom integrations",
            ),
        ),
    }


def tier_for_product(product_id: Optional[str], product_tiers: Mapping[str, Tier]) -> Tier:
    """Resolve a provider product id to a tier; unknown products are free."""

    if not product_id:
        return Tier.FREE
    return product_tiers.get(product_id, Tier.FREE)
