"""Billing configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional
import os

from ..entitlements.models import Tier


@dataclass(frozen=True)
class BillingConfig:
    """Configuration for the payment provider integration."""

    stripe_secret_key: Optional[str]
    webhook_secret: Optional[str]
    webhook_tolerance_seconds: int
    app_base_url: str
    price_pro: str
    price_business: str
    product_pro: str
    product_business: str
    product_tiers: Dict[str, Tier] = field(default_factory=dict)
    provider_max_retries: int = 2


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def load_billing_config(env: Optional[Mapping[str, str]] = None) -> BillingConfig:
    """Load :class:`BillingConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    product_pro = env_mapping.get("STRIPE_PRODUCT_PRO") or "prod_pro"
    product_business = env_mapping.get("STRIPE_PRODUCT_BUSINESS") or "prod_business"
    tolerance = _to_int(env_mapping.get("STRIPE_WEBHOOK_TOLERANCE"), default=300)
    if tolerance < 1:
        # A zero tolerance disables the signature timestamp check.
        raise ValueError(f"STRIPE_WEBHOOK_TOLERANCE must be at least 1 second, got {tolerance}")

    return BillingConfig(
        stripe_secret_key=env_mapping.get("STRIPE_SECRET_KEY") or None,
        webhook_secret=env_mapping.get("STRIPE_WEBHOOK_SECRET") or None,
        webhook_tolerance_seconds=tolerance,
        app_base_url=env_mapping.get("APP_BASE_URL", "http://localhost:3000").rstrip("/"),
        price_pro=env_mapping.get("STRIPE_PRICE_PRO") or "price_pro_monthly",
        price_business=env_mapping.get("STRIPE_PRICE_BUSINESS") or "price_business_monthly",
        product_pro=product_pro,
        product_business=product_business,
        product_tiers={product_pro: Tier.PRO, product_business: Tier.BUSINESS},
        provider_max_retries=max(0, _to_int(env_mapping.get("STRIPE_MAX_RETRIES"), default=2)),
    )
