"""Application wiring for the billing service."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Optional
from uuid import uuid4

from ..billing import (
    BillingService,
    BillingStore,
    CustomerLinker,
    EventVerifier,
    PaymentProvider,
    ProviderObjectNotFound,
    StripePaymentProvider,
    SubscriptionReconciler,
    WebhookRouter,
)
from ..billing.config import BillingConfig, load_billing_config
from ..billing.repository import PostgresBillingStore
from ..entitlements import EntitlementProjector, PlanDefinition, Tier, build_plan_catalog


logger = logging.getLogger("billing")


class LocalSandboxPaymentProvider(PaymentProvider):
    """Minimal provider implementation for local development without provider keys."""

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        raise ProviderObjectNotFound(f"Sandbox has no subscription {subscription_id}")

    def create_customer(
        self,
        *,
        email: Optional[str],
        name: Optional[str],
        metadata: Dict[str, str],
    ) -> str:
        customer_id = f"cus_{uuid4().hex[:14]}"
        logger.info("Sandbox customer %s created metadata=%s", customer_id, metadata)
        return customer_id

    def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        session_id = f"cs_{uuid4().hex}"
        return {
            "id": session_id,
            "url": f"https://billing.local/checkout/{session_id}",
            "customer": customer_id,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }

    def create_portal_session(self, *, customer_id: str, return_url: str) -> Dict[str, Any]:
        session_id = f"bps_{uuid4().hex}"
        return {
            "id": session_id,
            "url": f"https://billing.local/portal/{customer_id}",
            "return_url": return_url,
        }


@lru_cache(maxsize=1)
def get_billing_config() -> BillingConfig:
    return load_billing_config()


@lru_cache(maxsize=1)
def get_billing_store() -> BillingStore:
    return PostgresBillingStore()


@lru_cache(maxsize=1)
def get_payment_provider() -> PaymentProvider:
    config = get_billing_config()
    if not config.stripe_secret_key:
        logger.warning("STRIPE_SECRET_KEY is not set; using the local sandbox payment provider")
        return LocalSandboxPaymentProvider()
    return StripePaymentProvider.from_api_key(
        config.stripe_secret_key,
        max_network_retries=config.provider_max_retries,
    )


@lru_cache(maxsize=1)
def get_billing_service() -> BillingService:
    config = get_billing_config()
    store = get_billing_store()
    provider = get_payment_provider()
    customer_linker = CustomerLinker(store, provider)
    reconciler = SubscriptionReconciler(store, provider, customer_linker)
    service = BillingService(
        store=store,
        provider=provider,
        verifier=EventVerifier(tolerance_seconds=config.webhook_tolerance_seconds),
        router=WebhookRouter(reconciler),
        customer_linker=customer_linker,
        webhook_secret=config.webhook_secret,
        app_base_url=config.app_base_url,
    )
    return service


@lru_cache(maxsize=1)
def get_entitlement_projector() -> EntitlementProjector:
    return EntitlementProjector(get_billing_store(), get_billing_config().product_tiers)


@lru_cache(maxsize=1)
def get_plan_catalog() -> Dict[Tier, PlanDefinition]:
    config = get_billing_config()
    return build_plan_catalog(
        price_pro=config.price_pro,
        price_business=config.price_business,
        product_pro=config.product_pro,
        product_business=config.product_business,
    )


__all__ = [
    "LocalSandboxPaymentProvider",
    "get_billing_config",
    "get_billing_service",
    "get_billing_store",
    "get_entitlement_projector",
    "get_payment_provider",
    "get_plan_catalog",
]
