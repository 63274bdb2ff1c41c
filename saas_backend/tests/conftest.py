from __future__ import annotations

import pytest

from billing_fakes import (
    APP_BASE_URL,
    PRODUCT_TIERS,
    WEBHOOK_SECRET,
    FakePaymentProvider,
    InMemoryBillingStore,
)
from saas_backend.app.billing import (
    BillingService,
    CustomerLinker,
    EventVerifier,
    SubscriptionReconciler,
    WebhookRouter,
)
from saas_backend.app.entitlements import EntitlementProjector


@pytest.fixture
def store() -> InMemoryBillingStore:
    return InMemoryBillingStore()


@pytest.fixture
def provider() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture
def billing_service(store: InMemoryBillingStore, provider: FakePaymentProvider) -> BillingService:
    customer_linker = CustomerLinker(store, provider)
    reconciler = SubscriptionReconciler(store, provider, customer_linker)
    return BillingService(
        store=store,
        provider=provider,
        verifier=EventVerifier(tolerance_seconds=300),
        router=WebhookRouter(reconciler),
        customer_linker=customer_linker,
        webhook_secret=WEBHOOK_SECRET,
        app_base_url=APP_BASE_URL,
    )


@pytest.fixture
def reconciler(store: InMemoryBillingStore, provider: FakePaymentProvider) -> SubscriptionReconciler:
    return SubscriptionReconciler(store, provider, CustomerLinker(store, provider))


@pytest.fixture
def projector(store: InMemoryBillingStore) -> EntitlementProjector:
    return EntitlementProjector(store, PRODUCT_TIERS)
