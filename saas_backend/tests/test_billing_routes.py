from __future__ import annotations

import pytest
from fastapi import HTTPException

from billing_fakes import PRICE_BUSINESS, PRICE_PRO, PRODUCT_BUSINESS, PRODUCT_PRO, build_subscription, utc
from saas_backend.app.billing import ProviderRequestRejected, ProviderUnavailable
from saas_backend.app.billing.events import ProviderSubscription
from saas_backend.app.entitlements import Tier, build_plan_catalog
from saas_backend.app.identity import IdentityClaims
from saas_backend.app.routes import billing as billing_routes
from saas_backend.app.schemas.billing import CheckoutSessionRequest


@pytest.fixture
def current_user() -> IdentityClaims:
    return IdentityClaims(uid="acct_1", email="user@example.com", name="User One")


@pytest.fixture
def patched_service(monkeypatch, billing_service, projector):
    monkeypatch.setattr(billing_routes, "get_billing_service", lambda: billing_service)
    monkeypatch.setattr(billing_routes, "get_entitlement_projector", lambda: projector)
    return billing_service


def test_checkout_session_returns_session_id_and_url(patched_service, store, provider, current_user) -> None:
    store.add_account("acct_1")

    response = billing_routes.create_checkout_session(
        CheckoutSessionRequest(priceId=PRICE_PRO),
        current_user=current_user,
    )

    assert response.session_id == "cs_test_1"
    assert response.url == "https://checkout.stripe.test/cs_test_1"
    assert provider.customers[0]["email"] == "user@example.com"
    assert response.model_dump(by_alias=True) == {
        "sessionId": "cs_test_1",
        "url": "https://checkout.stripe.test/cs_test_1",
    }


def test_checkout_session_for_unknown_account_is_404(patched_service, current_user) -> None:
    with pytest.raises(HTTPException) as exc:
        billing_routes.create_checkout_session(
            CheckoutSessionRequest(priceId=PRICE_PRO),
            current_user=current_user,
        )

    assert exc.value.status_code == 404


def test_checkout_session_provider_outage_is_503(patched_service, store, current_user, monkeypatch) -> None:
    store.add_account("acct_1", billing_customer_id="cus_abc")

    def _unavailable(**_kwargs):
        raise ProviderUnavailable("create_checkout_session failed")

    monkeypatch.setattr(patched_service.provider, "create_checkout_session", _unavailable)

    with pytest.raises(HTTPException) as exc:
        billing_routes.create_checkout_session(
            CheckoutSessionRequest(priceId=PRICE_PRO),
            current_user=current_user,
        )

    assert exc.value.status_code == 503


def test_checkout_session_rejected_by_provider_is_400(patched_service, store, current_user, monkeypatch) -> None:
    store.add_account("acct_1", billing_customer_id="cus_abc")

    def _rejected(**_kwargs):
        raise ProviderRequestRejected("create_checkout_session: No such price: price_retired")

    monkeypatch.setattr(patched_service.provider, "create_checkout_session", _rejected)

    with pytest.raises(HTTPException) as exc:
        billing_routes.create_checkout_session(
            CheckoutSessionRequest(priceId="price_retired"),
            current_user=current_user,
        )

    assert exc.value.status_code == 400
    assert "price_retired" in exc.value.detail


def test_portal_session_without_customer_is_404(patched_service, store, current_user) -> None:
    store.add_account("acct_1")

    with pytest.raises(HTTPException) as exc:
        billing_routes.create_portal_session(current_user=current_user)

    assert exc.value.status_code == 404


def test_portal_session_returns_url(patched_service, store, current_user) -> None:
    store.add_account("acct_1", billing_customer_id="cus_abc")

    response = billing_routes.create_portal_session(current_user=current_user)

    assert response.url == "https://billing.stripe.test/session/cus_abc"


def test_entitlement_reflects_reconciled_subscription(patched_service, reconciler, current_user) -> None:
    subscription = ProviderSubscription.model_validate(build_subscription(status="trialing"))
    reconciler.reconcile(subscription, event_time=utc(1_700_000_100))

    response = billing_routes.read_entitlement(current_user=current_user)

    assert response.subscribed is True
    assert response.tier is Tier.PRO
    payload = response.model_dump(by_alias=True)
    assert payload["subscription"]["subscriptionId"] == "sub_123"
    assert payload["subscription"]["status"] == "trialing"


def test_entitlement_defaults_to_free(patched_service, current_user) -> None:
    response = billing_routes.read_entitlement(current_user=current_user)

    assert response.subscribed is False
    assert response.tier is Tier.FREE
    assert response.subscription is None


def test_list_invoices_is_scoped_to_current_account(patched_service, store, current_user) -> None:
    store.add_account("acct_1")

    response = billing_routes.list_invoices(limit=20, current_user=current_user)

    assert response.invoices == []


def test_list_plans_serializes_catalog(monkeypatch) -> None:
    catalog = build_plan_catalog(
        price_pro=PRICE_PRO,
        price_business=PRICE_BUSINESS,
        product_pro=PRODUCT_PRO,
        product_business=PRODUCT_BUSINESS,
    )
    monkeypatch.setattr(billing_routes, "get_plan_catalog", lambda: catalog)

    response = billing_routes.list_plans()

    payload = response.model_dump(by_alias=True)
    assert [plan["tier"] for plan in payload["plans"]] == ["free", "pro", "business"]
    assert payload["plans"][1]["priceId"] == PRICE_PRO
    assert payload["plans"][1]["popular"] is True
    assert payload["plans"][0]["monthlyPrice"] == 0
