from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from billing_fakes import build_event, build_subscription, encode_event
from saas_backend.app.billing import ProviderRequestRejected, ProviderUnavailable
from saas_backend.app.billing.events import CHECKOUT_COMPLETED, INVOICE_PAYMENT_FAILED, SUBSCRIPTION_UPDATED
from saas_backend.app.routes import webhooks as webhook_routes


@pytest.fixture
def client(monkeypatch, billing_service) -> TestClient:
    monkeypatch.setattr(webhook_routes, "get_billing_service", lambda: billing_service)
    app = FastAPI()
    app.include_router(webhook_routes.router)
    return TestClient(app)


def _post(client: TestClient, raw_body: bytes, signature: str | None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["Stripe-Signature"] = signature
    return client.post("/api/webhooks/stripe", content=raw_body, headers=headers)


def test_signed_event_is_acknowledged(client, store) -> None:
    raw_body, signature = encode_event(build_event(SUBSCRIPTION_UPDATED, build_subscription(), event_id="evt_42"))

    response = _post(client, raw_body, signature)

    assert response.status_code == 200
    assert response.json() == {"received": True, "outcome": "handled", "eventId": "evt_42"}
    assert "sub_123" in store.subscriptions


def test_unknown_event_type_is_acknowledged_as_ignored(client, store) -> None:
    raw_body, signature = encode_event(build_event("customer.created", {"id": "cus_1"}))

    response = _post(client, raw_body, signature)

    assert response.status_code == 200
    assert response.json()["outcome"] == "ignored"


def test_orphan_subscription_is_acknowledged_as_dropped(client, store) -> None:
    raw_body, signature = encode_event(build_event(SUBSCRIPTION_UPDATED, build_subscription(account_id=None)))

    response = _post(client, raw_body, signature)

    assert response.status_code == 200
    assert response.json()["outcome"] == "dropped"
    assert store.subscriptions == {}


def test_invalid_signature_is_rejected(client, store) -> None:
    raw_body, signature = encode_event(build_event(SUBSCRIPTION_UPDATED, build_subscription()), secret="whsec_forged")

    response = _post(client, raw_body, signature)

    assert response.status_code == 400
    assert store.subscription_writes == 0


def test_missing_signature_header_is_rejected(client, store) -> None:
    raw_body, _signature = encode_event(build_event(SUBSCRIPTION_UPDATED, build_subscription()))

    response = _post(client, raw_body, None)

    assert response.status_code == 400
    assert store.subscription_writes == 0


def test_transient_failure_returns_500_for_redelivery(client, store, provider) -> None:
    store.add_account("acct_1")
    provider.fail_with = ProviderUnavailable("retrieve_subscription failed")
    raw_body, signature = encode_event(
        build_event(CHECKOUT_COMPLETED, {"id": "cs_1", "customer": "cus_abc", "subscription": "sub_123"})
    )

    response = _post(client, raw_body, signature)

    assert response.status_code == 500
    assert store.subscription_writes == 0


def test_invoice_with_invalid_currency_is_acknowledged_as_dropped(client, store) -> None:
    invoice = {"id": "in_1", "subscription": "sub_123", "currency": "", "created": 1_700_000_050}
    raw_body, signature = encode_event(build_event(INVOICE_PAYMENT_FAILED, invoice))

    response = _post(client, raw_body, signature)

    assert response.status_code == 200
    assert response.json()["outcome"] == "dropped"
    assert store.invoices == {}


def test_provider_rejected_request_is_acknowledged_as_dropped(client, store, provider) -> None:
    provider.fail_with = ProviderRequestRejected("retrieve_subscription: Invalid subscription id")
    raw_body, signature = encode_event(
        build_event(CHECKOUT_COMPLETED, {"id": "cs_1", "customer": "cus_abc", "subscription": "sub_123"})
    )

    response = _post(client, raw_body, signature)

    assert response.status_code == 200
    assert response.json()["outcome"] == "dropped"
    assert store.subscription_writes == 0
