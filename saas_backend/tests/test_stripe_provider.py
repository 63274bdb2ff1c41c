from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import pytest
import stripe

from saas_backend.app.billing import (
    ProviderObjectNotFound,
    ProviderRequestRejected,
    ProviderUnavailable,
    StripePaymentProvider,
)


class FakeStripeObject:
    """Renders itself as JSON the way ``stripe.StripeObject`` does."""

    def __init__(self, values: Dict[str, Any]) -> None:
        self._values = values
        for key, value in values.items():
            setattr(self, key, value)

    def __str__(self) -> str:
        return json.dumps(self._values, sort_keys=True, indent=2)


class FakeResource:
    def __init__(self, result: Dict[str, Any]) -> None:
        self._result = result
        self.calls: List[Tuple[str, Any, Any]] = []
        self.error: Optional[Exception] = None

    def _respond(self, method: str, arg: Any, params: Any) -> FakeStripeObject:
        self.calls.append((method, arg, params))
        if self.error is not None:
            raise self.error
        return FakeStripeObject(self._result)

    def retrieve(self, object_id: str, params: Any = None) -> FakeStripeObject:
        return self._respond("retrieve", object_id, params)

    def create(self, params: Any = None) -> FakeStripeObject:
        return self._respond("create", None, params)


class FakeStripeClient:
    def __init__(self) -> None:
        self.subscriptions = FakeResource(
            {"id": "sub_123", "status": "active", "metadata": {"account_id": "acct_1"}}
        )
        self.customers = FakeResource({"id": "cus_new"})
        self.checkout = SimpleNamespace(
            sessions=FakeResource({"id": "cs_1", "url": "https://checkout.stripe.test/cs_1"})
        )
        self.billing_portal = SimpleNamespace(
            sessions=FakeResource({"id": "bps_1", "url": "https://billing.stripe.test/bps_1"})
        )


@pytest.fixture
def client() -> FakeStripeClient:
    return FakeStripeClient()


@pytest.fixture
def stripe_provider(client: FakeStripeClient) -> StripePaymentProvider:
    return StripePaymentProvider(client)


def test_retrieve_subscription_returns_plain_dict(stripe_provider, client) -> None:
    subscription = stripe_provider.retrieve_subscription("sub_123")

    assert subscription == {"id": "sub_123", "status": "active", "metadata": {"account_id": "acct_1"}}
    assert isinstance(subscription["metadata"], dict)
    assert client.subscriptions.calls == [("retrieve", "sub_123", None)]


def test_create_customer_sends_only_known_fields(stripe_provider, client) -> None:
    customer_id = stripe_provider.create_customer(email=None, name="User One", metadata={"account_id": "acct_1"})

    assert customer_id == "cus_new"
    _method, _arg, params = client.customers.calls[0]
    assert params == {"metadata": {"account_id": "acct_1"}, "name": "User One"}


def test_checkout_session_is_subscription_mode_with_account_metadata(stripe_provider, client) -> None:
    session = stripe_provider.create_checkout_session(
        customer_id="cus_abc",
        price_id="price_pro_monthly",
        metadata={"account_id": "acct_1"},
        success_url="https://app.example.com/billing?checkout=success",
        cancel_url="https://app.example.com/billing?checkout=cancel",
    )

    assert session == {"id": "cs_1", "url": "https://checkout.stripe.test/cs_1"}
    _method, _arg, params = client.checkout.sessions.calls[0]
    assert params["mode"] == "subscription"
    assert params["customer"] == "cus_abc"
    assert params["line_items"] == [{"price": "price_pro_monthly", "quantity": 1}]
    assert params["subscription_data"]["metadata"]["account_id"] == "acct_1"


def test_portal_session_passes_return_url(stripe_provider, client) -> None:
    session = stripe_provider.create_portal_session(customer_id="cus_abc", return_url="https://app.example.com/billing")

    assert session["url"] == "https://billing.stripe.test/bps_1"
    _method, _arg, params = client.billing_portal.sessions.calls[0]
    assert params == {"customer": "cus_abc", "return_url": "https://app.example.com/billing"}


@pytest.mark.parametrize(
    "error, expected",
    [
        (stripe.APIConnectionError("Connection reset"), ProviderUnavailable),
        (stripe.RateLimitError("Too many requests"), ProviderUnavailable),
        (stripe.APIError("Internal server error"), ProviderUnavailable),
        (stripe.AuthenticationError("Invalid API key provided"), ProviderUnavailable),
        (stripe.PermissionError("Key lacks the required permissions"), ProviderUnavailable),
        (stripe.InvalidRequestError("No such subscription: 'sub_gone'", "id", http_status=404), ProviderObjectNotFound),
        (stripe.InvalidRequestError("Invalid subscription id", "id", http_status=400), ProviderRequestRejected),
    ],
)
def test_stripe_errors_are_translated(stripe_provider, client, error, expected) -> None:
    client.subscriptions.error = error

    with pytest.raises(expected) as exc:
        stripe_provider.retrieve_subscription("sub_123")

    assert exc.value.__cause__ is error


def test_rejected_checkout_is_a_data_error(stripe_provider, client) -> None:
    client.checkout.sessions.error = stripe.InvalidRequestError("No such price: 'price_retired'", "line_items", http_status=400)

    with pytest.raises(ProviderRequestRejected):
        stripe_provider.create_checkout_session(
            customer_id="cus_abc",
            price_id="price_retired",
            metadata={"account_id": "acct_1"},
            success_url="https://app.example.com/billing",
            cancel_url="https://app.example.com/billing",
        )
