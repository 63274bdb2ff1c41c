"""Payment provider integration."""
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Protocol

import stripe

from .errors import ProviderObjectNotFound, ProviderRequestRejected, ProviderUnavailable

logger = logging.getLogger("billing.provider")


class PaymentProvider(Protocol):
    """Read and create operations used against the external payment processor."""

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        """Return the provider's current subscription object."""

    def create_customer(
        self,
        *,
        email: Optional[str],
        name: Optional[str],
        metadata: Dict[str, str],
    ) -> str:
        """Create a provider customer and return its id."""

    def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        """Create a hosted subscription checkout session."""

    def create_portal_session(self, *, customer_id: str, return_url: str) -> Dict[str, Any]:
        """Create a hosted self-service billing portal session."""


def _to_plain(obj: Any) -> Dict[str, Any]:
    # StripeObject renders itself as its JSON representation.
    return json.loads(str(obj))


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError) as exc:
        logger.warning("Transient provider error during %s: %s", operation, exc)
        raise ProviderUnavailable(f"{operation} failed: {exc}") from exc
    except (stripe.AuthenticationError, stripe.PermissionError) as exc:
        # Bad credentials are treated as an outage.
        logger.error("Provider rejected our credentials during %s: %s", operation, exc)
        raise ProviderUnavailable(f"{operation} failed: {exc}") from exc
    except stripe.InvalidRequestError as exc:
        if exc.http_status == 404:
            raise ProviderObjectNotFound(f"{operation}: {exc.user_message or exc}") from exc
        logger.warning("Provider rejected %s: %s", operation, exc)
        raise ProviderRequestRejected(f"{operation}: {exc.user_message or exc}") from exc


class StripePaymentProvider(PaymentProvider):
    """Provider backed by an explicitly constructed :class:`stripe.StripeClient`."""

    def __init__(self, client: stripe.StripeClient) -> None:
        self._client = client

    @classmethod
    def from_api_key(cls, api_key: str, *, max_network_retries: int = 2) -> "StripePaymentProvider":
        return cls(stripe.StripeClient(api_key, max_network_retries=max_network_retries))

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        with _translate_errors("retrieve_subscription"):
            subscription = self._client.subscriptions.retrieve(subscription_id)
        return _to_plain(subscription)

    def create_customer(
        self,
        *,
        email: Optional[str],
        name: Optional[str],
        metadata: Dict[str, str],
    ) -> str:
        params: Dict[str, Any] = {"metadata": metadata}
        if email:
            params["email"] = email
        if name:
            params["name"] = name
        with _translate_errors("create_customer"):
            customer = self._client.customers.create(params=params)
        return customer.id

    def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "mode": "subscription",
            "customer": customer_id,
            "line_items": [{"price": price_id, "quantity": 1}],
            "allow_promotion_codes": True,
            "subscription_data": {"metadata": metadata},
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        with _translate_errors("create_checkout_session"):
            session = self._client.checkout.sessions.create(params=params)
        return {"id": session.id, "url": session.url}

    def create_portal_session(self, *, customer_id: str, return_url: str) -> Dict[str, Any]:
        with _translate_errors("create_portal_session"):
            session = self._client.billing_portal.sessions.create(
                params={"customer": customer_id, "return_url": return_url}
            )
        return {"id": session.id, "url": session.url}


__all__ = ["PaymentProvider", "StripePaymentProvider"]
