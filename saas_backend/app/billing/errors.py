"""Error taxonomy for webhook ingestion and reconciliation."""
from __future__ import annotations

from typing import Optional


class BillingError(Exception):
    """Base class for all billing pipeline failures."""


class VerificationError(BillingError):
    """An inbound event could not be authenticated. Never retried."""


class MissingCredentials(VerificationError):
    """The signature header or the shared secret is absent."""


class InvalidSignature(VerificationError):
    """The signature does not match the payload, or the payload is not an event."""


class BillingDataError(BillingError):
    """An event the system can never process successfully.

    Data errors are logged and acknowledged so the provider stops
    redelivering them.
    """


class OrphanSubscription(BillingDataError):
    """No account id could be resolved for a subscription."""

    def __init__(self, subscription_id: str) -> None:
        super().__init__(f"No account id resolvable for subscription {subscription_id}")
        self.subscription_id = subscription_id


class MalformedEvent(BillingDataError):
    """A recognized event type carried a payload of an unexpected shape."""

    def __init__(self, event_type: str, message: str, *, event_id: Optional[str] = None) -> None:
        super().__init__(f"Malformed {event_type} payload: {message}")
        self.event_type = event_type
        self.event_id = event_id


class ProviderObjectNotFound(BillingDataError):
    """The provider reports that a referenced object does not exist."""


class ProviderRequestRejected(BillingDataError):
    """The provider rejected a request as invalid; resending it cannot succeed."""


class TransientBillingError(BillingError):
    """A failure that may succeed on redelivery."""


class StoreUnavailable(TransientBillingError):
    """The persistence layer could not be reached."""


class ProviderUnavailable(TransientBillingError):
    """The payment provider API timed out or returned a server error."""


class AccountNotFound(LookupError):
    """The referenced account does not exist in the store."""

    def __init__(self, account_id: str) -> None:
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


__all__ = [
    "AccountNotFound",
    "BillingDataError",
    "BillingError",
    "InvalidSignature",
    "MalformedEvent",
    "MissingCredentials",
    "OrphanSubscription",
    "ProviderObjectNotFound",
    "ProviderRequestRejected",
    "ProviderUnavailable",
    "StoreUnavailable",
    "TransientBillingError",
    "VerificationError",
]
