"""Domain models for the billing system."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SubscriptionStatus(str, Enum):
    """Lifecycle state reported by the payment provider."""

    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    PAUSED = "paused"


ACTIVE_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})


class ReconcileOutcome(str, Enum):
    """Result of a single reconciliation write."""

    WRITTEN = "written"
    STALE = "stale"


class ProcessingOutcome(str, Enum):
    """How the webhook router disposed of an event."""

    HANDLED = "handled"
    IGNORED = "ignored"
    DROPPED = "dropped"


class Account(BaseModel):
    """Local identity created by the identity provider's sign-up flow."""

    account_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    billing_customer_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SubscriptionRecord(BaseModel):
    """Reconciled local projection of a provider subscription."""

    subscription_id: str
    account_id: str
    status: SubscriptionStatus
    price_id: str
    product_id: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    created_at: datetime
    ended_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    customer_id: Optional[str] = None
    last_event_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def is_active(self) -> bool:
        """Return ``True`` when the status grants entitlements."""
        return self.status in ACTIVE_STATUSES


class InvoiceRecord(BaseModel):
    """Projection of a payment attempt tied to a subscription."""

    invoice_id: str
    customer_id: Optional[str] = None
    subscription_id: str
    status: Optional[str] = None
    total: int = 0
    subtotal: int = 0
    currency: str = Field(min_length=3, max_length=3)
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    created_at: datetime
    failure_message: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("currency")
    @classmethod
    def _lower_currency(cls, value: str) -> str:
        return value.lower()


class ProcessingResult(BaseModel):
    """Acknowledgement returned by the webhook router."""

    event_id: str
    event_type: str
    outcome: ProcessingOutcome
    detail: Optional[str] = None

    model_config = ConfigDict(frozen=True)
