"""Inbound provider events: signature verification and typed payloads."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional, Type, Union

import stripe
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import InvalidSignature, MalformedEvent, MissingCredentials
from .models import SubscriptionStatus

DEFAULT_TOLERANCE_SECONDS = 300

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


def _expandable_id(value: object) -> object:
    # Provider references arrive either as an id string or as an expanded object.
    if isinstance(value, Mapping):
        return value.get("id")
    return value


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class VerifiedEvent(BaseModel):
    """An authenticated event envelope; ``data_object`` is kept exactly as received."""

    id: str
    type: str
    created: int
    livemode: bool = False
    data_object: Dict[str, Any]

    model_config = ConfigDict(frozen=True)

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.created, tz=timezone.utc)


class EventVerifier:
    """Authenticates webhook payloads signed with the provider's shared secret."""

    def __init__(self, *, tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS) -> None:
        if tolerance_seconds < 1:
            raise ValueError("tolerance_seconds must be a positive number of seconds")
        self._tolerance = tolerance_seconds

    def verify(
        self,
        raw_body: bytes,
        signature_header: Optional[str],
        shared_secret: Optional[str],
    ) -> VerifiedEvent:
        if not signature_header or not shared_secret:
            raise MissingCredentials("Missing signature header or webhook secret")

        try:
            payload = raw_body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidSignature("Payload is not valid UTF-8") from exc

        try:
            stripe.WebhookSignature.verify_header(
                payload, signature_header, shared_secret, self._tolerance
            )
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignature(str(exc)) from exc

        try:
            envelope = json.loads(payload)
        except ValueError as exc:
            raise InvalidSignature("Payload is not valid JSON") from exc
        if not isinstance(envelope, dict):
            raise InvalidSignature("Payload is not an event object")

        data = envelope.get("data")
        data_object = data.get("object") if isinstance(data, dict) else None
        try:
            return VerifiedEvent(
                id=envelope.get("id"),
                type=envelope.get("type"),
                created=envelope.get("created"),
                livemode=bool(envelope.get("livemode", False)),
                data_object=data_object,
            )
        except ValidationError as exc:
            raise InvalidSignature("Payload is not an event object") from exc


class ProviderPrice(BaseModel):
    id: str
    product: str

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("product", mode="before")
    @classmethod
    def _normalize_product(cls, value: object) -> object:
        return _expandable_id(value)


class ProviderSubscriptionItem(BaseModel):
    price: ProviderPrice
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None

    model_config = ConfigDict(extra="ignore", frozen=True)


class ProviderSubscription(BaseModel):
    """Fields of a provider subscription object read by the reconciler."""

    id: str
    customer: Optional[str] = None
    status: SubscriptionStatus
    metadata: Dict[str, str] = Field(default_factory=dict)
    items: List[ProviderSubscriptionItem]
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False
    created: int
    ended_at: Optional[int] = None
    canceled_at: Optional[int] = None
    trial_start: Optional[int] = None
    trial_end: Optional[int] = None

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("customer", mode="before")
    @classmethod
    def _normalize_customer(cls, value: object) -> object:
        return _expandable_id(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _coerce_metadata(cls, value: object) -> Dict[str, str]:
        if not value:
            return {}
        if isinstance(value, Mapping):
            return {str(k): str(v) for k, v in value.items()}
        raise ValueError("metadata must be an object")

    @field_validator("items", mode="before")
    @classmethod
    def _unwrap_list(cls, value: object) -> object:
        if isinstance(value, Mapping):
            return value.get("data")
        return value

    @field_validator("items")
    @classmethod
    def _require_item(cls, value: List[ProviderSubscriptionItem]) -> List[ProviderSubscriptionItem]:
        if not value:
            raise ValueError("subscription has no items")
        return value

    @property
    def primary_item(self) -> ProviderSubscriptionItem:
        return self.items[0]

    @property
    def price_id(self) -> str:
        return self.primary_item.price.id

    @property
    def product_id(self) -> str:
        return self.primary_item.price.product

    @property
    def period_start(self) -> Optional[int]:
        # Newer API versions report billing periods per item.
        if self.current_period_start is not None:
            return self.current_period_start
        return self.primary_item.current_period_start

    @property
    def period_end(self) -> Optional[int]:
        if self.current_period_end is not None:
            return self.current_period_end
        return self.primary_item.current_period_end


class ProviderCheckoutSession(BaseModel):
    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    mode: Optional[str] = None

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def _normalize_refs(cls, value: object) -> object:
        return _expandable_id(value)


class ProviderInvoice(BaseModel):
    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    status: Optional[str] = None
    total: int = 0
    subtotal: int = 0
    currency: str = Field(min_length=3, max_length=3)
    period_start: Optional[int] = None
    period_end: Optional[int] = None
    created: int
    failure_message: Optional[str] = None

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def _normalize_refs(cls, value: object) -> object:
        return _expandable_id(value)

    @model_validator(mode="before")
    @classmethod
    def _lift_nested_fields(cls, data: object) -> object:
        if not isinstance(data, Mapping):
            return data
        values = dict(data)
        if not values.get("subscription"):
            parent = values.get("parent") or {}
            details = parent.get("subscription_details") if isinstance(parent, Mapping) else None
            if isinstance(details, Mapping):
                values["subscription"] = details.get("subscription")
        error = values.get("last_payment_error")
        if isinstance(error, Mapping) and error.get("message"):
            values["failure_message"] = error["message"]
        return values


class _EventBase(BaseModel):
    event_id: str
    event_type: str
    created_at: datetime

    model_config = ConfigDict(frozen=True)


class CheckoutCompletedEvent(_EventBase):
    kind: Literal["checkout_completed"] = "checkout_completed"
    session: ProviderCheckoutSession


class SubscriptionChangedEvent(_EventBase):
    kind: Literal["subscription_changed"] = "subscription_changed"
    subscription: ProviderSubscription


class SubscriptionDeletedEvent(_EventBase):
    kind: Literal["subscription_deleted"] = "subscription_deleted"
    subscription: ProviderSubscription


class InvoicePaymentSucceededEvent(_EventBase):
    kind: Literal["invoice_payment_succeeded"] = "invoice_payment_succeeded"
    invoice: ProviderInvoice


class InvoicePaymentFailedEvent(_EventBase):
    kind: Literal["invoice_payment_failed"] = "invoice_payment_failed"
    invoice: ProviderInvoice


class UnrecognizedEvent(_EventBase):
    kind: Literal["unrecognized"] = "unrecognized"


ProviderEvent = Union[
    CheckoutCompletedEvent,
    SubscriptionChangedEvent,
    SubscriptionDeletedEvent,
    InvoicePaymentSucceededEvent,
    InvoicePaymentFailedEvent,
    UnrecognizedEvent,
]

_PAYLOAD_BINDINGS: Dict[str, tuple[Type[_EventBase], str]] = {
    CHECKOUT_COMPLETED: (CheckoutCompletedEvent, "session"),
    SUBSCRIPTION_CREATED: (SubscriptionChangedEvent, "subscription"),
    SUBSCRIPTION_UPDATED: (SubscriptionChangedEvent, "subscription"),
    SUBSCRIPTION_DELETED: (SubscriptionDeletedEvent, "subscription"),
    INVOICE_PAYMENT_SUCCEEDED: (InvoicePaymentSucceededEvent, "invoice"),
    INVOICE_PAYMENT_FAILED: (InvoicePaymentFailedEvent, "invoice"),
}

RECOGNIZED_EVENT_TYPES = frozenset(_PAYLOAD_BINDINGS)


def parse_event(event: VerifiedEvent) -> ProviderEvent:
    """Map a verified envelope onto the closed set of event variants."""

    envelope = {
        "event_id": event.id,
        "event_type": event.type,
        "created_at": event.created_at,
    }
    binding = _PAYLOAD_BINDINGS.get(event.type)
    if binding is None:
        return UnrecognizedEvent(**envelope)

    event_cls, field_name = binding
    try:
        return event_cls(**envelope, **{field_name: event.data_object})
    except ValidationError as exc:
        raise MalformedEvent(event.type, str(exc), event_id=event.id) from exc


__all__ = [
    "CHECKOUT_COMPLETED",
    "CheckoutCompletedEvent",
    "EventVerifier",
    "INVOICE_PAYMENT_FAILED",
    "INVOICE_PAYMENT_SUCCEEDED",
    "InvoicePaymentFailedEvent",
    "InvoicePaymentSucceededEvent",
    "ProviderCheckoutSession",
    "ProviderEvent",
    "ProviderInvoice",
    "ProviderSubscription",
    "RECOGNIZED_EVENT_TYPES",
    "SUBSCRIPTION_CREATED",
    "SUBSCRIPTION_DELETED",
    "SUBSCRIPTION_UPDATED",
    "SubscriptionChangedEvent",
    "SubscriptionDeletedEvent",
    "UnrecognizedEvent",
    "VerifiedEvent",
    "from_timestamp",
    "parse_event",
]
