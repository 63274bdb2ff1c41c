"""API schemas for billing endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..billing import InvoiceRecord, ProcessingResult, SubscriptionStatus
from ..entitlements import Entitlement, PlanDefinition, Tier


class CheckoutSessionRequest(BaseModel):
    price_id: str = Field(alias="priceId", min_length=1)
    return_url: Optional[str] = Field(alias="returnUrl", default=None)

    model_config = ConfigDict(populate_by_name=True)


class CheckoutSessionResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    url: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class PortalSessionResponse(BaseModel):
    url: str


class SubscriptionSummary(BaseModel):
    subscription_id: str = Field(alias="subscriptionId")
    status: SubscriptionStatus
    price_id: str = Field(alias="priceId")
    product_id: str = Field(alias="productId")
    current_period_end: Optional[datetime] = Field(alias="currentPeriodEnd", default=None)
    cancel_at_period_end: bool = Field(alias="cancelAtPeriodEnd", default=False)

    model_config = ConfigDict(populate_by_name=True)


class EntitlementResponse(BaseModel):
    subscribed: bool
    tier: Tier
    subscription: Optional[SubscriptionSummary] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_entitlement(cls, entitlement: Entitlement) -> "EntitlementResponse":
        record = entitlement.record
        summary = None
        if record is not None:
            summary = SubscriptionSummary(
                subscription_id=record.subscription_id,
                status=record.status,
                price_id=record.price_id,
                product_id=record.product_id,
                current_period_end=record.current_period_end,
                cancel_at_period_end=record.cancel_at_period_end,
            )
        return cls(subscribed=entitlement.subscribed, tier=entitlement.tier, subscription=summary)


class InvoiceListResponse(BaseModel):
    invoices: List[InvoiceRecord]

    model_config = ConfigDict(populate_by_name=True)


class PlanResponse(BaseModel):
    tier: Tier
    display_name: str = Field(alias="displayName")
    description: str
    monthly_price: int = Field(alias="monthlyPrice")
    price_id: Optional[str] = Field(alias="priceId", default=None)
    product_id: Optional[str] = Field(alias="productId", default=None)
    features: List[str]
    popular: bool = False

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_plan(cls, plan: PlanDefinition) -> "PlanResponse":
        return cls(
            tier=plan.tier,
            display_name=plan.display_name,
            description=plan.description,
            monthly_price=plan.monthly_price,
            price_id=plan.price_id,
            product_id=plan.product_id,
            features=list(plan.features),
            popular=plan.popular,
        )


class PlanListResponse(BaseModel):
    plans: List[PlanResponse]


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str
    event_id: Optional[str] = Field(alias="eventId", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: ProcessingResult) -> "WebhookAck":
        return cls(outcome=result.outcome.value, event_id=result.event_id)
