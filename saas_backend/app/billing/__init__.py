"""Billing domain package: webhook ingestion and subscription state sync."""

from .customers import ACCOUNT_METADATA_KEY, CustomerLinker
from .errors import (
    AccountNotFound,
    BillingDataError,
    BillingError,
    InvalidSignature,
    MalformedEvent,
    MissingCredentials,
    OrphanSubscription,
    ProviderObjectNotFound,
    ProviderRequestRejected,
    ProviderUnavailable,
    StoreUnavailable,
    TransientBillingError,
    VerificationError,
)
from .events import EventVerifier, VerifiedEvent, parse_event
from .models import (
    ACTIVE_STATUSES,
    Account,
    InvoiceRecord,
    ProcessingOutcome,
    ProcessingResult,
    ReconcileOutcome,
    SubscriptionRecord,
    SubscriptionStatus,
)
from .provider import PaymentProvider, StripePaymentProvider
from .reconciler import SubscriptionReconciler
from .router import WebhookRouter
from .service import BillingService
from .store import BillingStore

__all__ = [
    "ACCOUNT_METADATA_KEY",
    "ACTIVE_STATUSES",
    "Account",
    "AccountNotFound",
    "BillingDataError",
    "BillingError",
    "BillingService",
    "BillingStore",
    "CustomerLinker",
    "EventVerifier",
    "InvalidSignature",
    "InvoiceRecord",
    "MalformedEvent",
    "MissingCredentials",
    "OrphanSubscription",
    "PaymentProvider",
    "ProcessingOutcome",
    "ProcessingResult",
    "ProviderObjectNotFound",
    "ProviderRequestRejected",
    "ProviderUnavailable",
    "ReconcileOutcome",
    "StoreUnavailable",
    "StripePaymentProvider",
    "SubscriptionReconciler",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "TransientBillingError",
    "VerificationError",
    "VerifiedEvent",
    "WebhookRouter",
    "parse_event",
]
