"""Reconciles provider subscription and invoice objects into local records."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from .customers import ACCOUNT_METADATA_KEY, CustomerLinker
from .errors import AccountNotFound, MalformedEvent, OrphanSubscription
from .events import (
    ProviderCheckoutSession,
    ProviderInvoice,
    ProviderSubscription,
    from_timestamp,
)
from .models import InvoiceRecord, ReconcileOutcome, SubscriptionRecord, SubscriptionStatus
from .provider import PaymentProvider
from .store import BillingStore

logger = logging.getLogger("billing")


class SubscriptionReconciler:
    """Sole writer of subscription and invoice records.

    Every write is a full-field upsert keyed by the provider's id, so
    re-applying an event restores the same record. The store rejects writes
    stamped with an older ``last_event_at`` than the stored record.
    The provider's status is trusted verbatim; transitions are not
    validated against the lifecycle graph.
    """

    def __init__(
        self,
        store: BillingStore,
        provider: PaymentProvider,
        customer_linker: CustomerLinker,
    ) -> None:
        self._store = store
        self._provider = provider
        self._customer_linker = customer_linker

    def reconcile(
        self,
        subscription: ProviderSubscription,
        *,
        event_time: Optional[datetime] = None,
    ) -> ReconcileOutcome:
        account_id = self.resolve_account_id(subscription)
        record = self._project(subscription, account_id, event_time)
        return self._write(record)

    def reconcile_deleted(
        self,
        subscription: ProviderSubscription,
        *,
        event_time: datetime,
    ) -> ReconcileOutcome:
        account_id = self.resolve_account_id(subscription)
        record = self._project(subscription, account_id, event_time)
        record = record.model_copy(
            update={
                "status": SubscriptionStatus.CANCELED,
                "ended_at": record.ended_at or event_time,
                "canceled_at": record.canceled_at or event_time,
            }
        )
        return self._write(record)

    def reconcile_checkout(
        self,
        session: ProviderCheckoutSession,
        *,
        event_time: datetime,
    ) -> ReconcileOutcome:
        if not session.subscription or not session.customer:
            raise ValueError("checkout session has no subscription or customer")

        subscription = self.fetch_subscription(session.subscription)
        account_id = self.resolve_account_id(subscription)
        stamp = self._refetch_stamp(subscription.id, event_time)
        outcome = self._write(self._project(subscription, account_id, stamp))

        try:
            self._customer_linker.link_customer(account_id, session.customer)
        except AccountNotFound:
            logger.warning(
                "Checkout %s completed for unknown account %s; customer %s not linked",
                session.id,
                account_id,
                session.customer,
            )
        return outcome

    def reconcile_invoice(
        self,
        invoice: ProviderInvoice,
        *,
        event_time: datetime,
        payment_failed: bool,
    ) -> ReconcileOutcome:
        if not invoice.subscription:
            raise ValueError("invoice is not tied to a subscription")

        try:
            record = InvoiceRecord(
                invoice_id=invoice.id,
                customer_id=invoice.customer,
                subscription_id=invoice.subscription,
                status=invoice.status,
                total=invoice.total,
                subtotal=invoice.subtotal,
                currency=invoice.currency,
                period_start=from_timestamp(invoice.period_start),
                period_end=from_timestamp(invoice.period_end),
                created_at=from_timestamp(invoice.created),
                failure_message=invoice.failure_message if payment_failed else None,
            )
        except ValidationError as exc:
            raise MalformedEvent("invoice", str(exc)) from exc
        self._store.upsert_invoice(record)
        logger.info(
            "Invoice %s recorded status=%s subscription=%s",
            record.invoice_id,
            record.status,
            record.subscription_id,
        )

        # Payment outcome moves the subscription status without a separate update event.
        subscription = self.fetch_subscription(invoice.subscription)
        return self.reconcile(
            subscription,
            event_time=self._refetch_stamp(subscription.id, event_time),
        )

    def fetch_subscription(self, subscription_id: str) -> ProviderSubscription:
        raw = self._provider.retrieve_subscription(subscription_id)
        try:
            return ProviderSubscription.model_validate(raw)
        except ValidationError as exc:
            raise MalformedEvent("subscription", str(exc)) from exc

    def resolve_account_id(self, subscription: ProviderSubscription) -> str:
        account_id = subscription.metadata.get(ACCOUNT_METADATA_KEY)
        if account_id:
            return account_id

        existing = self._store.get_subscription(subscription.id)
        if existing is not None and existing.account_id:
            return existing.account_id

        raise OrphanSubscription(subscription.id)

    def _refetch_stamp(self, subscription_id: str, event_time: datetime) -> datetime:
        """Stamp for a re-fetched subscription.

        A re-fetch returns the provider's current state, so it is never older
        than what is stored even when the triggering event arrives late.
        """
        existing = self._store.get_subscription(subscription_id)
        if existing is not None and existing.last_event_at is not None:
            return max(event_time, existing.last_event_at)
        return event_time

    def _project(
        self,
        subscription: ProviderSubscription,
        account_id: str,
        event_time: Optional[datetime],
    ) -> SubscriptionRecord:
        try:
            return SubscriptionRecord(
                subscription_id=subscription.id,
                account_id=account_id,
                status=subscription.status,
                price_id=subscription.price_id,
                product_id=subscription.product_id,
                current_period_start=from_timestamp(subscription.period_start),
                current_period_end=from_timestamp(subscription.period_end),
                cancel_at_period_end=subscription.cancel_at_period_end,
                created_at=from_timestamp(subscription.created),
                ended_at=from_timestamp(subscription.ended_at),
                canceled_at=from_timestamp(subscription.canceled_at),
                trial_start=from_timestamp(subscription.trial_start),
                trial_end=from_timestamp(subscription.trial_end),
                customer_id=subscription.customer,
                last_event_at=event_time,
            )
        except ValidationError as exc:
            raise MalformedEvent("subscription", str(exc)) from exc

    def _write(self, record: SubscriptionRecord) -> ReconcileOutcome:
        applied = self._store.upsert_subscription(record)
        if not applied:
            logger.warning(
                "Skipped stale write for subscription %s (event at %s)",
                record.subscription_id,
                record.last_event_at,
            )
            return ReconcileOutcome.STALE

        logger.info(
            "Subscription %s reconciled status=%s account=%s",
            record.subscription_id,
            record.status.value,
            record.account_id,
        )
        return ReconcileOutcome.WRITTEN


__all__ = ["SubscriptionReconciler"]
