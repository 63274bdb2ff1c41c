"""Dispatches verified provider events to reconciliation handlers."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from .errors import BillingDataError, TransientBillingError
from .events import (
    CHECKOUT_COMPLETED,
    INVOICE_PAYMENT_FAILED,
    INVOICE_PAYMENT_SUCCEEDED,
    SUBSCRIPTION_CREATED,
    SUBSCRIPTION_DELETED,
    SUBSCRIPTION_UPDATED,
    CheckoutCompletedEvent,
    InvoicePaymentFailedEvent,
    InvoicePaymentSucceededEvent,
    ProviderEvent,
    SubscriptionChangedEvent,
    SubscriptionDeletedEvent,
    VerifiedEvent,
    parse_event,
)
from .models import ProcessingOutcome, ProcessingResult
from .reconciler import SubscriptionReconciler

logger = logging.getLogger("billing.webhooks")

_Handler = Callable[[ProviderEvent], ProcessingResult]


class WebhookRouter:
    """Routes events by type.

    Unknown types and data errors are acknowledged so the provider does not
    redeliver them; transient errors propagate so it does.
    """

    def __init__(self, reconciler: SubscriptionReconciler) -> None:
        self._reconciler = reconciler
        self._handlers: Dict[str, _Handler] = {
            CHECKOUT_COMPLETED: self._handle_checkout_completed,
            SUBSCRIPTION_CREATED: self._handle_subscription_changed,
            SUBSCRIPTION_UPDATED: self._handle_subscription_changed,
            SUBSCRIPTION_DELETED: self._handle_subscription_deleted,
            INVOICE_PAYMENT_SUCCEEDED: self._handle_invoice,
            INVOICE_PAYMENT_FAILED: self._handle_invoice,
        }

    def route(self, event: VerifiedEvent) -> ProcessingResult:
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info("Ignoring unhandled event type %s id=%s", event.type, event.id)
            return _result(event.id, event.type, ProcessingOutcome.IGNORED)

        logger.info("Processing event %s id=%s", event.type, event.id)
        try:
            return handler(parse_event(event))
        except BillingDataError as exc:
            logger.error(
                "Dropping event %s id=%s: %s payload=%s",
                event.type,
                event.id,
                exc,
                event.data_object,
            )
            return _result(event.id, event.type, ProcessingOutcome.DROPPED, str(exc))
        except TransientBillingError as exc:
            logger.warning("Transient failure for event %s id=%s: %s", event.type, event.id, exc)
            raise

    def _handle_checkout_completed(self, event: CheckoutCompletedEvent) -> ProcessingResult:
        session = event.session
        if not session.subscription or not session.customer:
            logger.info("Checkout %s has no subscription or customer; ignoring", session.id)
            return _result(event.event_id, event.event_type, ProcessingOutcome.IGNORED)

        outcome = self._reconciler.reconcile_checkout(session, event_time=event.created_at)
        return _result(event.event_id, event.event_type, ProcessingOutcome.HANDLED, outcome.value)

    def _handle_subscription_changed(self, event: SubscriptionChangedEvent) -> ProcessingResult:
        outcome = self._reconciler.reconcile(event.subscription, event_time=event.created_at)
        return _result(event.event_id, event.event_type, ProcessingOutcome.HANDLED, outcome.value)

    def _handle_subscription_deleted(self, event: SubscriptionDeletedEvent) -> ProcessingResult:
        outcome = self._reconciler.reconcile_deleted(event.subscription, event_time=event.created_at)
        return _result(event.event_id, event.event_type, ProcessingOutcome.HANDLED, outcome.value)

    def _handle_invoice(self, event: InvoicePaymentSucceededEvent | InvoicePaymentFailedEvent) -> ProcessingResult:
        invoice = event.invoice
        if not invoice.subscription:
            logger.info("Invoice %s is not tied to a subscription; ignoring", invoice.id)
            return _result(event.event_id, event.event_type, ProcessingOutcome.IGNORED)

        outcome = self._reconciler.reconcile_invoice(
            invoice,
            event_time=event.created_at,
            payment_failed=isinstance(event, InvoicePaymentFailedEvent),
        )
        return _result(event.event_id, event.event_type, ProcessingOutcome.HANDLED, outcome.value)


def _result(
    event_id: str,
    event_type: str,
    outcome: ProcessingOutcome,
    detail: Optional[str] = None,
) -> ProcessingResult:
    return ProcessingResult(event_id=event_id, event_type=event_type, outcome=outcome, detail=detail)


__all__ = ["WebhookRouter"]
