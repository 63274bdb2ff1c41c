from __future__ import annotations

import pytest

from billing_fakes import PRICE_BUSINESS, PRODUCT_BUSINESS, build_subscription, utc
from saas_backend.app.billing import MalformedEvent, OrphanSubscription, ReconcileOutcome, SubscriptionStatus
from saas_backend.app.billing.events import ProviderInvoice, ProviderSubscription


def _subscription(**kwargs) -> ProviderSubscription:
    return ProviderSubscription.model_validate(build_subscription(**kwargs))


def test_reapplying_the_same_event_is_idempotent(reconciler, store) -> None:
    subscription = _subscription()

    first = reconciler.reconcile(subscription, event_time=utc(1_700_000_100))
    snapshot = store.subscriptions["sub_123"]
    second = reconciler.reconcile(subscription, event_time=utc(1_700_000_100))

    assert first is ReconcileOutcome.WRITTEN
    assert second is ReconcileOutcome.WRITTEN
    assert store.subscriptions["sub_123"] == snapshot
    assert len(store.subscriptions) == 1


def test_older_event_arriving_late_does_not_overwrite_newer_state(reconciler, store) -> None:
    newer = _subscription(
        status="past_due",
        price_id=PRICE_BUSINESS,
        product_id=PRODUCT_BUSINESS,
        period_end=1_705_000_000,
    )
    older = _subscription(status="active", period_end=1_702_592_000)

    assert reconciler.reconcile(newer, event_time=utc(1_700_000_200)) is ReconcileOutcome.WRITTEN
    assert reconciler.reconcile(older, event_time=utc(1_700_000_100)) is ReconcileOutcome.STALE

    record = store.subscriptions["sub_123"]
    assert record.status is SubscriptionStatus.PAST_DUE
    assert record.price_id == PRICE_BUSINESS
    assert record.product_id == PRODUCT_BUSINESS
    assert record.current_period_end == utc(1_705_000_000)
    assert record.last_event_at == utc(1_700_000_200)


def test_write_without_event_time_always_applies(reconciler, store) -> None:
    reconciler.reconcile(_subscription(status="active"), event_time=utc(1_700_000_200))

    outcome = reconciler.reconcile(_subscription(status="unpaid"))

    assert outcome is ReconcileOutcome.WRITTEN
    assert store.subscriptions["sub_123"].status is SubscriptionStatus.UNPAID


def test_projection_carries_provider_fields(reconciler, store) -> None:
    subscription = _subscription(
        status="trialing",
        cancel_at_period_end=True,
        trial_start=1_700_000_000,
        trial_end=1_701_209_600,
    )

    reconciler.reconcile(subscription, event_time=utc(1_700_000_100))

    record = store.subscriptions["sub_123"]
    assert record.customer_id == "cus_abc"
    assert record.cancel_at_period_end is True
    assert record.created_at == utc(1_700_000_000)
    assert record.current_period_start == utc(1_700_000_000)
    assert record.trial_end == utc(1_701_209_600)


def test_deleted_subscription_keeps_provider_end_time(reconciler, store) -> None:
    subscription = _subscription(status="canceled", ended_at=1_700_400_000, canceled_at=1_700_300_000)

    reconciler.reconcile_deleted(subscription, event_time=utc(1_700_500_000))

    record = store.subscriptions["sub_123"]
    assert record.status is SubscriptionStatus.CANCELED
    assert record.ended_at == utc(1_700_400_000)
    assert record.canceled_at == utc(1_700_300_000)


def test_deleted_subscription_is_forced_to_canceled(reconciler, store) -> None:
    reconciler.reconcile_deleted(_subscription(status="active"), event_time=utc(1_700_500_000))

    record = store.subscriptions["sub_123"]
    assert record.status is SubscriptionStatus.CANCELED
    assert record.ended_at == utc(1_700_500_000)
    assert record.canceled_at == utc(1_700_500_000)


def test_orphan_subscription_is_rejected_without_write(reconciler, store) -> None:
    with pytest.raises(OrphanSubscription) as exc:
        reconciler.reconcile(_subscription(account_id=None), event_time=utc(1_700_000_100))

    assert exc.value.subscription_id == "sub_123"
    assert store.subscription_writes == 0


def test_fetch_subscription_wraps_unexpected_shape(reconciler, provider) -> None:
    payload = build_subscription()
    del payload["items"]
    provider.subscriptions["sub_123"] = payload

    with pytest.raises(MalformedEvent):
        reconciler.fetch_subscription("sub_123")


def test_invoice_that_cannot_be_recorded_is_malformed(reconciler, store, provider) -> None:
    invoice = ProviderInvoice.model_construct(
        id="in_1",
        customer="cus_abc",
        subscription="sub_123",
        currency="us dollars",
        created=1_700_000_050,
    )

    with pytest.raises(MalformedEvent):
        reconciler.reconcile_invoice(invoice, event_time=utc(1_700_000_100), payment_failed=False)

    assert store.invoices == {}
    assert provider.retrieve_calls == []


def test_late_invoice_event_applies_refetched_state(reconciler, store, provider) -> None:
    reconciler.reconcile(_subscription(status="active"), event_time=utc(1_700_000_300))
    provider.subscriptions["sub_123"] = build_subscription(status="past_due")
    invoice = ProviderInvoice.model_validate(
        {"id": "in_1", "subscription": "sub_123", "currency": "usd", "created": 1_700_000_050}
    )

    outcome = reconciler.reconcile_invoice(invoice, event_time=utc(1_700_000_100), payment_failed=True)

    assert outcome is ReconcileOutcome.WRITTEN
    record = store.subscriptions["sub_123"]
    assert record.status is SubscriptionStatus.PAST_DUE
    assert record.last_event_at == utc(1_700_000_300)
