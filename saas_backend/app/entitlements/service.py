"""Projects persisted subscription records into entitlement decisions."""
from __future__ import annotations

from typing import Mapping, Optional, Protocol, Sequence

from ..billing.models import SubscriptionRecord
from .catalog import tier_for_product
from .models import Entitlement, Tier


class SubscriptionReader(Protocol):
    """Read access to reconciled subscription records."""

    def list_subscriptions_for_account(self, account_id: str) -> Sequence[SubscriptionRecord]:
        ...


class EntitlementProjector:
    """Derives subscription state and tier for an account.

    The projector reads the store on every call and keeps no cache, so an
    entitlement always reflects the latest reconciled write.
    """

    def __init__(
        self,
        subscription_reader: SubscriptionReader,
        product_tiers: Mapping[str, Tier],
    ) -> None:
        self._subscription_reader = subscription_reader
        self._product_tiers = dict(product_tiers)

    def project(self, account_id: str) -> Entitlement:
        records = self._subscription_reader.list_subscriptions_for_account(account_id)
        selected = self._select_active(records)
        if selected is None:
            return Entitlement.free()

        return Entitlement(
            subscribed=True,
            tier=tier_for_product(selected.product_id, self._product_tiers),
            record=selected,
        )

    def _select_active(self, records: Sequence[SubscriptionRecord]) -> Optional[SubscriptionRecord]:
        active = [record for record in records if record.is_active]
        if not active:
            return None
        # One active subscription per account is expected; newest wins otherwise.
        return max(active, key=lambda record: (record.created_at, record.subscription_id))
