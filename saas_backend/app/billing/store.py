"""Persistence operations required by the billing pipeline."""
from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .models import Account, InvoiceRecord, SubscriptionRecord


class BillingStore(Protocol):
    """Document-store view over the ``accounts``, ``subscriptions`` and ``invoices`` collections."""

    def get_account(self, account_id: str) -> Optional[Account]:
        ...

    def create_account_if_absent(self, account: Account) -> Account:
        """Insert ``account`` unless it exists; return the stored document."""
        ...

    def set_billing_customer_id_if_absent(self, account_id: str, customer_id: str) -> Optional[str]:
        """Conditionally link a customer id.

        Returns the customer id stored after the call (which differs from
        ``customer_id`` when another writer linked first), or ``None`` when
        the account does not exist.
        """
        ...

    def get_subscription(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        ...

    def upsert_subscription(self, record: SubscriptionRecord) -> bool:
        """Create or overwrite a subscription record.

        The write is skipped, returning ``False``, when the stored record
        carries a ``last_event_at`` newer than the incoming one.
        """
        ...

    def list_subscriptions_for_account(self, account_id: str) -> Sequence[SubscriptionRecord]:
        ...

    def upsert_invoice(self, invoice: InvoiceRecord) -> InvoiceRecord:
        ...

    def list_invoices_for_customer(self, customer_id: str, *, limit: int = 20) -> Sequence[InvoiceRecord]:
        ...


__all__ = ["BillingStore"]
