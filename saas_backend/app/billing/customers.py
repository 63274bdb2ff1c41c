"""Links local accounts to payment provider customers."""
from __future__ import annotations

import logging
from typing import Optional

from .errors import AccountNotFound
from .provider import PaymentProvider
from .store import BillingStore

logger = logging.getLogger("billing")

ACCOUNT_METADATA_KEY = "account_id"


class CustomerLinker:
    """Sole writer of ``Account.billing_customer_id``."""

    def __init__(self, store: BillingStore, provider: PaymentProvider) -> None:
        self._store = store
        self._provider = provider

    def get_or_create_customer(
        self,
        account_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> str:
        account = self._store.get_account(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        if account.billing_customer_id:
            return account.billing_customer_id

        created_id = self._provider.create_customer(
            email=email or account.email,
            name=name or account.display_name,
            metadata={ACCOUNT_METADATA_KEY: account_id},
        )
        stored_id = self._store.set_billing_customer_id_if_absent(account_id, created_id)
        if stored_id is None:
            raise AccountNotFound(account_id)
        if stored_id != created_id:
            # A concurrent request linked first; the customer we created is unreferenced.
            logger.warning(
                "Concurrent customer creation for account=%s kept=%s orphaned=%s",
                account_id,
                stored_id,
                created_id,
            )
        else:
            logger.info("Linked billing customer %s to account %s", created_id, account_id)
        return stored_id

    def link_customer(self, account_id: str, customer_id: str) -> bool:
        """Attach ``customer_id`` to the account unless one is already set.

        Returns ``True`` when the account ends up linked to ``customer_id``.
        """

        stored_id = self._store.set_billing_customer_id_if_absent(account_id, customer_id)
        if stored_id is None:
            raise AccountNotFound(account_id)
        if stored_id != customer_id:
            logger.warning(
                "Account %s already linked to customer %s; ignoring %s",
                account_id,
                stored_id,
                customer_id,
            )
            return False
        return True


__all__ = ["ACCOUNT_METADATA_KEY", "CustomerLinker"]
