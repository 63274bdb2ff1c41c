"""Core service coordinating billing flows with the payment provider."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from .customers import ACCOUNT_METADATA_KEY, CustomerLinker
from .events import EventVerifier
from .models import InvoiceRecord, ProcessingResult
from .provider import PaymentProvider
from .router import WebhookRouter
from .store import BillingStore


@dataclass
class BillingService:
    """Entry point for webhook ingestion and hosted checkout/portal sessions."""

    store: BillingStore
    provider: PaymentProvider
    verifier: EventVerifier
    router: WebhookRouter
    customer_linker: CustomerLinker
    webhook_secret: Optional[str]
    app_base_url: str

    def handle_webhook(self, raw_body: bytes, signature_header: Optional[str]) -> ProcessingResult:
        event = self.verifier.verify(raw_body, signature_header, self.webhook_secret)
        return self.router.route(event)

    def create_checkout_session(
        self,
        *,
        account_id: str,
        price_id: str,
        return_url: Optional[str] = None,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Dict[str, object]:
        if not price_id:
            raise ValueError("price_id is required")

        customer_id = self.customer_linker.get_or_create_customer(account_id, email=email, name=name)
        base_url = (return_url or self.app_base_url).rstrip("/")
        return self.provider.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            metadata={ACCOUNT_METADATA_KEY: account_id},
            success_url=f"{base_url}/dashboard/billing?success=true",
            cancel_url=f"{base_url}/pricing?canceled=true",
        )

    def create_portal_session(self, *, account_id: str) -> Dict[str, object]:
        account = self.store.get_account(account_id)
        if account is None or not account.billing_customer_id:
            raise LookupError("No billing customer for account")

        return self.provider.create_portal_session(
            customer_id=account.billing_customer_id,
            return_url=f"{self.app_base_url}/dashboard/billing",
        )

    def list_invoices(self, *, account_id: str, limit: int = 20) -> Sequence[InvoiceRecord]:
        account = self.store.get_account(account_id)
        if account is None or not account.billing_customer_id:
            return []
        return self.store.list_invoices_for_customer(account.billing_customer_id, limit=limit)


__all__ = ["BillingService"]
