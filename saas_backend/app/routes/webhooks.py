"""Inbound payment provider webhooks."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from ..billing import TransientBillingError, VerificationError
from ..schemas.billing import WebhookAck
from ..services.billing import get_billing_service

logger = logging.getLogger("billing.webhooks")

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def receive_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
) -> WebhookAck:
    # Signature verification needs the exact bytes that were signed.
    raw_body = await request.body()
    try:
        service = get_billing_service()
        result = await run_in_threadpool(service.handle_webhook, raw_body, stripe_signature)
    except VerificationError as exc:
        logger.warning("Rejected webhook: %s", exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook Error: {exc}") from exc
    except TransientBillingError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        ) from exc
    except Exception as exc:
        logger.exception("Unexpected failure while processing webhook")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        ) from exc

    return WebhookAck.from_result(result)
