"""API routes exposing billing functionality."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..billing import BillingDataError, TransientBillingError
from ..identity import IdentityClaims
from ..identity.dependencies import get_current_identity
from ..schemas.billing import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    EntitlementResponse,
    InvoiceListResponse,
    PlanListResponse,
    PlanResponse,
    PortalSessionResponse,
)
from ..services.billing import get_billing_service, get_entitlement_projector, get_plan_catalog

logger = logging.getLogger("billing")

router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.post("/checkout-session", response_model=CheckoutSessionResponse)
def create_checkout_session(
    payload: CheckoutSessionRequest,
    *,
    current_user: IdentityClaims = Depends(get_current_identity),
) -> CheckoutSessionResponse:
    service = get_billing_service()
    try:
        session = service.create_checkout_session(
            account_id=current_user.uid,
            price_id=payload.price_id,
            return_url=payload.return_url,
            email=current_user.email,
            name=current_user.name,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except BillingDataError as exc:
        logger.warning("Provider rejected billing request for account %s: %s", current_user.uid, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TransientBillingError as exc:
        logger.warning("Checkout session for account %s failed: %s", current_user.uid, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Billing is temporarily unavailable",
        ) from exc
    return CheckoutSessionResponse(session_id=str(session["id"]), url=session.get("url"))


@router.post("/portal-session", response_model=PortalSessionResponse)
def create_portal_session(
    *,
    current_user: IdentityClaims = Depends(get_current_identity),
) -> PortalSessionResponse:
    service = get_billing_service()
    try:
        session = service.create_portal_session(account_id=current_user.uid)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except BillingDataError as exc:
        logger.warning("Provider rejected billing request for account %s: %s", current_user.uid, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TransientBillingError as exc:
        logger.warning("Portal session for account %s failed: %s", current_user.uid, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Billing is temporarily unavailable",
        ) from exc
    return PortalSessionResponse(url=str(session.get("url", "")))


@router.get("/entitlement", response_model=EntitlementResponse)
def read_entitlement(
    *,
    current_user: IdentityClaims = Depends(get_current_identity),
) -> EntitlementResponse:
    entitlement = get_entitlement_projector().project(current_user.uid)
    return EntitlementResponse.from_entitlement(entitlement)


@router.get("/invoices", response_model=InvoiceListResponse)
def list_invoices(
    limit: int = Query(20, ge=1, le=100),
    *,
    current_user: IdentityClaims = Depends(get_current_identity),
) -> InvoiceListResponse:
    service = get_billing_service()
    invoices = service.list_invoices(account_id=current_user.uid, limit=limit)
    return InvoiceListResponse(invoices=list(invoices))


@router.get("/plans", response_model=PlanListResponse)
def list_plans() -> PlanListResponse:
    catalog = get_plan_catalog()
    return PlanListResponse(plans=[PlanResponse.from_plan(plan) for plan in catalog.values()])
