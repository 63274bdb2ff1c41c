"""Session cookie endpoints backed by the identity provider."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..billing import Account
from ..identity import IdentityError
from ..identity.dependencies import read_session_cookie
from ..schemas.session import SessionRequest, SessionResponse
from ..services.billing import get_billing_store
from ..services.identity import get_identity_config, get_identity_provider

logger = logging.getLogger("identity")

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/session", response_model=SessionResponse)
def create_session(payload: SessionRequest, response: Response) -> SessionResponse:
    config = get_identity_config()
    provider = get_identity_provider()
    try:
        session = provider.create_session(payload.id_token, expires_in=config.session_ttl)
    except IdentityError as exc:
        logger.info("Session creation rejected: %s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid identity token") from exc

    claims = session.claims
    get_billing_store().create_account_if_absent(
        Account(
            account_id=claims.uid,
            email=claims.email,
            display_name=claims.name,
            created_at=datetime.now(timezone.utc),
        )
    )

    response.set_cookie(
        key=config.session_cookie_name,
        value=session.cookie,
        httponly=True,
        samesite="lax",
        secure=config.session_cookie_secure,
        max_age=int(config.session_ttl.total_seconds()),
        path="/",
    )
    logger.info("Session created for account %s", claims.uid)
    return SessionResponse(authenticated=True, uid=claims.uid)


@router.get("/session", response_model=SessionResponse)
def read_session(
    session_token: Optional[str] = Depends(read_session_cookie),
) -> SessionResponse:
    if not session_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        claims = get_identity_provider().verify_session(session_token)
    except IdentityError as exc:
        logger.info("Session verification failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated") from exc
    return SessionResponse(authenticated=True, uid=claims.uid)


@router.delete("/session", response_model=SessionResponse)
def delete_session(response: Response) -> SessionResponse:
    config = get_identity_config()
    response.delete_cookie(
        config.session_cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=config.session_cookie_secure,
    )
    return SessionResponse(authenticated=False)
