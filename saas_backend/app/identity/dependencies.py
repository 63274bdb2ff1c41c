"""FastAPI dependencies resolving the caller from the session cookie."""
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from ... import app_context
from ..services.identity import get_identity_config
from .providers import IdentityClaims


def read_session_cookie(request: Request) -> Optional[str]:
    """Return the session cookie stored under the configured name."""

    return request.cookies.get(get_identity_config().session_cookie_name)


def get_current_identity(
    session_token: Optional[str] = Depends(read_session_cookie),
) -> IdentityClaims:
    return app_context.get_current_user(session_token=session_token)


def get_optional_identity(
    session_token: Optional[str] = Depends(read_session_cookie),
) -> Optional[IdentityClaims]:
    return app_context.get_optional_current_user(session_token=session_token)


__all__ = ["get_current_identity", "get_optional_identity", "read_session_cookie"]
