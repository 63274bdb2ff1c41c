"""Identity and session cookie configuration."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional
import os

_TRUE_VALUES = {"1", "true", "yes", "on"}
_SUPPORTED_PROVIDERS = {"firebase", "jwt"}


@dataclass(frozen=True)
class IdentityConfig:
    """Settings for the identity provider and the session cookie it backs."""

    provider: str
    session_cookie_name: str
    session_cookie_secure: bool
    session_ttl: timedelta
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    firebase_credentials_path: Optional[str] = None


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def load_identity_config(env: Optional[Mapping[str, str]] = None) -> IdentityConfig:
    """Load :class:`IdentityConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    provider = (env_mapping.get("IDENTITY_PROVIDER") or "jwt").strip().lower()
    if provider not in _SUPPORTED_PROVIDERS:
        raise ValueError(f"Unsupported identity provider: {provider!r}")

    ttl_days_raw = env_mapping.get("SESSION_TTL_DAYS") or "14"
    try:
        ttl_days = int(ttl_days_raw)
    except ValueError as exc:
        raise ValueError(f"Expected integer value, got {ttl_days_raw!r}") from exc

    return IdentityConfig(
        provider=provider,
        session_cookie_name=env_mapping.get("SESSION_COOKIE_NAME") or "session",
        session_cookie_secure=_to_bool(env_mapping.get("SESSION_COOKIE_SECURE"), default=False),
        session_ttl=timedelta(days=max(1, ttl_days)),
        jwt_secret_key=env_mapping.get("JWT_SECRET_KEY") or "dev-secret-change-me",
        firebase_credentials_path=env_mapping.get("FIREBASE_CREDENTIALS_PATH") or None,
    )


__all__ = ["IdentityConfig", "load_identity_config"]
