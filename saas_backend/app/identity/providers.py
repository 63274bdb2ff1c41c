"""Identity providers that exchange identity tokens for session cookies."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Protocol

import firebase_admin
from firebase_admin import auth, credentials
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger("identity")


class IdentityError(Exception):
    """Raised when an identity token or session cookie cannot be verified."""


class IdentityClaims(BaseModel):
    """Verified identity of the caller."""

    uid: str
    email: Optional[str] = None
    name: Optional[str] = None

    model_config = ConfigDict(frozen=True)


@dataclass(frozen=True)
class IdentitySession:
    """A freshly minted session cookie and the identity it belongs to."""

    cookie: str
    claims: IdentityClaims


class IdentityProvider(Protocol):
    def create_session(self, id_token: str, *, expires_in: timedelta) -> IdentitySession:
        """Verify ``id_token`` and mint a session cookie valid for ``expires_in``."""

    def verify_session(self, session_cookie: str) -> IdentityClaims:
        """Return the claims for a session cookie or raise :class:`IdentityError`."""


def _claims_from_mapping(decoded: Mapping[str, Any], *, uid_key: str) -> IdentityClaims:
    uid = decoded.get(uid_key)
    if not uid:
        raise IdentityError("Token has no subject")
    return IdentityClaims(uid=str(uid), email=decoded.get("email"), name=decoded.get("name"))


class JWTIdentityProvider(IdentityProvider):
    """Self-contained HS256 provider for local development and tests.

    Identity tokens and session cookies are both JWTs signed with the same
    secret and told apart by the ``typ`` claim.
    """

    ID_TOKEN_TYPE = "id"
    SESSION_TYPE = "session"

    def __init__(self, secret_key: str, *, algorithm: str = "HS256") -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm

    def issue_id_token(
        self,
        uid: str,
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
        expires_in: timedelta = timedelta(hours=1),
    ) -> str:
        return self._encode(uid, email=email, name=name, token_type=self.ID_TOKEN_TYPE, expires_in=expires_in)

    def create_session(self, id_token: str, *, expires_in: timedelta) -> IdentitySession:
        claims = self._decode(id_token, expected_type=self.ID_TOKEN_TYPE)
        cookie = self._encode(
            claims.uid,
            email=claims.email,
            name=claims.name,
            token_type=self.SESSION_TYPE,
            expires_in=expires_in,
        )
        return IdentitySession(cookie=cookie, claims=claims)

    def verify_session(self, session_cookie: str) -> IdentityClaims:
        return self._decode(session_cookie, expected_type=self.SESSION_TYPE)

    def _encode(
        self,
        uid: str,
        *,
        email: Optional[str],
        name: Optional[str],
        token_type: str,
        expires_in: timedelta,
    ) -> str:
        payload = {
            "sub": uid,
            "typ": token_type,
            "exp": datetime.now(timezone.utc) + expires_in,
        }
        if email:
            payload["email"] = email
        if name:
            payload["name"] = name
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def _decode(self, token: str, *, expected_type: str) -> IdentityClaims:
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as exc:
            raise IdentityError(str(exc)) from exc
        if payload.get("typ") != expected_type:
            raise IdentityError(f"Expected a {expected_type} token")
        return _claims_from_mapping(payload, uid_key="sub")


class FirebaseIdentityProvider(IdentityProvider):
    """Provider backed by Firebase Authentication session cookies."""

    def __init__(self, app: firebase_admin.App) -> None:
        self._app = app

    @classmethod
    def from_credentials(cls, credentials_path: Optional[str] = None) -> "FirebaseIdentityProvider":
        return cls(get_firebase_app(credentials_path))

    def create_session(self, id_token: str, *, expires_in: timedelta) -> IdentitySession:
        try:
            decoded = auth.verify_id_token(id_token, app=self._app)
            cookie = auth.create_session_cookie(id_token, expires_in=expires_in, app=self._app)
        except (auth.InvalidIdTokenError, auth.UserDisabledError, ValueError) as exc:
            raise IdentityError(str(exc)) from exc
        return IdentitySession(cookie=cookie, claims=_claims_from_mapping(decoded, uid_key="uid"))

    def verify_session(self, session_cookie: str) -> IdentityClaims:
        try:
            decoded = auth.verify_session_cookie(session_cookie, check_revoked=True, app=self._app)
        except (auth.InvalidSessionCookieError, auth.RevokedSessionCookieError, auth.UserDisabledError, ValueError) as exc:
            raise IdentityError(str(exc)) from exc
        return _claims_from_mapping(decoded, uid_key="uid")


def get_firebase_app(credentials_path: Optional[str] = None) -> firebase_admin.App:
    """Return the default Firebase app, initializing it on first use."""

    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    # Without an explicit service account, fall back to application default credentials.
    cred = credentials.Certificate(credentials_path) if credentials_path else None
    app = firebase_admin.initialize_app(cred)
    logger.info("Firebase Admin initialized")
    return app


__all__ = [
    "FirebaseIdentityProvider",
    "IdentityClaims",
    "IdentityError",
    "IdentityProvider",
    "IdentitySession",
    "JWTIdentityProvider",
    "get_firebase_app",
]
