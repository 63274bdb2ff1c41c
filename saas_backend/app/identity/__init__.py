"""Identity provider integration backing the session cookie."""

from .config import IdentityConfig, load_identity_config
from .providers import (
    FirebaseIdentityProvider,
    IdentityClaims,
    IdentityError,
    IdentityProvider,
    IdentitySession,
    JWTIdentityProvider,
)

__all__ = [
    "FirebaseIdentityProvider",
    "IdentityClaims",
    "IdentityConfig",
    "IdentityError",
    "IdentityProvider",
    "IdentitySession",
    "JWTIdentityProvider",
    "load_identity_config",
]
