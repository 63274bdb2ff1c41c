"""Application wiring for the identity provider."""
from __future__ import annotations

import logging
from functools import lru_cache

from ..identity import (
    FirebaseIdentityProvider,
    IdentityConfig,
    IdentityProvider,
    JWTIdentityProvider,
    load_identity_config,
)

logger = logging.getLogger("identity")


@lru_cache(maxsize=1)
def get_identity_config() -> IdentityConfig:
    return load_identity_config()


@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProvider:
    config = get_identity_config()
    if config.provider == "firebase":
        return FirebaseIdentityProvider.from_credentials(config.firebase_credentials_path)

    logger.info("Using the local JWT identity provider")
    return JWTIdentityProvider(config.jwt_secret_key, algorithm=config.jwt_algorithm)


__all__ = ["get_identity_config", "get_identity_provider"]
