import logging
import math
import os
from typing import Optional

import psycopg2
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

from saas_backend import app_context
from saas_backend.app.billing.repository import ensure_schema
from saas_backend.app.feature_gates import FeatureGateError
from saas_backend.app.identity import IdentityClaims, IdentityError
from saas_backend.app.identity.dependencies import read_session_cookie
from saas_backend.app.routes.billing import router as billing_router
from saas_backend.app.routes.premium import router as premium_router
from saas_backend.app.routes.session import router as session_router
from saas_backend.app.routes.webhooks import router as webhooks_router
from saas_backend.app.services.identity import get_identity_provider


load_dotenv()

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger("identity")


def _parse_connect_timeout(raw_value: str) -> int:
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


DB_CFG = dict(
    host=os.getenv("DB_HOST", "127.0.0.1"),
    port=int(os.getenv("DB_PORT", "5432")),
    dbname=os.getenv("DB_NAME", "saas_db"),
    user=os.getenv("DB_USER", "saas_user"),
    password=os.getenv("DB_PASSWORD", "saas_pass"),
    connect_timeout=_parse_connect_timeout(os.getenv("DB_CONNECT_TIMEOUT", "5")),
)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
ENSURE_SCHEMA_ON_STARTUP = os.getenv("DB_ENSURE_SCHEMA", "1").lower() in {"1", "true", "yes"}


def get_conn():
    return psycopg2.connect(**DB_CFG)


def resolve_identity_from_session_cookie(session_token: str) -> Optional[IdentityClaims]:
    try:
        return get_identity_provider().verify_session(session_token)
    except IdentityError as exc:
        logger.info("Rejected session cookie: %s", exc)
        return None


def get_current_user(
    session_token: Optional[str] = Depends(read_session_cookie),
) -> IdentityClaims:
    if not session_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    claims = resolve_identity_from_session_cookie(session_token)
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return claims


def get_optional_current_user(
    session_token: Optional[str] = Depends(read_session_cookie),
) -> Optional[IdentityClaims]:
    if not session_token:
        return None
    return resolve_identity_from_session_cookie(session_token)


app_context.configure(
    get_conn=get_conn,
    get_current_user=get_current_user,
    get_optional_current_user=get_optional_current_user,
)

app = FastAPI(title="SaaS Billing API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(session_router)
app.include_router(billing_router)
app.include_router(webhooks_router)
app.include_router(premium_router)


@app.exception_handler(FeatureGateError)
async def handle_feature_gate_error(request: Request, exc: FeatureGateError):
    return exc.to_response()


@app.on_event("startup")
def setup_billing_schema() -> None:
    if ENSURE_SCHEMA_ON_STARTUP:
        ensure_schema()


@app.get("/api/healthz")
def healthz():
    return {"ok": True}
