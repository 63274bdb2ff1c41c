"""API schemas for session cookie endpoints."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionRequest(BaseModel):
    id_token: str = Field(alias="idToken", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class SessionResponse(BaseModel):
    authenticated: bool
    uid: Optional[str] = None
