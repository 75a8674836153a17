"""Schemas related to OAuth flows."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from member_oauth.models.session import AuthStatus


class OAuthCallbackParams(BaseModel):
    """Query parameters Memberful appends to the redirect URI."""

    code: Optional[str] = Field(None, description="Authorization code returned by Memberful.")
    state: Optional[str] = Field(None, description="Opaque state token issued when starting OAuth.")
    error: Optional[str] = Field(None, description="Error code when authorization was refused.")
    error_description: Optional[str] = None


class AuthorizationStartResponse(BaseModel):
    authorization_url: str


class TokenRefreshResponse(BaseModel):
    """Outcome of a refresh; the tokens themselves stay server-side."""

    status: AuthStatus
    expires_at: datetime


class SessionStatusResponse(BaseModel):
    status: AuthStatus
    expires_at: Optional[datetime] = None
    member_id: Optional[str] = None
    member_email: Optional[str] = None
    member_name: Optional[str] = None


__all__ = [
    "AuthorizationStartResponse",
    "OAuthCallbackParams",
    "SessionStatusResponse",
    "TokenRefreshResponse",
]
