"""
Domain models for the OAuth authorization code flow.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClientCredentials(BaseModel):
    """Static provider endpoints and client credentials."""

    model_config = ConfigDict(frozen=True)

    authorization_endpoint: str
    token_endpoint: str
    client_id: str
    client_secret: str = Field(..., repr=False)
    redirect_uri: str


class AuthorizationRequest(BaseModel):
    """Query parameters sent to the provider's authorization endpoint."""

    response_type: Literal["code"] = "code"
    client_id: str
    redirect_uri: str
    state: str


class TokenPair(BaseModel):
    """Access and refresh tokens issued by the token endpoint."""

    access_token: str = Field(..., repr=False)
    refresh_token: str = Field(..., repr=False)
    expires_at: datetime
    token_type: Optional[str] = "bearer"

    @classmethod
    def from_expires_in(
        cls,
        *,
        access_token: str,
        refresh_token: str,
        expires_in: int,
        issued_at: datetime,
        token_type: Optional[str] = "bearer",
    ) -> "TokenPair":
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=issued_at + timedelta(seconds=expires_in),
            token_type=token_type,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return True once ``now`` has reached ``expires_at``."""
        current = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return current >= expires_at


__all__ = ["AuthorizationRequest", "ClientCredentials", "TokenPair"]
