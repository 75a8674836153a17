"""
Per-session authentication state persisted in the session store.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AuthStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    PENDING_CALLBACK = "pending_callback"
    AUTHENTICATED = "authenticated"
    NEEDS_REFRESH = "needs_refresh"


class SessionState(BaseModel):
    """Represents a session record stored server-side.

    Tokens are kept encrypted; the browser cookie only carries the session id.
    """

    status: AuthStatus = AuthStatus.UNAUTHENTICATED
    pending_state: Optional[str] = None
    state_issued_at: Optional[datetime] = None
    redirect_to: Optional[str] = None
    access_token_encrypted: Optional[str] = None
    refresh_token_encrypted: Optional[str] = None
    expires_at: Optional[datetime] = None
    member_id: Optional[str] = None
    member_email: Optional[str] = None
    member_name: Optional[str] = None
    updated_at: Optional[datetime] = Field(
        None, description="Last time the record was written."
    )

    @property
    def has_tokens(self) -> bool:
        return bool(
            self.access_token_encrypted
            and self.refresh_token_encrypted
            and self.expires_at
        )


__all__ = ["AuthStatus", "SessionState"]
