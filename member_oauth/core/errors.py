"""Exceptions raised while talking to the membership provider."""

from __future__ import annotations

from typing import Optional


class OAuthFlowError(Exception):
    """Base class for sign-in and member API failures."""


class StateMismatchError(OAuthFlowError):
    """Raised when a callback's state does not match the issued state."""


class TokenExchangeError(OAuthFlowError):
    """Raised when the token endpoint rejects a grant or returns garbage."""

    def __init__(
        self,
        message: str,
        *,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.error_description = error_description
        self.status_code = status_code

    def __str__(self) -> str:
        message = super().__str__()
        if self.error:
            message = f"{message} ({self.error})"
        if self.error_description:
            message = f"{message}: {self.error_description}"
        return message


class RefreshError(TokenExchangeError):
    """Raised when a refresh token is expired, revoked or otherwise rejected."""


class UnauthorizedError(OAuthFlowError):
    """Raised when the access token is expired or revoked."""


class UpstreamError(OAuthFlowError):
    """Raised on timeouts, transport failures and unexpected provider responses."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionNotAuthenticatedError(OAuthFlowError):
    """Raised when no token pair is stored for a session."""


__all__ = [
    "OAuthFlowError",
    "RefreshError",
    "SessionNotAuthenticatedError",
    "StateMismatchError",
    "TokenExchangeError",
    "UnauthorizedError",
    "UpstreamError",
]
