"""Public schema exports."""

from .auth import (
    AuthorizationStartResponse,
    OAuthCallbackParams,
    SessionStatusResponse,
    TokenRefreshResponse,
)

__all__ = [
    "AuthorizationStartResponse",
    "OAuthCallbackParams",
    "SessionStatusResponse",
    "TokenRefreshResponse",
]
