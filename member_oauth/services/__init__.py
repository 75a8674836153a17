"""Service layer exports."""

from .authorization import AuthorizationFlowService
from .sessions import SessionService
from .token_cipher import TokenCipherService

__all__ = [
    "AuthorizationFlowService",
    "SessionService",
    "TokenCipherService",
]
