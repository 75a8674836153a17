"""Expose constructed client wrappers."""

from .memberful_api import MemberfulMemberClient
from .memberful_auth import MemberfulOAuthClient, OAuthStateEncoder
from .session_store import SessionStore, SQLiteSessionStore

__all__ = [
    "MemberfulMemberClient",
    "MemberfulOAuthClient",
    "OAuthStateEncoder",
    "SQLiteSessionStore",
    "SessionStore",
]
