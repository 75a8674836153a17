"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from fastapi import Depends

from member_oauth.clients import (
    MemberfulMemberClient,
    MemberfulOAuthClient,
    OAuthStateEncoder,
    SessionStore,
    SQLiteSessionStore,
)
from member_oauth.core.config import AppSettings, get_settings
from member_oauth.dependencies.config import get_app_settings
from member_oauth.services import (
    AuthorizationFlowService,
    SessionService,
    TokenCipherService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder, keyed by the client secret by default."""
    settings = _settings()
    secret = settings.security.state_secret or settings.memberful.client_secret
    return OAuthStateEncoder(secret_key=secret)


@lru_cache()
def get_memberful_oauth_client() -> MemberfulOAuthClient:
    """Create a singleton Memberful OAuth client."""
    settings = _settings()
    return MemberfulOAuthClient(
        settings.memberful.credentials(),
        timeout_seconds=settings.oauth.http_timeout_seconds,
    )


@lru_cache()
def get_member_api_client() -> MemberfulMemberClient:
    """Provide the member API client."""
    settings = _settings()
    return MemberfulMemberClient(
        api_url=settings.memberful.member_api_url,
        timeout_seconds=settings.oauth.http_timeout_seconds,
    )


@lru_cache()
def get_session_store() -> SessionStore:
    """Provide the shared SQLite session store."""
    settings = _settings()
    return SQLiteSessionStore(settings.session_db_path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.memberful.client_secret
    return TokenCipherService(secret=secret)


def get_session_service(
    store: SessionStore = Depends(get_session_store),
    token_cipher: TokenCipherService = Depends(get_token_cipher_service),
) -> SessionService:
    """Build the session binding service over the configured store."""
    return SessionService(store, token_cipher)


def get_authorization_flow_service(
    oauth_client: MemberfulOAuthClient = Depends(get_memberful_oauth_client),
    member_client: MemberfulMemberClient = Depends(get_member_api_client),
    sessions: SessionService = Depends(get_session_service),
    state_encoder: OAuthStateEncoder = Depends(get_oauth_state_encoder),
    settings: AppSettings = Depends(get_app_settings),
) -> AuthorizationFlowService:
    """Build the authorization flow service from its collaborators."""
    return AuthorizationFlowService(
        oauth_client=oauth_client,
        member_client=member_client,
        sessions=sessions,
        state_encoder=state_encoder,
        oauth_settings=settings.oauth,
    )


__all__ = [
    "get_authorization_flow_service",
    "get_member_api_client",
    "get_memberful_oauth_client",
    "get_oauth_state_encoder",
    "get_session_service",
    "get_session_store",
    "get_token_cipher_service",
]
