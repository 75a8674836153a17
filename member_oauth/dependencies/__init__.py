"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_authorization_flow_service,
    get_member_api_client,
    get_memberful_oauth_client,
    get_oauth_state_encoder,
    get_session_service,
    get_session_store,
    get_token_cipher_service,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_authorization_flow_service",
    "get_member_api_client",
    "get_memberful_oauth_client",
    "get_oauth_state_encoder",
    "get_session_service",
    "get_session_store",
    "get_token_cipher_service",
]
