"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI routes, the OAuth clients and
the maintenance scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from member_oauth.models.oauth import ClientCredentials


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class MemberfulSettings(BaseSettings):
    """Credentials and endpoints of the Memberful custom OAuth app."""

    model_config = SettingsConfigDict(extra="ignore")

    site_url: AnyHttpUrl = Field(
        ...,
        validation_alias="MEMBERFUL_SITE_URL",
        description="Account URL, e.g. https://example.memberful.com.",
    )
    client_id: str = Field(..., validation_alias="MEMBERFUL_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="MEMBERFUL_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="MEMBERFUL_REDIRECT_URI")
    authorization_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="MEMBERFUL_AUTHORIZATION_URL",
        description="Override for the authorization endpoint; defaults to {site}/oauth.",
    )
    token_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="MEMBERFUL_TOKEN_URL",
        description="Override for the token endpoint; defaults to {site}/oauth/token.",
    )
    api_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="MEMBERFUL_API_URL",
        description="Override for the member API; defaults to {site}/api/graphql/member.",
    )

    @property
    def base_url(self) -> str:
        return str(self.site_url).rstrip("/")

    @property
    def member_api_url(self) -> str:
        if self.api_url is not None:
            return str(self.api_url)
        return f"{self.base_url}/api/graphql/member"

    def credentials(self) -> ClientCredentials:
        """Build the immutable credential bundle used by the OAuth client."""
        authorization = self.authorization_url or f"{self.base_url}/oauth"
        token = self.token_url or f"{self.base_url}/oauth/token"
        return ClientCredentials(
            authorization_endpoint=str(authorization),
            token_endpoint=str(token),
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=str(self.redirect_uri),
        )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    state_secret: Optional[str] = Field(
        None,
        validation_alias="OAUTH_STATE_SECRET",
        description="Secret used to sign OAuth state values.",
    )
    session_cookie_name: str = Field(
        "member_session", validation_alias="SESSION_COOKIE_NAME"
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    http_timeout_seconds: float = Field(10.0, validation_alias="OAUTH_HTTP_TIMEOUT")

    @field_validator("state_ttl_seconds", "http_timeout_seconds")
    @classmethod
    def _require_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(extra="ignore")

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    port: int = Field(3000, validation_alias="PORT")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    session_db_path: str = Field("data/sessions.db", validation_alias="SESSION_DB_PATH")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    memberful: MemberfulSettings = Field(default_factory=MemberfulSettings)

    @property
    def secure_cookies(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "MemberfulSettings",
    "OAuthSettings",
    "SecuritySettings",
    "get_settings",
]
