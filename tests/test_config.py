from __future__ import annotations

import pytest
from pydantic import ValidationError

from member_oauth.core.config import AppSettings, MemberfulSettings, OAuthSettings


def _memberful(**overrides: str) -> MemberfulSettings:
    values = {
        "MEMBERFUL_SITE_URL": "https://jennysbakery.memberful.com/",
        "MEMBERFUL_CLIENT_ID": "client",
        "MEMBERFUL_CLIENT_SECRET": "secret",
        "MEMBERFUL_REDIRECT_URI": "http://localhost:3000/callback",
    }
    values.update(overrides)
    return MemberfulSettings(**values)


def test_endpoints_default_to_site_paths() -> None:
    settings = _memberful()
    credentials = settings.credentials()

    assert credentials.authorization_endpoint == "https://jennysbakery.memberful.com/oauth"
    assert credentials.token_endpoint == "https://jennysbakery.memberful.com/oauth/token"
    assert settings.member_api_url == "https://jennysbakery.memberful.com/api/graphql/member"
    assert credentials.redirect_uri == "http://localhost:3000/callback"


def test_endpoint_overrides_take_precedence() -> None:
    settings = _memberful(
        MEMBERFUL_TOKEN_URL="https://auth.example.com/token",
        MEMBERFUL_API_URL="https://api.example.com/member",
    )

    assert settings.credentials().token_endpoint == "https://auth.example.com/token"
    assert settings.member_api_url == "https://api.example.com/member"


def test_credentials_are_immutable() -> None:
    credentials = _memberful().credentials()

    with pytest.raises(ValidationError):
        credentials.client_id = "other"  # type: ignore[misc]


def test_client_secret_is_not_in_repr() -> None:
    assert "secret" not in repr(_memberful().credentials())


def test_oauth_settings_reject_non_positive_timeout() -> None:
    with pytest.raises(ValidationError):
        OAuthSettings(OAUTH_HTTP_TIMEOUT=0)


def test_port_is_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "8123")

    assert AppSettings().port == 8123


def test_port_defaults_to_3000(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PORT", raising=False)

    assert AppSettings().port == 3000
