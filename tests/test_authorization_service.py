from __future__ import annotations

from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from member_oauth.clients.memberful_api import MemberfulMemberClient
from member_oauth.clients.memberful_auth import MemberfulOAuthClient, OAuthStateEncoder
from member_oauth.core.config import OAuthSettings
from member_oauth.core.errors import (
    RefreshError,
    SessionNotAuthenticatedError,
    StateMismatchError,
    TokenExchangeError,
    UnauthorizedError,
)
from member_oauth.models.oauth import ClientCredentials
from member_oauth.models.session import AuthStatus
from member_oauth.schemas.auth import OAuthCallbackParams
from member_oauth.services.authorization import AuthorizationFlowService
from member_oauth.services.sessions import SessionService
from member_oauth.services.token_cipher import TokenCipherService

SITE = "https://example.memberful.com"
MEMBER = {
    "id": "42",
    "email": "member@example.com",
    "fullName": "Jenny Baker",
    "subscriptions": [],
}


class FakeMemberful:
    """Token endpoint and member API backed by in-memory token tables."""

    def __init__(self) -> None:
        self.valid_codes = {"abc123": ("AT1", "RT1")}
        self.refresh_grants = {"RT1": ("AT2", "RT1")}
        self.valid_access_tokens = {"AT1", "AT2"}
        self.token_requests: list[dict[str, str]] = []
        self.api_tokens: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/token":
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            self.token_requests.append(form)
            if form["grant_type"] == "authorization_code":
                tokens = self.valid_codes.pop(form["code"], None)
            else:
                tokens = self.refresh_grants.get(form["refresh_token"])
            if tokens is None:
                return httpx.Response(400, json={"error": "invalid_grant"})
            access_token, refresh_token = tokens
            return httpx.Response(
                200,
                json={
                    "access_token": access_token,
                    "refresh_token": refresh_token,
                    "expires_in": 900,
                    "token_type": "bearer",
                },
            )

        token = request.headers["authorization"].removeprefix("Bearer ")
        self.api_tokens.append(token)
        if token not in self.valid_access_tokens:
            return httpx.Response(401, json={"error": "invalid_token"})
        return httpx.Response(200, json={"currentMember": MEMBER})


@pytest.fixture
def provider() -> FakeMemberful:
    return FakeMemberful()


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="secret-key")


@pytest.fixture
def sessions(session_store, cipher, clock) -> SessionService:
    return SessionService(session_store, cipher, clock=clock)


@pytest.fixture
def flow(provider, sessions, clock) -> AuthorizationFlowService:
    transport = httpx.MockTransport(provider)
    credentials = ClientCredentials(
        authorization_endpoint=f"{SITE}/oauth",
        token_endpoint=f"{SITE}/oauth/token",
        client_id="client",
        client_secret="secret",
        redirect_uri="http://localhost:3000/callback",
    )
    return AuthorizationFlowService(
        oauth_client=MemberfulOAuthClient(credentials, transport=transport, clock=clock),
        member_client=MemberfulMemberClient(
            api_url=f"{SITE}/api/graphql/member", transport=transport, clock=clock
        ),
        sessions=sessions,
        state_encoder=OAuthStateEncoder("state-secret"),
        oauth_settings=OAuthSettings(),
        clock=clock,
    )


def _state_from(url: str) -> str:
    return parse_qs(urlsplit(url).query)["state"][0]


async def _sign_in(flow: AuthorizationFlowService, session_id: str = "sid-1"):
    state = _state_from(flow.begin_authorization(session_id))
    return await flow.handle_callback(
        session_id, OAuthCallbackParams(code="abc123", state=state)
    )


@pytest.mark.asyncio
async def test_begin_authorization_marks_session_pending(flow, session_store) -> None:
    url = flow.begin_authorization("sid-1", redirect_to="/welcome")

    record = session_store.get("sid-1")
    assert record.status is AuthStatus.PENDING_CALLBACK
    assert record.pending_state == _state_from(url)
    assert record.redirect_to == "/welcome"


@pytest.mark.asyncio
async def test_each_authorization_gets_a_fresh_state(flow) -> None:
    first = _state_from(flow.begin_authorization("sid-1"))
    second = _state_from(flow.begin_authorization("sid-1"))

    assert first != second


@pytest.mark.asyncio
async def test_callback_stores_encrypted_tokens(flow, session_store, cipher, clock) -> None:
    token_pair = await _sign_in(flow)

    assert token_pair.access_token == "AT1"
    assert token_pair.refresh_token == "RT1"
    assert token_pair.expires_at == clock.now + timedelta(seconds=900)

    record = session_store.get("sid-1")
    assert record.status is AuthStatus.AUTHENTICATED
    assert record.pending_state is None
    assert record.access_token_encrypted != "AT1"
    assert cipher.decrypt(record.refresh_token_encrypted) == "RT1"


@pytest.mark.asyncio
@pytest.mark.parametrize("callback_state", [None, "", "forged-state"])
async def test_state_mismatch_never_exchanges_code(
    flow, provider, session_store, callback_state
) -> None:
    flow.begin_authorization("sid-1")

    with pytest.raises(StateMismatchError):
        await flow.handle_callback(
            "sid-1", OAuthCallbackParams(code="abc123", state=callback_state)
        )

    assert provider.token_requests == []
    assert session_store.get("sid-1").status is AuthStatus.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_state_cannot_be_replayed(flow, provider) -> None:
    state = _state_from(flow.begin_authorization("sid-1"))

    with pytest.raises(StateMismatchError):
        await flow.handle_callback("sid-1", OAuthCallbackParams(code="abc123", state="wrong"))
    with pytest.raises(StateMismatchError):
        await flow.handle_callback("sid-1", OAuthCallbackParams(code="abc123", state=state))

    assert provider.token_requests == []


@pytest.mark.asyncio
async def test_state_from_another_session_is_rejected(flow, provider) -> None:
    flow.begin_authorization("victim")
    attacker_state = _state_from(flow.begin_authorization("attacker"))

    with pytest.raises(StateMismatchError):
        await flow.handle_callback(
            "victim", OAuthCallbackParams(code="abc123", state=attacker_state)
        )
    assert provider.token_requests == []


@pytest.mark.asyncio
async def test_expired_state_is_rejected(flow, provider, clock) -> None:
    state = _state_from(flow.begin_authorization("sid-1"))
    clock.advance(OAuthSettings().state_ttl_seconds + 1)

    with pytest.raises(StateMismatchError):
        await flow.handle_callback("sid-1", OAuthCallbackParams(code="abc123", state=state))
    assert provider.token_requests == []


@pytest.mark.asyncio
async def test_provider_denial_surfaces_error(flow, provider, session_store) -> None:
    state = _state_from(flow.begin_authorization("sid-1"))

    with pytest.raises(TokenExchangeError) as excinfo:
        await flow.handle_callback(
            "sid-1",
            OAuthCallbackParams(
                state=state, error="access_denied", error_description="User cancelled"
            ),
        )

    assert excinfo.value.error == "access_denied"
    assert provider.token_requests == []
    assert session_store.get("sid-1").status is AuthStatus.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_rejected_code_leaves_session_unauthenticated(flow, session_store) -> None:
    state = _state_from(flow.begin_authorization("sid-1"))

    with pytest.raises(TokenExchangeError):
        await flow.handle_callback("sid-1", OAuthCallbackParams(code="bogus", state=state))

    record = session_store.get("sid-1")
    assert record.status is AuthStatus.UNAUTHENTICATED
    assert not record.has_tokens


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_and_fetch_retried(flow, provider, sessions, clock) -> None:
    await _sign_in(flow)
    clock.advance(901)
    assert sessions.status("sid-1") is AuthStatus.NEEDS_REFRESH

    profile = await flow.fetch_profile("sid-1")

    assert profile.email == "member@example.com"
    assert provider.token_requests[-1]["refresh_token"] == "RT1"
    assert provider.api_tokens == ["AT2"]
    assert sessions.status("sid-1") is AuthStatus.AUTHENTICATED
    assert sessions.get_tokens("sid-1").access_token == "AT2"


@pytest.mark.asyncio
async def test_revoked_access_token_triggers_single_refresh(flow, provider) -> None:
    await _sign_in(flow)
    provider.valid_access_tokens.discard("AT1")

    profile = await flow.fetch_profile("sid-1")

    assert profile.id == "42"
    assert provider.api_tokens == ["AT1", "AT2"]


@pytest.mark.asyncio
async def test_second_unauthorized_is_surfaced(flow, provider) -> None:
    await _sign_in(flow)
    provider.valid_access_tokens.clear()

    with pytest.raises(UnauthorizedError):
        await flow.fetch_profile("sid-1")

    refresh_calls = [r for r in provider.token_requests if r["grant_type"] == "refresh_token"]
    assert len(refresh_calls) == 1


@pytest.mark.asyncio
async def test_refresh_persists_rotated_refresh_token(flow, provider, sessions) -> None:
    await _sign_in(flow)
    provider.refresh_grants["RT1"] = ("AT3", "RT2")

    token_pair = await flow.refresh("sid-1")

    assert token_pair.refresh_token == "RT2"
    assert sessions.get_tokens("sid-1").refresh_token == "RT2"


@pytest.mark.asyncio
async def test_failed_refresh_resets_session(flow, provider, session_store) -> None:
    await _sign_in(flow)
    provider.refresh_grants.clear()

    with pytest.raises(RefreshError):
        await flow.refresh("sid-1")

    assert session_store.get("sid-1").status is AuthStatus.UNAUTHENTICATED
    with pytest.raises(SessionNotAuthenticatedError):
        await flow.fetch_profile("sid-1")


@pytest.mark.asyncio
async def test_unknown_session_is_not_authenticated(flow) -> None:
    with pytest.raises(SessionNotAuthenticatedError):
        await flow.refresh("nobody")


@pytest.mark.asyncio
async def test_fetch_profile_records_member_summary(flow, session_store) -> None:
    await _sign_in(flow)

    await flow.fetch_profile("sid-1")

    record = session_store.get("sid-1")
    assert record.member_id == "42"
    assert record.member_name == "Jenny Baker"
