"""
Authorization code flow orchestration.

Each operation works on exactly one session id: begin the flow, complete the
provider callback, refresh the token pair and fetch the member profile with a
single refresh-and-retry when the access token has lapsed.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

from member_oauth.clients.memberful_api import MemberfulMemberClient
from member_oauth.clients.memberful_auth import (
    Clock,
    MemberfulOAuthClient,
    OAuthStateEncoder,
    utcnow,
)
from member_oauth.core.config import OAuthSettings
from member_oauth.core.errors import (
    RefreshError,
    StateMismatchError,
    TokenExchangeError,
    UnauthorizedError,
)
from member_oauth.models.member import MemberProfile
from member_oauth.models.oauth import TokenPair
from member_oauth.schemas.auth import OAuthCallbackParams
from member_oauth.services.sessions import SessionService

logger = logging.getLogger(__name__)


class AuthorizationFlowService:
    """Composes the OAuth client, member client and session binding."""

    def __init__(
        self,
        *,
        oauth_client: MemberfulOAuthClient,
        member_client: MemberfulMemberClient,
        sessions: SessionService,
        state_encoder: OAuthStateEncoder,
        oauth_settings: OAuthSettings,
        clock: Clock = utcnow,
    ) -> None:
        self._oauth = oauth_client
        self._members = member_client
        self._sessions = sessions
        self._state_encoder = state_encoder
        self._state_ttl = timedelta(seconds=oauth_settings.state_ttl_seconds)
        self._clock = clock

    def begin_authorization(self, session_id: str, *, redirect_to: str | None = None) -> str:
        """Issue a fresh state for the session and return the provider URL."""
        issued_at = self._clock()
        state = self._state_encoder.encode(
            {"nonce": secrets.token_urlsafe(16), "issued_at": issued_at.isoformat()}
        )
        self._sessions.mark_pending(
            session_id, state=state, issued_at=issued_at, redirect_to=redirect_to
        )
        logger.info("Starting authorization code flow")
        return self._oauth.build_authorization_url(state=state)

    async def handle_callback(self, session_id: str, params: OAuthCallbackParams) -> TokenPair:
        """
        Validate the callback state and exchange the code for a token pair.

        The issued state is consumed before any check, so a failed callback
        leaves the session unauthenticated and the state unusable.
        """
        record = self._sessions.consume_pending_state(session_id)
        expected = record.pending_state
        if not expected or not params.state or not hmac.compare_digest(
            expected.encode("utf-8"), params.state.encode("utf-8")
        ):
            logger.warning("Rejected OAuth callback with mismatched state")
            raise StateMismatchError("OAuth state does not match the issued state.")

        self._check_state_age(self._state_encoder.decode(params.state))

        if params.error:
            logger.warning("Memberful declined authorization: %s", params.error)
            raise TokenExchangeError(
                "Authorization was not granted.",
                error=params.error,
                error_description=params.error_description,
            )
        if not params.code:
            raise TokenExchangeError(
                "Callback is missing the authorization code.", error="invalid_request"
            )

        token_pair = await self._oauth.exchange_authorization_code(params.code)
        self._sessions.store_tokens(session_id, token_pair, redirect_to=record.redirect_to)
        logger.info("Session authenticated")
        return token_pair

    async def refresh(self, session_id: str) -> TokenPair:
        """Swap the session's refresh token for a new pair and persist it."""
        current = self._sessions.get_tokens(session_id)
        try:
            token_pair = await self._oauth.refresh_token(current.refresh_token)
        except RefreshError:
            logger.warning("Refresh token rejected; session must sign in again")
            self._sessions.reset(session_id)
            raise
        self._sessions.store_tokens(session_id, token_pair)
        return token_pair

    async def fetch_profile(self, session_id: str) -> MemberProfile:
        """Fetch the member profile, refreshing and retrying once on 401."""
        token_pair = self._sessions.get_tokens(session_id)
        try:
            profile = await self._members.fetch_profile(token_pair)
        except UnauthorizedError:
            logger.info("Access token no longer accepted; refreshing once")
            token_pair = await self.refresh(session_id)
            profile = await self._members.fetch_profile(token_pair)
        self._sessions.record_member(session_id, profile)
        return profile

    def _check_state_age(self, state_data: dict) -> None:
        issued_at_raw = state_data.get("issued_at")
        if not issued_at_raw:
            raise StateMismatchError("Missing issued_at in state token.")
        try:
            issued_at = datetime.fromisoformat(issued_at_raw)
        except (TypeError, ValueError) as exc:
            raise StateMismatchError("Invalid issued_at in state token.") from exc
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)
        if self._clock() - issued_at > self._state_ttl:
            raise StateMismatchError("OAuth state token has expired.")


__all__ = ["AuthorizationFlowService"]
