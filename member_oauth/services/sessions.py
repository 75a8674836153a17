"""
Session binding: per-session authentication state and encrypted tokens.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from member_oauth.clients.memberful_auth import Clock, utcnow
from member_oauth.clients.session_store import SessionStore
from member_oauth.core.errors import SessionNotAuthenticatedError
from member_oauth.models.member import MemberProfile
from member_oauth.models.oauth import TokenPair
from member_oauth.models.session import AuthStatus, SessionState
from member_oauth.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class SessionService:
    """Reads and writes ``SessionState`` records for one session id at a time."""

    def __init__(
        self,
        store: SessionStore,
        token_cipher: TokenCipherService,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._cipher = token_cipher
        self._clock = clock

    def load(self, session_id: str) -> SessionState:
        return self._store.get(session_id) or SessionState()

    def status(self, session_id: str) -> AuthStatus:
        """Return the session status, deriving ``needs_refresh`` from expiry."""
        state = self.load(session_id)
        if state.status is AuthStatus.AUTHENTICATED and state.expires_at is not None:
            expires_at = state.expires_at
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if self._clock() >= expires_at:
                return AuthStatus.NEEDS_REFRESH
        return state.status

    def mark_pending(
        self,
        session_id: str,
        *,
        state: str,
        issued_at: datetime,
        redirect_to: Optional[str] = None,
    ) -> None:
        """Start a new sign-in; any tokens from an earlier sign-in are dropped."""
        self._save(
            session_id,
            SessionState(
                status=AuthStatus.PENDING_CALLBACK,
                pending_state=state,
                state_issued_at=issued_at,
                redirect_to=redirect_to,
            ),
        )

    def consume_pending_state(self, session_id: str) -> SessionState:
        """
        Clear the pending state so it can never be reused.

        Returns the record as it was before clearing.
        """
        record = self.load(session_id)
        cleared = record.model_copy(
            update={
                "pending_state": None,
                "state_issued_at": None,
                "redirect_to": None,
                "status": (
                    AuthStatus.UNAUTHENTICATED
                    if record.status is AuthStatus.PENDING_CALLBACK
                    else record.status
                ),
            }
        )
        self._save(session_id, cleared)
        return record

    def store_tokens(
        self,
        session_id: str,
        token_pair: TokenPair,
        *,
        redirect_to: Optional[str] = None,
    ) -> None:
        record = self.load(session_id)
        access_encrypted, refresh_encrypted = self._cipher.seal_pair(token_pair)
        self._save(
            session_id,
            record.model_copy(
                update={
                    "status": AuthStatus.AUTHENTICATED,
                    "access_token_encrypted": access_encrypted,
                    "refresh_token_encrypted": refresh_encrypted,
                    "expires_at": token_pair.expires_at,
                    "redirect_to": redirect_to or record.redirect_to,
                }
            ),
        )

    def record_member(self, session_id: str, profile: MemberProfile) -> None:
        """Keep a small profile summary next to the tokens."""
        record = self.load(session_id)
        self._save(
            session_id,
            record.model_copy(
                update={
                    "member_id": profile.id,
                    "member_email": profile.email,
                    "member_name": profile.full_name,
                }
            ),
        )

    def get_tokens(self, session_id: str) -> TokenPair:
        record = self._store.get(session_id)
        if record is None or not record.has_tokens:
            raise SessionNotAuthenticatedError("No tokens stored for this session.")
        try:
            return self._cipher.open_pair(
                record.access_token_encrypted,  # type: ignore[arg-type]
                record.refresh_token_encrypted,  # type: ignore[arg-type]
                record.expires_at,  # type: ignore[arg-type]
            )
        except ValueError as exc:
            logger.warning("Discarding session tokens that no longer decrypt")
            self.reset(session_id)
            raise SessionNotAuthenticatedError(
                "Stored tokens could not be decrypted; sign in again."
            ) from exc

    def reset(self, session_id: str) -> None:
        """Return the session to ``unauthenticated``, dropping all token material."""
        self._save(session_id, SessionState(status=AuthStatus.UNAUTHENTICATED))

    def delete(self, session_id: str) -> None:
        self._store.delete(session_id)

    def _save(self, session_id: str, state: SessionState) -> None:
        state.updated_at = self._clock()
        self._store.put(session_id, state)


__all__ = ["SessionService"]
