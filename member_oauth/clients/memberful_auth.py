"""
Memberful OAuth utilities.

These helpers manage the server-side authorization code flow and the token
refresh lifecycle.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from datetime import datetime, timezone
from hashlib import sha256
from typing import Any, Callable, Dict, Optional, Type
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from member_oauth.core.errors import (
    RefreshError,
    StateMismatchError,
    TokenExchangeError,
    UpstreamError,
)
from member_oauth.models.oauth import AuthorizationRequest, ClientCredentials, TokenPair
from member_oauth.utils.http import is_success, json_object, send_request

logger = logging.getLogger(__name__)

MAX_EXPIRES_IN = 10**9

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    _SIGNATURE_SIZE = 32

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise StateMismatchError("OAuth state is not valid base64.") from exc
        signature, serialized = decoded[: self._SIGNATURE_SIZE], decoded[self._SIGNATURE_SIZE :]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise StateMismatchError("Invalid OAuth state signature.")
        try:
            payload = json.loads(serialized)
        except ValueError as exc:
            raise StateMismatchError("OAuth state payload is not JSON.") from exc
        if not isinstance(payload, dict):
            raise StateMismatchError("OAuth state payload is not an object.")
        return payload


class MemberfulOAuthClient:
    """Build Memberful authorization URLs, exchange codes and refresh tokens."""

    def __init__(
        self,
        credentials: ClientCredentials,
        *,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._credentials = credentials
        self._timeout = timeout_seconds
        self._transport = transport
        self._clock = clock

    def build_authorization_url(self, state: str) -> str:
        """Construct the Memberful sign-in URL the user agent is redirected to."""
        request = AuthorizationRequest(
            client_id=self._credentials.client_id,
            redirect_uri=self._credentials.redirect_uri,
            state=state,
        )
        endpoint = self._credentials.authorization_endpoint
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(request.model_dump())}"

    async def exchange_authorization_code(self, code: str) -> TokenPair:
        """Exchange a one-time authorization code for a token pair."""
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._credentials.redirect_uri,
            "client_id": self._credentials.client_id,
            "client_secret": self._credentials.client_secret,
        }
        return await self._request_tokens(payload, TokenExchangeError)

    async def refresh_token(self, refresh_token: str) -> TokenPair:
        """
        Obtain a new access token using a refresh token.

        The returned pair carries whichever refresh token the provider sent
        back; when the response omits one the submitted token stays valid.
        """
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._credentials.client_id,
            "client_secret": self._credentials.client_secret,
        }
        return await self._request_tokens(
            payload, RefreshError, fallback_refresh_token=refresh_token
        )

    async def _request_tokens(
        self,
        payload: Dict[str, str],
        error_cls: Type[TokenExchangeError],
        *,
        fallback_refresh_token: Optional[str] = None,
    ) -> TokenPair:
        grant_type = payload["grant_type"]
        issued_at = self._clock()

        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await send_request(
                client,
                "POST",
                self._credentials.token_endpoint,
                data=payload,
                headers={"Accept": "application/json"},
            )

        body = json_object(response)
        if not is_success(response):
            if error_cls is RefreshError and response.status_code >= 500:
                raise UpstreamError(
                    "Token endpoint unavailable during refresh.",
                    status_code=response.status_code,
                )
            body = body or {}
            logger.warning(
                "Token endpoint rejected %s grant with status %s (%s)",
                grant_type,
                response.status_code,
                body.get("error"),
            )
            raise error_cls(
                "Token endpoint rejected the grant.",
                error=body.get("error"),
                error_description=body.get("error_description"),
                status_code=response.status_code,
            )

        if body is None:
            raise error_cls(
                "Token endpoint returned a malformed body.",
                status_code=response.status_code,
            )

        access_token = body.get("access_token")
        refresh_token = body.get("refresh_token") or fallback_refresh_token
        expires_in = body.get("expires_in")

        if not access_token or not refresh_token or expires_in is None:
            raise error_cls(
                "Incomplete token payload returned from Memberful.",
                status_code=response.status_code,
            )
        if not isinstance(access_token, str) or not isinstance(refresh_token, str):
            raise error_cls(
                "Token payload carries non-string tokens.",
                status_code=response.status_code,
            )
        try:
            expires_in_seconds = int(expires_in)
        except (TypeError, ValueError, OverflowError) as exc:
            raise error_cls(
                "Token payload carries a non-numeric expires_in.",
                status_code=response.status_code,
            ) from exc
        if not 0 < expires_in_seconds <= MAX_EXPIRES_IN:
            raise error_cls(
                "Token payload carries an out-of-range expires_in.",
                status_code=response.status_code,
            )

        try:
            token_pair = TokenPair.from_expires_in(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_in=expires_in_seconds,
                issued_at=issued_at,
                token_type=body.get("token_type") or "bearer",
            )
        except (ValidationError, OverflowError) as exc:
            raise error_cls(
                "Token payload could not be parsed.",
                status_code=response.status_code,
            ) from exc

        logger.info("Completed %s grant; token expires in %ss", grant_type, expires_in_seconds)
        return token_pair


__all__ = [
    "Clock",
    "MemberfulOAuthClient",
    "OAuthStateEncoder",
    "utcnow",
]
