"""Client for the Memberful member GraphQL API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from member_oauth.core.errors import UnauthorizedError, UpstreamError
from member_oauth.clients.memberful_auth import Clock, utcnow
from member_oauth.models.member import MemberProfile
from member_oauth.models.oauth import TokenPair
from member_oauth.utils.http import is_success, json_object, send_request

logger = logging.getLogger(__name__)

# Fixed field selection; MemberProfile mirrors it field for field.
MEMBER_QUERY = """
{
  currentMember {
    id
    email
    fullName
    subscriptions {
      active
      expiresAt
      plan {
        id
        name
      }
    }
  }
}
""".strip()


class MemberfulMemberClient:
    """Fetch the signed-in member's profile with a bearer token."""

    def __init__(
        self,
        *,
        api_url: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._api_url = api_url
        self._timeout = timeout_seconds
        self._transport = transport
        self._clock = clock

    async def fetch_profile(self, token_pair: TokenPair) -> MemberProfile:
        """Return the ``currentMember`` profile for the token's owner."""
        if token_pair.is_expired(self._clock()):
            raise UnauthorizedError("Access token has expired.")

        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await send_request(
                client,
                "GET",
                self._api_url,
                params={"query": MEMBER_QUERY},
                headers={
                    "Authorization": f"Bearer {token_pair.access_token}",
                    "Accept": "application/json",
                },
            )

        if response.status_code in (401, 403):
            raise UnauthorizedError(
                f"Member API rejected the access token ({response.status_code})."
            )
        if not is_success(response):
            raise UpstreamError(
                f"Member API returned status {response.status_code}.",
                status_code=response.status_code,
            )

        payload = json_object(response)
        if payload is None:
            raise UpstreamError("Member API returned a malformed body.")
        return self._parse_member(payload)

    @staticmethod
    def _parse_member(payload: Dict[str, Any]) -> MemberProfile:
        errors = payload.get("errors")
        if errors:
            logger.warning("Member API returned %d GraphQL error(s)", len(errors))
            raise UpstreamError("Member API returned GraphQL errors.")

        member = payload.get("currentMember")
        if member is None and isinstance(payload.get("data"), dict):
            member = payload["data"].get("currentMember")
        if not isinstance(member, dict):
            raise UpstreamError("Member API response is missing currentMember.")

        try:
            return MemberProfile.model_validate(member)
        except ValidationError as exc:
            raise UpstreamError("Member API returned an unexpected member shape.") from exc


__all__ = ["MEMBER_QUERY", "MemberfulMemberClient"]
