"""HTTP utilities mapping transport failures onto the flow's error types."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from member_oauth.core.errors import UpstreamError


async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, converting timeouts and transport errors to ``UpstreamError``.

    Non-2xx responses are returned as-is; status handling belongs to the caller.
    """
    try:
        return await client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        raise UpstreamError(f"{method} {_redact(url)} timed out.") from exc
    except httpx.HTTPError as exc:
        raise UpstreamError(f"{method} {_redact(url)} failed: {exc.__class__.__name__}") from exc


def json_object(response: httpx.Response) -> Optional[Dict[str, Any]]:
    """Return the decoded JSON object body, or None when it is not one."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def is_success(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300


def _redact(url: str) -> str:
    return url.split("?", 1)[0]


__all__ = ["is_success", "json_object", "send_request"]
