"""
FastAPI routes for the Memberful sign-in flow.

The routes stay thin: they resolve the session id from the cookie, call the
``AuthorizationFlowService`` and turn its results or errors into responses.
"""

from __future__ import annotations

import html
import json
import logging
import secrets
from http import HTTPStatus
from typing import Annotated, Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from member_oauth.core.config import AppSettings
from member_oauth.core.errors import (
    OAuthFlowError,
    RefreshError,
    SessionNotAuthenticatedError,
    StateMismatchError,
    TokenExchangeError,
    UnauthorizedError,
    UpstreamError,
)
from member_oauth.dependencies import (
    SettingsDependency,
    get_authorization_flow_service,
    get_session_service,
)
from member_oauth.models.member import MemberProfile
from member_oauth.models.session import AuthStatus
from member_oauth.schemas import (
    AuthorizationStartResponse,
    OAuthCallbackParams,
    SessionStatusResponse,
    TokenRefreshResponse,
)
from member_oauth.services import AuthorizationFlowService, SessionService

router = APIRouter()
logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
_MAX_SESSION_ID_LENGTH = 128

FlowDependency = Annotated[AuthorizationFlowService, Depends(get_authorization_flow_service)]
SessionsDependency = Annotated[SessionService, Depends(get_session_service)]


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/", response_class=HTMLResponse)
async def lobby() -> HTMLResponse:
    """Landing page linking to the sign-in route."""
    return _render_page(
        "Memberful OAuth sign-in",
        f'<p><a href="{LOGIN_PATH}">Sign in with Memberful</a></p>'
        '<p><a href="/profile">View my member profile</a></p>',
    )


@router.get(LOGIN_PATH, status_code=HTTPStatus.OK)
async def start_oauth_flow(
    request: Request,
    flow: FlowDependency,
    sessions: SessionsDependency,
    settings: SettingsDependency,
    redirect_to: Optional[str] = Query(
        default=None,
        description="Optional path to redirect back to on successful authentication.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Memberful sign-in page.",
    ),
) -> Response:
    """Kick off the OAuth flow by issuing a state and the authorization URL."""
    target = _safe_redirect_target(redirect_to, settings)
    previous_session_id = _session_id_from_cookie(request, settings)
    if previous_session_id:
        sessions.delete(previous_session_id)
    # Every sign-in gets a new id so a planted cookie is never authenticated.
    session_id = secrets.token_urlsafe(32)
    authorization_url = flow.begin_authorization(session_id, redirect_to=target)

    if redirect or _wants_html(request):
        response: Response = RedirectResponse(
            url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    else:
        response = JSONResponse(
            content=AuthorizationStartResponse(authorization_url=authorization_url).model_dump()
        )
    _set_session_cookie(response, session_id, settings)
    return response


@router.get("/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback(
    request: Request,
    flow: FlowDependency,
    sessions: SessionsDependency,
    settings: SettingsDependency,
    code: Optional[str] = Query(default=None, description="Authorization code."),
    state: Optional[str] = Query(default=None, description="OAuth state token."),
    error: Optional[str] = Query(default=None),
    error_description: Optional[str] = Query(default=None),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of rendering the profile.",
    ),
) -> Response:
    """Complete the code exchange, then load and show the member's profile."""
    params = OAuthCallbackParams(
        code=code, state=state, error=error, error_description=error_description
    )
    try:
        session_id = _session_id_from_cookie(request, settings)
        if not session_id:
            raise StateMismatchError("Callback arrived without a session cookie.")
        token_pair = await flow.handle_callback(session_id, params)
        profile = await flow.fetch_profile(session_id)
    except OAuthFlowError as exc:
        return _flow_error_response(request, exc)

    redirect_target = sessions.load(session_id).redirect_to or settings.frontend_base_url
    if redirect_target and (redirect or _wants_html(request)):
        return RedirectResponse(
            url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT
        )

    if _wants_html(request):
        return _render_profile(profile)

    return JSONResponse(
        content={
            "status": "connected",
            "expires_at": token_pair.expires_at.isoformat(),
            "redirect_to": str(redirect_target) if redirect_target else None,
            "member": profile.to_payload(),
        }
    )


@router.get("/profile", status_code=HTTPStatus.OK)
async def get_member_profile(
    request: Request,
    flow: FlowDependency,
    settings: SettingsDependency,
) -> Response:
    """Return the member profile, refreshing the access token at most once."""
    try:
        session_id = _require_session_id(request, settings)
        profile = await flow.fetch_profile(session_id)
    except OAuthFlowError as exc:
        return _flow_error_response(request, exc)

    if _wants_html(request):
        return _render_profile(profile)
    return JSONResponse(content=profile.to_payload())


@router.post("/refresh", status_code=HTTPStatus.OK)
async def refresh_tokens(
    request: Request,
    flow: FlowDependency,
    settings: SettingsDependency,
) -> Response:
    """Exchange the session's refresh token for a new access token."""
    try:
        session_id = _require_session_id(request, settings)
        token_pair = await flow.refresh(session_id)
    except OAuthFlowError as exc:
        return _flow_error_response(request, exc)

    payload = TokenRefreshResponse(
        status=AuthStatus.AUTHENTICATED, expires_at=token_pair.expires_at
    )
    return JSONResponse(content=payload.model_dump(mode="json"))


@router.get("/session", response_model=SessionStatusResponse)
async def get_session_status(
    request: Request,
    sessions: SessionsDependency,
    settings: SettingsDependency,
) -> SessionStatusResponse:
    session_id = _session_id_from_cookie(request, settings)
    if not session_id:
        return SessionStatusResponse(status=AuthStatus.UNAUTHENTICATED)
    record = sessions.load(session_id)
    return SessionStatusResponse(
        status=sessions.status(session_id),
        expires_at=record.expires_at,
        member_id=record.member_id,
        member_email=record.member_email,
        member_name=record.member_name,
    )


@router.post("/logout", status_code=HTTPStatus.OK)
async def logout(
    request: Request,
    sessions: SessionsDependency,
    settings: SettingsDependency,
) -> Response:
    """Forget the session's tokens and clear the cookie."""
    session_id = _session_id_from_cookie(request, settings)
    if session_id:
        sessions.delete(session_id)
    response = JSONResponse(content={"status": "signed_out"})
    response.delete_cookie(settings.security.session_cookie_name, path="/")
    return response


def _wants_html(request: Request) -> bool:
    accept_header = request.headers.get("accept", "")
    return "text/html" in accept_header.lower()


def _session_id_from_cookie(request: Request, settings: AppSettings) -> Optional[str]:
    session_id = request.cookies.get(settings.security.session_cookie_name)
    if not session_id or len(session_id) > _MAX_SESSION_ID_LENGTH:
        return None
    return session_id


def _require_session_id(request: Request, settings: AppSettings) -> str:
    session_id = _session_id_from_cookie(request, settings)
    if not session_id:
        raise SessionNotAuthenticatedError("No session cookie present.")
    return session_id


def _set_session_cookie(response: Response, session_id: str, settings: AppSettings) -> None:
    response.set_cookie(
        key=settings.security.session_cookie_name,
        value=session_id,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        path="/",
    )


def _safe_redirect_target(value: Optional[str], settings: AppSettings) -> Optional[str]:
    """Only allow local paths or URLs on the configured front-end origin."""
    if not value:
        return None
    # Browsers read a backslash as a slash, so "/\host" is protocol-relative.
    if "\\" not in value and value.isprintable():
        parts = urlsplit(value)
        if not parts.scheme and not parts.netloc:
            if parts.path.startswith("/") and not parts.path.startswith("//"):
                return value
        elif settings.frontend_base_url is not None:
            frontend = urlsplit(str(settings.frontend_base_url))
            if (parts.scheme.lower(), parts.netloc.lower()) == (
                frontend.scheme.lower(),
                frontend.netloc.lower(),
            ):
                return value
    raise HTTPException(
        status_code=HTTPStatus.BAD_REQUEST,
        detail="redirect_to must be a local path or a front-end URL.",
    )


def _flow_error_response(request: Request, exc: OAuthFlowError) -> Response:
    """Map a flow error to a restart redirect (browsers) or an HTTP error."""
    if isinstance(exc, UpstreamError):
        logger.warning("Memberful request failed: %s", exc)
        if _wants_html(request):
            return _render_page(
                "Memberful is unavailable",
                "<p>We could not reach Memberful. Please try again shortly.</p>",
                status_code=HTTPStatus.BAD_GATEWAY,
            )
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Memberful request failed; try again.",
        ) from exc

    if isinstance(exc, (RefreshError, UnauthorizedError, SessionNotAuthenticatedError)):
        status_code = HTTPStatus.UNAUTHORIZED
        detail = "Authentication required; sign in again."
    elif isinstance(exc, StateMismatchError):
        status_code = HTTPStatus.BAD_REQUEST
        detail = "OAuth state mismatch; restart sign-in."
    elif isinstance(exc, TokenExchangeError):
        status_code = HTTPStatus.BAD_REQUEST
        detail = "Failed to exchange authorization code."
    else:
        raise exc

    logger.info("Sign-in required: %s", exc.__class__.__name__)
    if _wants_html(request):
        return RedirectResponse(url=LOGIN_PATH, status_code=HTTPStatus.SEE_OTHER)
    raise HTTPException(status_code=status_code, detail=detail) from exc


def _render_profile(profile: MemberProfile) -> HTMLResponse:
    pretty = json.dumps(profile.to_payload(), indent=2)
    return _render_page(
        "Member's data",
        f"<pre>{html.escape(pretty)}</pre>",
    )


def _render_page(
    title: str, body: str, *, status_code: int = HTTPStatus.OK
) -> HTMLResponse:
    content = (
        "<html><head><title>{title}</title></head><body>"
        "<h1>{title}</h1>{body}</body></html>"
    ).format(title=html.escape(title), body=body)
    return HTMLResponse(content=content, status_code=status_code)


__all__ = ["router"]
