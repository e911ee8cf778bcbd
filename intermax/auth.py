"""Session resolution for Intermax requests.

Clients supply the session token via:
- ``Authorization: Bearer <token>`` header (preferred)
- the session cookie (``IMX_SESSION_COOKIE``, default ``imx_session``)

The token carries a snapshot of the caller's role and permissions plus the
time that snapshot was taken. When the snapshot is older than
``IMX_SESSION_REFRESH_SECONDS`` (or empty), the role and permissions are
re-read from the store and, for cookie sessions, a fresh token is set.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response

from intermax.auth_providers.base import Session
from intermax.auth_providers.user_account import (
    UserAccountProvider,
    issue_session_token,
    refresh_session,
)
from intermax.config import settings

_audit_logger = logging.getLogger("intermax.audit")

_provider = UserAccountProvider()


def _extract_token(request: Request) -> tuple[str | None, str | None]:
    """Return ``(token, source)`` with source ``"bearer"`` or ``"cookie"``.

    Priority: Authorization Bearer > session cookie.
    """
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip(), "bearer"

    cookie = request.cookies.get(settings.session_cookie)
    if cookie:
        return cookie, "cookie"
    return None, None


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.session_cookie,
        token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.session_cookie, httponly=True, samesite="lax")


async def resolve_session(request: Request, response: Response | None = None) -> Session | None:
    """Resolve the caller's session, or None when there is no valid one.

    The result is cached on ``request.state.session`` for the rest of the
    request.
    """
    if hasattr(request.state, "session"):
        return request.state.session

    session: Session | None = None
    token, source = _extract_token(request)
    if token is not None:
        result = await _provider.authenticate(token)
        if not result.authenticated:
            _audit_logger.warning(
                "Auth failure (invalid token): %s %s",
                request.method,
                request.url.path,
                extra={
                    "action": "auth_failure",
                    "reason": "invalid_token",
                    "path": request.url.path,
                },
            )
        else:
            session = result.session

    if session is not None and session.is_stale(settings.session_refresh_seconds):
        refreshed = await refresh_session(request.app.state.db, session.user_id)
        if refreshed is None:
            _audit_logger.warning(
                "Auth failure (user gone): %s",
                session.user_id,
                extra={"action": "auth_failure", "reason": "user_missing", "user_id": session.user_id},
            )
        elif response is not None and source == "cookie":
            set_session_cookie(response, issue_session_token(refreshed))
        session = refreshed

    request.state.session = session
    return session
