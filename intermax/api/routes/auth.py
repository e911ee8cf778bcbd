"""Auth routes: registration, login, logout and the current session."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from pydantic import EmailStr, Field

from intermax.api.rate_limit import LOGIN_RATE_LIMIT, limiter
from intermax.audit import record_audit_event
from intermax.auth import clear_session_cookie, resolve_session, set_session_cookie
from intermax.auth_providers.base import Session
from intermax.auth_providers.user_account import (
    issue_session_token,
    login_user,
    refresh_session,
    register_user,
)
from intermax.authz import get_db, require_session
from intermax.core.models import CamelModel, User
from intermax.exceptions import Unauthenticated
from intermax.storage.database import Database

router = APIRouter(prefix="/api/auth", tags=["Auth"])


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=256)
    name: str | None = Field(default=None, max_length=128)
    role: str | None = Field(default=None, max_length=64)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=256)


class SessionInfo(CamelModel):
    user_id: str
    email: str
    name: str | None = None
    role: str | None = None
    permissions: list[str]

    @classmethod
    def of(cls, session: Session) -> SessionInfo:
        return cls(
            user_id=session.user_id,
            email=session.email,
            name=session.name,
            role=session.role,
            permissions=session.permissions,
        )


class TokenResponse(CamelModel):
    token: str
    session: SessionInfo


@router.post("/register", response_model=User, status_code=201)
async def register(req: RegisterRequest, request: Request, db: Database = Depends(get_db)):
    """Create an account. Only MANAGE_USERS holders may pick the role."""
    creator = await resolve_session(request)
    return await register_user(
        db, req.email, req.password, name=req.name, role=req.role, created_by=creator
    )


@router.post("/login", response_model=TokenResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(req: LoginRequest, request: Request, response: Response, db: Database = Depends(get_db)):
    """Login with email and password; sets the session cookie and returns the token."""
    user, token = await login_user(db, req.email, req.password)
    set_session_cookie(response, token)
    return TokenResponse(
        token=token,
        session=SessionInfo(
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=user.role_name,
            permissions=user.permissions,
        ),
    )


@router.post("/logout", status_code=204)
async def logout(request: Request, db: Database = Depends(get_db)):
    session = await resolve_session(request)
    if session is not None:
        await record_audit_event(
            db, "AUTH", "user", session.user_id, user_id=session.user_id, data={"action": "logout"}
        )
    response = Response(status_code=204)
    clear_session_cookie(response)
    return response


@router.get("/me", response_model=SessionInfo)
async def me(session: Session = Depends(require_session)):
    return SessionInfo.of(session)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    response: Response,
    session: Session = Depends(require_session),
    db: Database = Depends(get_db),
):
    """Re-read the caller's role and permissions and re-issue the token."""
    refreshed = await refresh_session(db, session.user_id)
    if refreshed is None:
        raise Unauthenticated()
    token = issue_session_token(refreshed)
    set_session_cookie(response, token)
    return TokenResponse(token=token, session=SessionInfo.of(refreshed))
