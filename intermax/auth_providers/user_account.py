"""User account authentication provider with PBKDF2 passwords and JWT sessions."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import time

import jwt

from intermax.audit import record_audit_event
from intermax.auth_providers.base import AuthResult, Session
from intermax.config import settings
from intermax.core.models import User
from intermax.exceptions import NotFoundError, Unauthenticated
from intermax.rbac import PermissionAction, normalize_name

logger = logging.getLogger("intermax.auth_providers.user_account")

_JWT_ALGORITHM = "HS256"
_PBKDF2_ITERATIONS = 260_000
_INVALID_CREDENTIALS = "Invalid email or password"


def hash_password(password: str) -> str:
    """Hash password using PBKDF2-SHA256 (stdlib, no C dependency)."""
    salt = secrets.token_hex(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _PBKDF2_ITERATIONS)
    return f"pbkdf2:sha256:{_PBKDF2_ITERATIONS}${salt}${dk.hex()}"


def verify_password(password: str, password_hash: str | None) -> bool:
    """Verify password against PBKDF2-SHA256 hash."""
    if not password_hash:
        return False
    try:
        parts = password_hash.split("$")
        if len(parts) != 3:
            return False
        prefix_and_iterations = parts[0]  # pbkdf2:sha256:260000
        salt = parts[1]
        stored_hash = parts[2]
        iterations = int(prefix_and_iterations.split(":")[-1])
        dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
        return hmac.compare_digest(dk.hex(), stored_hash)
    except (ValueError, IndexError):
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


def session_from_user(user: User, now: float | None = None) -> Session:
    """Snapshot *user*'s current role and permissions into a session."""
    return Session(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role_name,
        permissions=user.permissions,
        refreshed_at=int(time.time() if now is None else now),
    )


def issue_session_token(session: Session, now: float | None = None) -> str:
    """Sign *session* into a JWT valid for ``IMX_SESSION_TTL_SECONDS``."""
    now = time.time() if now is None else now
    payload = {
        **session.to_claims(),
        "iat": int(now),
        "exp": int(now + settings.session_ttl_seconds),
    }
    return jwt.encode(payload, settings.session_secret, algorithm=_JWT_ALGORITHM)


def decode_session_token(token: str) -> dict | None:
    """Decode and validate a session token. Returns claims or None."""
    try:
        claims = jwt.decode(token, settings.session_secret, algorithms=[_JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None
    if not claims.get("sub"):
        return None
    return claims


async def refresh_session(db, user_id: str) -> Session | None:
    """Re-read role and permissions for *user_id*; None when the user is gone."""
    user = await db.get_user(user_id)
    if user is None:
        return None
    return session_from_user(user)


async def register_user(
    db,
    email: str,
    password: str,
    name: str | None = None,
    role: str | None = None,
    created_by: Session | None = None,
) -> User:
    """Create an account.

    A requested *role* is honoured only when *created_by* holds
    MANAGE_USERS; everyone else gets the configured default role.

    Raises:
        ConflictError: the email is already registered.
        NotFoundError: a privileged caller asked for an unknown role.
    """
    email = normalize_email(email)
    role_id: str | None = None
    if role and created_by is not None and created_by.has_permission(PermissionAction.MANAGE_USERS):
        found = await db.get_role_by_name(normalize_name(role))
        if found is None:
            raise NotFoundError("Role not found")
        role_id = found.id
    elif settings.default_user_role:
        default = await db.get_role_by_name(normalize_name(settings.default_user_role))
        if default is not None:
            role_id = default.id
        else:
            logger.warning("Default role %s does not exist; registering without a role",
                           settings.default_user_role)

    user = await db.insert_user(email, hash_password(password), name=name, role_id=role_id)
    await record_audit_event(
        db,
        "USER",
        "user",
        user.id,
        user_id=created_by.user_id if created_by else user.id,
        data={"action": "registered", "role": user.role_name},
    )
    logger.info("Registered user %s", user.id, extra={"user_id": user.id})
    return user


async def login_user(db, email: str, password: str) -> tuple[User, str]:
    """Authenticate user by email/password and return ``(user, token)``.

    Raises:
        Unauthenticated: unknown email or wrong password.
    """
    email = normalize_email(email)
    credentials = await db.get_password_hash(email)
    if credentials is None or not verify_password(password, credentials[1]):
        await record_audit_event(
            db,
            "AUTH",
            "user",
            credentials[0] if credentials else email,
            user_id=credentials[0] if credentials else None,
            data={"action": "login_failed", "email": email},
        )
        raise Unauthenticated(_INVALID_CREDENTIALS)

    user = await db.get_user(credentials[0])
    if user is None:
        raise Unauthenticated(_INVALID_CREDENTIALS)
    token = issue_session_token(session_from_user(user))
    await record_audit_event(
        db, "AUTH", "user", user.id, user_id=user.id, data={"action": "login", "role": user.role_name}
    )
    return user, token


class UserAccountProvider:
    """Authenticate via session tokens issued by the account system."""

    name = "user_account"

    async def authenticate(self, token: str) -> AuthResult:
        claims = decode_session_token(token)
        if claims is None:
            return AuthResult(
                authenticated=False,
                provider=self.name,
                error="Invalid or expired token",
            )
        return AuthResult(
            authenticated=True,
            provider=self.name,
            session=Session.from_claims(claims),
        )
