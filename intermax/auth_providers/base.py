"""Session identity and authentication provider protocol."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class Session:
    """Caller identity resolved for one request.

    ``refreshed_at`` is the epoch second at which ``role`` and ``permissions``
    were last read from the store.
    """

    user_id: str
    email: str
    name: str | None = None
    role: str | None = None
    permissions: list[str] = field(default_factory=list)
    refreshed_at: int = field(default_factory=lambda: int(time.time()))

    def has_permission(self, action: str) -> bool:
        return action in self.permissions

    def is_stale(self, max_age_seconds: int, now: float | None = None) -> bool:
        """True when the role snapshot must be re-read from the store."""
        if not self.permissions:
            return True
        now = time.time() if now is None else now
        return now - self.refreshed_at >= max_age_seconds

    def to_claims(self) -> dict[str, Any]:
        return {
            "sub": self.user_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "permissions": list(self.permissions),
            "rra": self.refreshed_at,
        }

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> Session:
        permissions = claims.get("permissions") or []
        return cls(
            user_id=claims["sub"],
            email=claims.get("email", ""),
            name=claims.get("name"),
            role=claims.get("role"),
            permissions=[str(p) for p in permissions] if isinstance(permissions, list) else [],
            refreshed_at=int(claims.get("rra") or 0),
        )


@dataclass
class AuthResult:
    """Result of an authentication attempt."""

    authenticated: bool
    provider: str = ""
    session: Session | None = None
    error: str | None = None


@runtime_checkable
class AuthProvider(Protocol):
    """Protocol that all auth providers must implement."""

    name: str

    async def authenticate(self, token: str) -> AuthResult:
        """Authenticate a token and return an AuthResult."""
        ...
