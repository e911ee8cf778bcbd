"""User directory and user-role assignment."""

from __future__ import annotations

import logging

from intermax.audit import record_audit_event
from intermax.auth_providers.base import Session
from intermax.authz import ensure_permission
from intermax.core.models import DirectoryEntry, Role, User
from intermax.exceptions import InvalidOperation, NotFoundError
from intermax.rbac import PermissionAction, normalize_name
from intermax.storage.database import Database

logger = logging.getLogger("intermax.services.users")


class UserService:
    def __init__(self, db: Database) -> None:
        self.db = db

    @staticmethod
    def _check_not_self(actor: Session, user_id: str) -> None:
        if user_id == actor.user_id:
            raise InvalidOperation("Cannot modify own role")

    async def _apply(self, actor: Session, user_id: str, role: Role | None) -> User:
        previous = await self.db.get_user(user_id)
        if previous is None:
            raise NotFoundError("User not found")
        await self.db.set_user_role(user_id, role.id if role else None)
        user = await self.db.get_user(user_id)
        assert user is not None
        await record_audit_event(
            self.db,
            "USER",
            "user",
            user_id,
            user_id=actor.user_id,
            data={"action": "role_changed", "from": previous.role_name, "to": user.role_name},
        )
        logger.info(
            "User %s role %s -> %s by %s",
            user_id,
            previous.role_name,
            user.role_name,
            actor.user_id,
            extra={"user_id": actor.user_id},
        )
        return user

    async def assign_role(self, actor: Session, user_id: str, role_id: str | None) -> User:
        """Set (or clear, with None) the role of *user_id*.

        Callers may never change their own role.
        """
        ensure_permission(actor, PermissionAction.MANAGE_USERS)
        self._check_not_self(actor, user_id)
        role = None
        if role_id is not None:
            role = await self.db.get_role(role_id)
            if role is None:
                raise NotFoundError("Role not found")
        return await self._apply(actor, user_id, role)

    async def assign_role_by_name(self, actor: Session, user_id: str, role_name: str) -> User:
        ensure_permission(actor, PermissionAction.MANAGE_USERS)
        self._check_not_self(actor, user_id)
        role = await self.db.get_role_by_name(normalize_name(role_name))
        if role is None:
            raise NotFoundError("Role not found")
        return await self._apply(actor, user_id, role)

    async def list_users(self, actor: Session) -> list[User]:
        ensure_permission(actor, PermissionAction.MANAGE_USERS)
        return await self.db.list_users()

    async def list_directory(self, actor: Session) -> list[DirectoryEntry]:
        return await self.db.list_directory()
