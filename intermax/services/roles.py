"""Role and permission management.

Every operation requires the caller to hold MANAGE_USERS. System roles keep
their name and permission set; only their description may be edited.
"""

from __future__ import annotations

import logging
from typing import Any

from intermax.audit import record_audit_event
from intermax.auth_providers.base import Session
from intermax.authz import ensure_permission
from intermax.core.models import Role
from intermax.exceptions import ConflictError, InvalidOperation, NotFoundError, ValidationError
from intermax.rbac import PermissionAction, is_system_role, normalize_actions, normalize_name
from intermax.storage.database import Database

logger = logging.getLogger("intermax.services.roles")

RESERVED_NAME = "System role names are reserved"


def _clean_description(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _role_name(value: str) -> str:
    name = normalize_name(value)
    if len(name) < 2:
        raise ValidationError("Role name must be at least 2 characters")
    return name


class RoleService:
    """CRUD over roles and their permission sets."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def list_roles(self, actor: Session) -> list[Role]:
        ensure_permission(actor, PermissionAction.MANAGE_USERS)
        return await self.db.list_roles()

    async def create_role(
        self,
        actor: Session,
        name: str,
        description: str | None = None,
        permissions: list[str] | None = None,
    ) -> Role:
        ensure_permission(actor, PermissionAction.MANAGE_USERS)
        normalized = _role_name(name)
        if is_system_role(normalized):
            raise InvalidOperation(RESERVED_NAME)
        if await self.db.get_role_by_name(normalized) is not None:
            raise ConflictError("Role name already exists")

        actions = normalize_actions(permissions or [])
        role = await self.db.insert_role(normalized, _clean_description(description), actions)
        await record_audit_event(
            self.db,
            "ROLE",
            "role",
            role.id,
            user_id=actor.user_id,
            data={"action": "created", "name": role.name, "permissions": role.actions},
        )
        logger.info("Role %s created by %s", role.name, actor.user_id, extra={"user_id": actor.user_id})
        return role

    async def update_role(self, actor: Session, role_id: str, changes: dict[str, Any]) -> Role:
        """Apply *changes*, which holds only the fields the caller sent.

        Keys: ``name``, ``description``, ``permissions``. A ``permissions``
        entry replaces the whole set.
        """
        ensure_permission(actor, PermissionAction.MANAGE_USERS)
        role = await self.db.get_role(role_id)
        if role is None:
            raise NotFoundError("Role not found")

        new_name = _role_name(changes["name"]) if changes.get("name") is not None else None
        if role.is_system:
            if new_name is not None and new_name != role.name:
                raise InvalidOperation("System roles cannot be renamed")
            if changes.get("permissions") is not None:
                raise InvalidOperation("System roles cannot change permissions")

        fields: dict[str, Any] = {}
        if new_name is not None and new_name != role.name:
            if is_system_role(new_name):
                raise InvalidOperation(RESERVED_NAME)
            existing = await self.db.get_role_by_name(new_name)
            if existing is not None and existing.id != role.id:
                raise ConflictError("Role name already exists")
            fields["name"] = new_name

        if "description" in changes:
            fields["description"] = _clean_description(changes["description"])

        actions = None
        if changes.get("permissions") is not None:
            actions = normalize_actions(changes["permissions"])

        updated = await self.db.update_role(role.id, fields, actions)
        data: dict[str, Any] = {"action": "updated", "fields": sorted(fields)}
        if actions is not None:
            data["previous_permissions"] = role.actions
            data["permissions"] = updated.actions
        await record_audit_event(self.db, "ROLE", "role", role.id, user_id=actor.user_id, data=data)
        return updated

    async def delete_role(self, actor: Session, role_id: str) -> int:
        """Delete a custom role; returns how many users lost it."""
        ensure_permission(actor, PermissionAction.MANAGE_USERS)
        role = await self.db.get_role(role_id)
        if role is None:
            raise NotFoundError("Role not found")
        if role.is_system:
            raise InvalidOperation("System roles cannot be deleted")

        cleared = await self.db.delete_role(role.id)
        await record_audit_event(
            self.db,
            "ROLE",
            "role",
            role.id,
            user_id=actor.user_id,
            data={"action": "deleted", "name": role.name, "cleared_users": cleared},
        )
        logger.info(
            "Role %s deleted by %s, %d users cleared",
            role.name,
            actor.user_id,
            cleared,
            extra={"user_id": actor.user_id},
        )
        return cleared
