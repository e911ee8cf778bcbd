"""User directory and role assignment routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import Field

from intermax.auth_providers.base import Session
from intermax.authz import get_db, require_admin, require_permission, require_session
from intermax.core.models import CamelModel, DirectoryEntry, User
from intermax.rbac import PermissionAction
from intermax.services.users import UserService
from intermax.storage.database import Database

router = APIRouter(prefix="/api/users", tags=["Users"])
admin_router = APIRouter(prefix="/api/admin/users", tags=["Admin"])

_manage_users = require_permission(PermissionAction.MANAGE_USERS)


class AssignRoleRequest(CamelModel):
    role_id: str | None = Field(max_length=64)


class LegacyAssignRoleRequest(CamelModel):
    role: str = Field(min_length=1, max_length=64)


@router.get("", response_model=list[User])
async def list_users(session: Session = Depends(_manage_users), db: Database = Depends(get_db)):
    return await UserService(db).list_users(session)


@router.get("/list", response_model=list[DirectoryEntry])
async def directory(session: Session = Depends(require_session), db: Database = Depends(get_db)):
    """Minimal listing for member pickers; any signed-in user."""
    return await UserService(db).list_directory(session)


@router.patch("/{user_id}/role", response_model=User)
async def assign_role(
    user_id: str,
    req: AssignRoleRequest,
    session: Session = Depends(_manage_users),
    db: Database = Depends(get_db),
):
    return await UserService(db).assign_role(session, user_id, req.role_id)


@admin_router.patch("/{user_id}/role", response_model=User)
async def assign_role_by_name(
    user_id: str,
    req: LegacyAssignRoleRequest,
    session: Session = Depends(require_admin),
    db: Database = Depends(get_db),
):
    """Legacy role change by role name, restricted to the ADMIN role."""
    return await UserService(db).assign_role_by_name(session, user_id, req.role)
