"""Role management routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from pydantic import Field, StringConstraints

from intermax.auth_providers.base import Session
from intermax.authz import get_db, require_permission, require_session
from intermax.core.models import CamelModel, Role
from intermax.rbac import PermissionAction, permission_options
from intermax.services.roles import RoleService
from intermax.storage.database import Database

router = APIRouter(prefix="/api/roles", tags=["Roles"])

PermissionString = Annotated[str, StringConstraints(min_length=1, max_length=128)]

_manage_users = require_permission(PermissionAction.MANAGE_USERS)


class CreateRoleRequest(CamelModel):
    name: str = Field(min_length=2, max_length=64)
    description: str | None = Field(default=None, max_length=255)
    permissions: list[PermissionString] = Field(default_factory=list)


class UpdateRoleRequest(CamelModel):
    name: str | None = Field(default=None, min_length=2, max_length=64)
    description: str | None = Field(default=None, max_length=255)
    permissions: list[PermissionString] | None = None


class PermissionOption(CamelModel):
    value: str
    label: str


@router.get("/catalog", response_model=list[PermissionOption])
async def catalog(session: Session = Depends(require_session)):
    """Known permission actions with display labels."""
    return permission_options()


@router.get("", response_model=list[Role])
async def list_roles(session: Session = Depends(_manage_users), db: Database = Depends(get_db)):
    return await RoleService(db).list_roles(session)


@router.post("", response_model=Role, status_code=201)
async def create_role(
    req: CreateRoleRequest,
    session: Session = Depends(_manage_users),
    db: Database = Depends(get_db),
):
    return await RoleService(db).create_role(session, req.name, req.description, req.permissions)


@router.patch("/{role_id}", response_model=Role)
async def update_role(
    role_id: str,
    req: UpdateRoleRequest,
    session: Session = Depends(_manage_users),
    db: Database = Depends(get_db),
):
    """Partial update; only the fields present in the body are applied."""
    return await RoleService(db).update_role(session, role_id, req.model_dump(exclude_unset=True))


@router.delete("/{role_id}", status_code=204)
async def delete_role(
    role_id: str,
    session: Session = Depends(_manage_users),
    db: Database = Depends(get_db),
):
    """Delete a custom role; users holding it are left without a role."""
    await RoleService(db).delete_role(session, role_id)
    return Response(status_code=204)
