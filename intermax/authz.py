"""Authorization guards and resource-scoped checks.

Guards come in two shapes:

* FastAPI dependencies (``require_session``, ``require_permission(...)``,
  ``require_role(...)``, ``require_admin``) that return the caller's
  :class:`Session` or raise a typed :class:`AuthorizationError`.
* Resource checks (``can_*`` predicates and ``require_*`` helpers) that take
  the database and re-read the user's current role from the store on every
  call, so a role change is visible to them immediately.

A caller who cannot view a resource gets the same 404 as for a resource that
does not exist. A caller who can view it but not edit it gets 403.

Usage::

    @router.get("/things", dependencies=[Depends(require_permission("MANAGE_USERS"))])
    async def list_things(): ...
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request, Response

from intermax.auth import resolve_session
from intermax.auth_providers.base import Session
from intermax.core.models import BudgetWorkspace, Project, Task, User
from intermax.exceptions import Forbidden, NotFoundError, Unauthenticated
from intermax.rbac import ADMIN_ROLE_NAME, BUDGET_MANAGER_ROLES, PermissionAction, is_admin_role
from intermax.storage.database import Database

_audit_logger = logging.getLogger("intermax.audit")


def get_db(request: Request) -> Database:
    return request.app.state.db


def _deny(session: Session, reason: str, message: str = "Forbidden", **extra: str) -> Forbidden:
    _audit_logger.warning(
        "Authorization denied for %s: %s",
        session.user_id,
        reason,
        extra={"action": "authz_denied", "reason": reason, "user_id": session.user_id, **extra},
    )
    return Forbidden(message)


# ---------------------------------------------------------------------------
# Session guards
# ---------------------------------------------------------------------------


async def require_session(request: Request, response: Response) -> Session:
    """Return the caller's session or raise Unauthenticated (401)."""
    session = await resolve_session(request, response)
    if session is None:
        raise Unauthenticated()
    return session


def ensure_permission(session: Session, *actions: str) -> Session:
    """Return *session* when it holds every action, else raise Forbidden."""
    missing = [a for a in actions if not session.has_permission(a)]
    if missing:
        raise _deny(session, "missing_permission", permission=",".join(missing))
    return session


def ensure_role(session: Session, *names: str) -> Session:
    if session.role not in names:
        raise _deny(session, "role_not_allowed", permission=",".join(names))
    return session


def require_permission(*actions: str):
    """Dependency factory: require every one of *actions*."""

    async def _check(session: Session = Depends(require_session)) -> Session:
        return ensure_permission(session, *actions)

    return _check


def require_role(*names: str):
    """Dependency factory: require the session's role to be one of *names*."""

    async def _check(session: Session = Depends(require_session)) -> Session:
        return ensure_role(session, *names)

    return _check


require_admin = require_role(ADMIN_ROLE_NAME)


# ---------------------------------------------------------------------------
# Global grants (always read from the store)
# ---------------------------------------------------------------------------


def sees_all_projects(user: User) -> bool:
    return (
        is_admin_role(user.role_name)
        or PermissionAction.VIEW_PROJECT in user.permissions
        or PermissionAction.MANAGE_USERS in user.permissions
    )


def manages_budgets(user: User) -> bool:
    return user.role_name in BUDGET_MANAGER_ROLES or PermissionAction.MANAGE_USERS in user.permissions


def sees_all_workspaces(user: User) -> bool:
    return manages_budgets(user) or PermissionAction.VIEW_PROJECT in user.permissions


# ---------------------------------------------------------------------------
# Resource predicates
# ---------------------------------------------------------------------------


async def can_view_project(db: Database, user_id: str, project_id: str) -> bool:
    user = await db.get_user(user_id)
    if user is None:
        return False
    involvement = await db.get_project_involvement(project_id, user_id)
    if involvement is None:
        return False
    return sees_all_projects(user) or any(involvement.values())


async def can_edit_project_budget(db: Database, user_id: str, project_id: str) -> bool:
    user = await db.get_user(user_id)
    if user is None:
        return False
    involvement = await db.get_project_involvement(project_id, user_id)
    if involvement is None:
        return False
    return manages_budgets(user) or involvement["creator"] or involvement["member"]


async def _linked_project_member(db: Database, workspace: BudgetWorkspace, user_id: str) -> bool:
    if workspace.project_id is None:
        return False
    involvement = await db.get_project_involvement(workspace.project_id, user_id)
    return bool(involvement) and (involvement["creator"] or involvement["member"])


async def can_view_workspace(db: Database, user_id: str, workspace_id: str) -> bool:
    user = await db.get_user(user_id)
    workspace = await db.get_workspace(workspace_id)
    if user is None or workspace is None:
        return False
    if sees_all_workspaces(user) or workspace.owner_id == user_id:
        return True
    return await _linked_project_member(db, workspace, user_id)


async def can_edit_workspace_budget(db: Database, user_id: str, workspace_id: str) -> bool:
    user = await db.get_user(user_id)
    workspace = await db.get_workspace(workspace_id)
    if user is None or workspace is None:
        return False
    if manages_budgets(user) or workspace.owner_id == user_id:
        return True
    return await _linked_project_member(db, workspace, user_id)


async def can_view_task(db: Database, user_id: str, task_id: str) -> bool:
    task = await db.get_task(task_id)
    if task is None or not await db.user_exists(user_id):
        return False
    if task.assignee_id == user_id:
        return True
    return await can_view_project(db, user_id, task.project_id)


# ---------------------------------------------------------------------------
# Resource guards
# ---------------------------------------------------------------------------


async def require_project_view(db: Database, session: Session, project_id: str) -> Project:
    project = await db.get_project(project_id)
    if project is None or not await can_view_project(db, session.user_id, project_id):
        _audit_logger.info(
            "Project %s hidden from %s",
            project_id,
            session.user_id,
            extra={
                "action": "authz_denied",
                "reason": "project_not_visible",
                "user_id": session.user_id,
                "resource_type": "project",
                "resource_id": project_id,
            },
        )
        raise NotFoundError("Project not found")
    return project


async def require_project_budget_edit(db: Database, session: Session, project_id: str) -> Project:
    project = await require_project_view(db, session, project_id)
    if not await can_edit_project_budget(db, session.user_id, project_id):
        raise _deny(
            session,
            "project_budget_edit",
            "Not allowed to edit this project's budget",
            resource_type="project",
            resource_id=project_id,
        )
    return project


async def require_workspace_view(db: Database, session: Session, workspace_id: str) -> BudgetWorkspace:
    workspace = await db.get_workspace(workspace_id)
    if workspace is None or not await can_view_workspace(db, session.user_id, workspace_id):
        _audit_logger.info(
            "Workspace %s hidden from %s",
            workspace_id,
            session.user_id,
            extra={
                "action": "authz_denied",
                "reason": "workspace_not_visible",
                "user_id": session.user_id,
                "resource_type": "budget_workspace",
                "resource_id": workspace_id,
            },
        )
        raise NotFoundError("Workspace not found")
    return workspace


async def require_workspace_budget_edit(
    db: Database, session: Session, workspace_id: str
) -> BudgetWorkspace:
    workspace = await require_workspace_view(db, session, workspace_id)
    if not await can_edit_workspace_budget(db, session.user_id, workspace_id):
        raise _deny(
            session,
            "workspace_budget_edit",
            "Not allowed to edit this workspace's budget",
            resource_type="budget_workspace",
            resource_id=workspace_id,
        )
    return workspace


async def require_task_view(db: Database, session: Session, task_id: str) -> Task:
    task = await db.get_task(task_id)
    if task is None or not await can_view_task(db, session.user_id, task_id):
        raise NotFoundError("Task not found")
    return task
