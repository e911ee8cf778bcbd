"""Projects, memberships and tasks, guarded by the resource-scoped checks."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from intermax.audit import record_audit_event
from intermax.auth_providers.base import Session
from intermax.authz import (
    ensure_permission,
    require_project_budget_edit,
    require_project_view,
    require_task_view,
)
from intermax.core.models import Project, ProjectMember, Task
from intermax.exceptions import ValidationError
from intermax.rbac import PermissionAction, is_admin_role
from intermax.storage.database import Database

logger = logging.getLogger("intermax.services.projects")

# Any of these lets the holder list every project.
_VIEW_ALL_ACTIONS = (
    PermissionAction.MANAGE_USERS,
    PermissionAction.CREATE_PROJECT,
    PermissionAction.VIEW_PROJECT,
)


class ProjectService:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def list_projects(self, actor: Session) -> list[Project]:
        user = await self.db.get_user(actor.user_id)
        if user is None:
            return []
        if is_admin_role(user.role_name) or any(a in user.permissions for a in _VIEW_ALL_ACTIONS):
            return await self.db.list_projects()
        return await self.db.list_projects(visible_to=user.id)

    async def create_project(
        self,
        actor: Session,
        code: str,
        name: str,
        status: str = "PLANNING",
        budget_planned: float | None = None,
        budget_actual: float | None = None,
    ) -> Project:
        ensure_permission(actor, PermissionAction.CREATE_PROJECT)
        code = code.strip().upper()
        if len(code) < 2:
            raise ValidationError("Project code must be at least 2 characters")
        if not name.strip():
            raise ValidationError("Project name is required")
        project = await self.db.insert_project(
            code,
            name.strip(),
            status,
            actor.user_id,
            budget_planned=budget_planned,
            budget_actual=budget_actual,
        )
        await record_audit_event(
            self.db,
            "PROJECT",
            "project",
            project.id,
            user_id=actor.user_id,
            data={"action": "created", "code": project.code},
        )
        return project

    async def get_project(self, actor: Session, project_id: str) -> Project:
        return await require_project_view(self.db, actor, project_id)

    async def update_budget(self, actor: Session, project_id: str, changes: dict[str, Any]) -> Project:
        project = await require_project_budget_edit(self.db, actor, project_id)
        fields = {k: changes[k] for k in ("budget_planned", "budget_actual") if k in changes}
        if not fields:
            raise ValidationError("Nothing to update")
        updated = await self.db.update_project_budget(project.id, fields)
        await record_audit_event(
            self.db,
            "BUDGET",
            "project",
            project.id,
            user_id=actor.user_id,
            data={
                "action": "budget_updated",
                "before": {k: getattr(project, k) for k in fields},
                "after": fields,
            },
        )
        return updated

    async def add_member(
        self, actor: Session, project_id: str, user_id: str, role_in_project: str | None = None
    ) -> ProjectMember:
        ensure_permission(actor, PermissionAction.ASSIGN_TASKS)
        project = await require_project_view(self.db, actor, project_id)
        if not await self.db.user_exists(user_id):
            raise ValidationError("User does not exist")
        member = await self.db.add_project_member(project.id, user_id, role_in_project)
        await record_audit_event(
            self.db,
            "PROJECT",
            "project",
            project.id,
            user_id=actor.user_id,
            data={"action": "member_added", "member": user_id},
        )
        return member

    async def create_task(
        self,
        actor: Session,
        project_id: str,
        title: str,
        assignee_id: str | None = None,
        depends_on: list[str] | None = None,
        progress: int = 0,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Task:
        project = await require_project_view(self.db, actor, project_id)
        if assignee_id is not None and assignee_id != actor.user_id:
            ensure_permission(actor, PermissionAction.ASSIGN_TASKS)
        if assignee_id is not None and not await self.db.user_exists(assignee_id):
            raise ValidationError("Assignee does not exist")
        return await self.db.insert_task(
            project.id,
            title.strip(),
            assignee_id=assignee_id,
            depends_on=depends_on,
            progress=progress,
            start=start.isoformat() if start else None,
            end=end.isoformat() if end else None,
        )

    async def get_task(self, actor: Session, task_id: str) -> Task:
        return await require_task_view(self.db, actor, task_id)
