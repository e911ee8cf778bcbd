"""Budget workspaces."""

from __future__ import annotations

from typing import Any

from intermax.audit import record_audit_event
from intermax.auth_providers.base import Session
from intermax.authz import (
    require_project_budget_edit,
    require_workspace_budget_edit,
    require_workspace_view,
    sees_all_workspaces,
)
from intermax.core.models import BudgetWorkspace
from intermax.exceptions import ValidationError
from intermax.storage.database import Database


class BudgetService:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def list_workspaces(self, actor: Session) -> list[BudgetWorkspace]:
        user = await self.db.get_user(actor.user_id)
        if user is None:
            return []
        if sees_all_workspaces(user):
            return await self.db.list_workspaces()
        return await self.db.list_workspaces(visible_to=user.id)

    async def create_workspace(
        self,
        actor: Session,
        name: str,
        description: str | None = None,
        project_id: str | None = None,
    ) -> BudgetWorkspace:
        if project_id is not None:
            await require_project_budget_edit(self.db, actor, project_id)
        workspace = await self.db.insert_workspace(
            name.strip(),
            actor.user_id,
            description=description.strip() if description else None,
            project_id=project_id,
        )
        await record_audit_event(
            self.db,
            "BUDGET",
            "budget_workspace",
            workspace.id,
            user_id=actor.user_id,
            data={"action": "created", "project_id": project_id},
        )
        return workspace

    async def get_workspace(self, actor: Session, workspace_id: str) -> BudgetWorkspace:
        return await require_workspace_view(self.db, actor, workspace_id)

    async def update_budget(
        self, actor: Session, workspace_id: str, changes: dict[str, Any]
    ) -> BudgetWorkspace:
        workspace = await require_workspace_budget_edit(self.db, actor, workspace_id)
        fields = {k: changes[k] for k in ("planned", "actual") if k in changes}
        if not fields:
            raise ValidationError("Provide planned or actual")
        updated = await self.db.update_workspace_budget(workspace.id, fields)
        await record_audit_event(
            self.db,
            "BUDGET",
            "budget_workspace",
            workspace.id,
            user_id=actor.user_id,
            data={
                "action": "budget_updated",
                "before": {k: getattr(workspace, k) for k in fields},
                "after": fields,
            },
        )
        return updated
