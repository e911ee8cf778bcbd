"""Budget workspace routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import Field, model_validator

from intermax.auth_providers.base import Session
from intermax.authz import get_db, require_session
from intermax.core.models import BudgetWorkspace, CamelModel
from intermax.services.budgets import BudgetService
from intermax.storage.database import Database

router = APIRouter(prefix="/api/budgets/workspaces", tags=["Budgets"])


class CreateWorkspaceRequest(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=500)
    project_id: str | None = Field(default=None, max_length=64)


class UpdateWorkspaceBudgetRequest(CamelModel):
    planned: float | None = Field(default=None, ge=0)
    actual: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def require_one_field(self) -> UpdateWorkspaceBudgetRequest:
        if not self.model_fields_set & {"planned", "actual"}:
            msg = "Provide planned or actual"
            raise ValueError(msg)
        return self


@router.get("", response_model=list[BudgetWorkspace])
async def list_workspaces(session: Session = Depends(require_session), db: Database = Depends(get_db)):
    return await BudgetService(db).list_workspaces(session)


@router.post("", response_model=BudgetWorkspace, status_code=201)
async def create_workspace(
    req: CreateWorkspaceRequest,
    session: Session = Depends(require_session),
    db: Database = Depends(get_db),
):
    return await BudgetService(db).create_workspace(
        session, req.name, description=req.description, project_id=req.project_id
    )


@router.get("/{workspace_id}", response_model=BudgetWorkspace)
async def get_workspace(
    workspace_id: str, session: Session = Depends(require_session), db: Database = Depends(get_db)
):
    return await BudgetService(db).get_workspace(session, workspace_id)


@router.patch("/{workspace_id}", response_model=BudgetWorkspace)
async def update_workspace_budget(
    workspace_id: str,
    req: UpdateWorkspaceBudgetRequest,
    session: Session = Depends(require_session),
    db: Database = Depends(get_db),
):
    return await BudgetService(db).update_budget(session, workspace_id, req.model_dump(exclude_unset=True))
