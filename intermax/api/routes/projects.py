"""Project, membership and task routes."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import Field

from intermax.auth_providers.base import Session
from intermax.authz import get_db, require_permission, require_session
from intermax.core.models import CamelModel, Project, ProjectMember, Task
from intermax.rbac import PermissionAction
from intermax.services.projects import ProjectService
from intermax.storage.database import Database

router = APIRouter(prefix="/api", tags=["Projects"])


class CreateProjectRequest(CamelModel):
    code: str = Field(min_length=2, max_length=32)
    name: str = Field(min_length=1, max_length=200)
    status: str = Field(default="PLANNING", max_length=32)
    budget_planned: float | None = Field(default=None, ge=0)
    budget_actual: float | None = Field(default=None, ge=0)


class UpdateProjectBudgetRequest(CamelModel):
    budget_planned: float | None = Field(default=None, ge=0)
    budget_actual: float | None = Field(default=None, ge=0)


class AddMemberRequest(CamelModel):
    user_id: str = Field(min_length=1, max_length=64)
    role_in_project: str | None = Field(default=None, max_length=64)


class CreateTaskRequest(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    assignee_id: str | None = Field(default=None, max_length=64)
    depends_on: list[str] = Field(default_factory=list)
    progress: int = Field(default=0, ge=0, le=100)
    start: datetime | None = None
    end: datetime | None = None


@router.get("/projects", response_model=list[Project])
async def list_projects(session: Session = Depends(require_session), db: Database = Depends(get_db)):
    return await ProjectService(db).list_projects(session)


@router.post("/projects", response_model=Project, status_code=201)
async def create_project(
    req: CreateProjectRequest,
    session: Session = Depends(require_permission(PermissionAction.CREATE_PROJECT)),
    db: Database = Depends(get_db),
):
    return await ProjectService(db).create_project(
        session,
        req.code,
        req.name,
        status=req.status,
        budget_planned=req.budget_planned,
        budget_actual=req.budget_actual,
    )


@router.get("/projects/{project_id}", response_model=Project)
async def get_project(
    project_id: str, session: Session = Depends(require_session), db: Database = Depends(get_db)
):
    return await ProjectService(db).get_project(session, project_id)


@router.patch("/projects/{project_id}", response_model=Project)
async def update_project_budget(
    project_id: str,
    req: UpdateProjectBudgetRequest,
    session: Session = Depends(require_session),
    db: Database = Depends(get_db),
):
    return await ProjectService(db).update_budget(session, project_id, req.model_dump(exclude_unset=True))


@router.post("/projects/{project_id}/members", response_model=ProjectMember, status_code=201)
async def add_member(
    project_id: str,
    req: AddMemberRequest,
    session: Session = Depends(require_session),
    db: Database = Depends(get_db),
):
    return await ProjectService(db).add_member(session, project_id, req.user_id, req.role_in_project)


@router.post("/projects/{project_id}/tasks", response_model=Task, status_code=201)
async def create_task(
    project_id: str,
    req: CreateTaskRequest,
    session: Session = Depends(require_session),
    db: Database = Depends(get_db),
):
    return await ProjectService(db).create_task(
        session,
        project_id,
        req.title,
        assignee_id=req.assignee_id,
        depends_on=req.depends_on,
        progress=req.progress,
        start=req.start,
        end=req.end,
    )


@router.get("/tasks/{task_id}", response_model=Task)
async def get_task(task_id: str, session: Session = Depends(require_session), db: Database = Depends(get_db)):
    return await ProjectService(db).get_task(session, task_id)
