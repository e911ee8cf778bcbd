"""Domain models for Intermax access control.

Wire format follows the web client: attributes are snake_case in Python and
camelCase on the wire (``is_system`` <-> ``isSystem``). Both spellings are
accepted on input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Roles and permissions
# ---------------------------------------------------------------------------


class Permission(CamelModel):
    id: str
    action: str


class Role(CamelModel):
    """A named bundle of permission actions."""

    id: str
    name: str
    description: str | None = None
    is_system: bool = False
    permissions: list[Permission] = Field(default_factory=list)

    @property
    def actions(self) -> list[str]:
        return [p.action for p in self.permissions]


class RoleView(CamelModel):
    """Role as embedded in a user record, permissions flattened to actions."""

    id: str
    name: str
    description: str | None = None
    is_system: bool = False
    permissions: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(CamelModel):
    id: str
    email: str
    name: str | None = None
    avatar_url: str | None = None
    created_at: datetime
    role: RoleView | None = None

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role else None

    @property
    def permissions(self) -> list[str]:
        return list(self.role.permissions) if self.role else []


class DirectoryEntry(CamelModel):
    id: str
    email: str
    name: str | None = None
    avatar_url: str | None = None


# ---------------------------------------------------------------------------
# Projects, tasks, budget workspaces
# ---------------------------------------------------------------------------


class ProjectMember(CamelModel):
    id: str
    user_id: str
    role_in_project: str | None = None


class Project(CamelModel):
    id: str
    code: str
    name: str
    status: str
    created_by_id: str | None = None
    budget_planned: float | None = None
    budget_actual: float | None = None
    created_at: datetime
    members: list[ProjectMember] = Field(default_factory=list)


class Task(CamelModel):
    id: str
    project_id: str
    title: str
    assignee_id: str | None = None
    depends_on: list[str] = Field(default_factory=list)
    progress: int = 0
    start: datetime | None = None
    end: datetime | None = None
    created_at: datetime


class BudgetWorkspace(CamelModel):
    id: str
    name: str
    description: str | None = None
    owner_id: str
    project_id: str | None = None
    planned: float | None = None
    actual: float | None = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------


class AuditEvent(CamelModel):
    id: str
    type: str
    entity: str
    entity_id: str
    user_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
