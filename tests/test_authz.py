"""Tests for authorization guards and resource-scoped checks."""

from __future__ import annotations

import logging

import pytest

from intermax.auth_providers.base import Session
from intermax.auth_providers.user_account import session_from_user
from intermax.authz import (
    can_edit_project_budget,
    can_edit_workspace_budget,
    can_view_project,
    can_view_task,
    can_view_workspace,
    ensure_permission,
    ensure_role,
    require_permission,
    require_project_budget_edit,
    require_project_view,
    require_role,
    require_task_view,
    require_workspace_budget_edit,
    require_workspace_view,
)
from intermax.exceptions import AuthorizationError, Forbidden, NotFoundError
from intermax.rbac import PermissionAction


def _session(*permissions: str, role: str | None = None) -> Session:
    return Session(user_id="u1", email="u1@example.com", role=role, permissions=list(permissions))


# ---------------------------------------------------------------------------
# Permission and role guards
# ---------------------------------------------------------------------------


class TestRequirePermission:
    @pytest.mark.parametrize("action", list(PermissionAction))
    async def test_granted_iff_held(self, action):
        holder = _session(action)
        assert await require_permission(action)(holder) is holder

        others = [a for a in PermissionAction if a != action]
        with pytest.raises(Forbidden):
            await require_permission(action)(_session(*others))

    async def test_every_action_required(self):
        session = _session("VIEW_PROJECT")
        with pytest.raises(Forbidden):
            ensure_permission(session, "VIEW_PROJECT", "ASSIGN_TASKS")
        assert ensure_permission(_session("VIEW_PROJECT", "ASSIGN_TASKS"), "VIEW_PROJECT", "ASSIGN_TASKS")

    async def test_forbidden_is_authorization_error_403(self):
        with pytest.raises(AuthorizationError) as exc_info:
            ensure_permission(_session(), "MANAGE_USERS")
        assert exc_info.value.status_code == 403

    async def test_denial_logged_on_audit_logger(self, caplog):
        with caplog.at_level(logging.WARNING, logger="intermax.audit"):
            with pytest.raises(Forbidden):
                ensure_permission(_session(), "MANAGE_USERS")
        record = caplog.records[-1]
        assert record.action == "authz_denied"
        assert record.permission == "MANAGE_USERS"


class TestRequireRole:
    async def test_matching_role(self):
        session = _session(role="PROJECT_MANAGER")
        assert await require_role("ADMIN", "PROJECT_MANAGER")(session) is session

    async def test_other_role_forbidden(self):
        with pytest.raises(Forbidden):
            ensure_role(_session(role="SYSTEM_ENGINEER"), "ADMIN")

    async def test_no_role_forbidden(self):
        with pytest.raises(Forbidden):
            ensure_role(_session(), "ADMIN")


# ---------------------------------------------------------------------------
# Resource-scoped checks
# ---------------------------------------------------------------------------


@pytest.fixture
def world(db, make_user):
    """Build a creator, a member, an outsider and one project."""

    async def _build():
        creator = await make_user(db, "creator@example.com", role="PROJECT_MANAGER")
        member = await make_user(db, "member@example.com")
        outsider = await make_user(db, "outsider@example.com")
        project = await db.insert_project("PRJ-1", "Pump station", "ACTIVE", creator.id)
        await db.add_project_member(project.id, member.id, "ENGINEER")
        return creator, member, outsider, project

    return _build


class TestProjectChecks:
    async def test_member_without_permissions_can_view(self, db, world):
        _, member, outsider, project = await world()
        assert await can_view_project(db, member.id, project.id) is True
        assert await can_view_project(db, outsider.id, project.id) is False

    async def test_global_view_permission(self, db, world, make_user):
        _, _, _, project = await world()
        engineer = await make_user(db, "eng@example.com", role="SYSTEM_ENGINEER")
        assert await can_view_project(db, engineer.id, project.id) is True

    async def test_assignee_can_view(self, db, world):
        _, _, outsider, project = await world()
        await db.insert_task(project.id, "Inspect valves", assignee_id=outsider.id)
        assert await can_view_project(db, outsider.id, project.id) is True

    async def test_missing_user_or_project(self, db, world):
        _, member, _, project = await world()
        assert await can_view_project(db, "ghost", project.id) is False
        assert await can_view_project(db, member.id, "no-project") is False

    async def test_role_change_visible_immediately(self, db, world):
        _, _, outsider, project = await world()
        role = await db.get_role_by_name("ADMIN")
        await db.set_user_role(outsider.id, role.id)
        assert await can_view_project(db, outsider.id, project.id) is True

    async def test_budget_edit(self, db, world, make_user):
        creator, member, outsider, project = await world()
        engineer = await make_user(db, "eng@example.com", role="SYSTEM_ENGINEER")
        assert await can_edit_project_budget(db, creator.id, project.id)
        assert await can_edit_project_budget(db, member.id, project.id)
        assert not await can_edit_project_budget(db, outsider.id, project.id)
        assert not await can_edit_project_budget(db, engineer.id, project.id)

    async def test_require_project_view_hides_with_404(self, db, world):
        _, _, outsider, project = await world()
        with pytest.raises(NotFoundError):
            await require_project_view(db, session_from_user(outsider), project.id)

    async def test_require_budget_edit_403_when_visible(self, db, world, make_user):
        _, _, _, project = await world()
        engineer = await make_user(db, "eng@example.com", role="SYSTEM_ENGINEER")
        with pytest.raises(Forbidden):
            await require_project_budget_edit(db, session_from_user(engineer), project.id)

    async def test_require_budget_edit_404_when_hidden(self, db, world):
        _, _, outsider, project = await world()
        with pytest.raises(NotFoundError):
            await require_project_budget_edit(db, session_from_user(outsider), project.id)

    async def test_require_budget_edit_passes_for_member(self, db, world):
        _, member, _, project = await world()
        found = await require_project_budget_edit(db, session_from_user(member), project.id)
        assert found.id == project.id


class TestTaskChecks:
    async def test_assignee_and_project_viewers(self, db, world):
        _, member, outsider, project = await world()
        task = await db.insert_task(project.id, "Survey", assignee_id=outsider.id)
        other = await db.insert_task(project.id, "Backfill")
        assert await can_view_task(db, outsider.id, task.id)
        assert await can_view_task(db, member.id, other.id)

    async def test_require_task_view_hides(self, db, world, make_user):
        _, _, _, project = await world()
        task = await db.insert_task(project.id, "Survey")
        stranger = await make_user(db, "stranger@example.com")
        with pytest.raises(NotFoundError):
            await require_task_view(db, session_from_user(stranger), task.id)


class TestWorkspaceChecks:
    async def test_owner_and_linked_members(self, db, world):
        creator, member, outsider, project = await world()
        own = await db.insert_workspace("Outsider sandbox", outsider.id)
        linked = await db.insert_workspace("Pump budget", creator.id, project_id=project.id)

        assert await can_view_workspace(db, outsider.id, own.id)
        assert await can_edit_workspace_budget(db, outsider.id, own.id)
        assert await can_view_workspace(db, member.id, linked.id)
        assert await can_edit_workspace_budget(db, member.id, linked.id)
        assert not await can_view_workspace(db, outsider.id, linked.id)
        assert not await can_view_workspace(db, member.id, own.id)

    async def test_view_project_holder_views_but_cannot_edit(self, db, world, make_user):
        creator, _, _, _ = await world()
        workspace = await db.insert_workspace("HQ", creator.id)
        engineer = await make_user(db, "eng@example.com", role="SYSTEM_ENGINEER")
        session = session_from_user(engineer)

        assert (await require_workspace_view(db, session, workspace.id)).id == workspace.id
        with pytest.raises(Forbidden):
            await require_workspace_budget_edit(db, session, workspace.id)

    async def test_hidden_workspace_is_404(self, db, world):
        creator, _, outsider, _ = await world()
        workspace = await db.insert_workspace("HQ", creator.id)
        with pytest.raises(NotFoundError):
            await require_workspace_budget_edit(db, session_from_user(outsider), workspace.id)

    async def test_project_manager_edits_any_workspace(self, db, world, make_user):
        _, _, outsider, _ = await world()
        workspace = await db.insert_workspace("Sandbox", outsider.id)
        pm = await make_user(db, "pm2@example.com", role="PROJECT_MANAGER")
        assert await can_edit_workspace_budget(db, pm.id, workspace.id)
