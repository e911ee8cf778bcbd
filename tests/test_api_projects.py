"""API tests for project, task and budget workspace access."""

from __future__ import annotations

import pytest_asyncio


@pytest_asyncio.fixture
async def people(api_db, make_user, auth_headers):
    """Headers for a project manager, a plain member, an outsider and an engineer."""
    pm = await make_user(api_db, "pm@example.com", role="PROJECT_MANAGER")
    member = await make_user(api_db, "member@example.com")
    outsider = await make_user(api_db, "outsider@example.com")
    engineer = await make_user(api_db, "eng@example.com", role="SYSTEM_ENGINEER")
    return {
        "pm": (pm, auth_headers(pm)),
        "member": (member, auth_headers(member)),
        "outsider": (outsider, auth_headers(outsider)),
        "engineer": (engineer, auth_headers(engineer)),
    }


@pytest_asyncio.fixture
async def project(client, people):
    pm, pm_headers = people["pm"]
    member, _ = people["member"]
    resp = await client.post(
        "/api/projects",
        json={"code": "prj-1", "name": "Pump station", "budgetPlanned": 1000},
        headers=pm_headers,
    )
    assert resp.status_code == 201
    body = resp.json()
    resp = await client.post(
        f"/api/projects/{body['id']}/members",
        json={"userId": member.id, "roleInProject": "ENGINEER"},
        headers=pm_headers,
    )
    assert resp.status_code == 201
    return body


class TestProjects:
    async def test_creator_becomes_member(self, project, people):
        pm, _ = people["pm"]
        assert project["code"] == "PRJ-1"
        assert project["createdById"] == pm.id
        assert pm.id in {m["userId"] for m in project["members"]}

    async def test_create_requires_permission(self, client, people):
        _, headers = people["engineer"]
        resp = await client.post("/api/projects", json={"code": "X-1", "name": "X"}, headers=headers)
        assert resp.status_code == 403

    async def test_padded_short_code_rejected(self, client, people):
        _, headers = people["pm"]
        resp = await client.post("/api/projects", json={"code": " a ", "name": "Tiny"}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Project code must be at least 2 characters"
        assert (await client.get("/api/projects", headers=headers)).json() == []

    async def test_duplicate_code(self, client, project, people):
        _, headers = people["pm"]
        resp = await client.post("/api/projects", json={"code": "PRJ-1", "name": "Again"}, headers=headers)
        assert resp.status_code == 409

    async def test_member_sees_project_outsider_gets_404(self, client, project, people):
        _, member_headers = people["member"]
        _, outsider_headers = people["outsider"]
        assert (await client.get(f"/api/projects/{project['id']}", headers=member_headers)).status_code == 200
        resp = await client.get(f"/api/projects/{project['id']}", headers=outsider_headers)
        assert resp.status_code == 404
        assert resp.json()["message"] == "Project not found"

    async def test_listing_scoped_by_involvement(self, client, project, people):
        _, member_headers = people["member"]
        _, outsider_headers = people["outsider"]
        _, engineer_headers = people["engineer"]
        assert [p["id"] for p in (await client.get("/api/projects", headers=member_headers)).json()] == [
            project["id"]
        ]
        assert (await client.get("/api/projects", headers=outsider_headers)).json() == []
        assert len((await client.get("/api/projects", headers=engineer_headers)).json()) == 1

    async def test_budget_edit_by_member(self, client, project, people):
        _, headers = people["member"]
        resp = await client.patch(
            f"/api/projects/{project['id']}", json={"budgetActual": 250.5}, headers=headers
        )
        assert resp.status_code == 200
        assert resp.json()["budgetActual"] == 250.5
        assert resp.json()["budgetPlanned"] == 1000

    async def test_budget_edit_viewer_forbidden(self, client, project, people):
        _, headers = people["engineer"]
        resp = await client.patch(f"/api/projects/{project['id']}", json={"budgetActual": 1}, headers=headers)
        assert resp.status_code == 403

    async def test_budget_edit_outsider_not_found(self, client, project, people):
        _, headers = people["outsider"]
        resp = await client.patch(f"/api/projects/{project['id']}", json={"budgetActual": 1}, headers=headers)
        assert resp.status_code == 404

    async def test_negative_budget_rejected(self, client, project, people):
        _, headers = people["pm"]
        resp = await client.patch(f"/api/projects/{project['id']}", json={"budgetPlanned": -5}, headers=headers)
        assert resp.status_code == 400

    async def test_budget_change_audited(self, client, api_db, project, people):
        _, headers = people["pm"]
        await client.patch(f"/api/projects/{project['id']}", json={"budgetPlanned": 2000}, headers=headers)
        event = (await api_db.list_audit_events())[0]
        assert event.type == "BUDGET"
        assert event.data["before"] == {"budget_planned": 1000}
        assert event.data["after"] == {"budget_planned": 2000}

    async def test_add_member_requires_assign_tasks(self, client, project, people):
        outsider, _ = people["outsider"]
        _, member_headers = people["member"]
        resp = await client.post(
            f"/api/projects/{project['id']}/members", json={"userId": outsider.id}, headers=member_headers
        )
        assert resp.status_code == 403

    async def test_add_unknown_member(self, client, project, people):
        _, headers = people["pm"]
        resp = await client.post(f"/api/projects/{project['id']}/members", json={"userId": "ghost"}, headers=headers)
        assert resp.status_code == 400

    async def test_add_member_twice(self, client, project, people):
        member, _ = people["member"]
        _, headers = people["pm"]
        resp = await client.post(f"/api/projects/{project['id']}/members", json={"userId": member.id}, headers=headers)
        assert resp.status_code == 409


class TestTasks:
    async def test_assign_task_and_assignee_gains_visibility(self, client, project, people):
        outsider, outsider_headers = people["outsider"]
        _, pm_headers = people["pm"]
        resp = await client.post(
            f"/api/projects/{project['id']}/tasks",
            json={"title": "Survey", "assigneeId": outsider.id, "progress": 10},
            headers=pm_headers,
        )
        assert resp.status_code == 201
        task = resp.json()
        assert (await client.get(f"/api/tasks/{task['id']}", headers=outsider_headers)).status_code == 200
        assert (await client.get(f"/api/projects/{project['id']}", headers=outsider_headers)).status_code == 200

    async def test_member_assigns_self_only(self, client, project, people):
        member, headers = people["member"]
        outsider, _ = people["outsider"]
        own = await client.post(
            f"/api/projects/{project['id']}/tasks",
            json={"title": "Mine", "assigneeId": member.id},
            headers=headers,
        )
        assert own.status_code == 201
        other = await client.post(
            f"/api/projects/{project['id']}/tasks",
            json={"title": "Theirs", "assigneeId": outsider.id},
            headers=headers,
        )
        assert other.status_code == 403

    async def test_unknown_assignee(self, client, project, people):
        _, headers = people["pm"]
        resp = await client.post(
            f"/api/projects/{project['id']}/tasks",
            json={"title": "Ghost work", "assigneeId": "ghost"},
            headers=headers,
        )
        assert resp.status_code == 400

    async def test_progress_bounds(self, client, project, people):
        _, headers = people["pm"]
        resp = await client.post(
            f"/api/projects/{project['id']}/tasks", json={"title": "Over", "progress": 101}, headers=headers
        )
        assert resp.status_code == 400

    async def test_hidden_task_is_404(self, client, project, people):
        _, pm_headers = people["pm"]
        _, outsider_headers = people["outsider"]
        task = (
            await client.post(f"/api/projects/{project['id']}/tasks", json={"title": "Quiet"}, headers=pm_headers)
        ).json()
        assert (await client.get(f"/api/tasks/{task['id']}", headers=outsider_headers)).status_code == 404


class TestBudgetWorkspaces:
    async def test_owner_workspace_lifecycle(self, client, people):
        _, headers = people["outsider"]
        resp = await client.post("/api/budgets/workspaces", json={"name": "Sandbox"}, headers=headers)
        assert resp.status_code == 201
        ws = resp.json()
        resp = await client.patch(f"/api/budgets/workspaces/{ws['id']}", json={"planned": 500}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["planned"] == 500
        listed = (await client.get("/api/budgets/workspaces", headers=headers)).json()
        assert [w["id"] for w in listed] == [ws["id"]]

    async def test_patch_requires_a_field(self, client, people):
        _, headers = people["outsider"]
        ws = (await client.post("/api/budgets/workspaces", json={"name": "Sandbox"}, headers=headers)).json()
        resp = await client.patch(f"/api/budgets/workspaces/{ws['id']}", json={}, headers=headers)
        assert resp.status_code == 400

    async def test_linking_project_needs_budget_edit(self, client, project, people):
        _, engineer_headers = people["engineer"]
        _, member_headers = people["member"]
        resp = await client.post(
            "/api/budgets/workspaces",
            json={"name": "Pump", "projectId": project["id"]},
            headers=engineer_headers,
        )
        assert resp.status_code == 403
        resp = await client.post(
            "/api/budgets/workspaces",
            json={"name": "Pump", "projectId": project["id"]},
            headers=member_headers,
        )
        assert resp.status_code == 201

    async def test_linked_workspace_visibility(self, client, project, people):
        _, pm_headers = people["pm"]
        _, member_headers = people["member"]
        _, outsider_headers = people["outsider"]
        ws = (
            await client.post(
                "/api/budgets/workspaces",
                json={"name": "Pump", "projectId": project["id"]},
                headers=pm_headers,
            )
        ).json()
        assert (await client.get(f"/api/budgets/workspaces/{ws['id']}", headers=member_headers)).status_code == 200
        assert (await client.get(f"/api/budgets/workspaces/{ws['id']}", headers=outsider_headers)).status_code == 404
        assert (await client.get("/api/budgets/workspaces", headers=outsider_headers)).json() == []

    async def test_viewer_cannot_edit(self, client, people):
        _, pm_headers = people["pm"]
        _, engineer_headers = people["engineer"]
        ws = (await client.post("/api/budgets/workspaces", json={"name": "HQ"}, headers=pm_headers)).json()
        assert (await client.get(f"/api/budgets/workspaces/{ws['id']}", headers=engineer_headers)).status_code == 200
        resp = await client.patch(f"/api/budgets/workspaces/{ws['id']}", json={"actual": 1}, headers=engineer_headers)
        assert resp.status_code == 403


class TestAuditTrail:
    async def test_admin_reads_audit(self, client, api_db, make_user, auth_headers, project):
        admin = await make_user(api_db, "admin@example.com", role="ADMIN")
        resp = await client.get("/api/admin/audit?limit=5", headers=auth_headers(admin))
        assert resp.status_code == 200
        events = resp.json()
        assert 1 <= len(events) <= 5
        assert {"type", "entity", "entityId", "userId", "data", "createdAt"} <= set(events[0])

    async def test_audit_requires_manage_users(self, client, people):
        _, headers = people["pm"]
        assert (await client.get("/api/admin/audit", headers=headers)).status_code == 403
