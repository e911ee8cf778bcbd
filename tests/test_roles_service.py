"""Tests for RoleService: custom roles, system-role protection, deletion."""

from __future__ import annotations

import pytest
import pytest_asyncio

from intermax.auth_providers.user_account import session_from_user
from intermax.exceptions import ConflictError, Forbidden, InvalidOperation, NotFoundError, ValidationError
from intermax.rbac import DEFAULT_ROLE_PERMISSIONS
from intermax.services.roles import RoleService


@pytest_asyncio.fixture
async def admin(db, make_user):
    return session_from_user(await make_user(db, "admin@example.com", role="ADMIN"))


@pytest_asyncio.fixture
async def service(db):
    return RoleService(db)


class TestCreateRole:
    async def test_create_normalizes_name_and_actions(self, service, admin):
        role = await service.create_role(
            admin, "field ops", "  Field crews  ", ["view project", "VIEW_PROJECT", "view reports"]
        )
        assert role.name == "FIELD_OPS"
        assert role.description == "Field crews"
        assert role.is_system is False
        assert role.actions == ["VIEW_PROJECT", "VIEW_REPORTS"]

    async def test_reserved_name_rejected_and_nothing_created(self, service, admin, db):
        before = await db.list_roles()
        with pytest.raises(InvalidOperation, match="reserved"):
            await service.create_role(admin, "ADMIN")
        assert len(await db.list_roles()) == len(before)

    async def test_reserved_after_normalization(self, service, admin):
        with pytest.raises(InvalidOperation):
            await service.create_role(admin, "project manager")

    async def test_existing_name_conflicts(self, service, admin):
        await service.create_role(admin, "FIELD_OPS")
        with pytest.raises(ConflictError):
            await service.create_role(admin, "field ops")

    @pytest.mark.parametrize("name", ["   ", "\t\n", " a "])
    async def test_blank_or_short_name_rejected(self, service, admin, db, name):
        before = await db.list_roles()
        with pytest.raises(ValidationError, match="at least 2 characters"):
            await service.create_role(admin, name)
        assert len(await db.list_roles()) == len(before)

    async def test_custom_actions_outside_catalog_allowed(self, service, admin):
        role = await service.create_role(admin, "AUDITOR", permissions=["export ledger"])
        assert role.actions == ["EXPORT_LEDGER"]

    async def test_requires_manage_users(self, service, db, make_user):
        pm = session_from_user(await make_user(db, "pm@example.com", role="PROJECT_MANAGER"))
        with pytest.raises(Forbidden):
            await service.create_role(pm, "FIELD_OPS")

    async def test_creation_is_audited(self, service, admin, db):
        role = await service.create_role(admin, "FIELD_OPS", permissions=["VIEW_PROJECT"])
        events = await db.list_audit_events()
        assert events[0].type == "ROLE"
        assert events[0].entity_id == role.id
        assert events[0].user_id == admin.user_id


class TestUpdateRole:
    async def test_permissions_replaced_wholesale(self, service, admin):
        role = await service.create_role(admin, "FIELD_OPS", permissions=["A", "B"])
        updated = await service.update_role(admin, role.id, {"permissions": ["B", "C"]})
        assert set(updated.actions) == {"B", "C"}

    async def test_replacement_audited_with_both_sets(self, service, admin, db):
        role = await service.create_role(admin, "FIELD_OPS", permissions=["A", "B"])
        await service.update_role(admin, role.id, {"permissions": ["B", "C"]})
        event = (await db.list_audit_events())[0]
        assert event.data["previous_permissions"] == ["A", "B"]
        assert event.data["permissions"] == ["B", "C"]

    async def test_rename_custom_role(self, service, admin):
        role = await service.create_role(admin, "FIELD_OPS")
        updated = await service.update_role(admin, role.id, {"name": "site crew"})
        assert updated.name == "SITE_CREW"

    async def test_rename_to_reserved_rejected(self, service, admin):
        role = await service.create_role(admin, "FIELD_OPS")
        with pytest.raises(InvalidOperation, match="reserved"):
            await service.update_role(admin, role.id, {"name": "admin"})

    async def test_rename_to_blank_rejected(self, service, admin, db):
        role = await service.create_role(admin, "FIELD_OPS")
        with pytest.raises(ValidationError):
            await service.update_role(admin, role.id, {"name": "   "})
        assert (await db.get_role(role.id)).name == "FIELD_OPS"

    async def test_rename_to_taken_name_conflicts(self, service, admin):
        await service.create_role(admin, "FIELD_OPS")
        other = await service.create_role(admin, "SITE_CREW")
        with pytest.raises(ConflictError):
            await service.update_role(admin, other.id, {"name": "field ops"})

    async def test_description_cleared(self, service, admin):
        role = await service.create_role(admin, "FIELD_OPS", "something")
        updated = await service.update_role(admin, role.id, {"description": None})
        assert updated.description is None

    async def test_absent_fields_untouched(self, service, admin):
        role = await service.create_role(admin, "FIELD_OPS", "keep me", ["A"])
        updated = await service.update_role(admin, role.id, {"name": "FIELD_OPS"})
        assert updated.description == "keep me"
        assert updated.actions == ["A"]

    async def test_missing_role(self, service, admin):
        with pytest.raises(NotFoundError):
            await service.update_role(admin, "nope", {"description": "x"})


class TestSystemRoleProtection:
    async def test_rename_rejected_and_unchanged(self, service, admin, db):
        role = await db.get_role_by_name("PROJECT_MANAGER")
        with pytest.raises(InvalidOperation, match="renamed"):
            await service.update_role(admin, role.id, {"name": "DELIVERY_LEAD"})
        assert await db.get_role(role.id) == role

    async def test_permission_change_rejected_and_unchanged(self, service, admin, db):
        role = await db.get_role_by_name("SYSTEM_ENGINEER")
        with pytest.raises(InvalidOperation, match="permissions"):
            await service.update_role(admin, role.id, {"permissions": ["MANAGE_USERS"]})
        stored = await db.get_role(role.id)
        assert set(stored.actions) == set(DEFAULT_ROLE_PERMISSIONS["SYSTEM_ENGINEER"])

    async def test_same_name_in_other_spelling_allowed(self, service, admin, db):
        role = await db.get_role_by_name("PROJECT_MANAGER")
        updated = await service.update_role(
            admin, role.id, {"name": "project manager", "description": "Runs projects"}
        )
        assert updated.name == "PROJECT_MANAGER"
        assert updated.description == "Runs projects"

    async def test_delete_rejected(self, service, admin, db):
        role = await db.get_role_by_name("ADMIN")
        with pytest.raises(InvalidOperation):
            await service.delete_role(admin, role.id)
        assert await db.get_role(role.id) is not None


class TestDeleteRole:
    async def test_delete_clears_all_holders(self, service, admin, db, make_user):
        role = await service.create_role(admin, "FIELD_OPS", permissions=["VIEW_PROJECT"])
        holders = [await make_user(db, f"crew{i}@example.com", role="FIELD_OPS") for i in range(3)]
        assert await service.delete_role(admin, role.id) == 3
        for holder in holders:
            assert (await db.get_user(holder.id)).role is None
        assert await db.get_role(role.id) is None

    async def test_delete_missing(self, service, admin):
        with pytest.raises(NotFoundError):
            await service.delete_role(admin, "nope")


class TestListRoles:
    async def test_list_requires_manage_users(self, service, db, make_user):
        engineer = session_from_user(await make_user(db, "eng@example.com", role="SYSTEM_ENGINEER"))
        with pytest.raises(Forbidden):
            await service.list_roles(engineer)

    async def test_list_includes_permissions(self, service, admin):
        roles = {r.name: r for r in await service.list_roles(admin)}
        assert set(roles["ADMIN"].actions) == set(DEFAULT_ROLE_PERMISSIONS["ADMIN"])
