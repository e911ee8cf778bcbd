"""Permission catalog and built-in roles for Intermax.

Defines the known permission actions, the reserved system roles with their
default grants, and the normalization applied to every role name and
action string before it is stored or compared.

System roles (seeded on startup, immutable through the management API):
    ADMIN               -- Full system administrator access
    PROJECT_MANAGER     -- Oversees project execution and assignments
    MECHANICAL_ENGINEER -- Mechanical engineering contributor
    ELECTRICAL_ENGINEER -- Electrical engineering contributor
    SYSTEM_ENGINEER     -- Systems engineering contributor

The catalog is not closed at the data layer: custom roles may carry any
normalized action string, the guards simply never ask for unknown ones.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from enum import StrEnum

_WHITESPACE = re.compile(r"\s+")


class PermissionAction(StrEnum):
    """Actions checked by the authorization guards."""

    MANAGE_USERS = "MANAGE_USERS"
    CREATE_PROJECT = "CREATE_PROJECT"
    VIEW_PROJECT = "VIEW_PROJECT"
    ASSIGN_TASKS = "ASSIGN_TASKS"
    VIEW_REPORTS = "VIEW_REPORTS"


PERMISSION_LABELS: dict[PermissionAction, str] = {
    PermissionAction.MANAGE_USERS: "Manage users",
    PermissionAction.CREATE_PROJECT: "Create projects",
    PermissionAction.VIEW_PROJECT: "View projects",
    PermissionAction.ASSIGN_TASKS: "Assign tasks",
    PermissionAction.VIEW_REPORTS: "View reports",
}

ADMIN_ROLE_NAME = "ADMIN"
PROJECT_MANAGER_ROLE_NAME = "PROJECT_MANAGER"

#: Reserved names, in seeding order.
SYSTEM_ROLE_NAMES: tuple[str, ...] = (
    ADMIN_ROLE_NAME,
    PROJECT_MANAGER_ROLE_NAME,
    "MECHANICAL_ENGINEER",
    "ELECTRICAL_ENGINEER",
    "SYSTEM_ENGINEER",
)

SYSTEM_ROLE_DESCRIPTIONS: dict[str, str] = {
    ADMIN_ROLE_NAME: "Full system administrator access",
    PROJECT_MANAGER_ROLE_NAME: "Oversees project execution and assignments",
    "MECHANICAL_ENGINEER": "Mechanical engineering contributor",
    "ELECTRICAL_ENGINEER": "Electrical engineering contributor",
    "SYSTEM_ENGINEER": "Systems engineering contributor",
}

_ENGINEER_GRANTS = [PermissionAction.VIEW_PROJECT, PermissionAction.VIEW_REPORTS]

DEFAULT_ROLE_PERMISSIONS: dict[str, list[PermissionAction]] = {
    ADMIN_ROLE_NAME: list(PermissionAction),
    PROJECT_MANAGER_ROLE_NAME: [
        PermissionAction.CREATE_PROJECT,
        PermissionAction.VIEW_PROJECT,
        PermissionAction.ASSIGN_TASKS,
        PermissionAction.VIEW_REPORTS,
    ],
    "MECHANICAL_ENGINEER": list(_ENGINEER_GRANTS),
    "ELECTRICAL_ENGINEER": list(_ENGINEER_GRANTS),
    "SYSTEM_ENGINEER": list(_ENGINEER_GRANTS),
}

#: Role names that may edit any project or workspace budget.
BUDGET_MANAGER_ROLES: frozenset[str] = frozenset({ADMIN_ROLE_NAME, PROJECT_MANAGER_ROLE_NAME})


def normalize_name(value: str) -> str:
    """Canonical role-name form: trimmed, whitespace runs as ``_``, uppercase.

    ``normalize_name(normalize_name(x)) == normalize_name(x)`` for every ``x``.
    """
    return _WHITESPACE.sub("_", value.strip()).upper()


def normalize_action(value: str) -> str:
    """Canonical action form, identical to role-name normalization."""
    return normalize_name(value)


def normalize_actions(values: Iterable[str]) -> list[str]:
    """Normalize and de-duplicate *values*, keeping first-seen order."""
    seen: dict[str, None] = {}
    for value in values:
        action = normalize_action(value)
        if action:
            seen.setdefault(action, None)
    return list(seen)


def is_system_role(name: str | None) -> bool:
    return bool(name) and name in SYSTEM_ROLE_NAMES


def is_admin_role(name: str | None) -> bool:
    return name == ADMIN_ROLE_NAME


def is_known_action(action: str) -> bool:
    return action in PermissionAction.__members__


def permission_options() -> list[dict[str, str]]:
    """Catalog entries for role-management forms."""
    return [{"value": action.value, "label": PERMISSION_LABELS[action]} for action in PermissionAction]
