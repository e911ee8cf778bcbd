"""Async SQLite storage layer for Intermax.

Uses aiosqlite for async access. Repository pattern for clean separation:
services validate and authorize, this module only reads and writes rows.

Reads go through one long-lived connection. Every write runs inside
:meth:`Database.transaction`, which opens a dedicated connection and holds a
``BEGIN IMMEDIATE`` transaction, so readers on the main connection only ever
see committed state (WAL journal mode).
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite

from intermax.core.models import (
    AuditEvent,
    BudgetWorkspace,
    DirectoryEntry,
    Permission,
    Project,
    ProjectMember,
    Role,
    RoleView,
    Task,
    User,
    new_id,
    utcnow,
)
from intermax.exceptions import ConflictError

logger = logging.getLogger("intermax.storage")

DEFAULT_DB_PATH = Path(os.environ.get("IMX_DB_PATH", "intermax.db"))

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS roles (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    description TEXT,
    is_system INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS permissions (
    id TEXT PRIMARY KEY,
    role_id TEXT NOT NULL REFERENCES roles (id) ON DELETE CASCADE,
    action TEXT NOT NULL,
    UNIQUE (role_id, action)
);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT,
    password_hash TEXT,
    role_id TEXT REFERENCES roles (id) ON DELETE SET NULL,
    avatar_url TEXT,
    cv_url TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_users_role_id
    ON users (role_id);

CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    code TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'PLANNING',
    created_by_id TEXT REFERENCES users (id),
    budget_planned REAL,
    budget_actual REAL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS project_members (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    role_in_project TEXT,
    UNIQUE (project_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_project_members_user
    ON project_members (user_id);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    assignee_id TEXT REFERENCES users (id) ON DELETE SET NULL,
    depends_on TEXT NOT NULL DEFAULT '[]',
    progress INTEGER NOT NULL DEFAULT 0,
    start TEXT,
    "end" TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tasks_project
    ON tasks (project_id);

CREATE INDEX IF NOT EXISTS idx_tasks_assignee
    ON tasks (assignee_id);

CREATE TABLE IF NOT EXISTS budget_workspaces (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    owner_id TEXT NOT NULL REFERENCES users (id),
    project_id TEXT REFERENCES projects (id) ON DELETE SET NULL,
    planned REAL,
    actual REAL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_budget_workspaces_owner
    ON budget_workspaces (owner_id);

CREATE TABLE IF NOT EXISTS audit_events (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    entity TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    user_id TEXT,
    data TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_audit_events_created_at
    ON audit_events (created_at);
"""


def _now() -> str:
    return utcnow().isoformat()


class Database:
    """Async SQLite database wrapper."""

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH) -> None:
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.executescript(SCHEMA_SQL)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run a block of writes atomically on a dedicated connection."""
        conn = await aiosqlite.connect(self.db_path)
        conn.row_factory = aiosqlite.Row
        try:
            await conn.execute("PRAGMA foreign_keys = ON")
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()
        finally:
            await conn.close()

    async def _fetchone(self, sql: str, params: tuple | list = ()) -> aiosqlite.Row | None:
        cursor = await self.db.execute(sql, params)
        return await cursor.fetchone()

    async def _fetchall(self, sql: str, params: tuple | list = ()) -> list[aiosqlite.Row]:
        cursor = await self.db.execute(sql, params)
        return list(await cursor.fetchall())

    # --- Roles ---

    async def _load_permissions(self, role_ids: list[str]) -> dict[str, list[Permission]]:
        if not role_ids:
            return {}
        placeholders = ",".join("?" for _ in role_ids)
        rows = await self._fetchall(
            f"SELECT id, role_id, action FROM permissions WHERE role_id IN ({placeholders}) "  # noqa: S608
            "ORDER BY action ASC",
            role_ids,
        )
        grouped: dict[str, list[Permission]] = {rid: [] for rid in role_ids}
        for row in rows:
            grouped[row["role_id"]].append(Permission(id=row["id"], action=row["action"]))
        return grouped

    def _row_to_role(self, row: aiosqlite.Row, permissions: list[Permission]) -> Role:
        return Role(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            is_system=bool(row["is_system"]),
            permissions=permissions,
        )

    async def list_roles(self) -> list[Role]:
        rows = await self._fetchall("SELECT * FROM roles ORDER BY name ASC")
        perms = await self._load_permissions([r["id"] for r in rows])
        return [self._row_to_role(r, perms[r["id"]]) for r in rows]

    async def get_role(self, role_id: str) -> Role | None:
        row = await self._fetchone("SELECT * FROM roles WHERE id = ?", (role_id,))
        if row is None:
            return None
        perms = await self._load_permissions([row["id"]])
        return self._row_to_role(row, perms[row["id"]])

    async def get_role_by_name(self, name: str) -> Role | None:
        row = await self._fetchone("SELECT * FROM roles WHERE name = ?", (name,))
        if row is None:
            return None
        perms = await self._load_permissions([row["id"]])
        return self._row_to_role(row, perms[row["id"]])

    async def insert_role(
        self,
        name: str,
        description: str | None,
        actions: list[str],
        *,
        is_system: bool = False,
    ) -> Role:
        role_id = new_id()
        now = _now()
        try:
            async with self.transaction() as conn:
                await conn.execute(
                    """INSERT INTO roles (id, name, description, is_system, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (role_id, name, description, int(is_system), now, now),
                )
                await conn.executemany(
                    "INSERT INTO permissions (id, role_id, action) VALUES (?, ?, ?)",
                    [(new_id(), role_id, action) for action in actions],
                )
        except aiosqlite.IntegrityError as exc:
            raise ConflictError("Role name already exists") from exc
        role = await self.get_role(role_id)
        assert role is not None
        return role

    async def update_role(
        self,
        role_id: str,
        fields: dict[str, Any],
        actions: list[str] | None = None,
    ) -> Role:
        """Apply column *fields* and, when given, replace the whole action set.

        Both happen in one transaction: readers see either the old role or the
        new one, never a role stripped of its permissions.
        """
        try:
            async with self.transaction() as conn:
                columns = {k: fields[k] for k in ("name", "description") if k in fields}
                columns["updated_at"] = _now()
                assignments = ", ".join(f"{col} = ?" for col in columns)
                await conn.execute(
                    f"UPDATE roles SET {assignments} WHERE id = ?",  # noqa: S608
                    [*columns.values(), role_id],
                )
                if actions is not None:
                    await conn.execute("DELETE FROM permissions WHERE role_id = ?", (role_id,))
                    await conn.executemany(
                        "INSERT INTO permissions (id, role_id, action) VALUES (?, ?, ?)",
                        [(new_id(), role_id, action) for action in actions],
                    )
        except aiosqlite.IntegrityError as exc:
            raise ConflictError("Role name already exists") from exc
        role = await self.get_role(role_id)
        assert role is not None
        return role

    async def delete_role(self, role_id: str) -> int:
        """Clear the role from every user holding it, then delete it.

        Returns the number of users whose role reference was cleared.
        """
        async with self.transaction() as conn:
            cursor = await conn.execute(
                "UPDATE users SET role_id = NULL, updated_at = ? WHERE role_id = ?",
                (_now(), role_id),
            )
            cleared = cursor.rowcount
            await conn.execute("DELETE FROM permissions WHERE role_id = ?", (role_id,))
            await conn.execute("DELETE FROM roles WHERE id = ?", (role_id,))
        return cleared

    async def sync_role(
        self, name: str, description: str | None, actions: list[str], *, is_system: bool
    ) -> tuple[list[str], list[str]]:
        """Create or reconcile a role by name; returns ``(added, removed)`` actions.

        Used by seeding. Only the difference between stored and desired
        actions is written, so existing permission rows keep their ids.
        """
        async with self.transaction() as conn:
            cursor = await conn.execute("SELECT id FROM roles WHERE name = ?", (name,))
            row = await cursor.fetchone()
            now = _now()
            if row is None:
                role_id = new_id()
                await conn.execute(
                    """INSERT INTO roles (id, name, description, is_system, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (role_id, name, description, int(is_system), now, now),
                )
                existing: dict[str, str] = {}
            else:
                role_id = row["id"]
                await conn.execute(
                    "UPDATE roles SET description = ?, is_system = ?, updated_at = ? WHERE id = ?",
                    (description, int(is_system), now, role_id),
                )
                cursor = await conn.execute(
                    "SELECT id, action FROM permissions WHERE role_id = ?", (role_id,)
                )
                existing = {r["action"]: r["id"] for r in await cursor.fetchall()}

            desired = set(actions)
            removed = sorted(a for a in existing if a not in desired)
            added = [a for a in actions if a not in existing]
            if removed:
                await conn.executemany(
                    "DELETE FROM permissions WHERE id = ?", [(existing[a],) for a in removed]
                )
            if added:
                await conn.executemany(
                    "INSERT INTO permissions (id, role_id, action) VALUES (?, ?, ?)",
                    [(new_id(), role_id, a) for a in added],
                )
        return added, removed

    # --- Users ---

    _USER_COLUMNS = "u.id, u.email, u.name, u.avatar_url, u.created_at, u.role_id"

    async def _rows_to_users(self, rows: list[aiosqlite.Row]) -> list[User]:
        role_ids = sorted({r["role_id"] for r in rows if r["role_id"]})
        roles: dict[str, RoleView] = {}
        if role_ids:
            placeholders = ",".join("?" for _ in role_ids)
            role_rows = await self._fetchall(
                f"SELECT * FROM roles WHERE id IN ({placeholders})",  # noqa: S608
                role_ids,
            )
            perms = await self._load_permissions(role_ids)
            for rr in role_rows:
                roles[rr["id"]] = RoleView(
                    id=rr["id"],
                    name=rr["name"],
                    description=rr["description"],
                    is_system=bool(rr["is_system"]),
                    permissions=[p.action for p in perms[rr["id"]]],
                )
        return [
            User(
                id=r["id"],
                email=r["email"],
                name=r["name"],
                avatar_url=r["avatar_url"],
                created_at=r["created_at"],
                role=roles.get(r["role_id"]) if r["role_id"] else None,
            )
            for r in rows
        ]

    async def insert_user(
        self,
        email: str,
        password_hash: str | None,
        name: str | None = None,
        role_id: str | None = None,
    ) -> User:
        user_id = new_id()
        now = _now()
        try:
            async with self.transaction() as conn:
                await conn.execute(
                    """INSERT INTO users
                       (id, email, name, password_hash, role_id, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (user_id, email, name, password_hash, role_id, now, now),
                )
        except aiosqlite.IntegrityError as exc:
            raise ConflictError("Email already registered") from exc
        user = await self.get_user(user_id)
        assert user is not None
        return user

    async def get_user(self, user_id: str) -> User | None:
        row = await self._fetchone(
            f"SELECT {self._USER_COLUMNS} FROM users u WHERE u.id = ?",  # noqa: S608
            (user_id,),
        )
        if row is None:
            return None
        return (await self._rows_to_users([row]))[0]

    async def get_user_by_email(self, email: str) -> User | None:
        row = await self._fetchone(
            f"SELECT {self._USER_COLUMNS} FROM users u WHERE u.email = ?",  # noqa: S608
            (email,),
        )
        if row is None:
            return None
        return (await self._rows_to_users([row]))[0]

    async def get_password_hash(self, email: str) -> tuple[str, str | None] | None:
        """Return ``(user_id, password_hash)`` for *email*, or None."""
        row = await self._fetchone("SELECT id, password_hash FROM users WHERE email = ?", (email,))
        if row is None:
            return None
        return row["id"], row["password_hash"]

    async def list_users(self) -> list[User]:
        rows = await self._fetchall(
            f"SELECT {self._USER_COLUMNS} FROM users u ORDER BY u.name ASC, u.email ASC"  # noqa: S608
        )
        return await self._rows_to_users(rows)

    async def list_directory(self) -> list[DirectoryEntry]:
        rows = await self._fetchall(
            "SELECT id, email, name, avatar_url FROM users ORDER BY name ASC, email ASC"
        )
        return [
            DirectoryEntry(id=r["id"], email=r["email"], name=r["name"], avatar_url=r["avatar_url"])
            for r in rows
        ]

    async def user_exists(self, user_id: str) -> bool:
        row = await self._fetchone("SELECT 1 FROM users WHERE id = ?", (user_id,))
        return row is not None

    async def set_user_role(self, user_id: str, role_id: str | None) -> bool:
        async with self.transaction() as conn:
            cursor = await conn.execute(
                "UPDATE users SET role_id = ?, updated_at = ? WHERE id = ?",
                (role_id, _now(), user_id),
            )
            return cursor.rowcount > 0

    # --- Projects ---

    async def _load_members(self, project_ids: list[str]) -> dict[str, list[ProjectMember]]:
        if not project_ids:
            return {}
        placeholders = ",".join("?" for _ in project_ids)
        rows = await self._fetchall(
            f"SELECT * FROM project_members WHERE project_id IN ({placeholders})",  # noqa: S608
            project_ids,
        )
        grouped: dict[str, list[ProjectMember]] = {pid: [] for pid in project_ids}
        for r in rows:
            grouped[r["project_id"]].append(
                ProjectMember(id=r["id"], user_id=r["user_id"], role_in_project=r["role_in_project"])
            )
        return grouped

    async def _rows_to_projects(self, rows: list[aiosqlite.Row]) -> list[Project]:
        members = await self._load_members([r["id"] for r in rows])
        return [
            Project(
                id=r["id"],
                code=r["code"],
                name=r["name"],
                status=r["status"],
                created_by_id=r["created_by_id"],
                budget_planned=r["budget_planned"],
                budget_actual=r["budget_actual"],
                created_at=r["created_at"],
                members=members[r["id"]],
            )
            for r in rows
        ]

    async def insert_project(
        self,
        code: str,
        name: str,
        status: str,
        created_by_id: str,
        budget_planned: float | None = None,
        budget_actual: float | None = None,
    ) -> Project:
        project_id = new_id()
        try:
            async with self.transaction() as conn:
                await conn.execute(
                    """INSERT INTO projects
                       (id, code, name, status, created_by_id, budget_planned, budget_actual, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (project_id, code, name, status, created_by_id, budget_planned, budget_actual, _now()),
                )
                await conn.execute(
                    """INSERT INTO project_members (id, project_id, user_id, role_in_project)
                       VALUES (?, ?, ?, ?)""",
                    (new_id(), project_id, created_by_id, "OWNER"),
                )
        except aiosqlite.IntegrityError as exc:
            raise ConflictError("Project code already exists") from exc
        project = await self.get_project(project_id)
        assert project is not None
        return project

    async def get_project(self, project_id: str) -> Project | None:
        row = await self._fetchone("SELECT * FROM projects WHERE id = ?", (project_id,))
        if row is None:
            return None
        return (await self._rows_to_projects([row]))[0]

    async def list_projects(self, visible_to: str | None = None) -> list[Project]:
        """List projects, optionally only those *visible_to* reaches through involvement."""
        if visible_to is None:
            rows = await self._fetchall("SELECT * FROM projects ORDER BY created_at DESC")
        else:
            rows = await self._fetchall(
                """SELECT * FROM projects p
                   WHERE p.created_by_id = ?
                      OR EXISTS (SELECT 1 FROM project_members m
                                 WHERE m.project_id = p.id AND m.user_id = ?)
                      OR EXISTS (SELECT 1 FROM tasks t
                                 WHERE t.project_id = p.id AND t.assignee_id = ?)
                   ORDER BY p.created_at DESC""",
                (visible_to, visible_to, visible_to),
            )
        return await self._rows_to_projects(rows)

    async def add_project_member(
        self, project_id: str, user_id: str, role_in_project: str | None = None
    ) -> ProjectMember:
        member_id = new_id()
        try:
            async with self.transaction() as conn:
                await conn.execute(
                    """INSERT INTO project_members (id, project_id, user_id, role_in_project)
                       VALUES (?, ?, ?, ?)""",
                    (member_id, project_id, user_id, role_in_project),
                )
        except aiosqlite.IntegrityError as exc:
            raise ConflictError("User is already a project member") from exc
        return ProjectMember(id=member_id, user_id=user_id, role_in_project=role_in_project)

    async def update_project_budget(self, project_id: str, fields: dict[str, float | None]) -> Project:
        columns = {k: fields[k] for k in ("budget_planned", "budget_actual") if k in fields}
        if columns:
            assignments = ", ".join(f"{col} = ?" for col in columns)
            async with self.transaction() as conn:
                await conn.execute(
                    f"UPDATE projects SET {assignments} WHERE id = ?",  # noqa: S608
                    [*columns.values(), project_id],
                )
        project = await self.get_project(project_id)
        assert project is not None
        return project

    async def get_project_involvement(self, project_id: str, user_id: str) -> dict[str, bool] | None:
        """How *user_id* relates to *project_id*; None when the project does not exist."""
        row = await self._fetchone(
            """SELECT p.created_by_id = ? AS is_creator,
                      EXISTS (SELECT 1 FROM project_members m
                              WHERE m.project_id = p.id AND m.user_id = ?) AS is_member,
                      EXISTS (SELECT 1 FROM tasks t
                              WHERE t.project_id = p.id AND t.assignee_id = ?) AS is_assignee
               FROM projects p WHERE p.id = ?""",
            (user_id, user_id, user_id, project_id),
        )
        if row is None:
            return None
        return {
            "creator": bool(row["is_creator"]),
            "member": bool(row["is_member"]),
            "assignee": bool(row["is_assignee"]),
        }

    # --- Tasks ---

    def _row_to_task(self, row: aiosqlite.Row) -> Task:
        return Task(
            id=row["id"],
            project_id=row["project_id"],
            title=row["title"],
            assignee_id=row["assignee_id"],
            depends_on=json.loads(row["depends_on"]),
            progress=row["progress"],
            start=row["start"],
            end=row["end"],
            created_at=row["created_at"],
        )

    async def insert_task(
        self,
        project_id: str,
        title: str,
        assignee_id: str | None = None,
        depends_on: list[str] | None = None,
        progress: int = 0,
        start: str | None = None,
        end: str | None = None,
    ) -> Task:
        task_id = new_id()
        async with self.transaction() as conn:
            await conn.execute(
                """INSERT INTO tasks
                   (id, project_id, title, assignee_id, depends_on, progress, start, "end", created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    task_id,
                    project_id,
                    title,
                    assignee_id,
                    json.dumps(depends_on or []),
                    progress,
                    start,
                    end,
                    _now(),
                ),
            )
        task = await self.get_task(task_id)
        assert task is not None
        return task

    async def get_task(self, task_id: str) -> Task | None:
        row = await self._fetchone("SELECT * FROM tasks WHERE id = ?", (task_id,))
        if row is None:
            return None
        return self._row_to_task(row)

    # --- Budget workspaces ---

    def _row_to_workspace(self, row: aiosqlite.Row) -> BudgetWorkspace:
        return BudgetWorkspace(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            owner_id=row["owner_id"],
            project_id=row["project_id"],
            planned=row["planned"],
            actual=row["actual"],
            created_at=row["created_at"],
        )

    async def insert_workspace(
        self,
        name: str,
        owner_id: str,
        description: str | None = None,
        project_id: str | None = None,
    ) -> BudgetWorkspace:
        workspace_id = new_id()
        async with self.transaction() as conn:
            await conn.execute(
                """INSERT INTO budget_workspaces
                   (id, name, description, owner_id, project_id, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (workspace_id, name, description, owner_id, project_id, _now()),
            )
        workspace = await self.get_workspace(workspace_id)
        assert workspace is not None
        return workspace

    async def get_workspace(self, workspace_id: str) -> BudgetWorkspace | None:
        row = await self._fetchone("SELECT * FROM budget_workspaces WHERE id = ?", (workspace_id,))
        if row is None:
            return None
        return self._row_to_workspace(row)

    async def list_workspaces(self, visible_to: str | None = None) -> list[BudgetWorkspace]:
        if visible_to is None:
            rows = await self._fetchall("SELECT * FROM budget_workspaces ORDER BY created_at DESC")
        else:
            rows = await self._fetchall(
                """SELECT w.* FROM budget_workspaces w
                   LEFT JOIN projects p ON p.id = w.project_id
                   WHERE w.owner_id = ?
                      OR p.created_by_id = ?
                      OR EXISTS (SELECT 1 FROM project_members m
                                 WHERE m.project_id = w.project_id AND m.user_id = ?)
                   ORDER BY w.created_at DESC""",
                (visible_to, visible_to, visible_to),
            )
        return [self._row_to_workspace(r) for r in rows]

    async def update_workspace_budget(
        self, workspace_id: str, fields: dict[str, float | None]
    ) -> BudgetWorkspace:
        columns = {k: fields[k] for k in ("planned", "actual") if k in fields}
        if columns:
            assignments = ", ".join(f"{col} = ?" for col in columns)
            async with self.transaction() as conn:
                await conn.execute(
                    f"UPDATE budget_workspaces SET {assignments} WHERE id = ?",  # noqa: S608
                    [*columns.values(), workspace_id],
                )
        workspace = await self.get_workspace(workspace_id)
        assert workspace is not None
        return workspace

    # --- Audit events ---

    async def insert_audit_event(self, event: AuditEvent) -> None:
        async with self.transaction() as conn:
            await conn.execute(
                """INSERT INTO audit_events (id, type, entity, entity_id, user_id, data, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    event.id,
                    event.type,
                    event.entity,
                    event.entity_id,
                    event.user_id,
                    json.dumps(event.data, default=str),
                    event.created_at.isoformat(),
                ),
            )

    async def list_audit_events(self, limit: int = 50, offset: int = 0) -> list[AuditEvent]:
        rows = await self._fetchall(
            "SELECT * FROM audit_events ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return [
            AuditEvent(
                id=r["id"],
                type=r["type"],
                entity=r["entity"],
                entity_id=r["entity_id"],
                user_id=r["user_id"],
                data=json.loads(r["data"]),
                created_at=r["created_at"],
            )
            for r in rows
        ]
