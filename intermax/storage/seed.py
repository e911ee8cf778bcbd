"""Idempotent seeding of system roles and the bootstrap admin account."""

from __future__ import annotations

import logging

from intermax.rbac import (
    ADMIN_ROLE_NAME,
    DEFAULT_ROLE_PERMISSIONS,
    SYSTEM_ROLE_DESCRIPTIONS,
    SYSTEM_ROLE_NAMES,
)

logger = logging.getLogger("intermax.storage.seed")


async def seed_system_roles(db) -> dict[str, tuple[list[str], list[str]]]:
    """Create or reconcile every system role with its default grants.

    Returns ``{role_name: (added, removed)}`` for the roles whose stored
    permissions had to change.
    """
    changes: dict[str, tuple[list[str], list[str]]] = {}
    for name in SYSTEM_ROLE_NAMES:
        actions = [str(a) for a in DEFAULT_ROLE_PERMISSIONS[name]]
        added, removed = await db.sync_role(
            name, SYSTEM_ROLE_DESCRIPTIONS[name], actions, is_system=True
        )
        if added or removed:
            changes[name] = (added, removed)
            logger.info("Synced role %s: +%s -%s", name, added, removed)
    return changes


async def seed_admin_account(db, email: str, password: str, name: str | None = None) -> bool:
    """Ensure *email* exists and holds ADMIN. Returns True when the account was created."""
    from intermax.auth_providers.user_account import hash_password

    role = await db.get_role_by_name(ADMIN_ROLE_NAME)
    if role is None:
        msg = "ADMIN role missing; seed system roles first"
        raise RuntimeError(msg)

    user = await db.get_user_by_email(email)
    if user is None:
        await db.insert_user(email, hash_password(password), name=name, role_id=role.id)
        logger.info("Created bootstrap admin account %s", email)
        return True
    if user.role_name != ADMIN_ROLE_NAME:
        await db.set_user_role(user.id, role.id)
        logger.info("Promoted existing account %s to %s", email, ADMIN_ROLE_NAME)
    return False


async def seed_defaults(db, settings) -> None:
    """Run the startup seeding configured by *settings*."""
    await seed_system_roles(db)
    if settings.seed_admin_email and settings.seed_admin_password:
        await seed_admin_account(
            db,
            settings.seed_admin_email.strip().lower(),
            settings.seed_admin_password,
            settings.seed_admin_name,
        )
