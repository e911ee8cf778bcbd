"""Persistent audit trail for access-control mutations.

Audit writes are best effort: a failed insert is logged and never fails the
operation that triggered it.
"""

from __future__ import annotations

import logging
from typing import Any

from intermax.core.models import AuditEvent, new_id, utcnow

logger = logging.getLogger("intermax.audit")

AUDIT_TYPES = ("AUTH", "USER", "ROLE", "PROJECT", "BUDGET")


async def record_audit_event(
    db,
    type: str,  # noqa: A002
    entity: str,
    entity_id: str,
    user_id: str | None = None,
    data: dict[str, Any] | None = None,
) -> AuditEvent | None:
    """Persist one audit event; returns it, or None when the write failed.

    Raises:
        ValueError: *type* is not one of ``AUDIT_TYPES``.
    """
    if type not in AUDIT_TYPES:
        msg = f"Unknown audit event type: {type}"
        raise ValueError(msg)
    event = AuditEvent(
        id=new_id(),
        type=type,
        entity=entity,
        entity_id=entity_id,
        user_id=user_id,
        data=data or {},
        created_at=utcnow(),
    )
    try:
        await db.insert_audit_event(event)
    except Exception:
        logger.warning(
            "Failed to persist audit event %s %s/%s",
            type,
            entity,
            entity_id,
            exc_info=True,
            extra={"action": "audit_write_failed", "user_id": user_id},
        )
        return None
    return event
