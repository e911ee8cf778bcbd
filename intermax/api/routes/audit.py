"""Audit trail route."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from intermax.auth_providers.base import Session
from intermax.authz import get_db, require_permission
from intermax.core.models import AuditEvent
from intermax.rbac import PermissionAction
from intermax.storage.database import Database

router = APIRouter(prefix="/api/admin/audit", tags=["Admin"])


@router.get("", response_model=list[AuditEvent])
async def list_audit_events(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(require_permission(PermissionAction.MANAGE_USERS)),
    db: Database = Depends(get_db),
):
    """Most recent audit events first."""
    return await db.list_audit_events(limit=limit, offset=offset)
