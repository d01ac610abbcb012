"""
Admin Audit Logs endpoints.

``log_admin_action`` is shared by every admin mutation. Admin services
only flush, so the audit row and the change it records commit together
when the request session closes.
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from typing import Optional

from app.core.database import get_db
from app.models.user import User
from app.models.audit_log import AuditLog
from app.modules.auth.dependencies import get_current_admin
from app.schemas.admin import AuditLogResponse
from app.utils.pagination import paginate

router = APIRouter()


async def log_admin_action(
    db: AsyncSession,
    admin_id: str,
    action: str,
    target_type: str,
    target_id: str = None,
    details: dict = None,
    request: Request = None
):
    """Stage an audit row in the request transaction"""
    log = AuditLog(
        admin_id=admin_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=details,
        ip_address=request.client.host if request and request.client else None,
        user_agent=request.headers.get("user-agent") if request else None
    )
    db.add(log)
    await db.flush()
    return log


@router.get("")
async def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    admin_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List audit logs, newest first"""
    conditions = []
    if action:
        conditions.append(AuditLog.action == action)
    if target_type:
        conditions.append(AuditLog.target_type == target_type)
    if admin_id:
        conditions.append(AuditLog.admin_id == admin_id)

    query = select(AuditLog)
    if conditions:
        query = query.where(and_(*conditions))
    query = query.order_by(AuditLog.created_at.desc())

    logs, meta = await paginate(db, query, page, limit)
    return {
        "logs": [AuditLogResponse.model_validate(log) for log in logs],
        "pagination": meta,
    }
