"""
Security audit trail.

Rows are committed as soon as they are written so a failed attempt is kept
even though the request that produced it ends in an error response.
"""

from typing import Any, List, Optional, Tuple

from fastapi import Request
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging_config import logger
from app.models.audit_log import AuditLog

ACTION_AUTHENTICATION = "authentication"
ACTION_ACTIVATE = "activate"
ACTION_CHANGE_PASSWORD = "change_password"
ACTION_RECOVERY_RESET = "recovery_reset"


def _client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def record_event(
    db: AsyncSession,
    username: Optional[str],
    action: str,
    success: bool,
    request: Optional[Request] = None,
    **details: Any,
) -> Optional[AuditLog]:
    """
    Store one audit row.

    Failed events discard the session's pending work before the row is
    committed. A failed audit write is logged and reported as None; the
    caller's outcome does not change.
    """
    if not success:
        await db.rollback()

    entry = AuditLog(
        username=(username or "").strip().lower() or None,
        action=action,
        result="success" if success else "failed",
        details=details or None,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent") if request else None,
    )
    db.add(entry)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.log_error_with_context(e, context="audit", audit_action=action, audit_username=username)
        return None
    return entry


async def list_events(
    db: AsyncSession,
    username: Optional[str] = None,
    action: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[AuditLog], int]:
    conditions = []
    if username:
        conditions.append(AuditLog.username == username.strip().lower())
    if action:
        conditions.append(AuditLog.action == action)

    total = await db.scalar(select(func.count(AuditLog.id)).where(*conditions))
    result = await db.execute(
        select(AuditLog)
        .where(*conditions)
        .order_by(AuditLog.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total or 0
