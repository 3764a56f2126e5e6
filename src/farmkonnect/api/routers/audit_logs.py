from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from typing import Optional
from uuid import UUID

from farmkonnect.api.core.database import get_db
from farmkonnect.api.core.security import require_admin
from farmkonnect.api.models.audit import AuditLog
from farmkonnect.api.models.user import User
from farmkonnect.api.schemas.audit import AuditLogList
from farmkonnect.api.config import settings

router = APIRouter()


@router.get("/", response_model=AuditLogList)
async def list_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    user_id: Optional[UUID] = None,
    action: Optional[str] = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Browse the audit trail, newest first

    Filters:
    - entity_type / entity_id: the record that changed
    - user_id: the user who made the change
    - action: create, update, delete, approve, reject
    """
    filters = []
    if entity_type:
        filters.append(AuditLog.entity_type == entity_type)
    if entity_id:
        filters.append(AuditLog.entity_id == entity_id)
    if user_id:
        filters.append(AuditLog.user_id == user_id)
    if action:
        filters.append(AuditLog.action == action)

    query = select(AuditLog)
    count_query = select(func.count()).select_from(AuditLog)
    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    total_result = await db.execute(count_query)
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(AuditLog.created_at.desc()).offset(offset).limit(page_size)
    )

    return AuditLogList(
        logs=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )
