from typing import Any, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from farmkonnect.api.models.audit import AuditLog


def changed_fields(old_values: Optional[dict], new_values: Optional[dict]) -> list[str]:
    """Keys whose value differs between two snapshots"""
    old_values = old_values or {}
    new_values = new_values or {}
    keys = set(old_values) | set(new_values)
    return sorted(k for k in keys if old_values.get(k) != new_values.get(k))


def record_audit(
    db: AsyncSession,
    *,
    user_id: Any,
    entity_type: str,
    entity_id: Any,
    action: str,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
    reason: Optional[str] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    """
    Stage an audit log row in the caller's session

    The row is committed together with the change it describes.
    """
    entry = AuditLog(
        user_id=user_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        old_values=old_values,
        new_values=new_values,
        changed_fields=changed_fields(old_values, new_values),
        reason=reason,
        ip_address=request.client.host if request is not None and request.client else None,
        user_agent=request.headers.get("user-agent") if request is not None else None,
    )
    db.add(entry)
    return entry
