from pydantic import BaseModel
from typing import Optional, Any
from datetime import datetime
from uuid import UUID


class AuditLogResponse(BaseModel):
    """Schema for audit log entries"""
    id: UUID
    user_id: Optional[UUID]
    entity_type: str
    entity_id: str
    action: str
    old_values: Optional[Any]
    new_values: Optional[Any]
    changed_fields: Optional[list[str]]
    reason: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogList(BaseModel):
    logs: list[AuditLogResponse]
    total: int
    page: int
    page_size: int
