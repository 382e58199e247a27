from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List

from app.modules.audit.models import AuditAction, AuditEntityType


class AuditLogResponse(BaseModel):
    id: int
    action: AuditAction
    entity_type: AuditEntityType
    entity_id: int
    action_by: int
    timestamp: datetime
    remarks: Optional[str] = None

    class Config:
        from_attributes = True


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class AuditLogFilter(BaseModel):
    action: Optional[AuditAction] = None
    entity_type: Optional[AuditEntityType] = None
    entity_id: Optional[int] = None
    action_by: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
