from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime

from app.core.database import get_db
from app.modules.audit.models import AuditAction, AuditEntityType
from app.modules.audit.schemas import AuditLogListResponse, AuditLogResponse, AuditLogFilter
from app.modules.audit.services import AuditService

router = APIRouter(prefix="/api/v1/audit", tags=["audit"])


@router.get("/logs", response_model=AuditLogListResponse)
async def get_audit_logs(
    action: Optional[AuditAction] = None,
    entity_type: Optional[AuditEntityType] = None,
    entity_id: Optional[int] = None,
    action_by: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Audit log of platform actions, newest first"""
    service = AuditService(db)

    filters = AuditLogFilter(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        action_by=action_by,
        start_date=start_date,
        end_date=end_date
    )

    logs, total = await service.get_audit_logs(filters, page, page_size)
    total_pages = (total + page_size - 1) // page_size

    return AuditLogListResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages
    )


@router.get("/actions")
async def list_audit_actions():
    """List all audited actions"""
    return {"actions": [a.value for a in AuditAction]}
