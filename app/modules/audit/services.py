from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional, List, Tuple

from app.modules.audit.models import AuditLog, AuditAction, AuditEntityType
from app.modules.audit.schemas import AuditLogFilter


class AuditService:
    """Audit trail recorder and reader"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def log_action(
        self,
        action: AuditAction,
        entity_type: AuditEntityType,
        entity_id: int,
        action_by: int,
        remarks: Optional[str] = None
    ) -> AuditLog:
        """
        Append one audit row to the current unit of work.

        Nothing is committed here; the caller's transaction decides.
        """
        log = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            action_by=action_by,
            remarks=remarks
        )
        self.db.add(log)
        return log

    async def get_audit_logs(
        self,
        filters: Optional[AuditLogFilter] = None,
        page: int = 1,
        page_size: int = 50
    ) -> Tuple[List[AuditLog], int]:
        """Get audit logs with filtering, newest first"""
        query = select(AuditLog)

        if filters:
            if filters.action:
                query = query.where(AuditLog.action == filters.action)
            if filters.entity_type:
                query = query.where(AuditLog.entity_type == filters.entity_type)
            if filters.entity_id:
                query = query.where(AuditLog.entity_id == filters.entity_id)
            if filters.action_by:
                query = query.where(AuditLog.action_by == filters.action_by)
            if filters.start_date:
                query = query.where(AuditLog.timestamp >= filters.start_date)
            if filters.end_date:
                query = query.where(AuditLog.timestamp <= filters.end_date)

        # Count
        count_query = select(func.count()).select_from(query.subquery())
        total_result = await self.db.execute(count_query)
        total = total_result.scalar()

        # Paginate
        query = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await self.db.execute(query)
        logs = list(result.scalars().all())

        return logs, total
