# Audit module
from app.modules.audit.models import AuditLog, AuditAction, AuditEntityType
from app.modules.audit.services import AuditService

__all__ = ["AuditLog", "AuditAction", "AuditEntityType", "AuditService"]
