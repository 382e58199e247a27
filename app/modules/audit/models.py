from sqlalchemy import Column, Integer, DateTime, Text, ForeignKey
from sqlalchemy.sql import func
from app.core.database import Base, enum_column_type, utcnow
import enum


class AuditAction(str, enum.Enum):
    """Audited platform actions"""
    LOAN_CREATED = "Loan Created"
    INVESTMENT_MADE = "Investment Made"
    REPAYMENT_MADE = "Repayment Made"
    STATUS_CHANGED = "Status Changed"
    KYC_UPDATED = "KYC Updated"
    WITHDRAWAL = "Withdrawal"


class AuditEntityType(str, enum.Enum):
    """Kind of entity an audit row refers to"""
    LOAN = "loan"
    INVESTMENT = "investment"
    USER = "user"
    TRANSACTION = "transaction"
    REPAYMENT = "repayment"


class AuditLog(Base):
    """Append-only audit trail. Rows are never updated or deleted."""
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, index=True)

    # What
    action = Column(enum_column_type(AuditAction, "audit_action"), nullable=False, index=True)
    entity_type = Column(enum_column_type(AuditEntityType, "audit_entity_type"), nullable=False, index=True)
    entity_id = Column(Integer, nullable=False)

    # Who
    action_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # When
    timestamp = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    remarks = Column(Text, nullable=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action={self.action}, entity={self.entity_type}:{self.entity_id})>"
