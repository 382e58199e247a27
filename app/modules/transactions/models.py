from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime
from sqlalchemy.sql import func
from app.core.database import Base, enum_column_type, utcnow
import enum


class TransactionType(str, enum.Enum):
    """Kinds of money movement on the platform"""
    INVESTMENT = "Investment"
    REPAYMENT = "Repayment"
    PAYOUT = "Payout"
    WITHDRAWAL = "Withdrawal"
    PENALTY = "Penalty"


class Transaction(Base):
    """Ledger entry for a single money movement. Immutable once written."""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Optional references to what the money moved against
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=True, index=True)
    investment_id = Column(Integer, ForeignKey("investments.id"), nullable=True)
    repayment_schedule_id = Column(Integer, ForeignKey("repayment_schedules.id"), nullable=True)

    transaction_type = Column(enum_column_type(TransactionType, "transaction_type"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_date = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    remarks = Column(String(255), nullable=True)

    def __repr__(self):
        return f"<Transaction(id={self.id}, type={self.transaction_type}, amount={self.amount})>"
