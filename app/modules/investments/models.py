from sqlalchemy import Column, Integer, Numeric, Boolean, ForeignKey, DateTime
from sqlalchemy.sql import func
from app.core.database import Base, enum_column_type, utcnow
import enum


class InvestmentStatus(str, enum.Enum):
    """Status of an investor's stake in a loan"""
    ACTIVE = "Active"
    SOLD = "Sold"
    WITHDRAWN = "Withdrawn"


class Investment(Base):
    """An investor's contribution to a loan listing"""
    __tablename__ = "investments"

    id = Column(Integer, primary_key=True, index=True)
    investor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)

    # Positive while Active; reset to 0 on withdrawal
    invested_amount = Column(Numeric(12, 2), nullable=False)
    investment_status = Column(enum_column_type(InvestmentStatus, "investment_status"), default=InvestmentStatus.ACTIVE, nullable=False)
    ownership_percent = Column(Numeric(5, 2), nullable=True)  # Share of the loan's requested principal
    investment_date = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    # Resale listing
    is_for_sale = Column(Boolean, default=False, nullable=False)
    listed_price = Column(Numeric(12, 2), nullable=True)

    def __repr__(self):
        return f"<Investment(id={self.id}, loan_id={self.loan_id}, amount={self.invested_amount}, status={self.investment_status})>"
