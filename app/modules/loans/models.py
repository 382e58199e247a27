from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Text
from sqlalchemy.sql import func
from app.core.database import Base, enum_column_type, utcnow
import enum


class LoanStatus(str, enum.Enum):
    """Loan lifecycle status"""
    OPEN = "Open"
    FUNDED = "Funded"
    ACTIVE = "Active"
    COMPLETED = "Completed"
    DEFAULTED = "Defaulted"
    CANCELLED = "Cancelled"


class FundingStatus(str, enum.Enum):
    """Funding progress of a loan listing"""
    PARTIAL = "Partial"
    FULLY_FUNDED = "Fully Funded"


class LoanType(str, enum.Enum):
    PERSONAL = "Personal"
    EDUCATION = "Education"
    MEDICAL = "Medical"
    BUSINESS = "Business"
    OTHER = "Other"


class RiskRating(str, enum.Enum):
    """Risk category assigned after evaluation"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Loan(Base):
    """Borrower loan listing"""
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, index=True)
    borrower_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Terms
    amount_requested = Column(Numeric(12, 2), nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=False)  # Annual percentage
    duration_months = Column(Integer, nullable=False)
    purpose = Column(Text, nullable=False)
    loan_type = Column(enum_column_type(LoanType, "loan_type"), default=LoanType.PERSONAL, nullable=False)
    risk_rating = Column(enum_column_type(RiskRating, "risk_rating"), default=RiskRating.MEDIUM, nullable=False)

    # Computed once at creation, never recomputed
    emi_amount = Column(Numeric(12, 2), nullable=False)

    # Status
    status = Column(enum_column_type(LoanStatus, "loan_status"), default=LoanStatus.OPEN, nullable=False, index=True)
    funded_amount = Column(Numeric(12, 2), default=0, nullable=False)  # Mirrors loan_funding.total_funded

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Loan(id={self.id}, amount={self.amount_requested}, status={self.status})>"


class LoanFunding(Base):
    """
    Funding tracker, one row per loan.

    ``version`` is an optimistic counter: a flush that finds it changed
    underneath raises StaleDataError instead of losing an update.
    """
    __tablename__ = "loan_funding"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), unique=True, nullable=False)

    total_required = Column(Numeric(12, 2), nullable=False)
    total_funded = Column(Numeric(12, 2), default=0, nullable=False)
    funding_status = Column(enum_column_type(FundingStatus, "funding_status"), default=FundingStatus.PARTIAL, nullable=False)

    version = Column(Integer, nullable=False)
    last_updated = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<LoanFunding(loan_id={self.loan_id}, funded={self.total_funded}/{self.total_required})>"


class LoanStatusHistory(Base):
    """Append-only record of loan status transitions"""
    __tablename__ = "loan_status_history"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    old_status = Column(enum_column_type(LoanStatus, "loan_status"), nullable=False)
    new_status = Column(enum_column_type(LoanStatus, "loan_status"), nullable=False)
    changed_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    def __repr__(self):
        return f"<LoanStatusHistory(loan_id={self.loan_id}, {self.old_status} -> {self.new_status})>"
