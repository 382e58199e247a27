from sqlalchemy import Column, Integer, Numeric, ForeignKey, Date, UniqueConstraint
from app.core.database import Base, enum_column_type
import enum


class InstallmentStatus(str, enum.Enum):
    """Repayment installment status"""
    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"


class RepaymentSchedule(Base):
    """One EMI installment of a loan. Numbers run 1..n without gaps."""
    __tablename__ = "repayment_schedules"
    __table_args__ = (
        UniqueConstraint("loan_id", "installment_number", name="uq_repayment_loan_installment"),
    )

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)

    amount_due = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), default=0, nullable=False)
    status = Column(enum_column_type(InstallmentStatus, "installment_status"), default=InstallmentStatus.PENDING, nullable=False)
    payment_date = Column(Date, nullable=True)  # Set when the installment becomes Paid

    def __repr__(self):
        return f"<RepaymentSchedule(loan_id={self.loan_id}, number={self.installment_number}, status={self.status})>"
