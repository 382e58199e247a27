from pydantic import BaseModel, Field
from datetime import date
from decimal import Decimal
from typing import Optional

from app.modules.repayments.models import InstallmentStatus


class ScheduleRequest(BaseModel):
    """Generate the EMI schedule of a funded loan"""
    first_due_date: Optional[date] = None


class RepaymentRequest(BaseModel):
    installment_id: int
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class InstallmentResponse(BaseModel):
    id: int
    loan_id: int
    installment_number: int
    due_date: date
    amount_due: Decimal
    amount_paid: Decimal
    status: InstallmentStatus
    payment_date: Optional[date] = None

    class Config:
        from_attributes = True


class OverdueMarkResponse(BaseModel):
    as_of: date
    marked_overdue: int
