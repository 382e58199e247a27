from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.modules.loans.models import LoanStatus, FundingStatus, LoanType, RiskRating


class LoanCreateRequest(BaseModel):
    """New loan listing. borrower_id defaults to the acting user."""
    borrower_id: Optional[int] = None
    amount_requested: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    interest_rate: Decimal = Field(..., ge=0, le=100, max_digits=5, decimal_places=2)
    duration_months: int = Field(..., ge=1, le=600)
    purpose: str = Field(..., min_length=1)
    loan_type: LoanType = LoanType.PERSONAL
    risk_rating: RiskRating = RiskRating.MEDIUM


class LoanResponse(BaseModel):
    id: int
    borrower_id: int
    amount_requested: Decimal
    interest_rate: Decimal
    duration_months: int
    purpose: str
    loan_type: LoanType
    risk_rating: RiskRating
    emi_amount: Decimal
    status: LoanStatus
    funded_amount: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class LoanFundingResponse(BaseModel):
    loan_id: int
    total_required: Decimal
    total_funded: Decimal
    funding_status: FundingStatus

    class Config:
        from_attributes = True


class FundingProgressResponse(BaseModel):
    """Funding progress of an Open or Funded loan"""
    loan_id: int
    purpose: str
    status: LoanStatus
    total_required: Decimal
    total_funded: Decimal
    funding_status: FundingStatus
    funded_percentage: Decimal


class LoanStatusChangeRequest(BaseModel):
    status: LoanStatus
    remarks: Optional[str] = Field(None, max_length=500)


class LoanStatusHistoryResponse(BaseModel):
    id: int
    loan_id: int
    old_status: LoanStatus
    new_status: LoanStatus
    changed_at: datetime
    changed_by: int

    class Config:
        from_attributes = True


class EMICalculatorResponse(BaseModel):
    principal: Decimal
    interest_rate: Decimal
    duration_months: int
    emi_amount: Decimal
    total_repayment: Decimal
    total_interest: Decimal
