from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.modules.investments.models import InvestmentStatus
from app.modules.loans.models import LoanStatus


class InvestmentRequest(BaseModel):
    """Contribute to a loan. investor_id defaults to the acting user."""
    loan_id: int
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    investor_id: Optional[int] = None


class InvestmentResponse(BaseModel):
    id: int
    investor_id: int
    loan_id: int
    invested_amount: Decimal
    investment_status: InvestmentStatus
    ownership_percent: Optional[Decimal] = None
    investment_date: datetime
    is_for_sale: bool
    listed_price: Optional[Decimal] = None

    class Config:
        from_attributes = True


class PortfolioItem(BaseModel):
    """One investment in an investor's portfolio"""
    investment_id: int
    investor_id: int
    loan_id: int
    purpose: str
    invested_amount: Decimal
    ownership_percent: Optional[Decimal] = None
    investment_status: InvestmentStatus
    loan_status: LoanStatus
