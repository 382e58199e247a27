# Loans module
from app.modules.loans.models import (
    Loan, LoanFunding, LoanStatusHistory,
    LoanStatus, FundingStatus, LoanType, RiskRating
)
from app.modules.loans.services import LoanService, calculate_emi

__all__ = [
    "Loan", "LoanFunding", "LoanStatusHistory",
    "LoanStatus", "FundingStatus", "LoanType", "RiskRating",
    "LoanService", "calculate_emi"
]
