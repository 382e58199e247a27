# Investments module
from app.modules.investments.models import Investment, InvestmentStatus
from app.modules.investments.services import FundingService

__all__ = ["Investment", "InvestmentStatus", "FundingService"]
