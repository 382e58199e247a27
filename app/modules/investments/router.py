from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.core.database import get_db
from app.core.dependencies import get_acting_user
from app.core.exceptions import LedgerError, to_http_exception
from app.modules.users.models import User, UserRole
from app.modules.investments import schemas
from app.modules.investments.services import FundingService

router = APIRouter(prefix="/api/v1/investments", tags=["investments"])


def _resolve_investor(requested_id, acting_user: User) -> int:
    """Investors act for themselves; admins may act for anyone"""
    investor_id = requested_id or acting_user.id
    if investor_id != acting_user.id and acting_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot act on behalf of another investor"
        )
    return investor_id


@router.post("/", response_model=schemas.InvestmentResponse, status_code=status.HTTP_201_CREATED)
async def invest(
    data: schemas.InvestmentRequest,
    db: AsyncSession = Depends(get_db),
    acting_user: User = Depends(get_acting_user)
):
    """
    Invest in an Open or Funded loan.

    - Reaching the target moves the loan to Funded
    - Amounts beyond the remaining target are rejected
    """
    investor_id = _resolve_investor(data.investor_id, acting_user)
    try:
        return await FundingService(db).apply_investment(investor_id, data.loan_id, data.amount, acting_user.id)
    except LedgerError as e:
        raise to_http_exception(e)


@router.post("/{investment_id}/withdraw", response_model=schemas.InvestmentResponse)
async def withdraw(
    investment_id: int,
    db: AsyncSession = Depends(get_db),
    acting_user: User = Depends(get_acting_user)
):
    """Withdraw an Active investment owned by the acting user"""
    try:
        return await FundingService(db).withdraw_investment(investment_id, acting_user.id, acting_user.id)
    except LedgerError as e:
        raise to_http_exception(e)


@router.get("/portfolio/{investor_id}", response_model=List[schemas.PortfolioItem])
async def read_portfolio(
    investor_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Investor portfolio with loan purpose and status"""
    return await FundingService(db).get_investor_portfolio(investor_id)


@router.get("/loan/{loan_id}", response_model=List[schemas.InvestmentResponse])
async def read_loan_investments(
    loan_id: int,
    active_only: bool = False,
    db: AsyncSession = Depends(get_db)
):
    return await FundingService(db).get_loan_investments(loan_id, active_only)


@router.get("/{investment_id}", response_model=schemas.InvestmentResponse)
async def read_investment(
    investment_id: int,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await FundingService(db).get_investment(investment_id)
    except LedgerError as e:
        raise to_http_exception(e)
