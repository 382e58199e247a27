from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from decimal import Decimal
from typing import List

from app.core.database import get_db
from app.core.dependencies import get_acting_user
from app.core.exceptions import LedgerError, to_http_exception
from app.modules.users.models import User, UserRole
from app.modules.loans import schemas
from app.modules.loans.services import LoanService, calculate_emi, to_money

router = APIRouter(prefix="/api/v1/loans", tags=["loans"])


@router.post("/", response_model=schemas.LoanResponse, status_code=status.HTTP_201_CREATED)
async def create_loan(
    data: schemas.LoanCreateRequest,
    db: AsyncSession = Depends(get_db),
    acting_user: User = Depends(get_acting_user)
):
    """
    List a new loan for funding.

    - EMI is computed once here and never recomputed
    - A funding tracker is created alongside the loan
    """
    if data.borrower_id and data.borrower_id != acting_user.id and acting_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can create loans on behalf of another borrower"
        )
    try:
        return await LoanService(db).create_loan(data, acting_user.id)
    except LedgerError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[schemas.LoanResponse])
async def read_active_loans(db: AsyncSession = Depends(get_db)):
    """Loans open for funding (Open or Funded)"""
    return await LoanService(db).list_active_loans()


@router.get("/emi", response_model=schemas.EMICalculatorResponse)
async def emi_calculator(
    principal: Decimal = Query(..., gt=0),
    interest_rate: Decimal = Query(..., ge=0, le=100),
    duration_months: int = Query(..., ge=1, le=600)
):
    """Monthly installment for the given terms"""
    try:
        emi = calculate_emi(principal, interest_rate, duration_months)
    except LedgerError as e:
        raise to_http_exception(e)

    total_repayment = to_money(emi * duration_months)
    return schemas.EMICalculatorResponse(
        principal=to_money(principal),
        interest_rate=to_money(interest_rate),
        duration_months=duration_months,
        emi_amount=emi,
        total_repayment=total_repayment,
        total_interest=total_repayment - to_money(principal)
    )


@router.get("/funding-progress", response_model=List[schemas.FundingProgressResponse])
async def read_funding_progress(db: AsyncSession = Depends(get_db)):
    return await LoanService(db).get_funding_progress()


@router.get("/completed", response_model=List[schemas.LoanResponse])
async def read_completed_loans(db: AsyncSession = Depends(get_db)):
    return await LoanService(db).get_completed_loans()


@router.get("/recent", response_model=List[schemas.LoanResponse])
async def read_recent_loans(
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db)
):
    """Loans created in the last N days"""
    return await LoanService(db).get_recent_loans(days)


@router.get("/borrower/{borrower_id}", response_model=List[schemas.LoanResponse])
async def read_borrower_loans(
    borrower_id: int,
    active_only: bool = True,
    db: AsyncSession = Depends(get_db)
):
    return await LoanService(db).get_borrower_loans(borrower_id, active_only)


@router.get("/{loan_id}", response_model=schemas.LoanResponse)
async def read_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await LoanService(db).get_loan(loan_id)
    except LedgerError as e:
        raise to_http_exception(e)


@router.get("/{loan_id}/funding", response_model=schemas.LoanFundingResponse)
async def read_loan_funding(
    loan_id: int,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await LoanService(db).get_funding(loan_id)
    except LedgerError as e:
        raise to_http_exception(e)


@router.get("/{loan_id}/status-history", response_model=List[schemas.LoanStatusHistoryResponse])
async def read_status_history(
    loan_id: int,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await LoanService(db).get_status_history(loan_id)
    except LedgerError as e:
        raise to_http_exception(e)


@router.put("/{loan_id}/status", response_model=schemas.LoanResponse)
async def change_loan_status(
    loan_id: int,
    data: schemas.LoanStatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    acting_user: User = Depends(get_acting_user)
):
    """Cancel, complete or default a loan (admins only)"""
    if acting_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can change loan status"
        )
    try:
        return await LoanService(db).transition_status(loan_id, data.status, acting_user.id, data.remarks)
    except LedgerError as e:
        raise to_http_exception(e)
