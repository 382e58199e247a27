from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date
from typing import List, Optional

from app.core.database import get_db
from app.core.dependencies import get_acting_user
from app.core.exceptions import LedgerError, to_http_exception
from app.modules.users.models import User, UserRole
from app.modules.repayments import schemas
from app.modules.repayments.services import RepaymentService

router = APIRouter(prefix="/api/v1/repayments", tags=["repayments"])


@router.post("/loan/{loan_id}/schedule", response_model=List[schemas.InstallmentResponse], status_code=status.HTTP_201_CREATED)
async def generate_schedule(
    loan_id: int,
    data: schemas.ScheduleRequest,
    db: AsyncSession = Depends(get_db),
    acting_user: User = Depends(get_acting_user)
):
    """Generate monthly EMI installments for a funded loan (admins only)"""
    if acting_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can generate repayment schedules"
        )
    try:
        return await RepaymentService(db).generate_schedule(loan_id, data.first_due_date)
    except LedgerError as e:
        raise to_http_exception(e)


@router.post("/loan/{loan_id}/pay", response_model=schemas.InstallmentResponse)
async def pay_installment(
    loan_id: int,
    data: schemas.RepaymentRequest,
    db: AsyncSession = Depends(get_db),
    acting_user: User = Depends(get_acting_user)
):
    """
    Pay toward an installment.

    - Partial payments accumulate
    - The first Paid installment activates a Funded loan
    """
    try:
        return await RepaymentService(db).apply_repayment(loan_id, data.installment_id, data.amount, acting_user.id)
    except LedgerError as e:
        raise to_http_exception(e)


@router.get("/loan/{loan_id}", response_model=List[schemas.InstallmentResponse])
async def read_repayment_history(
    loan_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Repayment history of a loan ordered by installment number"""
    try:
        return await RepaymentService(db).get_repayment_history(loan_id)
    except LedgerError as e:
        raise to_http_exception(e)


@router.post("/overdue/mark", response_model=schemas.OverdueMarkResponse)
async def mark_overdue(
    as_of: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    acting_user: User = Depends(get_acting_user)
):
    if acting_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can mark installments overdue"
        )
    as_of = as_of or date.today()
    marked = await RepaymentService(db).mark_overdue(as_of)
    return schemas.OverdueMarkResponse(as_of=as_of, marked_overdue=marked)


@router.get("/overdue", response_model=List[schemas.InstallmentResponse])
async def read_overdue_installments(db: AsyncSession = Depends(get_db)):
    """Overdue installments, earliest due first"""
    return await RepaymentService(db).get_overdue_installments()
