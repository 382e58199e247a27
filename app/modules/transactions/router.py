from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.database import get_db
from app.modules.transactions.models import TransactionType
from app.modules.transactions.schemas import TransactionResponse
from app.modules.transactions.services import TransactionService

router = APIRouter(prefix="/api/v1/transactions", tags=["transactions"])


@router.get("/user/{user_id}", response_model=List[TransactionResponse])
async def read_user_transactions(
    user_id: int,
    transaction_type: Optional[TransactionType] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db)
):
    """All transactions of a user, newest first"""
    service = TransactionService(db)
    return await service.get_user_transactions(user_id, transaction_type, skip=skip, limit=limit)


@router.get("/loan/{loan_id}", response_model=List[TransactionResponse])
async def read_loan_transactions(
    loan_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Money movements recorded against a loan, oldest first"""
    service = TransactionService(db)
    return await service.get_loan_transactions(loan_id)
