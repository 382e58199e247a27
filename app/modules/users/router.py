from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.database import get_db
from app.core.dependencies import get_acting_user
from app.core.exceptions import LedgerError, to_http_exception
from app.modules.users.models import User, UserRole, KYCStatus
from app.modules.users import schemas
from app.modules.users.services import UserService

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post("/", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: schemas.UserCreateRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Create a platform user.

    - Role is one of borrower, investor, admin
    - Email and phone number must be unique
    """
    try:
        return await UserService.create_user(db, user_data)
    except LedgerError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[schemas.UserResponse])
async def read_users(
    role: Optional[UserRole] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db)
):
    return await UserService.get_users(db, role=role, skip=skip, limit=limit)


@router.get("/{user_id}", response_model=schemas.UserResponse)
async def read_user(
    user_id: int,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await UserService.get_user(db, user_id)
    except LedgerError as e:
        raise to_http_exception(e)


@router.put("/{user_id}/kyc", response_model=schemas.UserResponse)
async def update_kyc_status(
    user_id: int,
    kyc_status: KYCStatus,
    db: AsyncSession = Depends(get_db),
    acting_user: User = Depends(get_acting_user)
):
    """Update KYC status (admins only)"""
    if acting_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can update KYC status"
        )
    try:
        return await UserService.update_kyc_status(db, user_id, kyc_status, acting_user.id)
    except LedgerError as e:
        raise to_http_exception(e)
