from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime, date

from app.modules.users.models import UserRole, KYCStatus, AccountStatus


class UserCreateRequest(BaseModel):
    """Create a borrower, investor or admin"""
    full_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone_number: Optional[str] = Field(None, min_length=7, max_length=15)
    password: Optional[str] = Field(None, min_length=8)
    role: UserRole = UserRole.BORROWER

    date_of_birth: Optional[date] = None
    city: Optional[str] = Field(None, max_length=50)
    state: Optional[str] = Field(None, max_length=50)
    country: Optional[str] = Field("India", max_length=50)
    pincode: Optional[str] = Field(None, max_length=10)


class UserResponse(BaseModel):
    """Public user profile"""
    id: int
    full_name: str
    email: str
    phone_number: Optional[str] = None
    role: UserRole
    city: Optional[str] = None
    country: Optional[str] = None
    kyc_status: KYCStatus
    account_status: AccountStatus
    created_at: datetime

    class Config:
        from_attributes = True
