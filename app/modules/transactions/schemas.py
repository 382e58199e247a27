from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.modules.transactions.models import TransactionType


class TransactionResponse(BaseModel):
    id: int
    user_id: int
    loan_id: Optional[int] = None
    investment_id: Optional[int] = None
    repayment_schedule_id: Optional[int] = None
    transaction_type: TransactionType
    amount: Decimal
    transaction_date: datetime
    remarks: Optional[str] = None

    class Config:
        from_attributes = True
