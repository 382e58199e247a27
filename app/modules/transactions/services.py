from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from decimal import Decimal
from typing import List, Optional

from app.modules.transactions.models import Transaction, TransactionType


class TransactionService:
    """Writes and reads the money-movement ledger"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def record(
        self,
        user_id: int,
        transaction_type: TransactionType,
        amount: Decimal,
        loan_id: Optional[int] = None,
        investment_id: Optional[int] = None,
        repayment_schedule_id: Optional[int] = None,
        remarks: Optional[str] = None
    ) -> Transaction:
        """Append a ledger entry to the current unit of work"""
        txn = Transaction(
            user_id=user_id,
            loan_id=loan_id,
            investment_id=investment_id,
            repayment_schedule_id=repayment_schedule_id,
            transaction_type=transaction_type,
            amount=amount,
            remarks=remarks
        )
        self.db.add(txn)
        return txn

    async def get_user_transactions(
        self,
        user_id: int,
        transaction_type: Optional[TransactionType] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Transaction]:
        """All transactions of a user, newest first"""
        query = select(Transaction).where(Transaction.user_id == user_id)
        if transaction_type:
            query = query.where(Transaction.transaction_type == transaction_type)
        query = query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        result = await self.db.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def get_loan_transactions(self, loan_id: int) -> List[Transaction]:
        result = await self.db.execute(
            select(Transaction)
            .where(Transaction.loan_id == loan_id)
            .order_by(Transaction.transaction_date.asc(), Transaction.id.asc())
        )
        return list(result.scalars().all())
