from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from decimal import Decimal, InvalidOperation
from typing import List, Union
import logging

from app.core.database import run_serialized
from app.core.exceptions import NotFoundError, InvalidInputError, InvalidStateError, InvalidWithdrawalError
from app.modules.investments.models import Investment, InvestmentStatus
from app.modules.investments.schemas import PortfolioItem
from app.modules.loans.models import Loan, LoanFunding, LoanStatus, FundingStatus
from app.modules.loans.services import LoanService, FUNDABLE_STATUSES, to_money
from app.modules.users.models import UserRole
from app.modules.users.services import UserService
from app.modules.transactions.models import TransactionType
from app.modules.transactions.services import TransactionService
from app.modules.audit.models import AuditAction, AuditEntityType
from app.modules.audit.services import AuditService

logger = logging.getLogger(__name__)


class FundingService:
    """
    Applies investments and withdrawals to a loan.

    Each operation is one unit of work serialized per loan. Inside it the
    loan and funding rows are read FOR UPDATE, ``total_funded`` is
    rewritten from the locked value, and the threshold check sees the
    post-write total. The funding row's version counter catches any
    writer that bypassed the lock.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.loans = LoanService(db)
        self.ledger = TransactionService(db)
        self.audit = AuditService(db)

    @staticmethod
    def _validate_amount(amount: Union[Decimal, int, float, str]) -> Decimal:
        try:
            value = to_money(amount)
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidInputError(f"Invalid amount: {amount!r}")
        if value <= 0:
            raise InvalidInputError("Investment amount must be positive")
        return value

    async def _recompute_ownership(self, loan_id: int, funding: LoanFunding) -> None:
        """ownership_percent = invested_amount / total_required * 100 for every active stake"""
        await self.db.flush()
        result = await self.db.execute(
            select(Investment).where(
                and_(
                    Investment.loan_id == loan_id,
                    Investment.investment_status == InvestmentStatus.ACTIVE
                )
            )
        )
        for investment in result.scalars().all():
            investment.ownership_percent = to_money(
                Decimal(investment.invested_amount) / Decimal(funding.total_required) * 100
            )

    # ============================================================
    # Investment
    # ============================================================

    async def apply_investment(
        self,
        investor_id: int,
        loan_id: int,
        amount: Union[Decimal, int, float, str],
        acting_user_id: int
    ) -> Investment:
        """
        Invest ``amount`` in a loan that is Open or Funded.

        Reaching the funding target marks the tracker Fully Funded and
        moves the loan Open -> Funded. Investments that would take the
        loan past its target are rejected.
        """
        value = self._validate_amount(amount)
        await UserService.require_role(self.db, investor_id, UserRole.INVESTOR)

        async def work() -> Investment:
            loan = await self.loans.get_loan(loan_id, for_update=True)
            if loan.status not in FUNDABLE_STATUSES:
                raise InvalidStateError(f"Loan {loan_id} is {loan.status.value} and no longer accepts investments")

            funding = await self.loans.get_funding(loan_id, for_update=True)
            new_total = to_money(funding.total_funded + value)
            if new_total > funding.total_required:
                remaining = to_money(funding.total_required - funding.total_funded)
                raise InvalidInputError(
                    f"Investment of {value} exceeds the remaining {remaining} needed by loan {loan_id}"
                )

            investment = Investment(
                investor_id=investor_id,
                loan_id=loan_id,
                invested_amount=value,
                investment_status=InvestmentStatus.ACTIVE,
                is_for_sale=False
            )
            self.db.add(investment)

            funding.total_funded = new_total
            await self._recompute_ownership(loan_id, funding)

            if new_total >= funding.total_required:
                funding.funding_status = FundingStatus.FULLY_FUNDED
                self.loans.change_status(loan, LoanStatus.FUNDED, acting_user_id)
            else:
                funding.funding_status = FundingStatus.PARTIAL
            loan.funded_amount = new_total

            self.ledger.record(
                user_id=investor_id,
                transaction_type=TransactionType.INVESTMENT,
                amount=value,
                loan_id=loan_id,
                investment_id=investment.id,
                remarks=f"Investment in loan {loan_id}"
            )
            self.audit.log_action(
                AuditAction.INVESTMENT_MADE,
                AuditEntityType.INVESTMENT,
                investment.id,
                acting_user_id,
                remarks=f"Investment of {value} made for loan {loan_id}"
            )
            return investment

        try:
            investment = await run_serialized(self.db, loan_id, work)
        except (InvalidStateError, InvalidInputError, NotFoundError) as e:
            logger.warning(f"Rejected investment of {value} by user {investor_id} in loan {loan_id}: {e}")
            raise

        logger.info(f"Investment {investment.id}: {value} from user {investor_id} into loan {loan_id}")
        return investment

    # ============================================================
    # Withdrawal
    # ============================================================

    async def withdraw_investment(
        self,
        investment_id: int,
        investor_id: int,
        acting_user_id: int
    ) -> Investment:
        """
        Withdraw an Active investment owned by ``investor_id``.

        The stake is zeroed and removed from ``total_funded``. A Funded
        loan that drops below its target reverts to Open; loans already
        past funding keep their status.
        """
        investment = await self.get_investment(investment_id)
        loan_id = investment.loan_id

        async def work() -> Investment:
            result = await self.db.execute(
                select(Investment)
                .where(Investment.id == investment_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            locked = result.scalar_one()

            if locked.investor_id != investor_id:
                raise InvalidWithdrawalError(f"Investment {investment_id} does not belong to user {investor_id}")
            if locked.investment_status != InvestmentStatus.ACTIVE:
                raise InvalidWithdrawalError(
                    f"Investment {investment_id} is {locked.investment_status.value}, only Active investments can be withdrawn"
                )

            loan = await self.loans.get_loan(loan_id, for_update=True)
            funding = await self.loans.get_funding(loan_id, for_update=True)
            withdrawn_amount = to_money(locked.invested_amount)

            locked.investment_status = InvestmentStatus.WITHDRAWN
            locked.invested_amount = Decimal("0.00")
            locked.ownership_percent = Decimal("0.00")
            locked.is_for_sale = False
            locked.listed_price = None

            new_total = max(to_money(funding.total_funded - withdrawn_amount), Decimal("0.00"))
            funding.total_funded = new_total
            funding.funding_status = (
                FundingStatus.PARTIAL if new_total < funding.total_required else FundingStatus.FULLY_FUNDED
            )
            loan.funded_amount = new_total

            if loan.status == LoanStatus.FUNDED and new_total < loan.amount_requested:
                self.loans.change_status(loan, LoanStatus.OPEN, acting_user_id)

            self.ledger.record(
                user_id=investor_id,
                transaction_type=TransactionType.WITHDRAWAL,
                amount=withdrawn_amount,
                loan_id=loan_id,
                investment_id=investment_id,
                remarks=f"Withdrawal from loan {loan_id}"
            )
            self.audit.log_action(
                AuditAction.WITHDRAWAL,
                AuditEntityType.INVESTMENT,
                investment_id,
                acting_user_id,
                remarks=f"Investment of {withdrawn_amount} withdrawn from loan {loan_id}"
            )
            return locked

        try:
            withdrawn = await run_serialized(self.db, loan_id, work)
        except InvalidStateError as e:
            logger.warning(f"Rejected withdrawal of investment {investment_id} by user {investor_id}: {e}")
            raise

        logger.info(f"Investment {investment_id} withdrawn from loan {loan_id} by user {investor_id}")
        return withdrawn

    # ============================================================
    # Queries
    # ============================================================

    async def get_investment(self, investment_id: int) -> Investment:
        result = await self.db.execute(select(Investment).where(Investment.id == investment_id))
        investment = result.scalar_one_or_none()

        if not investment:
            raise NotFoundError(f"Investment {investment_id} not found")

        return investment

    async def get_loan_investments(self, loan_id: int, active_only: bool = False) -> List[Investment]:
        query = select(Investment).where(Investment.loan_id == loan_id)
        if active_only:
            query = query.where(Investment.investment_status == InvestmentStatus.ACTIVE)
        result = await self.db.execute(query.order_by(Investment.id))
        return list(result.scalars().all())

    async def get_investor_portfolio(self, investor_id: int) -> List[PortfolioItem]:
        """Every investment of an investor with its loan's purpose and status"""
        result = await self.db.execute(
            select(Investment, Loan)
            .join(Loan, Loan.id == Investment.loan_id)
            .where(Investment.investor_id == investor_id)
            .order_by(Investment.id)
        )

        return [
            PortfolioItem(
                investment_id=investment.id,
                investor_id=investment.investor_id,
                loan_id=loan.id,
                purpose=loan.purpose,
                invested_amount=investment.invested_amount,
                ownership_percent=investment.ownership_percent,
                investment_status=investment.investment_status,
                loan_status=loan.status
            )
            for investment, loan in result.all()
        ]
