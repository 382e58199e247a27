from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Set, Union
import logging

from app.core.database import run_serialized, utcnow
from app.core.exceptions import NotFoundError, InvalidInputError, InvalidTransitionError
from app.modules.loans.models import Loan, LoanFunding, LoanStatusHistory, LoanStatus, FundingStatus
from app.modules.loans import schemas
from app.modules.users.models import UserRole
from app.modules.users.services import UserService
from app.modules.audit.models import AuditAction, AuditEntityType
from app.modules.audit.services import AuditService

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

# Loans that still accept investments
FUNDABLE_STATUSES = (LoanStatus.OPEN, LoanStatus.FUNDED)

# Every edge of the loan lifecycle. Funded -> Open happens when a
# withdrawal drops a fully funded loan below its target.
ALLOWED_TRANSITIONS: Dict[LoanStatus, Set[LoanStatus]] = {
    LoanStatus.OPEN: {LoanStatus.FUNDED, LoanStatus.CANCELLED},
    LoanStatus.FUNDED: {LoanStatus.ACTIVE, LoanStatus.OPEN, LoanStatus.CANCELLED},
    LoanStatus.ACTIVE: {LoanStatus.COMPLETED, LoanStatus.DEFAULTED},
    LoanStatus.COMPLETED: set(),
    LoanStatus.DEFAULTED: set(),
    LoanStatus.CANCELLED: set(),
}

# Targets an operator may request directly; the rest are engine-driven
MANUAL_TARGETS = {LoanStatus.CANCELLED, LoanStatus.COMPLETED, LoanStatus.DEFAULTED}


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Quantize to two decimal places, rounding half up"""
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def calculate_emi(
    principal: Union[Decimal, int, float, str],
    annual_rate: Union[Decimal, int, float, str],
    months: int
) -> Decimal:
    """
    Equated monthly installment for an amortizing loan.

    EMI = P * i / (1 - (1 + i)^-n) with i = annual_rate / 1200.
    At 0% interest the formula degenerates, so the result is P / n.
    """
    principal = Decimal(str(principal))
    rate = Decimal(str(annual_rate))

    if principal <= 0:
        raise InvalidInputError("Principal must be positive")
    if rate < 0:
        raise InvalidInputError("Interest rate cannot be negative")
    if isinstance(months, bool) or not isinstance(months, int) or months < 1:
        raise InvalidInputError("Duration must be at least one month")

    if rate == 0:
        return to_money(principal / months)

    monthly_rate = rate / Decimal(1200)
    emi = principal * monthly_rate / (1 - (1 + monthly_rate) ** -months)
    return to_money(emi)


class LoanService:
    """Loan listings, funding trackers and the loan status state machine"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============================================================
    # Loan Creation
    # ============================================================

    async def create_loan(self, data: schemas.LoanCreateRequest, acting_user_id: int) -> Loan:
        """Create a loan listing with its funding tracker"""
        borrower_id = data.borrower_id or acting_user_id
        await UserService.require_role(self.db, borrower_id, UserRole.BORROWER)

        amount = to_money(data.amount_requested)
        emi = calculate_emi(amount, data.interest_rate, data.duration_months)

        loan = Loan(
            borrower_id=borrower_id,
            amount_requested=amount,
            interest_rate=to_money(data.interest_rate),
            duration_months=data.duration_months,
            purpose=data.purpose,
            loan_type=data.loan_type,
            risk_rating=data.risk_rating,
            emi_amount=emi,
            status=LoanStatus.OPEN,
            funded_amount=Decimal("0.00")
        )

        try:
            self.db.add(loan)
            await self.db.flush()

            self.db.add(LoanFunding(
                loan_id=loan.id,
                total_required=amount,
                total_funded=Decimal("0.00"),
                funding_status=FundingStatus.PARTIAL
            ))
            AuditService(self.db).log_action(
                AuditAction.LOAN_CREATED,
                AuditEntityType.LOAN,
                loan.id,
                acting_user_id,
                remarks=f"Loan of {amount} requested for {data.duration_months} months"
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Created loan {loan.id} for borrower {borrower_id}: {amount} at {data.interest_rate}% (EMI {emi})")
        return loan

    # ============================================================
    # Lookups
    # ============================================================

    async def get_loan(self, loan_id: int, for_update: bool = False) -> Loan:
        """Get a loan or raise NotFoundError; optionally lock its row"""
        query = select(Loan).where(Loan.id == loan_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        loan = result.scalar_one_or_none()

        if not loan:
            raise NotFoundError(f"Loan {loan_id} not found")

        return loan

    async def get_funding(self, loan_id: int, for_update: bool = False) -> LoanFunding:
        """Get the funding tracker of a loan; optionally lock its row"""
        query = select(LoanFunding).where(LoanFunding.loan_id == loan_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        funding = result.scalar_one_or_none()

        if not funding:
            raise NotFoundError(f"Funding record for loan {loan_id} not found")

        return funding

    async def list_active_loans(self) -> List[Loan]:
        """Loans still open for funding (Open or Funded)"""
        result = await self.db.execute(
            select(Loan).where(Loan.status.in_(FUNDABLE_STATUSES)).order_by(Loan.id)
        )
        return list(result.scalars().all())

    async def get_borrower_loans(self, borrower_id: int, active_only: bool = True) -> List[Loan]:
        query = select(Loan).where(Loan.borrower_id == borrower_id)
        if active_only:
            query = query.where(Loan.status.in_((LoanStatus.OPEN, LoanStatus.FUNDED, LoanStatus.ACTIVE)))
        result = await self.db.execute(query.order_by(Loan.id))
        return list(result.scalars().all())

    async def get_completed_loans(self) -> List[Loan]:
        result = await self.db.execute(
            select(Loan).where(Loan.status == LoanStatus.COMPLETED).order_by(Loan.id)
        )
        return list(result.scalars().all())

    async def get_recent_loans(self, days: int = 30) -> List[Loan]:
        """Loans created in the last ``days`` days, newest first"""
        since = utcnow() - timedelta(days=days)
        result = await self.db.execute(
            select(Loan).where(Loan.created_at >= since).order_by(Loan.created_at.desc(), Loan.id.desc())
        )
        return list(result.scalars().all())

    async def get_funding_progress(self) -> List[schemas.FundingProgressResponse]:
        """Funding progress of every Open or Funded loan"""
        result = await self.db.execute(
            select(Loan, LoanFunding)
            .join(LoanFunding, LoanFunding.loan_id == Loan.id)
            .where(Loan.status.in_(FUNDABLE_STATUSES))
            .order_by(Loan.id)
        )

        progress = []
        for loan, funding in result.all():
            progress.append(schemas.FundingProgressResponse(
                loan_id=loan.id,
                purpose=loan.purpose,
                status=loan.status,
                total_required=funding.total_required,
                total_funded=funding.total_funded,
                funding_status=funding.funding_status,
                funded_percentage=to_money(funding.total_funded / funding.total_required * 100)
            ))
        return progress

    async def get_status_history(self, loan_id: int) -> List[LoanStatusHistory]:
        await self.get_loan(loan_id)
        result = await self.db.execute(
            select(LoanStatusHistory)
            .where(LoanStatusHistory.loan_id == loan_id)
            .order_by(LoanStatusHistory.changed_at.asc(), LoanStatusHistory.id.asc())
        )
        return list(result.scalars().all())

    # ============================================================
    # Status State Machine
    # ============================================================

    def change_status(
        self,
        loan: Loan,
        new_status: LoanStatus,
        acting_user_id: int,
        remarks: Optional[str] = None
    ) -> Optional[LoanStatusHistory]:
        """
        Move a loan along one edge of the state machine.

        The history row and the audit row are added before the loan's
        status is set, all inside the caller's unit of work. Returns None
        when the loan is already in ``new_status``.
        """
        old_status = loan.status
        if old_status == new_status:
            return None

        if new_status not in ALLOWED_TRANSITIONS[old_status]:
            raise InvalidTransitionError(
                f"Loan {loan.id} cannot move from {old_status.value} to {new_status.value}"
            )

        history = LoanStatusHistory(
            loan_id=loan.id,
            old_status=old_status,
            new_status=new_status,
            changed_by=acting_user_id
        )
        self.db.add(history)

        AuditService(self.db).log_action(
            AuditAction.STATUS_CHANGED,
            AuditEntityType.LOAN,
            loan.id,
            acting_user_id,
            remarks=remarks or f"Loan status changed from {old_status.value} to {new_status.value}"
        )

        loan.status = new_status
        logger.info(f"Loan {loan.id} status {old_status.value} -> {new_status.value} by user {acting_user_id}")
        return history

    async def transition_status(
        self,
        loan_id: int,
        new_status: LoanStatus,
        acting_user_id: int,
        remarks: Optional[str] = None
    ) -> Loan:
        """Apply an operator-driven status change (cancel, complete, default)"""
        if new_status not in MANUAL_TARGETS:
            raise InvalidTransitionError(f"Status {new_status.value} is managed by the funding and repayment engines")

        async def work() -> Loan:
            loan = await self.get_loan(loan_id, for_update=True)
            if loan.status == new_status:
                raise InvalidTransitionError(f"Loan {loan_id} is already {new_status.value}")
            self.change_status(loan, new_status, acting_user_id, remarks)
            return loan

        return await run_serialized(self.db, loan_id, work)
