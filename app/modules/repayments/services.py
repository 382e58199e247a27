from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, and_
from datetime import date, timedelta
from dateutil.relativedelta import relativedelta
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union
import logging

from app.core.config import settings
from app.core.database import run_serialized
from app.core.exceptions import NotFoundError, InvalidInputError, InvalidStateError
from app.modules.repayments.models import RepaymentSchedule, InstallmentStatus
from app.modules.loans.models import LoanStatus
from app.modules.loans.services import LoanService, to_money
from app.modules.transactions.models import TransactionType
from app.modules.transactions.services import TransactionService
from app.modules.audit.models import AuditAction, AuditEntityType
from app.modules.audit.services import AuditService

logger = logging.getLogger(__name__)

# Loans whose installments can be paid
REPAYABLE_STATUSES = (LoanStatus.FUNDED, LoanStatus.ACTIVE)


class RepaymentService:
    """EMI schedules and borrower repayments"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.loans = LoanService(db)
        self.ledger = TransactionService(db)
        self.audit = AuditService(db)

    # ============================================================
    # Schedule
    # ============================================================

    async def generate_schedule(
        self,
        loan_id: int,
        first_due_date: Optional[date] = None
    ) -> List[RepaymentSchedule]:
        """Create installments 1..duration_months, due monthly, each for the loan's EMI"""
        if first_due_date is None:
            first_due_date = date.today() + relativedelta(months=1)

        async def work() -> List[RepaymentSchedule]:
            loan = await self.loans.get_loan(loan_id, for_update=True)
            if loan.status not in (LoanStatus.FUNDED, LoanStatus.ACTIVE):
                raise InvalidStateError(f"Loan {loan_id} is {loan.status.value}; schedules are generated for funded loans")

            existing = await self.db.execute(
                select(func.count()).select_from(RepaymentSchedule).where(RepaymentSchedule.loan_id == loan_id)
            )
            if existing.scalar():
                raise InvalidStateError(f"Loan {loan_id} already has a repayment schedule")

            installments = [
                RepaymentSchedule(
                    loan_id=loan_id,
                    installment_number=number,
                    due_date=first_due_date + relativedelta(months=number - 1),
                    amount_due=loan.emi_amount,
                    amount_paid=Decimal("0.00"),
                    status=InstallmentStatus.PENDING
                )
                for number in range(1, loan.duration_months + 1)
            ]
            self.db.add_all(installments)
            await self.db.flush()
            return installments

        installments = await run_serialized(self.db, loan_id, work)
        logger.info(f"Generated {len(installments)} installments for loan {loan_id} from {first_due_date}")
        return installments

    # ============================================================
    # Repayment
    # ============================================================

    async def apply_repayment(
        self,
        loan_id: int,
        installment_id: int,
        amount: Union[Decimal, int, float, str],
        acting_user_id: int
    ) -> RepaymentSchedule:
        """
        Pay ``amount`` toward one installment of a loan.

        Payments accumulate into ``amount_paid``. The installment becomes
        Paid, with today's payment date, once the amount due is covered;
        a Paid installment takes no further payments. Only Funded and
        Active loans accept repayments. Any installment becoming Paid on
        a Funded loan moves it to Active, and the last one moves an
        Active loan to Completed.
        """
        try:
            value = to_money(amount)
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidInputError(f"Invalid amount: {amount!r}")
        if value < 0:
            raise InvalidInputError("Repayment amount cannot be negative")

        async def work() -> RepaymentSchedule:
            loan = await self.loans.get_loan(loan_id, for_update=True)
            if loan.status not in REPAYABLE_STATUSES:
                raise InvalidStateError(f"Loan {loan_id} is {loan.status.value} and does not accept repayments")

            result = await self.db.execute(
                select(RepaymentSchedule)
                .where(and_(RepaymentSchedule.id == installment_id, RepaymentSchedule.loan_id == loan_id))
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            installment = result.scalar_one_or_none()
            if not installment:
                raise NotFoundError(f"Installment {installment_id} not found for loan {loan_id}")
            if installment.status == InstallmentStatus.PAID:
                raise InvalidStateError(f"Installment {installment_id} of loan {loan_id} is already paid")

            installment.amount_paid = to_money(installment.amount_paid + value)

            newly_paid = installment.amount_paid >= installment.amount_due
            if newly_paid:
                installment.status = InstallmentStatus.PAID
                installment.payment_date = date.today()

            # Zero payments move no money
            if value > 0:
                self.ledger.record(
                    user_id=loan.borrower_id,
                    transaction_type=TransactionType.REPAYMENT,
                    amount=value,
                    loan_id=loan_id,
                    repayment_schedule_id=installment.id,
                    remarks=f"EMI #{installment.installment_number} payment"
                )
            self.audit.log_action(
                AuditAction.REPAYMENT_MADE,
                AuditEntityType.REPAYMENT,
                installment.id,
                acting_user_id,
                remarks=f"{value} paid toward EMI #{installment.installment_number} of loan {loan_id}"
            )

            if newly_paid:
                if loan.status == LoanStatus.FUNDED:
                    self.loans.change_status(loan, LoanStatus.ACTIVE, acting_user_id)

                await self.db.flush()
                counts = await self._installment_counts(loan_id)
                if counts["paid"] == counts["total"] and loan.status == LoanStatus.ACTIVE:
                    self.loans.change_status(loan, LoanStatus.COMPLETED, acting_user_id)

            return installment

        installment = await run_serialized(self.db, loan_id, work)
        logger.info(
            f"Repayment of {value} on installment {installment_id} of loan {loan_id}: "
            f"{installment.amount_paid}/{installment.amount_due} ({installment.status.value})"
        )
        return installment

    async def _installment_counts(self, loan_id: int) -> dict:
        result = await self.db.execute(
            select(RepaymentSchedule.status, func.count())
            .where(RepaymentSchedule.loan_id == loan_id)
            .group_by(RepaymentSchedule.status)
        )
        by_status = {row[0]: row[1] for row in result.all()}
        return {
            "paid": by_status.get(InstallmentStatus.PAID, 0),
            "total": sum(by_status.values())
        }

    # ============================================================
    # Overdue
    # ============================================================

    async def mark_overdue(self, as_of: Optional[date] = None) -> int:
        """Flag Pending installments whose due date (plus grace days) has passed"""
        if as_of is None:
            as_of = date.today()
        cutoff = as_of - timedelta(days=settings.REPAYMENT_GRACE_DAYS)

        try:
            result = await self.db.execute(
                update(RepaymentSchedule)
                .where(and_(
                    RepaymentSchedule.status == InstallmentStatus.PENDING,
                    RepaymentSchedule.due_date < cutoff
                ))
                .values(status=InstallmentStatus.OVERDUE)
                .execution_options(synchronize_session="evaluate")
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        marked = result.rowcount
        if marked:
            logger.info(f"Marked {marked} installments overdue as of {as_of}")
        return marked

    # ============================================================
    # Queries
    # ============================================================

    async def get_repayment_history(self, loan_id: int) -> List[RepaymentSchedule]:
        """Installments of a loan ordered by number"""
        await self.loans.get_loan(loan_id)
        result = await self.db.execute(
            select(RepaymentSchedule)
            .where(RepaymentSchedule.loan_id == loan_id)
            .order_by(RepaymentSchedule.installment_number)
        )
        return list(result.scalars().all())

    async def get_overdue_installments(self) -> List[RepaymentSchedule]:
        result = await self.db.execute(
            select(RepaymentSchedule)
            .where(RepaymentSchedule.status == InstallmentStatus.OVERDUE)
            .order_by(RepaymentSchedule.due_date.asc(), RepaymentSchedule.id.asc())
        )
        return list(result.scalars().all())
