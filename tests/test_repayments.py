"""
Tests for EMI schedules, repayments and overdue marking
"""
import pytest
from decimal import Decimal
from datetime import date, timedelta

from app.core.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from app.modules.loans.models import LoanStatus
from app.modules.loans.services import LoanService
from app.modules.repayments.models import InstallmentStatus
from app.modules.repayments.services import RepaymentService
from app.modules.transactions.models import TransactionType
from app.modules.transactions.services import TransactionService


@pytest.fixture
async def schedule(db_session, funded_small_loan):
    """Twelve monthly installments of 100.00 starting 2026-01-15"""
    return await RepaymentService(db_session).generate_schedule(funded_small_loan.id, date(2026, 1, 15))


async def _loan_status(db_session, loan_id):
    loan = await LoanService(db_session).get_loan(loan_id, for_update=True)
    return loan.status


class TestScheduleGeneration:
    """Tests for generating repayment schedules"""

    @pytest.mark.integration
    async def test_generate_schedule(self, schedule):
        assert [i.installment_number for i in schedule] == list(range(1, 13))
        assert all(i.amount_due == Decimal("100.00") for i in schedule)
        assert all(i.status == InstallmentStatus.PENDING for i in schedule)
        assert schedule[0].due_date == date(2026, 1, 15)
        assert schedule[1].due_date == date(2026, 2, 15)
        assert schedule[-1].due_date == date(2026, 12, 15)

    @pytest.mark.integration
    async def test_schedule_requires_funded_loan(self, db_session, small_loan):
        with pytest.raises(InvalidStateError):
            await RepaymentService(db_session).generate_schedule(small_loan.id)

    @pytest.mark.integration
    async def test_schedule_generated_once(self, db_session, funded_small_loan, schedule):
        loan_id = funded_small_loan.id
        with pytest.raises(InvalidStateError):
            await RepaymentService(db_session).generate_schedule(loan_id)

        history = await RepaymentService(db_session).get_repayment_history(loan_id)
        assert len(history) == 12


class TestApplyRepayment:
    """Tests for paying installments"""

    @pytest.mark.integration
    async def test_partial_payment_stays_pending(self, db_session, funded_small_loan, schedule, borrower):
        installment = await RepaymentService(db_session).apply_repayment(
            funded_small_loan.id, schedule[0].id, Decimal("40.00"), borrower.id
        )

        assert installment.status == InstallmentStatus.PENDING
        assert installment.amount_paid == Decimal("40.00")
        assert installment.payment_date is None
        assert await _loan_status(db_session, funded_small_loan.id) == LoanStatus.FUNDED

    @pytest.mark.integration
    async def test_partial_payments_accumulate(self, db_session, funded_small_loan, schedule, borrower):
        service = RepaymentService(db_session)
        await service.apply_repayment(funded_small_loan.id, schedule[0].id, Decimal("40.00"), borrower.id)
        installment = await service.apply_repayment(funded_small_loan.id, schedule[0].id, Decimal("60.00"), borrower.id)

        assert installment.amount_paid == Decimal("100.00")
        assert installment.status == InstallmentStatus.PAID
        assert installment.payment_date == date.today()

    @pytest.mark.integration
    async def test_first_paid_installment_activates_loan_once(self, db_session, funded_small_loan, schedule, borrower):
        service = RepaymentService(db_session)
        await service.apply_repayment(funded_small_loan.id, schedule[0].id, Decimal("100.00"), borrower.id)
        assert await _loan_status(db_session, funded_small_loan.id) == LoanStatus.ACTIVE

        await service.apply_repayment(funded_small_loan.id, schedule[1].id, Decimal("100.00"), borrower.id)
        assert await _loan_status(db_session, funded_small_loan.id) == LoanStatus.ACTIVE

        history = await LoanService(db_session).get_status_history(funded_small_loan.id)
        activations = [h for h in history if h.new_status == LoanStatus.ACTIVE]
        assert len(activations) == 1
        assert activations[0].old_status == LoanStatus.FUNDED

    @pytest.mark.integration
    async def test_last_paid_installment_completes_loan(self, db_session, funded_small_loan, schedule, borrower):
        service = RepaymentService(db_session)
        for installment in schedule:
            await service.apply_repayment(funded_small_loan.id, installment.id, Decimal("100.00"), borrower.id)

        assert await _loan_status(db_session, funded_small_loan.id) == LoanStatus.COMPLETED
        completed = await LoanService(db_session).get_completed_loans()
        assert [loan.id for loan in completed] == [funded_small_loan.id]

    @pytest.mark.integration
    async def test_repayment_ledger_entry(self, db_session, funded_small_loan, schedule, borrower):
        await RepaymentService(db_session).apply_repayment(
            funded_small_loan.id, schedule[0].id, Decimal("100.00"), borrower.id
        )

        ledger = await TransactionService(db_session).get_user_transactions(
            borrower.id, transaction_type=TransactionType.REPAYMENT
        )
        assert len(ledger) == 1
        assert ledger[0].repayment_schedule_id == schedule[0].id
        assert ledger[0].amount == Decimal("100.00")

    @pytest.mark.integration
    async def test_unknown_installment(self, db_session, funded_small_loan, schedule, borrower):
        with pytest.raises(NotFoundError):
            await RepaymentService(db_session).apply_repayment(
                funded_small_loan.id, 9999, Decimal("100.00"), borrower.id
            )

    @pytest.mark.integration
    async def test_unknown_loan(self, db_session, borrower):
        with pytest.raises(NotFoundError):
            await RepaymentService(db_session).apply_repayment(9999, 1, Decimal("100.00"), borrower.id)

    @pytest.mark.integration
    async def test_negative_amount(self, db_session, funded_small_loan, schedule, borrower):
        with pytest.raises(InvalidInputError):
            await RepaymentService(db_session).apply_repayment(
                funded_small_loan.id, schedule[0].id, Decimal("-1"), borrower.id
            )

    @pytest.mark.integration
    async def test_paid_installment_takes_no_more_payments(self, db_session, funded_small_loan, schedule, borrower):
        loan_id, installment_id, borrower_id = funded_small_loan.id, schedule[0].id, borrower.id
        service = RepaymentService(db_session)
        await service.apply_repayment(loan_id, installment_id, Decimal("100.00"), borrower_id)

        with pytest.raises(InvalidStateError):
            await service.apply_repayment(loan_id, installment_id, Decimal("100.00"), borrower_id)

        history = await service.get_repayment_history(loan_id)
        assert history[0].amount_paid == Decimal("100.00")
        ledger = await TransactionService(db_session).get_user_transactions(
            borrower_id, transaction_type=TransactionType.REPAYMENT
        )
        assert len(ledger) == 1

    @pytest.mark.integration
    async def test_cancelled_loan_rejects_repayment(self, db_session, funded_small_loan, schedule, borrower, admin):
        loan_id, installment_id, borrower_id = funded_small_loan.id, schedule[0].id, borrower.id
        await LoanService(db_session).transition_status(loan_id, LoanStatus.CANCELLED, admin.id)

        with pytest.raises(InvalidStateError):
            await RepaymentService(db_session).apply_repayment(loan_id, installment_id, Decimal("100.00"), borrower_id)

        history = await RepaymentService(db_session).get_repayment_history(loan_id)
        assert history[0].status == InstallmentStatus.PENDING
        assert history[0].amount_paid == Decimal("0.00")
        assert await TransactionService(db_session).get_user_transactions(borrower_id) == []

    @pytest.mark.integration
    async def test_zero_payment_writes_no_ledger_row(self, db_session, funded_small_loan, schedule, borrower):
        installment = await RepaymentService(db_session).apply_repayment(
            funded_small_loan.id, schedule[0].id, Decimal("0"), borrower.id
        )

        assert installment.status == InstallmentStatus.PENDING
        assert installment.amount_paid == Decimal("0.00")
        assert await TransactionService(db_session).get_user_transactions(borrower.id) == []

    @pytest.mark.integration
    async def test_refunded_loan_still_activates_and_completes(
        self, db_session, funded_small_loan, schedule, borrower, investor, second_investor
    ):
        from app.modules.investments.services import FundingService

        loan_id, borrower_id = funded_small_loan.id, borrower.id
        investor_id, second_investor_id = investor.id, second_investor.id
        installment_ids = [installment.id for installment in schedule]
        funding = FundingService(db_session)
        service = RepaymentService(db_session)

        stake = (await funding.get_loan_investments(loan_id, active_only=True))[0]
        await funding.withdraw_investment(stake.id, investor_id, investor_id)
        assert await _loan_status(db_session, loan_id) == LoanStatus.OPEN

        # An Open loan takes no repayments
        with pytest.raises(InvalidStateError):
            await service.apply_repayment(loan_id, installment_ids[0], Decimal("100.00"), borrower_id)

        await funding.apply_investment(second_investor_id, loan_id, Decimal("1200.00"), second_investor_id)
        assert await _loan_status(db_session, loan_id) == LoanStatus.FUNDED

        await service.apply_repayment(loan_id, installment_ids[0], Decimal("100.00"), borrower_id)
        assert await _loan_status(db_session, loan_id) == LoanStatus.ACTIVE

        for installment_id in installment_ids[1:]:
            await service.apply_repayment(loan_id, installment_id, Decimal("100.00"), borrower_id)
        assert await _loan_status(db_session, loan_id) == LoanStatus.COMPLETED

        history = await LoanService(db_session).get_status_history(loan_id)
        assert [h.new_status for h in history] == [
            LoanStatus.FUNDED, LoanStatus.OPEN, LoanStatus.FUNDED, LoanStatus.ACTIVE, LoanStatus.COMPLETED
        ]


class TestOverdue:
    """Tests for marking missed installments overdue"""

    @pytest.mark.integration
    async def test_mark_overdue(self, db_session, funded_small_loan, schedule, borrower):
        service = RepaymentService(db_session)
        await service.apply_repayment(funded_small_loan.id, schedule[0].id, Decimal("100.00"), borrower.id)

        # Installments 1-3 are due before 2026-03-20; number 1 is already paid
        marked = await service.mark_overdue(as_of=date(2026, 3, 20))
        assert marked == 2

        overdue = await service.get_overdue_installments()
        assert [i.installment_number for i in overdue] == [2, 3]

    @pytest.mark.integration
    async def test_mark_overdue_is_idempotent(self, db_session, schedule):
        service = RepaymentService(db_session)
        as_of = schedule[0].due_date + timedelta(days=1)

        assert await service.mark_overdue(as_of=as_of) == 1
        assert await service.mark_overdue(as_of=as_of) == 0

    @pytest.mark.integration
    async def test_partial_payment_on_overdue_installment(self, db_session, funded_small_loan, schedule, borrower):
        service = RepaymentService(db_session)
        await service.mark_overdue(as_of=date(2026, 1, 20))

        installment = await service.apply_repayment(funded_small_loan.id, schedule[0].id, Decimal("30.00"), borrower.id)
        assert installment.status == InstallmentStatus.OVERDUE

        installment = await service.apply_repayment(funded_small_loan.id, schedule[0].id, Decimal("70.00"), borrower.id)
        assert installment.status == InstallmentStatus.PAID
