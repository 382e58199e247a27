"""
Tests for EMI calculation, loan creation and the loan status state machine
"""
import pytest
from decimal import Decimal

from app.core.exceptions import InvalidInputError, InvalidStateError, InvalidTransitionError, NotFoundError
from app.modules.loans.models import LoanStatus, FundingStatus
from app.modules.loans.schemas import LoanCreateRequest
from app.modules.loans.services import LoanService, calculate_emi, to_money


class TestEMICalculation:
    """Tests for the EMI formula"""

    @pytest.mark.unit
    def test_calculate_emi(self):
        # 10,000 at 12% for 12 months
        assert calculate_emi(Decimal("10000.00"), Decimal("12.00"), 12) == Decimal("888.49")

    @pytest.mark.unit
    def test_calculate_emi_zero_interest(self):
        assert calculate_emi(Decimal("1200.00"), Decimal("0.00"), 12) == Decimal("100.00")

    @pytest.mark.unit
    def test_calculate_emi_rounds_half_up_to_two_places(self):
        emi = calculate_emi(Decimal("1000.00"), Decimal("0"), 3)
        assert emi == Decimal("333.33")
        assert emi.as_tuple().exponent == -2

    @pytest.mark.unit
    @pytest.mark.parametrize("principal,rate,months", [
        (Decimal("0"), Decimal("10"), 12),
        (Decimal("-500"), Decimal("10"), 12),
        (Decimal("1000"), Decimal("-1"), 12),
        (Decimal("1000"), Decimal("10"), 0),
    ])
    def test_calculate_emi_rejects_invalid_input(self, principal, rate, months):
        with pytest.raises(InvalidInputError):
            calculate_emi(principal, rate, months)

    @pytest.mark.unit
    def test_to_money(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(7) == Decimal("7.00")


class TestLoanCreation:
    """Tests for creating loan listings"""

    @pytest.mark.integration
    async def test_create_loan_stores_emi_and_funding(self, db_session, open_loan):
        assert open_loan.status == LoanStatus.OPEN
        assert Decimal("11820.00") < open_loan.emi_amount < Decimal("11835.00")
        assert open_loan.emi_amount == calculate_emi(Decimal("250000"), Decimal("12.5"), 24)

        funding = await LoanService(db_session).get_funding(open_loan.id)
        assert funding.total_required == Decimal("250000.00")
        assert funding.total_funded == Decimal("0.00")
        assert funding.funding_status == FundingStatus.PARTIAL

    @pytest.mark.integration
    async def test_emi_unchanged_by_funding(self, db_session, open_loan, investor):
        from app.modules.investments.services import FundingService

        emi = open_loan.emi_amount
        await FundingService(db_session).apply_investment(investor.id, open_loan.id, Decimal("100000"), investor.id)

        loan = await LoanService(db_session).get_loan(open_loan.id)
        await db_session.refresh(loan)
        assert loan.emi_amount == emi

    @pytest.mark.integration
    async def test_create_loan_requires_borrower(self, db_session, investor):
        data = LoanCreateRequest(
            amount_requested=Decimal("5000"),
            interest_rate=Decimal("10"),
            duration_months=6,
            purpose="Not allowed"
        )
        with pytest.raises(InvalidStateError):
            await LoanService(db_session).create_loan(data, investor.id)

    @pytest.mark.integration
    async def test_create_loan_writes_audit_row(self, db_session, open_loan, borrower):
        from app.modules.audit.models import AuditAction
        from app.modules.audit.schemas import AuditLogFilter
        from app.modules.audit.services import AuditService

        logs, total = await AuditService(db_session).get_audit_logs(
            AuditLogFilter(action=AuditAction.LOAN_CREATED)
        )
        assert total == 1
        assert logs[0].entity_id == open_loan.id
        assert logs[0].action_by == borrower.id

    @pytest.mark.integration
    async def test_get_loan_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            await LoanService(db_session).get_loan(999)


class TestLoanQueries:
    """Tests for loan read queries"""

    @pytest.mark.integration
    async def test_list_active_loans_excludes_cancelled(self, db_session, open_loan, small_loan, admin):
        service = LoanService(db_session)
        await service.transition_status(small_loan.id, LoanStatus.CANCELLED, admin.id)

        active = await service.list_active_loans()
        assert [loan.id for loan in active] == [open_loan.id]

    @pytest.mark.integration
    async def test_funding_progress(self, db_session, open_loan, investor):
        from app.modules.investments.services import FundingService

        await FundingService(db_session).apply_investment(investor.id, open_loan.id, Decimal("62500"), investor.id)

        progress = await LoanService(db_session).get_funding_progress()
        assert len(progress) == 1
        assert progress[0].total_funded == Decimal("62500.00")
        assert progress[0].funded_percentage == Decimal("25.00")

    @pytest.mark.integration
    async def test_borrower_and_recent_loans(self, db_session, open_loan, borrower):
        service = LoanService(db_session)
        assert [loan.id for loan in await service.get_borrower_loans(borrower.id)] == [open_loan.id]
        assert [loan.id for loan in await service.get_recent_loans(days=1)] == [open_loan.id]


class TestLoanStatusMachine:
    """Tests for manual and engine-driven status changes"""

    @pytest.mark.integration
    async def test_cancel_open_loan_records_history(self, db_session, open_loan, admin):
        service = LoanService(db_session)
        loan = await service.transition_status(open_loan.id, LoanStatus.CANCELLED, admin.id, "Borrower withdrew")

        assert loan.status == LoanStatus.CANCELLED
        history = await service.get_status_history(open_loan.id)
        assert len(history) == 1
        assert history[0].old_status == LoanStatus.OPEN
        assert history[0].new_status == LoanStatus.CANCELLED
        assert history[0].changed_by == admin.id

    @pytest.mark.integration
    async def test_engine_targets_cannot_be_requested(self, db_session, open_loan, admin):
        with pytest.raises(InvalidTransitionError):
            await LoanService(db_session).transition_status(open_loan.id, LoanStatus.FUNDED, admin.id)

    @pytest.mark.integration
    async def test_invalid_edge_rejected(self, db_session, open_loan, admin):
        loan_id = open_loan.id
        service = LoanService(db_session)
        with pytest.raises(InvalidTransitionError):
            await service.transition_status(loan_id, LoanStatus.COMPLETED, admin.id)

        # Rollback expired the session's objects
        loan = await service.get_loan(loan_id, for_update=True)
        assert loan.status == LoanStatus.OPEN
        assert await service.get_status_history(loan_id) == []

    @pytest.mark.integration
    async def test_terminal_status_is_final(self, db_session, open_loan, admin):
        service = LoanService(db_session)
        await service.transition_status(open_loan.id, LoanStatus.CANCELLED, admin.id)

        with pytest.raises(InvalidTransitionError):
            await service.transition_status(open_loan.id, LoanStatus.DEFAULTED, admin.id)
