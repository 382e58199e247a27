"""Create lending ledger tables

Revision ID: 20260110_1200_lending_ledger
Revises:
Create Date: 2026-01-10 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20260110_1200_lending_ledger'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


LOAN_STATUS_VALUES = ('Open', 'Funded', 'Active', 'Completed', 'Defaulted', 'Cancelled')


def upgrade() -> None:
    # Shared by loans and loan_status_history
    loan_status = postgresql.ENUM(*LOAN_STATUS_VALUES, name='loan_status')
    loan_status.create(op.get_bind(), checkfirst=True)
    loan_status_column = postgresql.ENUM(*LOAN_STATUS_VALUES, name='loan_status', create_type=False)

    # ============================================================
    # Users Table
    # ============================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=100), nullable=False),
        sa.Column('phone_number', sa.String(length=15), nullable=True),
        sa.Column('hashed_password', sa.String(length=255), nullable=True),
        sa.Column('role', sa.Enum('borrower', 'investor', 'admin', name='user_role'), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('city', sa.String(length=50), nullable=True),
        sa.Column('state', sa.String(length=50), nullable=True),
        sa.Column('country', sa.String(length=50), nullable=True),
        sa.Column('pincode', sa.String(length=10), nullable=True),
        sa.Column('is_email_verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_phone_verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('kyc_status', sa.Enum('Not Submitted', 'Pending', 'Verified', 'Rejected', name='kyc_status'), nullable=False),
        sa.Column('account_status', sa.Enum('Active', 'Suspended', 'Deactivated', name='account_status'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone_number')
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # ============================================================
    # Loans Table
    # ============================================================
    op.create_table('loans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('borrower_id', sa.Integer(), nullable=False),
        sa.Column('amount_requested', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('interest_rate', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('duration_months', sa.Integer(), nullable=False),
        sa.Column('purpose', sa.Text(), nullable=False),
        sa.Column('loan_type', sa.Enum('Personal', 'Education', 'Medical', 'Business', 'Other', name='loan_type'), nullable=False),
        sa.Column('risk_rating', sa.Enum('Low', 'Medium', 'High', name='risk_rating'), nullable=False),
        sa.Column('emi_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', loan_status_column, nullable=False),
        sa.Column('funded_amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0.00'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['borrower_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_loans_id'), 'loans', ['id'], unique=False)
    op.create_index(op.f('ix_loans_borrower_id'), 'loans', ['borrower_id'], unique=False)
    op.create_index(op.f('ix_loans_status'), 'loans', ['status'], unique=False)

    # ============================================================
    # Loan Funding Table
    # ============================================================
    op.create_table('loan_funding',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('loan_id', sa.Integer(), nullable=False),
        sa.Column('total_required', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_funded', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0.00'),
        sa.Column('funding_status', sa.Enum('Partial', 'Fully Funded', name='funding_status'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['loan_id'], ['loans.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('loan_id')
    )
    op.create_index(op.f('ix_loan_funding_id'), 'loan_funding', ['id'], unique=False)

    # ============================================================
    # Loan Status History Table
    # ============================================================
    op.create_table('loan_status_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('loan_id', sa.Integer(), nullable=False),
        sa.Column('old_status', loan_status_column, nullable=False),
        sa.Column('new_status', loan_status_column, nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('changed_by', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['loan_id'], ['loans.id'], ),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_loan_status_history_id'), 'loan_status_history', ['id'], unique=False)
    op.create_index(op.f('ix_loan_status_history_loan_id'), 'loan_status_history', ['loan_id'], unique=False)

    # ============================================================
    # Investments Table
    # ============================================================
    op.create_table('investments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('investor_id', sa.Integer(), nullable=False),
        sa.Column('loan_id', sa.Integer(), nullable=False),
        sa.Column('invested_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('investment_status', sa.Enum('Active', 'Sold', 'Withdrawn', name='investment_status'), nullable=False),
        sa.Column('ownership_percent', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('investment_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('is_for_sale', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('listed_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.ForeignKeyConstraint(['investor_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['loan_id'], ['loans.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_investments_id'), 'investments', ['id'], unique=False)
    op.create_index(op.f('ix_investments_investor_id'), 'investments', ['investor_id'], unique=False)
    op.create_index(op.f('ix_investments_loan_id'), 'investments', ['loan_id'], unique=False)

    # ============================================================
    # Repayment Schedules Table
    # ============================================================
    op.create_table('repayment_schedules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('loan_id', sa.Integer(), nullable=False),
        sa.Column('installment_number', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('amount_due', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0.00'),
        sa.Column('status', sa.Enum('Pending', 'Paid', 'Overdue', name='installment_status'), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(['loan_id'], ['loans.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('loan_id', 'installment_number', name='uq_repayment_loan_installment')
    )
    op.create_index(op.f('ix_repayment_schedules_id'), 'repayment_schedules', ['id'], unique=False)
    op.create_index(op.f('ix_repayment_schedules_loan_id'), 'repayment_schedules', ['loan_id'], unique=False)

    # ============================================================
    # Transactions Table
    # ============================================================
    op.create_table('transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('loan_id', sa.Integer(), nullable=True),
        sa.Column('investment_id', sa.Integer(), nullable=True),
        sa.Column('repayment_schedule_id', sa.Integer(), nullable=True),
        sa.Column('transaction_type', sa.Enum('Investment', 'Repayment', 'Payout', 'Withdrawal', 'Penalty', name='transaction_type'), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('transaction_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('remarks', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['loan_id'], ['loans.id'], ),
        sa.ForeignKeyConstraint(['investment_id'], ['investments.id'], ),
        sa.ForeignKeyConstraint(['repayment_schedule_id'], ['repayment_schedules.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_transactions_id'), 'transactions', ['id'], unique=False)
    op.create_index(op.f('ix_transactions_user_id'), 'transactions', ['user_id'], unique=False)
    op.create_index(op.f('ix_transactions_loan_id'), 'transactions', ['loan_id'], unique=False)

    # ============================================================
    # Audit Log Table
    # ============================================================
    op.create_table('audit_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('action', sa.Enum('Loan Created', 'Investment Made', 'Repayment Made', 'Status Changed', 'KYC Updated', 'Withdrawal', name='audit_action'), nullable=False),
        sa.Column('entity_type', sa.Enum('loan', 'investment', 'user', 'transaction', 'repayment', name='audit_entity_type'), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('action_by', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['action_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_log_id'), 'audit_log', ['id'], unique=False)
    op.create_index(op.f('ix_audit_log_action'), 'audit_log', ['action'], unique=False)
    op.create_index(op.f('ix_audit_log_entity_type'), 'audit_log', ['entity_type'], unique=False)
    op.create_index(op.f('ix_audit_log_action_by'), 'audit_log', ['action_by'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_audit_log_action_by'), table_name='audit_log')
    op.drop_index(op.f('ix_audit_log_entity_type'), table_name='audit_log')
    op.drop_index(op.f('ix_audit_log_action'), table_name='audit_log')
    op.drop_index(op.f('ix_audit_log_id'), table_name='audit_log')
    op.drop_table('audit_log')

    op.drop_index(op.f('ix_transactions_loan_id'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_user_id'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_id'), table_name='transactions')
    op.drop_table('transactions')

    op.drop_index(op.f('ix_repayment_schedules_loan_id'), table_name='repayment_schedules')
    op.drop_index(op.f('ix_repayment_schedules_id'), table_name='repayment_schedules')
    op.drop_table('repayment_schedules')

    op.drop_index(op.f('ix_investments_loan_id'), table_name='investments')
    op.drop_index(op.f('ix_investments_investor_id'), table_name='investments')
    op.drop_index(op.f('ix_investments_id'), table_name='investments')
    op.drop_table('investments')

    op.drop_index(op.f('ix_loan_status_history_loan_id'), table_name='loan_status_history')
    op.drop_index(op.f('ix_loan_status_history_id'), table_name='loan_status_history')
    op.drop_table('loan_status_history')

    op.drop_index(op.f('ix_loan_funding_id'), table_name='loan_funding')
    op.drop_table('loan_funding')

    op.drop_index(op.f('ix_loans_status'), table_name='loans')
    op.drop_index(op.f('ix_loans_borrower_id'), table_name='loans')
    op.drop_index(op.f('ix_loans_id'), table_name='loans')
    op.drop_table('loans')

    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_index(op.f('ix_users_id'), table_name='users')
    op.drop_table('users')

    # Drop enums
    for enum_name in (
        'audit_entity_type', 'audit_action', 'transaction_type', 'installment_status',
        'investment_status', 'funding_status', 'loan_status', 'risk_rating', 'loan_type',
        'account_status', 'kyc_status', 'user_role'
    ):
        op.execute(f'DROP TYPE IF EXISTS {enum_name}')
