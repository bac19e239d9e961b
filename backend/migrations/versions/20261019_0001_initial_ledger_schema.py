"""Initial schema: users, credit ledger and custom project quotas.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(200), nullable=True),
        sa.Column('is_admin', sa.Boolean, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Credit accounts, one per user, keyed by the auth subject
    op.create_table(
        'credit_accounts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(100), nullable=False),
        sa.Column('credits', sa.Float, nullable=False, server_default='0'),
        sa.Column('daily_limit', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_premium', sa.Boolean, nullable=False, server_default='0'),
        sa.Column('total_used', sa.Float, nullable=False, server_default='0'),
        sa.Column('last_reset_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('version', sa.Integer, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_credit_accounts_user_id', 'credit_accounts', ['user_id'], unique=True)

    # Append-only ledger; the integer key keeps insertion order
    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('account_id', sa.String(36), sa.ForeignKey('credit_accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(100), nullable=False),
        sa.Column('action', sa.String(30), nullable=False),  # use, reset, admin_add, admin_deduct, admin_set, premium_on, premium_off
        sa.Column('amount', sa.Float, nullable=False),  # Signed delta applied to credits
        sa.Column('resulting_balance', sa.Float, nullable=False),
        sa.Column('message', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('idx_ledger_entries_user', 'ledger_entries', ['user_id'])
    op.create_index('idx_ledger_entries_account', 'ledger_entries', ['account_id'])

    # Single-row default policy for new accounts
    op.create_table(
        'default_policies',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('default_credits', sa.Integer, nullable=False),
        sa.Column('default_daily_limit', sa.Integer, nullable=False),
        sa.Column('updated_by', sa.String(100), nullable=True),
        sa.Column('version', sa.Integer, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'project_quotas',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(100), nullable=False),
        sa.Column('allowed', sa.Integer, nullable=False, server_default='1'),
        sa.Column('used', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_approved', sa.Integer, nullable=False, server_default='0'),
        sa.Column('version', sa.Integer, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_project_quotas_user_id', 'project_quotas', ['user_id'], unique=True)

    op.create_table(
        'quota_requests',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('quota_id', sa.String(36), sa.ForeignKey('project_quotas.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(100), nullable=False),
        sa.Column('reason', sa.Text, nullable=False),
        sa.Column('payment_amount', sa.Float, nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),  # pending, approved, rejected
        sa.Column('admin_note', sa.Text, nullable=True),
        sa.Column('resolved_by', sa.String(100), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('request_date', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('idx_quota_requests_user', 'quota_requests', ['user_id'])
    op.create_index('idx_quota_requests_status', 'quota_requests', ['status'])


def downgrade() -> None:
    op.drop_index('idx_quota_requests_status', 'quota_requests')
    op.drop_index('idx_quota_requests_user', 'quota_requests')
    op.drop_table('quota_requests')

    op.drop_index('ix_project_quotas_user_id', 'project_quotas')
    op.drop_table('project_quotas')

    op.drop_table('default_policies')

    op.drop_index('idx_ledger_entries_account', 'ledger_entries')
    op.drop_index('idx_ledger_entries_user', 'ledger_entries')
    op.drop_table('ledger_entries')

    op.drop_index('ix_credit_accounts_user_id', 'credit_accounts')
    op.drop_table('credit_accounts')

    op.drop_index('ix_users_email', 'users')
    op.drop_table('users')
