"""Initial ledger schema.

Revision ID: 20260101_000001
Revises:
Create Date: 2026-01-01

Creates users, plans, wallets, transactions, payouts and settings.
users.current_plan_id and plans.created_by reference each other, so the
users -> plans foreign key is added after both tables exist.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20260101_000001'
down_revision = None
branch_labels = None
depends_on = None


def _money() -> sa.DECIMAL:
    return sa.DECIMAL(precision=18, scale=8)


def _percent() -> sa.DECIMAL:
    return sa.DECIMAL(precision=5, scale=2)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create all ledger tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=30), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('sponsor_id', sa.Integer(), nullable=True),
        sa.Column('referral_code', sa.String(length=20), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('direct_referral_count', sa.Integer(), nullable=False),
        sa.Column('total_team_size', sa.Integer(), nullable=False),
        sa.Column('current_plan_id', sa.Integer(), nullable=True),
        sa.Column(
            'plan_activated_at', sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column('plan_invested_amount', _money(), nullable=True),
        sa.Column('roi_days_paid', sa.Integer(), nullable=False),
        sa.Column('last_roi_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_earnings', _money(), nullable=False),
        *_timestamps(),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.ForeignKeyConstraint(
            ['sponsor_id'], ['users.id'],
            name='fk_users_sponsor_id_users',
            ondelete='SET NULL',
        ),
        sa.CheckConstraint(
            'total_team_size >= 0',
            name='ck_users_user_team_size_non_negative',
        ),
        sa.CheckConstraint(
            'direct_referral_count >= 0',
            name='ck_users_user_direct_referrals_non_negative',
        ),
        sa.CheckConstraint(
            'sponsor_id IS NULL OR sponsor_id != id',
            name='ck_users_user_not_own_sponsor',
        ),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_sponsor_id', 'users', ['sponsor_id'])
    op.create_index(
        'ix_users_referral_code', 'users', ['referral_code'], unique=True
    )

    op.create_table(
        'plans',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('features', sa.JSON(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('amount', _money(), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('roi_percentage', _percent(), nullable=False),
        sa.Column('roi_duration', sa.Integer(), nullable=False),
        sa.Column('roi_frequency', sa.String(length=20), nullable=False),
        sa.Column('level_commissions', sa.JSON(), nullable=False),
        sa.Column(
            'direct_referral_bonus_percentage', _percent(), nullable=False
        ),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_visible', sa.Boolean(), nullable=False),
        sa.Column('valid_from', sa.DateTime(timezone=True), nullable=False),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('max_purchases', sa.Integer(), nullable=True),
        sa.Column('min_referrals_required', sa.Integer(), nullable=False),
        sa.Column('total_purchases', sa.Integer(), nullable=False),
        sa.Column('total_revenue', _money(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_plans'),
        sa.UniqueConstraint('name', name='uq_plans_name'),
        sa.ForeignKeyConstraint(
            ['created_by'], ['users.id'],
            name='fk_plans_created_by_users',
            ondelete='SET NULL',
        ),
        sa.CheckConstraint('amount >= 1', name='ck_plans_plan_amount_min'),
        sa.CheckConstraint(
            'roi_percentage >= 0 AND roi_percentage <= 100',
            name='ck_plans_plan_roi_percentage_range',
        ),
        sa.CheckConstraint(
            'roi_duration >= 1', name='ck_plans_plan_roi_duration_min'
        ),
        sa.CheckConstraint(
            'direct_referral_bonus_percentage >= 0 '
            'AND direct_referral_bonus_percentage <= 50',
            name='ck_plans_plan_direct_bonus_range',
        ),
    )

    with op.batch_alter_table('users') as batch_op:
        batch_op.create_foreign_key(
            'fk_users_current_plan_id_plans',
            'plans',
            ['current_plan_id'],
            ['id'],
            ondelete='SET NULL',
        )

    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('direct_income', _money(), nullable=False),
        sa.Column('level_income', _money(), nullable=False),
        sa.Column('roi_income', _money(), nullable=False),
        sa.Column('bonus_income', _money(), nullable=False),
        sa.Column('total_balance', _money(), nullable=False),
        sa.Column('pending_withdrawal', _money(), nullable=False),
        sa.Column('total_withdrawn', _money(), nullable=False),
        sa.Column('total_invested', _money(), nullable=False),
        sa.Column('active_investment', _money(), nullable=False),
        sa.Column('min_withdrawal', _money(), nullable=False),
        sa.Column('max_withdrawal_per_day', _money(), nullable=False),
        sa.Column('today_withdrawal', _money(), nullable=False),
        sa.Column(
            'last_withdrawal_date', sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_frozen', sa.Boolean(), nullable=False),
        sa.Column('last_transaction_id', sa.String(length=32), nullable=True),
        sa.Column('payout_details', sa.JSON(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_wallets'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_wallets_user_id_users',
            ondelete='CASCADE',
        ),
        sa.CheckConstraint(
            'direct_income >= 0', name='ck_wallets_wallet_direct_non_negative'
        ),
        sa.CheckConstraint(
            'level_income >= 0', name='ck_wallets_wallet_level_non_negative'
        ),
        sa.CheckConstraint(
            'roi_income >= 0', name='ck_wallets_wallet_roi_non_negative'
        ),
        sa.CheckConstraint(
            'bonus_income >= 0', name='ck_wallets_wallet_bonus_non_negative'
        ),
        sa.CheckConstraint(
            'pending_withdrawal >= 0',
            name='ck_wallets_wallet_pending_non_negative',
        ),
        sa.CheckConstraint(
            'pending_withdrawal <= total_balance',
            name='ck_wallets_wallet_available_non_negative',
        ),
    )
    op.create_index('ix_wallets_user_id', 'wallets', ['user_id'], unique=True)

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('transaction_id', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False),
        sa.Column('amount', _money(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('income_category', sa.String(length=20), nullable=True),
        sa.Column('balance_before', _money(), nullable=True),
        sa.Column('balance_after', _money(), nullable=True),
        sa.Column('related_user_id', sa.Integer(), nullable=True),
        sa.Column('plan_id', sa.Integer(), nullable=True),
        sa.Column('level', sa.Integer(), nullable=True),
        sa.Column('roi_percentage', _percent(), nullable=True),
        sa.Column('roi_days', sa.Integer(), nullable=True),
        sa.Column(
            'related_transaction_id', sa.String(length=32), nullable=True
        ),
        sa.Column('payment_method', sa.String(length=20), nullable=False),
        sa.Column('payment_details', sa.JSON(), nullable=True),
        sa.Column('processed_by', sa.Integer(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_transactions'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_transactions_user_id_users',
            ondelete='RESTRICT',
        ),
        sa.ForeignKeyConstraint(
            ['related_user_id'], ['users.id'],
            name='fk_transactions_related_user_id_users',
            ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['plan_id'], ['plans.id'],
            name='fk_transactions_plan_id_plans',
            ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['processed_by'], ['users.id'],
            name='fk_transactions_processed_by_users',
            ondelete='SET NULL',
        ),
        sa.CheckConstraint(
            'amount >= 0',
            name='ck_transactions_transaction_amount_non_negative',
        ),
    )
    op.create_index(
        'ix_transactions_transaction_id',
        'transactions',
        ['transaction_id'],
        unique=True,
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])
    op.create_index('ix_transactions_type', 'transactions', ['type'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])
    op.create_index(
        'ix_transactions_related_user_id', 'transactions', ['related_user_id']
    )
    op.create_index('ix_transactions_created_at', 'transactions', ['created_at'])
    op.create_index(
        'ix_transactions_user_created', 'transactions', ['user_id', 'created_at']
    )
    op.create_index(
        'ix_transactions_status_type', 'transactions', ['status', 'type']
    )

    op.create_table(
        'payouts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('payout_id', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', _money(), nullable=False),
        sa.Column('processing_fee', _money(), nullable=False),
        sa.Column('net_amount', _money(), nullable=False),
        sa.Column('payment_method', sa.String(length=20), nullable=False),
        sa.Column('payment_details', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.String(length=10), nullable=False),
        sa.Column('retry_count', sa.Integer(), nullable=False),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_by', sa.Integer(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_retry_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('transaction_id', sa.String(length=32), nullable=True),
        sa.Column('external_reference', sa.String(length=255), nullable=True),
        sa.Column('user_notes', sa.String(length=500), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_payouts'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_payouts_user_id_users',
            ondelete='RESTRICT',
        ),
        sa.ForeignKeyConstraint(
            ['processed_by'], ['users.id'],
            name='fk_payouts_processed_by_users',
            ondelete='SET NULL',
        ),
        sa.CheckConstraint('amount > 0', name='ck_payouts_payout_amount_positive'),
        sa.CheckConstraint(
            'processing_fee >= 0', name='ck_payouts_payout_fee_non_negative'
        ),
        sa.CheckConstraint(
            'net_amount >= 0', name='ck_payouts_payout_net_non_negative'
        ),
    )
    op.create_index(
        'ix_payouts_payout_id', 'payouts', ['payout_id'], unique=True
    )
    op.create_index('ix_payouts_user_id', 'payouts', ['user_id'])
    op.create_index('ix_payouts_status', 'payouts', ['status'])
    op.create_index(
        'ix_payouts_status_requested', 'payouts', ['status', 'requested_at']
    )

    op.create_table(
        'settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('category', sa.String(length=30), nullable=False),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.JSON(), nullable=True),
        sa.Column('value_type', sa.String(length=20), nullable=False),
        sa.Column('default_value', sa.JSON(), nullable=True),
        sa.Column('validation', sa.JSON(), nullable=False),
        sa.Column('label', sa.String(length=200), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('group', sa.String(length=50), nullable=True),
        sa.Column('display_order', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('last_modified_by', sa.Integer(), nullable=True),
        sa.Column(
            'last_modified_at', sa.DateTime(timezone=True), nullable=True
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_settings'),
        sa.UniqueConstraint(
            'category', 'key', name='uq_settings_category_key'
        ),
        sa.ForeignKeyConstraint(
            ['last_modified_by'], ['users.id'],
            name='fk_settings_last_modified_by_users',
            ondelete='SET NULL',
        ),
    )
    op.create_index('ix_settings_category', 'settings', ['category'])


def downgrade() -> None:
    """Drop all ledger tables."""
    op.drop_index('ix_settings_category', table_name='settings')
    op.drop_table('settings')

    op.drop_index('ix_payouts_status_requested', table_name='payouts')
    op.drop_index('ix_payouts_status', table_name='payouts')
    op.drop_index('ix_payouts_user_id', table_name='payouts')
    op.drop_index('ix_payouts_payout_id', table_name='payouts')
    op.drop_table('payouts')

    for index in (
        'ix_transactions_status_type',
        'ix_transactions_user_created',
        'ix_transactions_created_at',
        'ix_transactions_related_user_id',
        'ix_transactions_status',
        'ix_transactions_type',
        'ix_transactions_user_id',
        'ix_transactions_transaction_id',
    ):
        op.drop_index(index, table_name='transactions')
    op.drop_table('transactions')

    op.drop_index('ix_wallets_user_id', table_name='wallets')
    op.drop_table('wallets')

    with op.batch_alter_table('users') as batch_op:
        batch_op.drop_constraint(
            'fk_users_current_plan_id_plans', type_='foreignkey'
        )
    op.drop_table('plans')

    op.drop_index('ix_users_referral_code', table_name='users')
    op.drop_index('ix_users_sponsor_id', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
