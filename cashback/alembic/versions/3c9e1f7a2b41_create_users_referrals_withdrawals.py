"""create_users_referrals_withdrawals

Revision ID: 3c9e1f7a2b41
Revises:
Create Date: 2026-10-18 10:12:31.402117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '3c9e1f7a2b41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

userrole_enum = sa.Enum('user', 'moderator', 'admin', name='userrole')
referralstatus_enum = sa.Enum('pending', 'confirmed', name='referralstatus')
payoutmethod_enum = sa.Enum('upi', 'bank', 'paytm', 'voucher', name='payoutmethod')
withdrawalstatus_enum = sa.Enum(
    'pending', 'processing', 'completed', 'failed', name='withdrawalstatus'
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(),
            server_default=sa.text('CURRENT_TIMESTAMP'),
            nullable=False,
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(),
            server_default=sa.text('CURRENT_TIMESTAMP'),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('external_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('email', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column('phone', sqlmodel.sql.sqltypes.AutoString(length=20), nullable=True),
        sa.Column(
            'referral_code', sqlmodel.sql.sqltypes.AutoString(length=8), nullable=False
        ),
        sa.Column('referred_by', sa.Uuid(), nullable=True),
        sa.Column('role', userrole_enum, nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            'is_verified', sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            'total_cashback', sa.Numeric(12, 2), nullable=False, server_default='0'
        ),
        sa.Column(
            'available_cashback', sa.Numeric(12, 2), nullable=False, server_default='0'
        ),
        sa.Column(
            'pending_cashback', sa.Numeric(12, 2), nullable=False, server_default='0'
        ),
        *_timestamps(),
        sa.CheckConstraint('total_cashback >= 0', name='ck_users_total_cashback'),
        sa.CheckConstraint(
            'available_cashback >= 0', name='ck_users_available_cashback'
        ),
        sa.CheckConstraint('pending_cashback >= 0', name='ck_users_pending_cashback'),
        sa.ForeignKeyConstraint(['referred_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_external_id', 'users', ['external_id'], unique=True)
    op.create_index('ix_users_referral_code', 'users', ['referral_code'], unique=True)
    op.create_index('ix_users_referred_by', 'users', ['referred_by'], unique=False)

    op.create_table(
        'referrals',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('referrer_id', sa.Uuid(), nullable=False),
        sa.Column('referred_user_id', sa.Uuid(), nullable=False),
        sa.Column('bonus_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column(
            'status', referralstatus_enum, nullable=False, server_default='pending'
        ),
        sa.Column('confirmed_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('bonus_amount >= 0', name='ck_referrals_bonus_amount'),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id']),
        sa.ForeignKeyConstraint(['referred_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referred_user_id'),
    )
    op.create_index(
        'ix_referrals_referrer_id', 'referrals', ['referrer_id'], unique=False
    )

    op.create_table(
        'withdrawals',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('method', payoutmethod_enum, nullable=False),
        sa.Column('account_details', sa.JSON(), nullable=False),
        sa.Column(
            'status', withdrawalstatus_enum, nullable=False, server_default='pending'
        ),
        sa.Column(
            'admin_notes', sqlmodel.sql.sqltypes.AutoString(length=1000), nullable=True
        ),
        sa.Column(
            'transaction_id', sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True
        ),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='ck_withdrawals_amount'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_withdrawals_user_id', 'withdrawals', ['user_id'], unique=False)
    op.create_index('ix_withdrawals_status', 'withdrawals', ['status'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_withdrawals_status', table_name='withdrawals')
    op.drop_index('ix_withdrawals_user_id', table_name='withdrawals')
    op.drop_table('withdrawals')

    op.drop_index('ix_referrals_referrer_id', table_name='referrals')
    op.drop_table('referrals')

    op.drop_index('ix_users_referred_by', table_name='users')
    op.drop_index('ix_users_referral_code', table_name='users')
    op.drop_index('ix_users_external_id', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')

    # Drop the enum types (PostgreSQL)
    bind = op.get_bind()
    for enum in (
        withdrawalstatus_enum,
        payoutmethod_enum,
        referralstatus_enum,
        userrole_enum,
    ):
        enum.drop(bind, checkfirst=True)
