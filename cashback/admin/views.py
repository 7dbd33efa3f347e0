from sqladmin import ModelView

from cashback.referral.models import Referral
from cashback.user.models import User
from cashback.wallet.models import Withdrawal


class UserAdmin(ModelView, model=User):
    name = "User"
    name_plural = "Users"

    # Users are deactivated, not deleted; balances move through the ledgers
    can_create = False
    can_delete = False
    form_excluded_columns = [
        User.external_id,
        User.total_cashback,
        User.available_cashback,
        User.pending_cashback,
        User.created_at,
        User.updated_at,
    ]

    column_list = [
        User.email,
        User.name,
        User.role,
        User.is_active,
        User.is_verified,
        User.referral_code,
        User.total_cashback,
        User.available_cashback,
        User.pending_cashback,
        User.id,
        User.created_at,
    ]

    column_searchable_list = [
        User.email,
        User.name,
        User.referral_code,
        User.external_id,
    ]

    column_sortable_list = [
        User.email,
        User.name,
        User.role,
        User.total_cashback,
        User.available_cashback,
        User.created_at,
    ]


class ReferralAdmin(ModelView, model=Referral):
    name = "Referral"
    name_plural = "Referrals"

    can_create = False
    can_edit = False
    can_delete = False

    column_list = [
        Referral.id,
        Referral.referrer_id,
        Referral.referred_user_id,
        Referral.bonus_amount,
        Referral.status,
        Referral.confirmed_at,
        Referral.created_at,
    ]
    column_sortable_list = [Referral.status, Referral.created_at]


class WithdrawalAdmin(ModelView, model=Withdrawal):
    """Read-only; status changes go through the wallet API so the
    balance refund on failure is applied."""

    name = "Withdrawal"
    name_plural = "Withdrawals"

    can_create = False
    can_edit = False
    can_delete = False

    column_list = [
        Withdrawal.id,
        Withdrawal.user_id,
        Withdrawal.amount,
        Withdrawal.method,
        Withdrawal.status,
        Withdrawal.transaction_id,
        Withdrawal.processed_at,
        Withdrawal.created_at,
    ]
    column_searchable_list = [Withdrawal.transaction_id]
    column_sortable_list = [
        Withdrawal.amount,
        Withdrawal.status,
        Withdrawal.created_at,
    ]
