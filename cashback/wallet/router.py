"""Wallet domain router.

Wallet summary and withdrawal routes, plus the admin withdrawal queue.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from cashback.auth.dependencies import AdminUserDep, CurrentUserDep, require_auth
from cashback.core.constants import CommonResponses, Routes
from cashback.wallet.dependencies import WalletLedgerDep
from cashback.wallet.models import PayoutMethod, WithdrawalStatus
from cashback.wallet.schemas import (
    ManualCreditRequest,
    WalletSummary,
    WithdrawalCreated,
    WithdrawalRead,
    WithdrawalRequest,
    WithdrawalStatusUpdate,
)

router = APIRouter(
    prefix=Routes.WALLET.prefix,
    tags=[Routes.WALLET.tag],
    dependencies=[Depends(require_auth)],
    responses={
        **CommonResponses.UNAUTHORIZED,
        **CommonResponses.FORBIDDEN,
    },
)


@router.get("", response_model=WalletSummary)
async def get_wallet(user: CurrentUserDep, ledger: WalletLedgerDep):
    """Current user's cashback balances."""
    return ledger.get_wallet(user.id)


@router.post(
    "/withdraw",
    response_model=WithdrawalCreated,
    status_code=status.HTTP_201_CREATED,
    responses={**CommonResponses.BAD_REQUEST},
)
async def request_withdrawal(
    payload: WithdrawalRequest, user: CurrentUserDep, ledger: WalletLedgerDep
):
    """Request a withdrawal. The amount is reserved immediately."""
    withdrawal = ledger.request_withdrawal(
        user.id, payload.amount, payload.method, payload.account_details
    )
    return WithdrawalCreated(
        message="Withdrawal request submitted successfully",
        withdrawal=WithdrawalRead.model_validate(withdrawal),
    )


@router.get("/withdrawals", response_model=list[WithdrawalRead])
async def list_withdrawals(user: CurrentUserDep, ledger: WalletLedgerDep):
    """Current user's withdrawals, newest first."""
    return ledger.list_withdrawals(user.id)


@router.get("/admin/withdrawals", response_model=list[WithdrawalRead])
async def list_all_withdrawals(
    _admin: AdminUserDep,
    ledger: WalletLedgerDep,
    status_filter: WithdrawalStatus | None = Query(default=None, alias="status"),
    method: PayoutMethod | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    """All withdrawals, optionally filtered. Admin only."""
    return ledger.list_all(
        status=status_filter, method=method, limit=limit, offset=offset
    )


@router.patch(
    "/admin/withdrawals/{withdrawal_id}",
    response_model=WithdrawalRead,
    responses={
        **CommonResponses.BAD_REQUEST,
        **CommonResponses.NOT_FOUND,
        **CommonResponses.CONFLICT,
    },
)
async def update_withdrawal_status(
    withdrawal_id: uuid.UUID,
    payload: WithdrawalStatusUpdate,
    admin: AdminUserDep,
    ledger: WalletLedgerDep,
):
    """Move a withdrawal to processing, completed or failed. Admin only.

    Failing a withdrawal returns its amount to the user's available cashback.
    """
    return ledger.update_status(
        withdrawal_id,
        payload.status,
        admin_notes=payload.admin_notes,
        transaction_id=payload.transaction_id,
    )


@router.post(
    "/admin/credits",
    response_model=WalletSummary,
    responses={**CommonResponses.BAD_REQUEST, **CommonResponses.NOT_FOUND},
)
async def manual_credit(
    payload: ManualCreditRequest, _admin: AdminUserDep, ledger: WalletLedgerDep
):
    """Credit a user's wallet outside the purchase flow. Admin only."""
    return ledger.manual_credit(payload.user_id, payload.amount, payload.description)
