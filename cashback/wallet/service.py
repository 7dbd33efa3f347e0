"""Wallet ledger.

Withdrawals reserve the amount up front: the request row and the
conditional debit of available cashback commit together or not at all.
Status changes are conditional updates on the current status, so a
withdrawal never leaves completed or failed.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import update
from sqlmodel import Session, col, select

from cashback.core.exceptions import InternalError, ValidationError
from cashback.core.mixins import utc_now
from cashback.notifications.dispatcher import (
    NotificationDispatcher,
    withdrawal_update,
)
from cashback.user.exceptions import UserNotFoundError
from cashback.user.models import User
from cashback.wallet.balance import credit_available, debit_available
from cashback.wallet.exceptions import (
    BelowMinimumError,
    InsufficientBalanceError,
    InvalidWithdrawalTransitionError,
    WithdrawalNotFoundError,
)
from cashback.wallet.models import (
    TERMINAL_STATUSES,
    PayoutMethod,
    Withdrawal,
    WithdrawalStatus,
)
from cashback.wallet.schemas import WalletSummary

logger = logging.getLogger(__name__)

# Target status -> statuses it may be entered from
ALLOWED_SOURCES: dict[WithdrawalStatus, frozenset[WithdrawalStatus]] = {
    WithdrawalStatus.processing: frozenset({WithdrawalStatus.pending}),
    WithdrawalStatus.completed: frozenset(
        {WithdrawalStatus.pending, WithdrawalStatus.processing}
    ),
    WithdrawalStatus.failed: frozenset(
        {WithdrawalStatus.pending, WithdrawalStatus.processing}
    ),
}


class WalletLedger:
    def __init__(
        self,
        session: Session,
        minimums: dict[str, Decimal],
        max_amount: Decimal,
        notifications: NotificationDispatcher | None = None,
    ):
        self._session = session
        self._minimums = minimums
        self._max_amount = max_amount
        self._notifications = notifications

    def _get_user(self, user_id: uuid.UUID) -> User:
        user = self._session.get(User, user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    def get_wallet(self, user_id: uuid.UUID) -> WalletSummary:
        user = self._get_user(user_id)
        self._session.refresh(user)
        return WalletSummary(
            total_cashback=user.total_cashback,
            available_cashback=user.available_cashback,
            pending_cashback=user.pending_cashback,
            withdrawn_cashback=user.withdrawn_cashback,
        )

    def request_withdrawal(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        method: PayoutMethod | str,
        account_details: dict[str, str],
    ) -> Withdrawal:
        """Create a pending withdrawal and reserve its amount.

        Raises:
            ValidationError: If amount is not positive or above the maximum
            BelowMinimumError: If amount is below the method's minimum
            InsufficientBalanceError: If available cashback cannot cover it
            InternalError: If the ledger write fails
        """
        amount = Decimal(amount)
        method = PayoutMethod(method)
        if amount <= 0:
            raise ValidationError("Withdrawal amount must be positive")
        if amount > self._max_amount:
            raise ValidationError(f"Maximum withdrawal amount is {self._max_amount}")

        minimum = self._minimums[method.value]
        if amount < minimum:
            raise BelowMinimumError(method.value, minimum)

        # Early rejection only; the conditional debit below is the real guard
        user = self._get_user(user_id)
        if user.available_cashback < amount:
            raise InsufficientBalanceError()

        withdrawal = Withdrawal(
            user_id=user_id,
            amount=amount,
            method=method,
            account_details=account_details,
        )
        try:
            self._session.add(withdrawal)
            self._session.flush()
            debited = debit_available(self._session, user_id, amount)
            if debited:
                self._session.commit()
        except Exception as e:
            self._session.rollback()
            raise InternalError("Failed to process withdrawal") from e

        if not debited:
            # Rolling back also removes the request row
            self._session.rollback()
            raise InsufficientBalanceError()

        self._session.refresh(withdrawal)
        logger.info(
            "Withdrawal requested",
            extra={
                "withdrawal_id": str(withdrawal.id),
                "user_id": str(user_id),
                "amount": str(amount),
                "payout_method": method.value,
                "status": withdrawal.status.value,
            },
        )
        return withdrawal

    def list_withdrawals(self, user_id: uuid.UUID) -> list[Withdrawal]:
        return list(
            self._session.exec(
                select(Withdrawal)
                .where(Withdrawal.user_id == user_id)
                .order_by(col(Withdrawal.created_at).desc())
            ).all()
        )

    def list_all(
        self,
        status: WithdrawalStatus | None = None,
        method: PayoutMethod | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Withdrawal]:
        statement = select(Withdrawal)
        if status is not None:
            statement = statement.where(Withdrawal.status == status)
        if method is not None:
            statement = statement.where(Withdrawal.method == method)
        statement = (
            statement.order_by(col(Withdrawal.created_at).desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self._session.exec(statement).all())

    def mark_processing(
        self, withdrawal_id: uuid.UUID, admin_notes: str | None = None
    ) -> Withdrawal:
        return self._transition(
            withdrawal_id, WithdrawalStatus.processing, admin_notes=admin_notes
        )

    def approve(
        self,
        withdrawal_id: uuid.UUID,
        transaction_id: str | None = None,
        admin_notes: str | None = None,
    ) -> Withdrawal:
        """Complete a withdrawal. The balance was debited at request time."""
        return self._transition(
            withdrawal_id,
            WithdrawalStatus.completed,
            admin_notes=admin_notes,
            transaction_id=transaction_id,
        )

    def reject(self, withdrawal_id: uuid.UUID, reason: str) -> Withdrawal:
        """Fail a withdrawal and return the reserved amount to available."""
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to reject a withdrawal")
        return self._transition(
            withdrawal_id,
            WithdrawalStatus.failed,
            admin_notes=reason.strip(),
            refund=True,
        )

    def update_status(
        self,
        withdrawal_id: uuid.UUID,
        status: WithdrawalStatus,
        admin_notes: str | None = None,
        transaction_id: str | None = None,
    ) -> Withdrawal:
        if status == WithdrawalStatus.processing:
            return self.mark_processing(withdrawal_id, admin_notes)
        if status == WithdrawalStatus.completed:
            return self.approve(withdrawal_id, transaction_id, admin_notes)
        if status == WithdrawalStatus.failed:
            return self.reject(withdrawal_id, admin_notes or "")
        raise ValidationError("Withdrawals cannot be moved back to pending")

    def _transition(
        self,
        withdrawal_id: uuid.UUID,
        target: WithdrawalStatus,
        *,
        admin_notes: str | None = None,
        transaction_id: str | None = None,
        refund: bool = False,
    ) -> Withdrawal:
        withdrawal = self._session.get(Withdrawal, withdrawal_id)
        if withdrawal is None:
            raise WithdrawalNotFoundError()

        values: dict[str, object] = {"status": target}
        if admin_notes is not None:
            values["admin_notes"] = admin_notes
        if transaction_id is not None:
            values["transaction_id"] = transaction_id
        if target in TERMINAL_STATUSES:
            values["processed_at"] = utc_now()

        user_id = withdrawal.user_id
        amount = withdrawal.amount
        try:
            result = self._session.connection().execute(
                update(Withdrawal)
                .where(
                    col(Withdrawal.id) == withdrawal_id,
                    col(Withdrawal.status).in_(list(ALLOWED_SOURCES[target])),
                )
                .values(**values)
            )
            moved = result.rowcount == 1
            if moved:
                if refund:
                    credit_available(
                        self._session, user_id, amount, include_total=False
                    )
                self._session.commit()
        except Exception as e:
            self._session.rollback()
            raise InternalError("Failed to update withdrawal") from e

        if not moved:
            self._session.rollback()
            self._session.refresh(withdrawal)
            raise InvalidWithdrawalTransitionError(
                withdrawal.status.value, target.value
            )

        self._session.refresh(withdrawal)
        logger.info(
            "Withdrawal status changed",
            extra={
                "withdrawal_id": str(withdrawal_id),
                "user_id": str(user_id),
                "amount": str(amount),
                "status": target.value,
                "description": admin_notes or "",
            },
        )
        self._notify(withdrawal)
        return withdrawal

    def _notify(self, withdrawal: Withdrawal) -> None:
        if self._notifications is None:
            return
        user = self._session.get(User, withdrawal.user_id)
        if user is None:
            return
        self._notifications.dispatch(
            withdrawal_update(
                user.email,
                user.name,
                str(withdrawal.amount),
                withdrawal.status.value,
                withdrawal.admin_notes or "",
            )
        )

    def manual_credit(
        self, user_id: uuid.UUID, amount: Decimal, description: str
    ) -> WalletSummary:
        """Credit cashback outside the purchase flow (goodwill, corrections).

        Raises:
            ValidationError: If amount is not positive or description is blank
            UserNotFoundError: If the user does not exist
        """
        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError("Credit amount must be positive")
        if not description or not description.strip():
            raise ValidationError("A description is required for manual credits")

        self._get_user(user_id)
        try:
            credit_available(self._session, user_id, amount, include_total=True)
            self._session.commit()
        except Exception as e:
            self._session.rollback()
            raise InternalError("Failed to credit wallet") from e

        logger.info(
            "Manual credit applied",
            extra={
                "user_id": str(user_id),
                "amount": str(amount),
                "description": description.strip(),
            },
        )
        return self.get_wallet(user_id)
