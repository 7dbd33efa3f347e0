"""Tests for cashback/wallet/service.py - withdrawals and balance safety."""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given
from hypothesis import settings as hypothesis_settings
from hypothesis import strategies as st
from sqlmodel import Session, SQLModel, create_engine, select

from cashback.core.exceptions import ValidationError
from cashback.notifications.dispatcher import NotificationKind
from cashback.user.exceptions import UserNotFoundError
from cashback.user.models import User
from cashback.wallet.balance import credit_available, debit_available
from cashback.wallet.exceptions import (
    BelowMinimumError,
    InsufficientBalanceError,
    InvalidWithdrawalTransitionError,
    WithdrawalNotFoundError,
)
from cashback.wallet.models import PayoutMethod, Withdrawal, WithdrawalStatus
from cashback.wallet.service import WalletLedger

MINIMUMS = {
    "upi": Decimal("10"),
    "bank": Decimal("50"),
    "paytm": Decimal("10"),
    "voucher": Decimal("100"),
}
UPI = {"upiId": "someone@okbank"}


def _ledger(session: Session, notifications=None) -> WalletLedger:
    return WalletLedger(
        session,
        minimums=MINIMUMS,
        max_amount=Decimal("100000"),
        notifications=notifications,
    )


@pytest.fixture
def ledger(session, mock_notifications):
    return _ledger(session, mock_notifications)


def _withdrawals(session: Session) -> list[Withdrawal]:
    return list(session.exec(select(Withdrawal)).all())


class TestRequestWithdrawal:
    def test_reserves_amount(self, ledger, session, make_user):
        user = make_user(available="100")

        withdrawal = ledger.request_withdrawal(user.id, Decimal("40"), "upi", UPI)

        assert withdrawal.status == WithdrawalStatus.pending
        assert withdrawal.amount == Decimal("40")
        assert withdrawal.account_details == UPI
        wallet = ledger.get_wallet(user.id)
        assert wallet.available_cashback == Decimal("60")
        assert wallet.total_cashback == Decimal("100")
        assert wallet.withdrawn_cashback == Decimal("40")

    def test_below_minimum_creates_nothing(self, ledger, session, make_user):
        user = make_user(available="100")

        with pytest.raises(BelowMinimumError) as exc_info:
            ledger.request_withdrawal(user.id, Decimal("5"), "upi", UPI)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Minimum withdrawal amount for upi is 10"
        assert _withdrawals(session) == []
        assert ledger.get_wallet(user.id).available_cashback == Decimal("100")

    @pytest.mark.parametrize(
        ("method", "amount"),
        [("bank", "49.99"), ("voucher", "99"), ("paytm", "9.99")],
    )
    def test_method_minimums(self, ledger, make_user, method, amount):
        user = make_user(available="1000")

        with pytest.raises(BelowMinimumError):
            ledger.request_withdrawal(user.id, Decimal(amount), method, UPI)

    def test_insufficient_balance_leaves_wallet_unchanged(
        self, ledger, session, make_user
    ):
        user = make_user(available="50")

        with pytest.raises(InsufficientBalanceError):
            ledger.request_withdrawal(user.id, Decimal("100"), "upi", UPI)

        assert _withdrawals(session) == []
        assert ledger.get_wallet(user.id).available_cashback == Decimal("50")

    def test_exact_balance_allowed(self, ledger, make_user):
        user = make_user(available="50")

        ledger.request_withdrawal(user.id, Decimal("50"), "bank", UPI)

        assert ledger.get_wallet(user.id).available_cashback == Decimal("0")

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_amount(self, ledger, make_user, amount):
        user = make_user(available="100")

        with pytest.raises(ValidationError):
            ledger.request_withdrawal(user.id, Decimal(amount), "upi", UPI)

    def test_above_maximum(self, ledger, make_user):
        user = make_user(available="200000")

        with pytest.raises(ValidationError, match="Maximum"):
            ledger.request_withdrawal(user.id, Decimal("100001"), "bank", UPI)

    def test_unknown_user(self, ledger):
        with pytest.raises(UserNotFoundError):
            ledger.request_withdrawal(uuid.uuid4(), Decimal("20"), "upi", UPI)


def test_stale_sessions_never_overdraw_sequentially(engine, make_user):
    """Five sessions all read 100 available before any of them withdraws 40.

    Requests run one after another; the conditional debit rejects the ones
    the stale pre-check would have let through.
    """
    user = make_user(available="100")
    sessions = [Session(engine) for _ in range(5)]
    try:
        # Load the user everywhere first so each pre-check sees the old balance
        for s in sessions:
            assert s.get(User, user.id).available_cashback == Decimal("100")

        succeeded = 0
        for s in sessions:
            try:
                _ledger(s).request_withdrawal(user.id, Decimal("40"), "upi", UPI)
                succeeded += 1
            except InsufficientBalanceError:
                pass
    finally:
        for s in sessions:
            s.close()

    with Session(engine) as check:
        stored = check.get(User, user.id)
        assert succeeded == 2
        assert stored.available_cashback == Decimal("20")
        assert len(check.exec(select(Withdrawal)).all()) == 2


def test_concurrent_withdrawals_never_overdraw(tmp_path):
    """Eight threads race to withdraw 40 from 100 on a shared database file."""
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'wallet.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    SQLModel.metadata.create_all(file_engine)
    with Session(file_engine) as setup:
        user = User(
            external_id="provider-uid-race",
            email="race@example.com",
            name="Racer",
            referral_code="RACE0001",
            is_verified=True,
            available_cashback=Decimal("100"),
            total_cashback=Decimal("100"),
        )
        setup.add(user)
        setup.commit()
        user_id = user.id

    workers = 8
    barrier = threading.Barrier(workers)

    def withdraw() -> bool:
        with Session(file_engine) as s:
            barrier.wait()
            try:
                _ledger(s).request_withdrawal(user_id, Decimal("40"), "upi", UPI)
            except InsufficientBalanceError:
                return False
            return True

    try:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda _: withdraw(), range(workers)))

        with Session(file_engine) as check:
            stored = check.get(User, user_id)
            rows = check.exec(select(Withdrawal)).all()
            assert results.count(True) == 2
            assert stored.available_cashback == Decimal("20")
            assert len(rows) == 2
    finally:
        file_engine.dispose()


@hypothesis_settings(
    max_examples=30,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
@given(
    balance=st.integers(min_value=0, max_value=500),
    amounts=st.lists(st.integers(min_value=10, max_value=200), max_size=8),
)
def test_balance_never_negative(session, make_user, balance, amounts):
    user = make_user(available=str(balance))
    ledger = _ledger(session)
    expected = Decimal(balance)

    for amount in amounts:
        try:
            ledger.request_withdrawal(user.id, Decimal(amount), "upi", UPI)
            expected -= amount
        except InsufficientBalanceError:
            assert Decimal(amount) > expected

    available = ledger.get_wallet(user.id).available_cashback
    assert available == expected
    assert available >= 0


class TestBalanceHelpers:
    def test_debit_refuses_overdraft(self, session, make_user):
        user = make_user(available="30")

        assert debit_available(session, user.id, Decimal("31")) is False
        assert debit_available(session, user.id, Decimal("30")) is True
        session.commit()
        session.refresh(user)
        assert user.available_cashback == Decimal("0")

    def test_credit_without_total(self, session, make_user):
        user = make_user(available="10", total="10")

        credit_available(session, user.id, Decimal("5"), include_total=False)
        session.commit()
        session.refresh(user)

        assert user.available_cashback == Decimal("15")
        assert user.total_cashback == Decimal("10")


class TestTransitions:
    @pytest.fixture
    def pending(self, ledger, make_user):
        user = make_user(available="100")
        return ledger.request_withdrawal(user.id, Decimal("40"), "upi", UPI)

    def test_pending_to_processing_to_completed(
        self, ledger, pending, mock_notifications
    ):
        processing = ledger.mark_processing(pending.id)
        assert processing.status == WithdrawalStatus.processing
        assert processing.processed_at is None

        completed = ledger.approve(pending.id, transaction_id="TXN-1")

        assert completed.status == WithdrawalStatus.completed
        assert completed.transaction_id == "TXN-1"
        assert completed.processed_at is not None
        assert ledger.get_wallet(pending.user_id).available_cashback == Decimal("60")
        kinds = [c[0][0].kind for c in mock_notifications.dispatch.call_args_list]
        assert kinds == [NotificationKind.withdrawal_update] * 2

    def test_reject_refunds_available_only(self, ledger, pending, mock_notifications):
        failed = ledger.reject(pending.id, "  Invalid UPI id ")

        assert failed.status == WithdrawalStatus.failed
        assert failed.admin_notes == "Invalid UPI id"
        wallet = ledger.get_wallet(pending.user_id)
        assert wallet.available_cashback == Decimal("100")
        assert wallet.total_cashback == Decimal("100")
        notification = mock_notifications.dispatch.call_args[0][0]
        assert notification.params["status"] == "failed"
        assert notification.params["notes"] == "Invalid UPI id"

    def test_reject_requires_reason(self, ledger, pending):
        with pytest.raises(ValidationError):
            ledger.reject(pending.id, "   ")

    def test_rejected_twice_refunds_once(self, ledger, pending):
        ledger.reject(pending.id, "Invalid account")

        with pytest.raises(InvalidWithdrawalTransitionError):
            ledger.reject(pending.id, "Invalid account")

        wallet = ledger.get_wallet(pending.user_id)
        assert wallet.available_cashback == Decimal("100")

    @pytest.mark.parametrize(
        "target", [WithdrawalStatus.processing, WithdrawalStatus.completed]
    )
    def test_terminal_states_are_final(self, ledger, pending, target):
        ledger.approve(pending.id)

        with pytest.raises(InvalidWithdrawalTransitionError) as exc_info:
            ledger.update_status(pending.id, target, admin_notes="again")

        assert exc_info.value.status_code == 409
        assert exc_info.value.current == "completed"

    def test_processing_twice_conflicts(self, ledger, pending):
        ledger.mark_processing(pending.id)

        with pytest.raises(InvalidWithdrawalTransitionError):
            ledger.mark_processing(pending.id)

    def test_update_status_back_to_pending(self, ledger, pending):
        with pytest.raises(ValidationError):
            ledger.update_status(pending.id, WithdrawalStatus.pending)

    def test_update_status_failed_uses_notes_as_reason(self, ledger, pending):
        failed = ledger.update_status(
            pending.id, WithdrawalStatus.failed, admin_notes="Bank rejected"
        )

        assert failed.admin_notes == "Bank rejected"

    def test_unknown_withdrawal(self, ledger):
        with pytest.raises(WithdrawalNotFoundError):
            ledger.approve(uuid.uuid4())


class TestListing:
    def test_list_withdrawals_is_per_user(self, ledger, make_user):
        alice = make_user(available="100")
        bob = make_user(available="100")
        ledger.request_withdrawal(alice.id, Decimal("10"), "upi", UPI)
        ledger.request_withdrawal(alice.id, Decimal("20"), "upi", UPI)
        ledger.request_withdrawal(bob.id, Decimal("30"), "upi", UPI)

        withdrawals = ledger.list_withdrawals(alice.id)

        assert len(withdrawals) == 2
        assert {w.user_id for w in withdrawals} == {alice.id}

    def test_list_all_filters(self, ledger, make_user):
        user = make_user(available="1000")
        first = ledger.request_withdrawal(user.id, Decimal("10"), "upi", UPI)
        ledger.request_withdrawal(user.id, Decimal("60"), "bank", {"ifsc": "X"})
        ledger.approve(first.id)

        completed = ledger.list_all(status=WithdrawalStatus.completed)
        bank = ledger.list_all(method=PayoutMethod.bank)

        assert [w.id for w in completed] == [first.id]
        assert [w.amount for w in bank] == [Decimal("60")]
        assert len(ledger.list_all(limit=1)) == 1


class TestManualCredit:
    def test_credits_available_and_total(self, ledger, make_user):
        user = make_user(available="10", total="10")

        wallet = ledger.manual_credit(user.id, Decimal("25"), "Goodwill")

        assert wallet.available_cashback == Decimal("35")
        assert wallet.total_cashback == Decimal("35")

    def test_requires_description(self, ledger, make_user):
        user = make_user()

        with pytest.raises(ValidationError):
            ledger.manual_credit(user.id, Decimal("25"), " ")

    def test_unknown_user(self, ledger):
        with pytest.raises(UserNotFoundError):
            ledger.manual_credit(uuid.uuid4(), Decimal("25"), "Goodwill")
