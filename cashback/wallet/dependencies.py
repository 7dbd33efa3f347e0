"""Wallet domain dependencies."""

from typing import Annotated

from fastapi import Depends

from cashback.core.deps import NotificationsDep, SessionDep, SettingsDep
from cashback.wallet.service import WalletLedger


def get_wallet_ledger(
    session: SessionDep, settings: SettingsDep, notifications: NotificationsDep
) -> WalletLedger:
    return WalletLedger(
        session,
        minimums=settings.withdrawal_minimums,
        max_amount=settings.withdrawal_max_amount,
        notifications=notifications,
    )


WalletLedgerDep = Annotated[WalletLedger, Depends(get_wallet_ledger)]
