"""Referral domain dependencies."""

from typing import Annotated

from fastapi import Depends

from cashback.core.deps import NotificationsDep, SessionDep, SettingsDep
from cashback.referral.service import ReferralLedger


def get_referral_ledger(
    session: SessionDep, settings: SettingsDep, notifications: NotificationsDep
) -> ReferralLedger:
    return ReferralLedger(session, settings.referral_bonus_amount, notifications)


ReferralLedgerDep = Annotated[ReferralLedger, Depends(get_referral_ledger)]
