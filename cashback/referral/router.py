"""Referral domain router."""

import uuid

from fastapi import APIRouter, Depends

from cashback.auth.dependencies import CurrentUserDep, require_admin, require_auth
from cashback.core.constants import CommonResponses, Routes
from cashback.core.deps import SettingsDep
from cashback.referral.dependencies import ReferralLedgerDep
from cashback.referral.schemas import (
    ConfirmReferralResponse,
    ReferralRead,
    ReferralSummary,
)

router = APIRouter(
    prefix=Routes.REFERRAL.prefix,
    tags=[Routes.REFERRAL.tag],
    dependencies=[Depends(require_auth)],
    responses={
        **CommonResponses.UNAUTHORIZED,
        **CommonResponses.FORBIDDEN,
    },
)


@router.get("", response_model=ReferralSummary)
async def get_referrals(
    user: CurrentUserDep, ledger: ReferralLedgerDep, settings: SettingsDep
):
    """Referral code, share link, earnings and recent referrals."""
    return ledger.summary(user, settings.client_url)


@router.post(
    "/admin/confirm/{user_id}",
    response_model=ConfirmReferralResponse,
    dependencies=[Depends(require_admin)],
)
async def confirm_referral(user_id: uuid.UUID, ledger: ReferralLedgerDep):
    """Confirm the referral of a user after their first purchase. Admin only.

    Confirming twice is a no-op; the bonus is credited once.
    """
    referral = ledger.confirm(user_id)
    if referral is None:
        return ConfirmReferralResponse(
            message="No pending referral for this user", referral=None
        )
    return ConfirmReferralResponse(
        message="Referral confirmed",
        referral=ReferralRead.model_validate(referral),
    )
