"""Referral domain schemas."""

import uuid

from cashback.core.schemas import CamelModel, Money, UTCDateTime
from cashback.referral.models import ReferralStatus


class ReferralEntry(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    earnings: Money
    status: ReferralStatus
    joined_date: UTCDateTime


class ReferralSummary(CamelModel):
    """Referral dashboard for the current user.

    total_earnings counts every referral bonus, confirmed or not;
    pending_earnings only the ones still waiting on a first purchase.
    """

    total_earnings: Money
    pending_earnings: Money
    total_referrals: int
    referral_code: str
    referral_link: str
    recent_referrals: list[ReferralEntry]


class ReferralRead(CamelModel):
    id: uuid.UUID
    referrer_id: uuid.UUID
    referred_user_id: uuid.UUID
    bonus_amount: Money
    status: ReferralStatus
    confirmed_at: UTCDateTime | None
    created_at: UTCDateTime


class ConfirmReferralResponse(CamelModel):
    message: str
    referral: ReferralRead | None
