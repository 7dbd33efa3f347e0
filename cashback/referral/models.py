"""Referral domain models."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Column
from sqlmodel import Field, SQLModel

from cashback.core.mixins import TimestampMixin
from cashback.user.models import MONEY


class ReferralStatus(str, Enum):
    """Referral bonus lifecycle.

    - pending: referred user signed up, bonus not yet earned
    - confirmed: referred user made a first purchase, bonus credited
    """

    pending = "pending"
    confirmed = "confirmed"


class Referral(TimestampMixin, SQLModel, table=True):
    """At most one referral per referred user (unique referred_user_id)."""

    __tablename__: str = "referrals"
    __table_args__ = (
        CheckConstraint("bonus_amount >= 0", name="ck_referrals_bonus_amount"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    referrer_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    referred_user_id: uuid.UUID = Field(foreign_key="users.id", unique=True)
    bonus_amount: Decimal = Field(sa_column=Column(MONEY, nullable=False))
    status: ReferralStatus = Field(default=ReferralStatus.pending, max_length=20)
    confirmed_at: datetime | None = Field(default=None)
