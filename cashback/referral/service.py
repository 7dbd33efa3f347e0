"""Referral ledger.

Attributes new accounts to the referrer whose code they signed up with,
and moves each referral from pending to confirmed exactly once, crediting
the referrer's wallet in the same transaction.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import func, update
from sqlmodel import Session, col, select

from cashback.core.exceptions import InternalError
from cashback.core.mixins import utc_now
from cashback.notifications.dispatcher import NotificationDispatcher, referral_bonus
from cashback.referral.models import Referral, ReferralStatus
from cashback.referral.schemas import ReferralEntry, ReferralSummary
from cashback.user.models import User
from cashback.wallet.balance import credit_available

logger = logging.getLogger(__name__)

RECENT_REFERRALS_LIMIT = 10


class ReferralLedger:
    def __init__(
        self,
        session: Session,
        bonus_amount: Decimal,
        notifications: NotificationDispatcher | None = None,
    ):
        self._session = session
        self._bonus_amount = bonus_amount
        self._notifications = notifications

    def resolve_referrer(self, code: str | None) -> uuid.UUID | None:
        """Find the owner of a referral code (case-insensitive).

        Unknown or blank codes resolve to None rather than an error.
        """
        if not code or not code.strip():
            return None
        normalized = code.strip().upper()
        return self._session.exec(
            select(User.id).where(func.upper(User.referral_code) == normalized)
        ).first()

    def attribute(
        self,
        referrer_id: uuid.UUID,
        referred_user_id: uuid.UUID,
        bonus_amount: Decimal | None = None,
        *,
        commit: bool = True,
    ) -> Referral | None:
        """Record a pending referral.

        Idempotent: returns the existing record if the user was already
        attributed. Self-referral is ignored and returns None. With
        commit=False the row is only flushed so the caller can commit it
        together with the new user.
        """
        if referrer_id == referred_user_id:
            return None

        existing = self._session.exec(
            select(Referral).where(Referral.referred_user_id == referred_user_id)
        ).first()
        if existing is not None:
            return existing

        referral = Referral(
            referrer_id=referrer_id,
            referred_user_id=referred_user_id,
            bonus_amount=self._bonus_amount if bonus_amount is None else bonus_amount,
        )
        self._session.add(referral)
        if commit:
            self._session.commit()
            self._session.refresh(referral)
        else:
            self._session.flush()
        return referral

    def confirm(self, referred_user_id: uuid.UUID) -> Referral | None:
        """Confirm the referred user's pending referral and pay the bonus.

        Safe to call repeatedly: only the call that moves the record out of
        pending credits the referrer. No pending record means no-op.
        """
        referral = self._session.exec(
            select(Referral).where(
                Referral.referred_user_id == referred_user_id,
                Referral.status == ReferralStatus.pending,
            )
        ).first()
        if referral is None:
            return None

        referral_id = referral.id
        referrer_id = referral.referrer_id
        bonus = referral.bonus_amount

        try:
            result = self._session.connection().execute(
                update(Referral)
                .where(
                    col(Referral.id) == referral_id,
                    col(Referral.status) == ReferralStatus.pending,
                )
                .values(status=ReferralStatus.confirmed, confirmed_at=utc_now())
            )
            if result.rowcount != 1:
                # Another caller confirmed it first
                self._session.rollback()
                return None
            credit_available(self._session, referrer_id, bonus)
            self._session.commit()
        except Exception as e:
            self._session.rollback()
            raise InternalError("Failed to confirm referral") from e

        self._session.refresh(referral)
        logger.info(
            "Referral confirmed",
            extra={
                "referral_id": str(referral_id),
                "user_id": str(referrer_id),
                "amount": str(bonus),
                "status": ReferralStatus.confirmed.value,
            },
        )

        referrer = self._session.get(User, referrer_id)
        if self._notifications is not None and referrer is not None:
            self._notifications.dispatch(
                referral_bonus(referrer.email, referrer.name, str(bonus))
            )
        return referral

    def summary(self, user: User, client_url: str) -> ReferralSummary:
        rows = self._session.exec(
            select(Referral, User)
            .join(User, col(User.id) == col(Referral.referred_user_id))
            .where(Referral.referrer_id == user.id)
            .order_by(col(Referral.created_at).desc())
        ).all()

        total = sum((referral.bonus_amount for referral, _ in rows), Decimal("0"))
        pending = sum(
            (
                referral.bonus_amount
                for referral, _ in rows
                if referral.status == ReferralStatus.pending
            ),
            Decimal("0"),
        )
        recent = [
            ReferralEntry(
                id=referral.id,
                name=referred.name,
                email=referred.email,
                earnings=referral.bonus_amount,
                status=referral.status,
                joined_date=referred.created_at,
            )
            for referral, referred in rows[:RECENT_REFERRALS_LIMIT]
        ]
        return ReferralSummary(
            total_earnings=total,
            pending_earnings=pending,
            total_referrals=len(rows),
            referral_code=user.referral_code,
            referral_link=f"{client_url.rstrip('/')}/ref/{user.referral_code}",
            recent_referrals=recent,
        )
