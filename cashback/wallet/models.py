"""Wallet domain models."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, CheckConstraint, Column
from sqlmodel import Field, SQLModel

from cashback.core.mixins import TimestampMixin
from cashback.user.models import MONEY


class PayoutMethod(str, Enum):
    upi = "upi"
    bank = "bank"
    paytm = "paytm"
    voucher = "voucher"


class WithdrawalStatus(str, Enum):
    """Withdrawal lifecycle.

    pending -> processing -> completed | failed, and pending -> failed
    directly. completed and failed are terminal.
    """

    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


TERMINAL_STATUSES = frozenset({WithdrawalStatus.completed, WithdrawalStatus.failed})


class Withdrawal(TimestampMixin, SQLModel, table=True):
    """A withdrawal request. The amount is reserved (debited from the
    user's available cashback) when the row is created."""

    __tablename__: str = "withdrawals"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_withdrawals_amount"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    amount: Decimal = Field(sa_column=Column(MONEY, nullable=False))
    method: PayoutMethod = Field(max_length=20)
    account_details: dict[str, str] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )
    status: WithdrawalStatus = Field(
        default=WithdrawalStatus.pending, max_length=20, index=True
    )
    admin_notes: str | None = Field(default=None, max_length=1000)
    transaction_id: str | None = Field(default=None, max_length=100)
    processed_at: datetime | None = Field(default=None)
