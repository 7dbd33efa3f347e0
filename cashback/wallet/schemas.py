"""Wallet domain schemas.

Request and response schemas for the wallet and withdrawal endpoints.
"""

import uuid
from decimal import Decimal
from typing import Self

from pydantic import Field, field_validator, model_validator

from cashback.core.schemas import CamelModel, Money, UTCDateTime
from cashback.wallet.models import PayoutMethod, WithdrawalStatus


class WalletSummary(CamelModel):
    total_cashback: Money
    available_cashback: Money
    pending_cashback: Money
    withdrawn_cashback: Money


class WithdrawalRequest(CamelModel):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    method: PayoutMethod
    account_details: dict[str, str] = Field(min_length=1)


class WithdrawalRead(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    amount: Money
    method: PayoutMethod
    account_details: dict[str, str]
    status: WithdrawalStatus
    admin_notes: str | None
    transaction_id: str | None
    processed_at: UTCDateTime | None
    created_at: UTCDateTime
    updated_at: UTCDateTime


class WithdrawalCreated(CamelModel):
    message: str
    withdrawal: WithdrawalRead


class WithdrawalStatusUpdate(CamelModel):
    """Admin status change.

    Moving to failed requires admin_notes, which become the rejection reason.
    """

    status: WithdrawalStatus
    admin_notes: str | None = Field(default=None, max_length=1000)
    transaction_id: str | None = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def check_target(self) -> Self:
        if self.status == WithdrawalStatus.pending:
            raise ValueError("Withdrawals cannot be moved back to pending")
        if self.status == WithdrawalStatus.failed and not (
            self.admin_notes and self.admin_notes.strip()
        ):
            raise ValueError("A reason is required to reject a withdrawal")
        return self


class ManualCreditRequest(CamelModel):
    user_id: uuid.UUID
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    description: str = Field(min_length=1, max_length=500)

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Description must not be blank")
        return value.strip()
