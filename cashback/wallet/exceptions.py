"""Wallet domain exceptions."""

from decimal import Decimal

from cashback.core.exceptions import ConflictError, NotFoundError, ValidationError


class BelowMinimumError(ValidationError):
    """Raised when a withdrawal is below the payout method's minimum."""

    error_type = "below_minimum"

    def __init__(self, method: str, minimum: Decimal):
        self.method = method
        self.minimum = minimum
        super().__init__(f"Minimum withdrawal amount for {method} is {minimum}")


class InsufficientBalanceError(ValidationError):
    """Raised when available cashback cannot cover a withdrawal."""

    error_type = "insufficient_balance"

    def __init__(self, message: str = "Insufficient balance"):
        super().__init__(message)


class WithdrawalNotFoundError(NotFoundError):
    error_type = "withdrawal_not_found"

    def __init__(self, message: str = "Withdrawal not found"):
        super().__init__(message)


class InvalidWithdrawalTransitionError(ConflictError):
    """Raised when a status change is not allowed from the current status."""

    error_type = "invalid_withdrawal_transition"

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move withdrawal from {current} to {target}")
