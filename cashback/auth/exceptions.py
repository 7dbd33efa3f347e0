"""Auth domain exceptions.

Authentication, authorization and signup related exceptions.
"""

from cashback.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ValidationError,
)


# Authentication errors (401)
class InvalidCredentialsError(AuthenticationError):
    """Raised when email/password combination is invalid."""

    error_type = "invalid_credentials"

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class InvalidTokenError(AuthenticationError):
    """Raised when an access, refresh or reset token is invalid or expired."""

    error_type = "invalid_token"

    def __init__(self, message: str = "Invalid authentication token"):
        super().__init__(message)


class AccountDeactivatedError(AuthenticationError):
    """Raised on login for a deactivated account."""

    error_type = "account_deactivated"

    def __init__(self, message: str = "Account is deactivated"):
        super().__init__(message)


# Authorization errors (403)
class UserDisabledError(AuthorizationError):
    """Raised when user account is disabled at the identity provider."""

    error_type = "user_disabled"

    def __init__(self, message: str = "User account is disabled"):
        super().__init__(message)


class AdminRequiredError(AuthorizationError):
    """Raised when admin privileges are required."""

    error_type = "admin_required"

    def __init__(self, message: str = "Admin privileges required"):
        super().__init__(message)


# Validation errors (400) - auth specific
class InvalidOrExpiredOTPError(ValidationError):
    """Raised when the OTP does not match or has expired."""

    error_type = "invalid_or_expired_otp"

    def __init__(self, message: str = "Invalid or expired OTP"):
        super().__init__(message)


class SignupExpiredError(ValidationError):
    """Raised when the pending signup is gone; the client must restart."""

    error_type = "signup_expired"

    def __init__(
        self, message: str = "Signup session expired, please request a new OTP"
    ):
        super().__init__(message)


class WeakPasswordError(ValidationError):
    """Raised when password does not meet strength requirements."""

    error_type = "weak_password"

    def __init__(self, message: str = "Password is too weak"):
        super().__init__(message)


class PasswordPolicyError(ValidationError):
    """Raised when password does not meet policy requirements."""

    error_type = "password_policy_error"

    def __init__(
        self,
        message: str = "Password does not meet requirements",
        requirements: list[str] | None = None,
    ):
        self.requirements = requirements or []
        if requirements:
            message = f"{message}: {', '.join(requirements)}"
        super().__init__(message)
