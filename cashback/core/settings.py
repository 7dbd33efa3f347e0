"""Application settings using Pydantic Settings for typed configuration.

This module centralizes all configuration and provides type-safe access to settings.
Settings are loaded from environment variables with sensible defaults.
"""

from datetime import timedelta
from decimal import Decimal
from functools import lru_cache

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env_name: str = Field(default="development", alias="ENV_NAME")

    # Database
    database_url: str = Field(alias="DATABASE_URL")

    # Admin panel
    session_secret_key: str = Field(alias="SESSION_SECRET_KEY")
    admin_username: str = Field(alias="ADMIN_USERNAME")
    admin_password: str = Field(alias="ADMIN_PASSWORD")

    # CORS
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    # Email (Resend)
    resend_api_key: str | None = Field(default=None, alias="RESEND_API_KEY")
    app_domain: str = Field(default="resend.dev", alias="APP_DOMAIN")
    client_url: str = Field(default="http://localhost:3000", alias="CLIENT_URL")

    # Firebase (external identity provider)
    firebase_api_key: str | None = Field(default=None, alias="FIREBASE_API_KEY")
    firebase_http_timeout_seconds: float = Field(
        default=10.0, alias="FIREBASE_HTTP_TIMEOUT_SECONDS", gt=0, le=60
    )

    # Ephemeral store (OTP challenges, pending signups, sessions, rate limits)
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # Tokens
    jwt_secret: str = Field(alias="JWT_SECRET", min_length=16)
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_issuer: str = Field(default="cashback-api", alias="JWT_ISSUER")
    access_token_expires_minutes: int = Field(
        default=7 * 24 * 60, alias="ACCESS_TOKEN_EXPIRES_MINUTES", ge=1
    )
    refresh_token_expires_days: int = Field(
        default=30, alias="REFRESH_TOKEN_EXPIRES_DAYS", ge=1, le=90
    )
    password_reset_expires_minutes: int = Field(
        default=60, alias="PASSWORD_RESET_EXPIRES_MINUTES", ge=5, le=24 * 60
    )

    # OTP signup
    otp_length: int = Field(default=6, alias="OTP_LENGTH", ge=4, le=10)
    otp_expiry_minutes: int = Field(default=10, alias="OTP_EXPIRY_MINUTES", ge=1)
    signup_session_expiry_minutes: int = Field(
        default=30, alias="SIGNUP_SESSION_EXPIRY_MINUTES", ge=1
    )
    otp_rate_limit_max_attempts: int = Field(
        default=5, alias="OTP_RATE_LIMIT_MAX_ATTEMPTS", ge=1
    )
    otp_rate_limit_window_minutes: int = Field(
        default=15, alias="OTP_RATE_LIMIT_WINDOW_MINUTES", ge=1
    )

    # Referrals
    referral_bonus_amount: Decimal = Field(
        default=Decimal("100"), alias="REFERRAL_BONUS_AMOUNT", ge=0
    )

    # Withdrawals
    withdrawal_min_upi: Decimal = Field(default=Decimal("10"), alias="WITHDRAWAL_MIN_UPI")
    withdrawal_min_bank: Decimal = Field(
        default=Decimal("50"), alias="WITHDRAWAL_MIN_BANK"
    )
    withdrawal_min_paytm: Decimal = Field(
        default=Decimal("10"), alias="WITHDRAWAL_MIN_PAYTM"
    )
    withdrawal_min_voucher: Decimal = Field(
        default=Decimal("100"), alias="WITHDRAWAL_MIN_VOUCHER"
    )
    withdrawal_max_amount: Decimal = Field(
        default=Decimal("100000"), alias="WITHDRAWAL_MAX_AMOUNT", gt=0
    )

    # Background notifications
    notification_max_attempts: int = Field(
        default=3, alias="NOTIFICATION_MAX_ATTEMPTS", ge=1, le=10
    )
    notification_queue_size: int = Field(
        default=1000, alias="NOTIFICATION_QUEUE_SIZE", ge=1
    )

    @computed_field
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        origins = []
        for o in self.cors_origins.split(","):
            trimmed = o.strip()
            if trimmed:
                origins.append(trimmed)
        return origins

    @computed_field
    @property
    def is_secure_cookie(self) -> bool:
        """Determine if cookies should be set with Secure flag."""
        return self.env_name.lower() not in {"dev", "development", "local", "test"}

    @computed_field
    @property
    def identity_toolkit_base_url(self) -> str:
        """Google Identity Toolkit API base URL."""
        return "https://identitytoolkit.googleapis.com"

    @property
    def otp_expires_in(self) -> timedelta:
        return timedelta(minutes=self.otp_expiry_minutes)

    @property
    def signup_session_expires_in(self) -> timedelta:
        return timedelta(minutes=self.signup_session_expiry_minutes)

    @property
    def otp_rate_limit_window(self) -> timedelta:
        return timedelta(minutes=self.otp_rate_limit_window_minutes)

    @property
    def access_token_expires_in(self) -> timedelta:
        return timedelta(minutes=self.access_token_expires_minutes)

    @property
    def refresh_token_expires_in(self) -> timedelta:
        return timedelta(days=self.refresh_token_expires_days)

    @property
    def password_reset_expires_in(self) -> timedelta:
        return timedelta(minutes=self.password_reset_expires_minutes)

    @property
    def withdrawal_minimums(self) -> dict[str, Decimal]:
        """Minimum withdrawal amount per payout method."""
        return {
            "upi": self.withdrawal_min_upi,
            "bank": self.withdrawal_min_bank,
            "paytm": self.withdrawal_min_paytm,
            "voucher": self.withdrawal_min_voucher,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
