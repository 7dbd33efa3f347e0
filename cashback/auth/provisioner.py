"""Identity provisioning.

Signup runs per email as Unregistered -> OTPPending -> OTPVerified ->
ProfileCreated. The account is created in two systems that fail
independently: the identity provider first, then the local users table.
If the local insert fails the provider account is deleted again, so the
two never disagree about whether an account exists.
"""

import json
import logging
import secrets
import string
import uuid
from dataclasses import asdict, dataclass
from datetime import timedelta

from sqlmodel import Session, select

from cashback.auth.exceptions import (
    AccountDeactivatedError,
    InvalidCredentialsError,
    InvalidOrExpiredOTPError,
    InvalidTokenError,
    SignupExpiredError,
    UserDisabledError,
)
from cashback.auth.schemas import SignupData
from cashback.auth.service import IdentityProviderProtocol
from cashback.auth.sessions import SessionRegistry
from cashback.auth.tokens import TokenIssuer, TokenPair
from cashback.core.email import ResendMailer
from cashback.core.exceptions import (
    BadRequestError,
    EmailDeliveryError,
    InternalError,
    RateLimitError,
)
from cashback.core.settings import Settings
from cashback.ephemeral.rate_limit import FixedWindowRateLimiter
from cashback.ephemeral.store import EphemeralStore, otp_key, signup_key
from cashback.notifications.dispatcher import NotificationDispatcher, welcome
from cashback.referral.service import ReferralLedger
from cashback.user.exceptions import EmailExistsError
from cashback.user.models import User

logger = logging.getLogger(__name__)

REFERRAL_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_ATTEMPTS = 5


def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_otp(length: int = 6) -> str:
    """Numeric code with each digit drawn uniformly from a CSPRNG."""
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def generate_referral_code(name: str) -> str:
    """First four ASCII letters of the name (padded with X) plus four
    random characters from [A-Z0-9]."""
    letters = "".join(ch for ch in name.upper() if ch in string.ascii_uppercase)
    prefix = letters[:4].ljust(4, "X")
    suffix = "".join(secrets.choice(REFERRAL_SUFFIX_ALPHABET) for _ in range(4))
    return prefix + suffix


@dataclass(frozen=True)
class PendingSignup:
    """Signup payload waiting for OTP verification.

    Holds the plaintext password until verify or TTL expiry; the identity
    provider needs it to create the account.
    """

    name: str
    password: str
    phone: str | None = None
    referral_code: str | None = None

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> "PendingSignup":
        data = json.loads(raw)
        return cls(
            name=str(data["name"]),
            password=str(data["password"]),
            phone=data.get("phone"),
            referral_code=data.get("referral_code"),
        )


@dataclass(frozen=True)
class OTPIssued:
    expires_in: timedelta


@dataclass(frozen=True)
class AuthResult:
    user: User
    tokens: TokenPair


class IdentityProvisioner:
    def __init__(
        self,
        session: Session,
        identity_provider: IdentityProviderProtocol,
        store: EphemeralStore,
        tokens: TokenIssuer,
        mailer: ResendMailer,
        settings: Settings,
        notifications: NotificationDispatcher | None = None,
    ):
        self._session = session
        self._provider = identity_provider
        self._store = store
        self._rate_limiter = FixedWindowRateLimiter(store)
        self._tokens = tokens
        self._sessions = SessionRegistry(store, tokens)
        self._mailer = mailer
        self._settings = settings
        self._notifications = notifications
        self._referrals = ReferralLedger(
            session, settings.referral_bonus_amount, notifications
        )

    def _find_by_email(self, email: str) -> User | None:
        return self._session.exec(select(User).where(User.email == email)).first()

    async def _check_rate_limit(self, action: str, email: str) -> None:
        window = self._settings.otp_rate_limit_window
        allowed = await self._rate_limiter.allow(
            f"{action}:{email}", self._settings.otp_rate_limit_max_attempts, window
        )
        if not allowed:
            raise RateLimitError(
                "Too many requests, please try again later",
                retry_after=int(window.total_seconds()),
            )

    async def send_otp(
        self, email: str, name: str, signup: SignupData | None = None
    ) -> OTPIssued:
        """Issue an OTP for a new signup and email it.

        A resend without signup data keeps the pending signup stored by
        the earlier call.

        Raises:
            EmailExistsError: If an account with this email exists
            RateLimitError: If too many OTPs were requested for this email
            EmailDeliveryError: If the OTP email could not be sent
        """
        email = normalize_email(email)
        if self._find_by_email(email) is not None:
            raise EmailExistsError("User with this email already exists")

        await self._check_rate_limit("otp-send", email)

        otp = generate_otp(self._settings.otp_length)
        await self._store.put(otp_key(email), otp, self._settings.otp_expires_in)

        if signup is not None:
            pending = PendingSignup(
                name=name,
                password=signup.password,
                phone=signup.phone,
                referral_code=signup.referral_code,
            )
            await self._store.put(
                signup_key(email),
                pending.to_json(),
                self._settings.signup_session_expires_in,
            )

        try:
            self._mailer.send_otp(
                email, name, otp, self._settings.otp_expiry_minutes
            )
        except EmailDeliveryError:
            await self._store.delete(otp_key(email))
            raise

        return OTPIssued(expires_in=self._settings.otp_expires_in)

    async def _load_pending_signup(self, email: str) -> PendingSignup:
        raw = await self._store.get(signup_key(email))
        if raw is None:
            raise SignupExpiredError()
        try:
            return PendingSignup.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable pending signup for %s", email)
            raise SignupExpiredError() from e

    def _unique_referral_code(self, name: str) -> str:
        # The unique index on users.referral_code is the final guard
        code = generate_referral_code(name)
        for _ in range(REFERRAL_CODE_ATTEMPTS - 1):
            taken = self._session.exec(
                select(User.id).where(User.referral_code == code)
            ).first()
            if taken is None:
                break
            code = generate_referral_code(name)
        return code

    async def verify_otp(self, email: str, code: str) -> AuthResult:
        """Verify the OTP and create the account.

        Raises:
            InvalidOrExpiredOTPError: If the code is wrong, used or expired
            SignupExpiredError: If the pending signup is gone
            EmailExistsError / WeakPasswordError / PasswordPolicyError:
                If the identity provider rejects the account
            InternalError: If the local profile could not be stored
        """
        email = normalize_email(email)
        if not await self._store.consume_if_equals(otp_key(email), code):
            raise InvalidOrExpiredOTPError()

        pending = await self._load_pending_signup(email)
        referral_code = self._unique_referral_code(pending.name)
        referrer_id = self._referrals.resolve_referrer(pending.referral_code)

        # Phase 1: identity provider account, pre-verified by the OTP
        provider_user = self._provider.create_user(
            email=email, password=pending.password, display_name=pending.name
        )

        # Phase 2: local profile (and referral) in one transaction
        user = User(
            external_id=provider_user.uid,
            email=email,
            name=pending.name,
            phone=pending.phone,
            referral_code=referral_code,
            referred_by=referrer_id,
            is_verified=True,
            is_active=True,
        )
        try:
            self._session.add(user)
            self._session.flush()
            if referrer_id is not None:
                self._referrals.attribute(referrer_id, user.id, commit=False)
            self._session.commit()
        except Exception as e:
            self._session.rollback()
            self._provider.delete_user(provider_user.uid)
            raise InternalError("Failed to create user profile") from e
        # Committed; the provider account is no longer compensated
        self._session.refresh(user)

        try:
            await self._store.delete(signup_key(email))
        except Exception:
            # The TTL reaps it anyway
            logger.warning("Failed to delete pending signup for %s", email)

        tokens = await self._sessions.start(user.id, user.email, user.role.value)
        logger.info("Account created", extra={"user_id": str(user.id)})
        if self._notifications is not None:
            self._notifications.dispatch(welcome(user.email, user.name))
        return AuthResult(user=user, tokens=tokens)

    async def login(self, email: str, password: str) -> AuthResult:
        """Verify credentials with the identity provider and issue tokens.

        Raises:
            InvalidCredentialsError: If credentials are wrong or no profile exists
            AccountDeactivatedError: If the account is deactivated or disabled
        """
        email = normalize_email(email)
        try:
            provider_user = await self._provider.sign_in_with_email_password(
                email, password
            )
        except UserDisabledError as e:
            raise AccountDeactivatedError(
                "Account is deactivated. Please contact support."
            ) from e

        user = self._session.exec(
            select(User).where(User.external_id == provider_user.uid)
        ).first()
        if user is None:
            raise InvalidCredentialsError()
        if not user.is_active:
            raise AccountDeactivatedError(
                "Account is deactivated. Please contact support."
            )

        tokens = await self._sessions.start(user.id, user.email, user.role.value)
        return AuthResult(user=user, tokens=tokens)

    async def refresh(self, refresh_token: str) -> AuthResult:
        """Exchange a refresh token for a new pair.

        Raises:
            InvalidTokenError: If the token is invalid, reused or the user is
                gone or inactive
        """
        user_id = await self._sessions.rotate(refresh_token)
        user = self._session.get(User, user_id)
        if user is None or not user.is_active:
            raise InvalidTokenError("Invalid refresh token")
        tokens = await self._sessions.start(user.id, user.email, user.role.value)
        return AuthResult(user=user, tokens=tokens)

    async def logout(self, user_id: uuid.UUID) -> None:
        await self._sessions.end(user_id)

    async def request_password_reset(self, email: str) -> None:
        """Email a reset link if the account exists.

        Unknown emails are a silent no-op so the response does not reveal
        which emails are registered.

        Raises:
            RateLimitError: If too many resets were requested for this email
            EmailDeliveryError: If the reset email could not be sent
        """
        email = normalize_email(email)
        await self._check_rate_limit("password-reset", email)

        user = self._find_by_email(email)
        if user is None or not user.is_active:
            return

        token = self._tokens.issue_password_reset(user.id)
        self._mailer.send_password_reset(user.email, user.name, token)

    async def reset_password(self, token: str, new_password: str) -> None:
        """Set a new password from a reset token and end the user's session.

        Raises:
            BadRequestError: If the token is invalid or expired
        """
        try:
            user_id = self._tokens.verify_password_reset(token)
        except InvalidTokenError as e:
            raise BadRequestError("Invalid or expired reset token") from e

        user = self._session.get(User, user_id)
        if user is None:
            raise BadRequestError("Invalid or expired reset token")

        self._provider.update_password(user.external_id, new_password)
        await self._sessions.end(user.id)

    async def update_password(
        self, user: User, current_password: str, new_password: str
    ) -> None:
        """Change the password after re-checking the current one."""
        try:
            await self._provider.sign_in_with_email_password(
                user.email, current_password
            )
        except InvalidCredentialsError:
            raise BadRequestError("Current password is incorrect") from None

        self._provider.update_password(user.external_id, new_password)
