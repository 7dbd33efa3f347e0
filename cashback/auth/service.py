"""Firebase identity provider.

Owns password credentials: accounts are created, deleted and updated
through the Firebase Admin SDK, and passwords are verified through the
Identity Toolkit REST API. Local profiles live in the users table.
"""

import contextlib
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

import httpx
from firebase_admin import auth as firebase_admin_auth
from firebase_admin.exceptions import FirebaseError

from cashback.auth.exceptions import (
    InvalidCredentialsError,
    PasswordPolicyError,
    UserDisabledError,
    WeakPasswordError,
)
from cashback.auth.identity_toolkit import (
    IDENTITY_TOOLKIT_ENDPOINTS,
    SignInWithPasswordRequest,
    SignInWithPasswordResponse,
)
from cashback.core.exceptions import (
    AppException,
    BadRequestError,
    ProviderError,
    RateLimitError,
)
from cashback.core.http import DEFAULT_READ_TIMEOUT, create_identity_toolkit_client
from cashback.core.retry import with_retry
from cashback.core.settings import get_settings
from cashback.user.exceptions import EmailExistsError, UserNotFoundError

logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS_MESSAGES = {
    "EMAIL_NOT_FOUND",
    "INVALID_PASSWORD",
    "INVALID_LOGIN_CREDENTIALS",
}

ErrorMapping = dict[str, type[AppException] | tuple[type[AppException], str]]


@dataclass(frozen=True)
class ProviderUser:
    """Account data returned by the identity provider."""

    uid: str
    email: str | None = None
    id_token: str | None = None


class IdentityProviderProtocol(Protocol):
    """External identity provider operations.

    Enables dependency inversion - the provisioner depends on this
    protocol, not on Firebase.
    """

    def create_user(
        self, email: str, password: str, display_name: str | None = None
    ) -> ProviderUser:
        """Create a pre-verified account."""
        ...

    def delete_user(self, uid: str) -> bool:
        """Delete an account; returns False instead of raising on failure."""
        ...

    async def sign_in_with_email_password(
        self, email: str, password: str
    ) -> ProviderUser:
        """Verify email/password credentials."""
        ...

    def update_password(self, uid: str, new_password: str) -> None:
        """Set a new password for an account."""
        ...


class FirebaseAuthService:
    """Firebase implementation of IdentityProviderProtocol.

    The Identity Toolkit HTTP client is created on first use and released
    by aclose() at shutdown.
    """

    def __init__(
        self,
        api_key: str | None,
        identity_toolkit_base_url: str = "https://identitytoolkit.googleapis.com",
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._identity_toolkit_base_url = identity_toolkit_base_url
        self._read_timeout = read_timeout
        self._client = client

    def _ensure_api_key(self) -> str:
        """Ensure API key is configured."""
        if not self._api_key:
            raise AppException("Firebase API key not configured")
        return self._api_key

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = create_identity_toolkit_client(
                self._identity_toolkit_base_url, read_timeout=self._read_timeout
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _make_identity_toolkit_request(
        self, endpoint: str, payload: SignInWithPasswordRequest
    ) -> dict[str, Any]:
        """POST to the Identity Toolkit REST API, retrying once on transport errors.

        Raises:
            InvalidCredentialsError: If email/password invalid
            UserDisabledError: If user account is disabled
            RateLimitError: If rate limit exceeded
            ProviderError: If upstream is unreachable or returns an unexpected response
        """
        api_key = self._ensure_api_key()
        client = self._get_client()

        async def do_request() -> httpx.Response:
            return await client.post(
                f"/{endpoint}", params={"key": api_key}, json=payload
            )

        try:
            response = await with_retry(
                do_request, attempts=2, exceptions=(httpx.RequestError,)
            )
        except httpx.RequestError as e:
            raise ProviderError("Authentication provider unavailable") from e

        if response.status_code != 200:
            self._handle_identity_toolkit_error(response)

        return response.json()

    @staticmethod
    def _parse_retry_after(value: str | None) -> int | None:
        """Parse Retry-After header into seconds."""
        if not value:
            return None
        with contextlib.suppress(ValueError):
            parsed = int(value)
            if parsed >= 0:
                return parsed
        return None

    def _raise_rate_limit_error(
        self, response: httpx.Response, cause: BaseException | None = None
    ) -> None:
        retry_after = self._parse_retry_after(response.headers.get("Retry-After"))
        error = RateLimitError(
            "Too many attempts, try again later", retry_after=retry_after
        )
        if cause:
            raise error from cause
        raise error

    @staticmethod
    def _sanitize_error_code(error_message: str) -> str:
        """Extract a safe, non-sensitive error code for logging."""
        match = re.match(r"[A-Z0-9_]+", error_message)
        return match.group(0) if match else "UNKNOWN"

    def _handle_identity_toolkit_error(self, response: httpx.Response) -> None:
        """Map an Identity Toolkit error response to an app exception."""
        try:
            error_data = response.json()
            error_message = error_data.get("error", {}).get("message", "Unknown error")
        except ValueError as e:
            if response.status_code == 429:
                self._raise_rate_limit_error(response, cause=e)
            raise ProviderError(
                "Authentication provider returned an invalid response"
            ) from e

        logger.info(
            "Identity Toolkit error: status=%s, code=%s",
            response.status_code,
            self._sanitize_error_code(error_message),
        )

        if response.status_code == 429:
            self._raise_rate_limit_error(response)

        if error_message in _INVALID_CREDENTIALS_MESSAGES:
            raise InvalidCredentialsError("Invalid email or password")

        if error_message == "USER_DISABLED":
            raise UserDisabledError("User account is disabled")

        if error_message.startswith("TOO_MANY_ATTEMPTS_TRY_LATER"):
            self._raise_rate_limit_error(response)

        if response.status_code in {400, 401, 403}:
            raise InvalidCredentialsError("Authentication failed")

        raise ProviderError(
            f"Authentication failed: {self._sanitize_error_code(error_message)}"
        )

    @staticmethod
    def _extract_password_requirements(error_message: str) -> list[str]:
        """Extract password requirements from Firebase error message."""
        match = re.search(r"Missing password requirements: \[([^\]]+)\]", error_message)
        if match:
            return [req.strip() for req in match.group(1).split(",")]
        return []

    def _raise_password_error(self, error: Exception) -> None:
        error_message = str(error)
        if "PASSWORD_DOES_NOT_MEET_REQUIREMENTS" in error_message:
            raise PasswordPolicyError(
                "Password does not meet requirements",
                requirements=self._extract_password_requirements(error_message),
            ) from error

    @staticmethod
    def _handle_firebase_error(
        error: FirebaseError,
        error_mappings: ErrorMapping,
        default_message: str = "Firebase operation failed",
    ) -> None:
        """Map a Firebase Admin SDK error to an app exception.

        The error code is checked first, then the message. Anything
        unmapped becomes a ProviderError.
        """
        error_message = str(error)
        error_code = getattr(error, "code", None)

        candidates = []
        if error_code and error_code in error_mappings:
            candidates.append(error_mappings[error_code])
        candidates.extend(
            mapping for key, mapping in error_mappings.items() if key in error_message
        )

        for mapping in candidates:
            if isinstance(mapping, tuple):
                exc_class, msg = mapping
                raise exc_class(msg) from error
            raise mapping(default_message) from error

        raise ProviderError(default_message) from error

    def create_user(
        self, email: str, password: str, display_name: str | None = None
    ) -> ProviderUser:
        """Create a Firebase user with the email already marked verified.

        Raises:
            EmailExistsError: If email already registered
            WeakPasswordError: If password is rejected as too weak
            PasswordPolicyError: If password doesn't meet policy requirements
            ProviderError: For other Firebase errors
        """
        try:
            firebase_user = firebase_admin_auth.create_user(
                email=email,
                password=password,
                display_name=display_name,
                email_verified=True,
            )
        except ValueError as e:
            # Raised by the SDK for arguments it rejects before calling Firebase
            if "password" in str(e).lower():
                raise WeakPasswordError("Password is too weak") from e
            raise BadRequestError(str(e)) from e
        except FirebaseError as e:
            self._raise_password_error(e)
            self._handle_firebase_error(
                error=e,
                error_mappings={
                    "EMAIL_EXISTS": (EmailExistsError, "Email already registered"),
                    "EMAIL_ALREADY_EXISTS": (
                        EmailExistsError,
                        "Email already registered",
                    ),
                    "WEAK_PASSWORD": (WeakPasswordError, "Password is too weak"),
                    "INVALID_PASSWORD": (WeakPasswordError, "Password is too weak"),
                },
                default_message="Failed to create user",
            )
            raise
        return ProviderUser(uid=firebase_user.uid, email=email)

    def delete_user(self, uid: str) -> bool:
        """Delete a Firebase user.

        Used as the compensating step of account creation, so it never
        raises: a failure is logged with the uid for manual cleanup.
        """
        try:
            firebase_admin_auth.delete_user(uid)
        except (ValueError, FirebaseError):
            logger.error(
                "Failed to delete identity provider account %s; orphaned account "
                "needs manual cleanup",
                uid,
                exc_info=True,
            )
            return False
        return True

    async def sign_in_with_email_password(
        self, email: str, password: str
    ) -> ProviderUser:
        """Authenticate user with email/password via Identity Toolkit.

        Raises:
            InvalidCredentialsError: If email/password invalid
            UserDisabledError: If user account is disabled
            RateLimitError: If rate limit exceeded
            ProviderError: If upstream returns unexpected response
        """
        data: SignInWithPasswordResponse = await self._make_identity_toolkit_request(
            endpoint=IDENTITY_TOOLKIT_ENDPOINTS["signInWithPassword"],
            payload={
                "email": email,
                "password": password,
                "returnSecureToken": True,
            },
        )

        uid = data.get("localId")
        if not uid:
            raise InvalidCredentialsError("Authentication failed")

        return ProviderUser(uid=uid, email=data.get("email"), id_token=data.get("idToken"))

    def update_password(self, uid: str, new_password: str) -> None:
        """Set a new password through the Admin SDK.

        Raises:
            UserNotFoundError: If the account does not exist
            WeakPasswordError / PasswordPolicyError: If the password is rejected
            ProviderError: For other Firebase errors
        """
        try:
            firebase_admin_auth.update_user(uid, password=new_password)
        except ValueError as e:
            raise WeakPasswordError("Password is too weak") from e
        except FirebaseError as e:
            self._raise_password_error(e)
            self._handle_firebase_error(
                error=e,
                error_mappings={
                    "USER_NOT_FOUND": (UserNotFoundError, "User not found"),
                    "WEAK_PASSWORD": (WeakPasswordError, "Password is too weak"),
                },
                default_message="Failed to update password",
            )


@lru_cache
def get_firebase_auth_service() -> FirebaseAuthService:
    """Get cached Firebase Auth Service instance.

    The service is cached for the application lifetime since
    its configuration doesn't change at runtime.
    """
    settings = get_settings()
    return FirebaseAuthService(
        api_key=settings.firebase_api_key,
        identity_toolkit_base_url=settings.identity_toolkit_base_url,
        read_timeout=settings.firebase_http_timeout_seconds,
    )
