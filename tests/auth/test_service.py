"""Tests for cashback/auth/service.py - Firebase identity provider.

Property-based tests for the exception hierarchy plus error mapping of the
Admin SDK and Identity Toolkit calls.
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest
from firebase_admin.exceptions import FirebaseError
from hypothesis import given
from hypothesis import settings as hypothesis_settings
from hypothesis import strategies as st

from cashback.auth.exceptions import (
    AccountDeactivatedError,
    InvalidCredentialsError,
    InvalidOrExpiredOTPError,
    PasswordPolicyError,
    SignupExpiredError,
    UserDisabledError,
    WeakPasswordError,
)
from cashback.auth.service import FirebaseAuthService
from cashback.core.exceptions import AppException, ProviderError, RateLimitError
from cashback.user.exceptions import EmailExistsError, UserNotFoundError
from cashback.wallet.exceptions import InsufficientBalanceError

SIGN_IN_PATH = "/v1/accounts:signInWithPassword"


@hypothesis_settings(max_examples=100)
@given(
    exception_class=st.sampled_from(
        [
            EmailExistsError,
            WeakPasswordError,
            UserNotFoundError,
            InvalidCredentialsError,
            InvalidOrExpiredOTPError,
            SignupExpiredError,
            AccountDeactivatedError,
            InsufficientBalanceError,
        ]
    ),
    message=st.text(min_size=1, max_size=100),
)
def test_exception_hierarchy_invariant(exception_class, message):
    """Every domain error is an AppException with a 4xx status and keeps its message."""
    instance = exception_class(message)

    assert isinstance(instance, AppException)
    assert 400 <= instance.status_code < 500
    assert instance.message == message


def _service(handler) -> FirebaseAuthService:
    client = httpx.AsyncClient(
        base_url="https://identitytoolkit.googleapis.com",
        transport=httpx.MockTransport(handler),
    )
    return FirebaseAuthService(api_key="test-api-key", client=client)


def _error(status: int, message: str, headers: dict | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status, json={"error": {"message": message}}, headers=headers
        )

    return handler


class TestSignIn:
    @pytest.mark.asyncio
    async def test_success_returns_provider_user(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.url.params["key"]
            return httpx.Response(
                200,
                json={"localId": "uid-1", "email": "a@b.com", "idToken": "id-token"},
            )

        service = _service(handler)
        user = await service.sign_in_with_email_password("a@b.com", "Secret1!")

        assert user.uid == "uid-1"
        assert user.id_token == "id-token"
        assert seen == {"path": SIGN_IN_PATH, "key": "test-api-key"}
        await service.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message",
        ["EMAIL_NOT_FOUND", "INVALID_PASSWORD", "INVALID_LOGIN_CREDENTIALS"],
    )
    async def test_invalid_credentials(self, message):
        service = _service(_error(400, message))

        with pytest.raises(InvalidCredentialsError):
            await service.sign_in_with_email_password("a@b.com", "wrong")

    @pytest.mark.asyncio
    async def test_user_disabled(self):
        service = _service(_error(400, "USER_DISABLED"))

        with pytest.raises(UserDisabledError):
            await service.sign_in_with_email_password("a@b.com", "Secret1!")

    @pytest.mark.asyncio
    async def test_too_many_attempts_is_rate_limited(self):
        service = _service(_error(400, "TOO_MANY_ATTEMPTS_TRY_LATER : Access disabled"))

        with pytest.raises(RateLimitError):
            await service.sign_in_with_email_password("a@b.com", "Secret1!")

    @pytest.mark.asyncio
    async def test_429_carries_retry_after(self):
        service = _service(_error(429, "QUOTA_EXCEEDED", headers={"Retry-After": "30"}))

        with pytest.raises(RateLimitError) as exc_info:
            await service.sign_in_with_email_password("a@b.com", "Secret1!")

        assert exc_info.value.retry_after == 30

    @pytest.mark.asyncio
    async def test_unexpected_status_is_provider_error(self):
        service = _service(_error(500, "INTERNAL"))

        with pytest.raises(ProviderError):
            await service.sign_in_with_email_password("a@b.com", "Secret1!")

    @pytest.mark.asyncio
    async def test_transport_error_retried_once_then_provider_error(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("refused", request=request)

        service = _service(handler)

        with pytest.raises(ProviderError):
            await service.sign_in_with_email_password("a@b.com", "Secret1!")
        assert calls == 2

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        service = FirebaseAuthService(api_key=None)

        with pytest.raises(AppException, match="API key"):
            await service.sign_in_with_email_password("a@b.com", "Secret1!")

    @pytest.mark.asyncio
    async def test_client_recreated_after_close(self):
        service = FirebaseAuthService(api_key="test-api-key")
        first = service._get_client()
        await service.aclose()

        second = service._get_client()

        assert first is not second
        assert first.is_closed
        await service.aclose()


class TestCreateUser:
    def setup_method(self):
        self.service = FirebaseAuthService(api_key="test-api-key")

    @patch("cashback.auth.service.firebase_admin_auth")
    def test_creates_pre_verified_account(self, mock_firebase_auth):
        mock_firebase_auth.create_user.return_value = MagicMock(uid="uid-1")

        user = self.service.create_user("a@b.com", "Secret1!", display_name="Alice")

        assert user.uid == "uid-1"
        mock_firebase_auth.create_user.assert_called_once_with(
            email="a@b.com",
            password="Secret1!",
            display_name="Alice",
            email_verified=True,
        )

    @patch("cashback.auth.service.firebase_admin_auth")
    def test_email_exists(self, mock_firebase_auth):
        mock_firebase_auth.create_user.side_effect = FirebaseError(
            code="EMAIL_EXISTS", message="EMAIL_EXISTS"
        )

        with pytest.raises(EmailExistsError):
            self.service.create_user("a@b.com", "Secret1!")

    @patch("cashback.auth.service.firebase_admin_auth")
    def test_weak_password(self, mock_firebase_auth):
        mock_firebase_auth.create_user.side_effect = FirebaseError(
            code="WEAK_PASSWORD", message="WEAK_PASSWORD"
        )

        with pytest.raises(WeakPasswordError):
            self.service.create_user("a@b.com", "weak")

    @patch("cashback.auth.service.firebase_admin_auth")
    def test_password_policy_lists_requirements(self, mock_firebase_auth):
        mock_firebase_auth.create_user.side_effect = FirebaseError(
            code="INVALID_ARGUMENT",
            message="PASSWORD_DOES_NOT_MEET_REQUIREMENTS : Missing password "
            "requirements: [Password must contain a numeric character, "
            "Password must contain an upper case character]",
        )

        with pytest.raises(PasswordPolicyError) as exc_info:
            self.service.create_user("a@b.com", "password")

        assert len(exc_info.value.requirements) == 2

    @patch("cashback.auth.service.firebase_admin_auth")
    def test_other_errors_become_provider_error(self, mock_firebase_auth):
        mock_firebase_auth.create_user.side_effect = FirebaseError(
            code="INTERNAL_ERROR", message="Something went wrong"
        )

        with pytest.raises(ProviderError):
            self.service.create_user("a@b.com", "Secret1!")


@hypothesis_settings(max_examples=50)
@given(
    error_code=st.sampled_from(
        ["USER_NOT_FOUND", "INTERNAL_ERROR", "PERMISSION_DENIED", "UNAVAILABLE"]
    ),
)
def test_delete_user_never_raises(error_code):
    """A failed compensating delete is reported, not raised."""
    service = FirebaseAuthService(api_key="test-api-key")

    with patch("cashback.auth.service.firebase_admin_auth") as mock_firebase_auth:
        mock_firebase_auth.delete_user.side_effect = FirebaseError(
            code=error_code, message=error_code
        )

        assert service.delete_user("uid-1") is False


@patch("cashback.auth.service.firebase_admin_auth")
def test_delete_user_success(mock_firebase_auth):
    service = FirebaseAuthService(api_key="test-api-key")

    assert service.delete_user("uid-1") is True
    mock_firebase_auth.delete_user.assert_called_once_with("uid-1")


class TestUpdatePassword:
    def setup_method(self):
        self.service = FirebaseAuthService(api_key="test-api-key")

    @patch("cashback.auth.service.firebase_admin_auth")
    def test_updates_by_uid(self, mock_firebase_auth):
        self.service.update_password("uid-1", "NewSecret1!")

        mock_firebase_auth.update_user.assert_called_once_with(
            "uid-1", password="NewSecret1!"
        )

    @patch("cashback.auth.service.firebase_admin_auth")
    def test_unknown_user(self, mock_firebase_auth):
        mock_firebase_auth.update_user.side_effect = FirebaseError(
            code="USER_NOT_FOUND", message="USER_NOT_FOUND"
        )

        with pytest.raises(UserNotFoundError):
            self.service.update_password("uid-1", "NewSecret1!")


class TestParseRetryAfter:
    def test_parses_integer_value(self):
        assert FirebaseAuthService._parse_retry_after("120") == 120

    @pytest.mark.parametrize("value", [None, "", "abc", "1.5", "-3"])
    def test_returns_none_for_unusable_values(self, value):
        assert FirebaseAuthService._parse_retry_after(value) is None


class TestSanitizeErrorCode:
    def test_extracts_code_with_additional_text(self):
        result = FirebaseAuthService._sanitize_error_code(
            "TOO_MANY_ATTEMPTS_TRY_LATER : user@example.com"
        )
        assert result == "TOO_MANY_ATTEMPTS_TRY_LATER"

    def test_returns_unknown_for_lowercase_message(self):
        assert FirebaseAuthService._sanitize_error_code("oops") == "UNKNOWN"
