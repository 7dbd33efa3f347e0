"""Tests for cashback/auth/dependencies.py - bearer auth and admin checks."""

import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from cashback.auth.dependencies import get_admin_user, get_current_user
from cashback.auth.exceptions import (
    AdminRequiredError,
    InvalidCredentialsError,
    InvalidTokenError,
)
from cashback.auth.tokens import TokenIssuer
from cashback.user.exceptions import UserInactiveError
from cashback.user.models import UserRole


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def _access_token(tokens: TokenIssuer, user) -> str:
    return tokens.issue_pair(user.id, user.email, user.role.value).access_token


def test_get_current_user_valid_bearer_token(session, token_issuer, test_user):
    """A valid access token resolves to the local user."""
    credentials = _bearer(_access_token(token_issuer, test_user))

    result = get_current_user(session, token_issuer, credentials)

    assert result.id == test_user.id
    assert result.email == test_user.email


def test_get_current_user_without_credentials(session, token_issuer):
    with pytest.raises(InvalidCredentialsError) as exc_info:
        get_current_user(session, token_issuer, None)

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Not authenticated"


def test_get_current_user_invalid_bearer_token(session, token_issuer):
    with pytest.raises(InvalidTokenError) as exc_info:
        get_current_user(session, token_issuer, _bearer("not-a-jwt"))

    assert exc_info.value.status_code == 401


def test_get_current_user_rejects_refresh_token(session, token_issuer, test_user):
    """Refresh tokens cannot be used as bearer credentials."""
    pair = token_issuer.issue_pair(test_user.id, test_user.email, "user")

    with pytest.raises(InvalidTokenError):
        get_current_user(session, token_issuer, _bearer(pair.refresh_token))


def test_get_current_user_expired_token(session, test_user):
    expired_issuer = TokenIssuer(
        secret="test-jwt-secret-0123456789abcdef",
        access_expires_in=timedelta(seconds=-10),
    )
    token = _access_token(expired_issuer, test_user)

    with pytest.raises(InvalidTokenError, match="expired"):
        get_current_user(session, expired_issuer, _bearer(token))


def test_get_current_user_unknown_user(session, token_issuer):
    """A well-signed token for a user that no longer exists is invalid."""
    token = token_issuer.issue_pair(uuid.uuid4(), "gone@example.com", "user")

    with pytest.raises(InvalidTokenError):
        get_current_user(session, token_issuer, _bearer(token.access_token))


def test_get_current_user_inactive(session, token_issuer, inactive_user):
    credentials = _bearer(_access_token(token_issuer, inactive_user))

    with pytest.raises(UserInactiveError) as exc_info:
        get_current_user(session, token_issuer, credentials)

    assert exc_info.value.status_code == 403


@pytest.mark.parametrize("role", [UserRole.admin, UserRole.moderator])
def test_get_admin_user_allows_staff(role):
    user = MagicMock(is_admin=True, role=role)

    assert get_admin_user(user) is user


def test_get_admin_user_rejects_regular_user(test_user):
    with pytest.raises(AdminRequiredError) as exc_info:
        get_admin_user(test_user)

    assert exc_info.value.status_code == 403


class TestBearerOverHttp:
    def test_missing_header_is_401(self, client):
        response = client.get("/auth/me")

        assert response.status_code == 401
        assert response.json()["type"] == "invalid_credentials"

    def test_malformed_header_is_401(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_inactive_user_is_403(self, client, inactive_user, auth_headers):
        response = client.get("/auth/me", headers=auth_headers(inactive_user))

        assert response.status_code == 403
        assert response.json()["type"] == "user_inactive"

    def test_admin_route_rejects_regular_user(self, client, test_user, auth_headers):
        response = client.get("/users/", headers=auth_headers(test_user))

        assert response.status_code == 403
        assert response.json() == {
            "type": "admin_required",
            "message": "Admin privileges required",
        }
