"""Auth domain dependencies.

Bearer-token authentication for FastAPI routes, admin checks, and the
per-request IdentityProvisioner.
"""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cashback.auth.exceptions import (
    AdminRequiredError,
    InvalidCredentialsError,
    InvalidTokenError,
)
from cashback.auth.provisioner import IdentityProvisioner
from cashback.auth.service import FirebaseAuthService, get_firebase_auth_service
from cashback.auth.tokens import TokenIssuer, get_token_issuer
from cashback.core.deps import (
    EphemeralStoreDep,
    MailerDep,
    NotificationsDep,
    SessionDep,
    SettingsDep,
)
from cashback.user.exceptions import UserInactiveError
from cashback.user.models import User

security = HTTPBearer(auto_error=False)

TokenIssuerDep = Annotated[TokenIssuer, Depends(get_token_issuer)]
FirebaseAuthDep = Annotated[FirebaseAuthService, Depends(get_firebase_auth_service)]


def get_current_user(
    session: SessionDep,
    tokens: TokenIssuerDep,
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(security)
    ] = None,
) -> User:
    """Verify the bearer access token and return the local User.

    Raises:
        InvalidCredentialsError: If no bearer token was sent
        InvalidTokenError: If the token is invalid or its user is gone
        UserInactiveError: If user is inactive
    """
    if credentials is None:
        raise InvalidCredentialsError("Not authenticated")

    claims = tokens.verify(credentials.credentials, expected_type="access")

    user = session.get(User, claims.user_id)
    if user is None:
        raise InvalidTokenError()

    if not user.is_active:
        raise UserInactiveError()

    return user


# Type aliases for dependency injection
CurrentUserDep = Annotated[User, Depends(get_current_user)]


def require_auth(_user: CurrentUserDep) -> None:
    """Require authentication without injecting user into path operation.

    Use as a router-level dependency when all routes require auth:
        router = APIRouter(dependencies=[Depends(require_auth)])

    FastAPI caches dependencies, so there's no duplicate auth overhead.
    """


def get_admin_user(user: CurrentUserDep) -> User:
    """Verify the current user is an admin or moderator.

    Raises:
        AdminRequiredError: If user lacks admin privileges
    """
    if not user.is_admin:
        raise AdminRequiredError()
    return user


AdminUserDep = Annotated[User, Depends(get_admin_user)]


def require_admin(_user: AdminUserDep) -> None:
    """Require admin privileges without injecting user into path operation."""


def get_identity_provisioner(
    session: SessionDep,
    identity_provider: FirebaseAuthDep,
    store: EphemeralStoreDep,
    tokens: TokenIssuerDep,
    mailer: MailerDep,
    settings: SettingsDep,
    notifications: NotificationsDep,
) -> IdentityProvisioner:
    return IdentityProvisioner(
        session=session,
        identity_provider=identity_provider,
        store=store,
        tokens=tokens,
        mailer=mailer,
        settings=settings,
        notifications=notifications,
    )


ProvisionerDep = Annotated[IdentityProvisioner, Depends(get_identity_provisioner)]
