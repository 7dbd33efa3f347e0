"""Identity Toolkit REST API shapes used for password sign-in."""

from typing import TypedDict

IDENTITY_TOOLKIT_ENDPOINTS: dict[str, str] = {
    "signInWithPassword": "v1/accounts:signInWithPassword",
}


class SignInWithPasswordRequest(TypedDict):
    """Request schema for signInWithPassword endpoint.

    https://cloud.google.com/identity-platform/docs/reference/rest/v1/accounts/signInWithPassword
    """

    email: str
    password: str
    returnSecureToken: bool


class SignInWithPasswordResponse(TypedDict, total=False):
    """Response schema for signInWithPassword endpoint."""

    kind: str
    localId: str  # The UID of the authenticated user
    email: str
    displayName: str
    idToken: str
    registered: bool
    refreshToken: str
    expiresIn: str  # Token expiration time in seconds


class IdentityToolkitErrorBody(TypedDict, total=False):
    code: int
    message: str  # e.g. INVALID_LOGIN_CREDENTIALS, USER_DISABLED


class IdentityToolkitError(TypedDict, total=False):
    error: IdentityToolkitErrorBody
