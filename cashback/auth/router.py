"""Auth domain router.

OTP signup, login, token refresh and password routes. Handlers are thin;
the IdentityProvisioner does the work.
"""

from fastapi import APIRouter, status

from cashback.auth.dependencies import CurrentUserDep, ProvisionerDep
from cashback.auth.provisioner import AuthResult
from cashback.auth.schemas import (
    AuthMessage,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshRequest,
    ResetPasswordRequest,
    SendOTPRequest,
    SendOTPResponse,
    UpdatePasswordRequest,
    VerifyOTPRequest,
)
from cashback.core.constants import CommonResponses, Routes
from cashback.user.schemas import UserPublicRead

router = APIRouter(
    prefix=Routes.AUTH.prefix,
    tags=[Routes.AUTH.tag],
    responses={**CommonResponses.BAD_REQUEST},
)


def _auth_response(message: str, result: AuthResult) -> AuthResponse:
    return AuthResponse(
        message=message,
        user=UserPublicRead.model_validate(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        expires_in=int(result.tokens.access_expires_in.total_seconds()),
    )


@router.post(
    "/send-otp",
    response_model=SendOTPResponse,
    responses={
        **CommonResponses.CONFLICT,
        **CommonResponses.TOO_MANY_REQUESTS,
        **CommonResponses.BAD_GATEWAY,
    },
)
async def send_otp(payload: SendOTPRequest, provisioner: ProvisionerDep):
    """Send a signup OTP to the email address.

    signupData carries the password and optional phone/referral code; a
    resend may omit it to keep the earlier one.
    """
    issued = await provisioner.send_otp(
        email=payload.email, name=payload.name, signup=payload.signup_data
    )
    return SendOTPResponse(
        message="OTP sent successfully",
        expires_in=int(issued.expires_in.total_seconds()),
    )


@router.post(
    "/verify-otp",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**CommonResponses.CONFLICT, **CommonResponses.BAD_GATEWAY},
)
async def verify_otp(payload: VerifyOTPRequest, provisioner: ProvisionerDep):
    """Verify the OTP and create the account."""
    result = await provisioner.verify_otp(email=payload.email, code=payload.otp)
    return _auth_response("Account created successfully", result)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={
        **CommonResponses.UNAUTHORIZED,
        **CommonResponses.TOO_MANY_REQUESTS,
    },
)
async def login(payload: LoginRequest, provisioner: ProvisionerDep):
    """Login with email/password."""
    result = await provisioner.login(email=payload.email, password=payload.password)
    return _auth_response("Login successful", result)


@router.post(
    "/refresh",
    response_model=AuthResponse,
    responses={**CommonResponses.UNAUTHORIZED},
)
async def refresh(payload: RefreshRequest, provisioner: ProvisionerDep):
    """Exchange a refresh token for a new token pair."""
    result = await provisioner.refresh(payload.refresh_token)
    return _auth_response("Token refreshed", result)


@router.post(
    "/logout",
    response_model=AuthMessage,
    responses={**CommonResponses.UNAUTHORIZED},
)
async def logout(user: CurrentUserDep, provisioner: ProvisionerDep):
    """End the current session; the refresh token stops working."""
    await provisioner.logout(user.id)
    return AuthMessage(message="Logged out successfully")


@router.post(
    "/forgot-password",
    response_model=AuthMessage,
    responses={**CommonResponses.TOO_MANY_REQUESTS, **CommonResponses.BAD_GATEWAY},
)
async def forgot_password(payload: ForgotPasswordRequest, provisioner: ProvisionerDep):
    """Request a password reset email.

    Always returns the same message to prevent email enumeration.
    """
    await provisioner.request_password_reset(payload.email)
    return AuthMessage(
        message="If an account with this email exists, "
        "you will receive a password reset link."
    )


@router.post("/reset-password", response_model=AuthMessage)
async def reset_password(payload: ResetPasswordRequest, provisioner: ProvisionerDep):
    """Set a new password using the token from the reset email."""
    await provisioner.reset_password(payload.token, payload.password)
    return AuthMessage(message="Password reset successfully")


@router.post(
    "/update-password",
    response_model=AuthMessage,
    responses={**CommonResponses.UNAUTHORIZED},
)
async def update_password(
    payload: UpdatePasswordRequest, user: CurrentUserDep, provisioner: ProvisionerDep
):
    """Update the current user's password.

    Requires the current password for verification.
    """
    await provisioner.update_password(
        user, payload.current_password, payload.new_password
    )
    return AuthMessage(message="Password updated successfully")


@router.get(
    "/me",
    response_model=UserPublicRead,
    responses={**CommonResponses.UNAUTHORIZED},
)
async def get_me(user: CurrentUserDep):
    """Get current authenticated user."""
    return user
