"""User domain router.

Profile updates for the current user and admin user management.
Users are deactivated, never deleted.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel import col, select

from cashback.auth.dependencies import CurrentUserDep, require_admin, require_auth
from cashback.core.constants import CommonResponses, Routes
from cashback.core.deps import SessionDep
from cashback.user.exceptions import UserNotFoundError
from cashback.user.models import User
from cashback.user.schemas import UserPublicRead, UserRead, UserUpdate, UserUpdateMe

router = APIRouter(
    prefix=Routes.USER.prefix,
    tags=[Routes.USER.tag],
    dependencies=[Depends(require_auth)],
    responses={
        **CommonResponses.UNAUTHORIZED,
        **CommonResponses.FORBIDDEN,
    },
)


@router.patch("/me", response_model=UserPublicRead)
async def update_me(
    user: CurrentUserDep, user_update: UserUpdateMe, session: SessionDep
):
    """Update current authenticated user's profile.

    Users can only update their own name and phone.
    For security, users cannot modify email, role, is_active or balances.
    """
    update_data = user_update.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(user, key, value)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@router.get("/", response_model=list[UserRead], dependencies=[Depends(require_admin)])
async def list_users(
    session: SessionDep,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    """List users, newest first. Admin only."""
    users = session.exec(
        select(User).order_by(col(User.created_at).desc()).offset(offset).limit(limit)
    ).all()
    return users


@router.get(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_admin)],
    responses={**CommonResponses.NOT_FOUND},
)
async def get_user(user_id: uuid.UUID, session: SessionDep):
    """Get a user by ID. Admin only."""
    user = session.get(User, user_id)
    if not user:
        raise UserNotFoundError()
    return user


@router.patch(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_admin)],
    responses={**CommonResponses.NOT_FOUND},
)
async def update_user(user_id: uuid.UUID, user_update: UserUpdate, session: SessionDep):
    """Update a user by ID. Admin only.

    Admins can update name, phone, role and is_active. Balances change only
    through the wallet and referral ledgers.
    """
    user = session.get(User, user_id)
    if not user:
        raise UserNotFoundError()

    update_data = user_update.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(user, key, value)

    session.add(user)
    session.commit()
    session.refresh(user)
    return user
