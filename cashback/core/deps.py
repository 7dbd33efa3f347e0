"""Centralized dependency type aliases for FastAPI routes.

Import shared dependencies from this single module:
    from cashback.core.deps import SessionDep, SettingsDep, EphemeralStoreDep

Process-wide handles (ephemeral store, notification dispatcher) are built
in the app lifespan and published on app.state; they are read from there
rather than imported as module globals.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlmodel import Session

from cashback.core.email import ResendMailer, get_mailer
from cashback.core.settings import Settings, get_settings
from cashback.db.engine import get_session
from cashback.ephemeral.store import EphemeralStore
from cashback.notifications.dispatcher import NotificationDispatcher


def get_ephemeral_store(request: Request) -> EphemeralStore:
    return request.app.state.ephemeral_store


def get_notification_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.notifications


# Database session
SessionDep = Annotated[Session, Depends(get_session)]

# Application settings
SettingsDep = Annotated[Settings, Depends(get_settings)]

# Ephemeral store (OTP challenges, pending signups, sessions, rate limits)
EphemeralStoreDep = Annotated[EphemeralStore, Depends(get_ephemeral_store)]

# Background notification queue
NotificationsDep = Annotated[
    NotificationDispatcher, Depends(get_notification_dispatcher)
]

# Transactional mailer for critical emails
MailerDep = Annotated[ResendMailer, Depends(get_mailer)]
