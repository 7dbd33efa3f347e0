from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqladmin import Admin

from cashback.admin.auth import AdminAuth
from cashback.admin.views import ReferralAdmin, UserAdmin, WithdrawalAdmin
from cashback.auth.service import get_firebase_auth_service
from cashback.core.cors import add_cors_middleware
from cashback.core.email import get_mailer, init_resend
from cashback.core.exception_handlers import register_exception_handlers
from cashback.core.firebase import init_firebase
from cashback.core.logging import configure_logging
from cashback.core.request_logging import add_request_logging_middleware
from cashback.core.settings import get_settings
from cashback.db.engine import engine
from cashback.ephemeral.store import create_ephemeral_store
from cashback.notifications.dispatcher import NotificationDispatcher
from cashback.router import api_router

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    init_firebase(settings)
    init_resend(settings)

    store = await create_ephemeral_store(settings)
    notifications = NotificationDispatcher(
        get_mailer(),
        max_attempts=settings.notification_max_attempts,
        queue_size=settings.notification_queue_size,
    )
    notifications.start()

    app.state.ephemeral_store = store
    app.state.notifications = notifications
    try:
        yield
    finally:
        await notifications.stop()
        await store.aclose()
        # Cleanup HTTP clients
        await get_firebase_auth_service().aclose()


app = FastAPI(title="Cashback API", version="0.1.0", lifespan=lifespan)

app.include_router(api_router)

add_request_logging_middleware(app)
add_cors_middleware(app)
register_exception_handlers(app)

# Mount SQLAdmin UI at /admin (SQLAdmin enables sessions via auth backend secret)
admin = Admin(
    app=app,
    engine=engine,
    authentication_backend=AdminAuth(),
)
admin.add_view(UserAdmin)
admin.add_view(ReferralAdmin)
admin.add_view(WithdrawalAdmin)
