from firebase_admin import get_app, initialize_app

from cashback.core.settings import Settings


def init_firebase(settings: Settings) -> None:
    """Initialize Firebase Admin SDK (idempotent).

    Uses GOOGLE_APPLICATION_CREDENTIALS environment variable for credentials.
    Admin SDK calls (create/delete/update user) are bounded by httpTimeout.
    """
    try:
        get_app()
    except ValueError:
        initialize_app(options={"httpTimeout": settings.firebase_http_timeout_seconds})
