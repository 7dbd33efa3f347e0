import inspect
import os
from decimal import Decimal
from unittest.mock import MagicMock

# Settings are read at import time by cashback.main (engine, admin backend).
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret-key")
os.environ.setdefault("ADMIN_USERNAME", "admin")
os.environ.setdefault("ADMIN_PASSWORD", "admin-password")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-0123456789abcdef")

import anyio  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402
from sqlmodel.pool import StaticPool  # noqa: E402

from cashback.auth.service import (  # noqa: E402
    FirebaseAuthService,
    ProviderUser,
    get_firebase_auth_service,
)
from cashback.auth.tokens import TokenIssuer, get_token_issuer  # noqa: E402
from cashback.core.deps import (  # noqa: E402
    get_ephemeral_store,
    get_notification_dispatcher,
)
from cashback.core.email import ResendMailer, get_mailer  # noqa: E402
from cashback.core.settings import Settings, get_settings  # noqa: E402
from cashback.db.engine import get_session  # noqa: E402
from cashback.ephemeral.store import InMemoryEphemeralStore  # noqa: E402
from cashback.main import app  # noqa: E402
from cashback.notifications.dispatcher import NotificationDispatcher  # noqa: E402
from cashback.user.models import User, UserRole  # noqa: E402

TEST_JWT_SECRET = "test-jwt-secret-0123456789abcdef"


def pytest_configure(config: pytest.Config) -> None:
    # Tests use @pytest.mark.asyncio, but we intentionally rely on anyio.
    config.addinivalue_line(
        "markers",
        "asyncio: run async tests using anyio (project-local hook)",
    )


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run @pytest.mark.asyncio tests with anyio.

    This avoids adding an external pytest-asyncio dependency.
    """
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    funcargs = {
        name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
    }

    async def _run_async_test() -> None:
        await test_func(**funcargs)

    anyio.run(_run_async_test)
    return True


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create an in-memory SQLite database for testing."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="clock")
def clock_fixture():
    return FakeClock()


@pytest.fixture(name="store")
def store_fixture(clock: FakeClock):
    return InMemoryEphemeralStore(clock=clock)


@pytest.fixture(name="token_issuer")
def token_issuer_fixture():
    return TokenIssuer(secret=TEST_JWT_SECRET)


@pytest.fixture(name="test_settings")
def test_settings_fixture():
    """Settings with test values; the rest comes from the env set above."""
    return Settings(
        env_name="test",
        database_url="sqlite://",
        firebase_api_key="test-api-key",
        resend_api_key=None,
        redis_url=None,
        jwt_secret=TEST_JWT_SECRET,
        client_url="http://localhost:3000",
    )


@pytest.fixture(name="mock_identity_provider")
def mock_identity_provider_fixture():
    """Create a mock FirebaseAuthService."""
    mock_service = MagicMock(spec=FirebaseAuthService)
    mock_service.create_user.return_value = ProviderUser(
        uid="provider-uid-new", email="new@example.com"
    )
    mock_service.delete_user.return_value = True
    return mock_service


@pytest.fixture(name="mock_mailer")
def mock_mailer_fixture():
    mailer = MagicMock(spec=ResendMailer)
    mailer.send_otp.return_value = "email-id"
    mailer.send_password_reset.return_value = "email-id"
    return mailer


@pytest.fixture(name="mock_notifications")
def mock_notifications_fixture():
    notifications = MagicMock(spec=NotificationDispatcher)
    notifications.dispatch.return_value = True
    return notifications


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session):
    """Factory that inserts a user with the given wallet balances."""
    counter = 0

    def _make_user(
        email: str | None = None,
        name: str = "Test User",
        role: UserRole = UserRole.user,
        is_active: bool = True,
        available: Decimal | str = "0",
        total: Decimal | str | None = None,
        referral_code: str | None = None,
    ) -> User:
        nonlocal counter
        counter += 1
        available = Decimal(available)
        user = User(
            external_id=f"provider-uid-{counter}",
            email=email or f"user{counter}@example.com",
            name=name,
            referral_code=referral_code or f"TEST{counter:04d}",
            role=role,
            is_active=is_active,
            is_verified=True,
            available_cashback=available,
            total_cashback=available if total is None else Decimal(total),
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture(name="test_user")
def test_user_fixture(make_user):
    """Create a test user in the database."""
    return make_user(
        email="test@example.com", name="Test User", referral_code="TESTAB12"
    )


@pytest.fixture(name="admin_user")
def admin_user_fixture(make_user):
    return make_user(email="admin@example.com", name="Admin", role=UserRole.admin)


@pytest.fixture(name="inactive_user")
def inactive_user_fixture(make_user):
    """Create an inactive test user."""
    return make_user(email="inactive@example.com", name="Inactive", is_active=False)


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(token_issuer: TokenIssuer):
    """Build bearer headers for a user."""

    def _auth_headers(user: User) -> dict[str, str]:
        pair = token_issuer.issue_pair(user.id, user.email, user.role.value)
        return {"Authorization": f"Bearer {pair.access_token}"}

    return _auth_headers


@pytest.fixture(name="client")
def client_fixture(
    session: Session,
    store: InMemoryEphemeralStore,
    token_issuer: TokenIssuer,
    test_settings: Settings,
    mock_identity_provider: MagicMock,
    mock_mailer: MagicMock,
    mock_notifications: MagicMock,
):
    """Create a test client with overridden dependencies."""
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_ephemeral_store] = lambda: store
    app.dependency_overrides[get_notification_dispatcher] = lambda: mock_notifications
    app.dependency_overrides[get_token_issuer] = lambda: token_issuer
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_firebase_auth_service] = (
        lambda: mock_identity_provider
    )
    app.dependency_overrides[get_mailer] = lambda: mock_mailer

    client = TestClient(app, raise_server_exceptions=False)
    yield client

    app.dependency_overrides.clear()
