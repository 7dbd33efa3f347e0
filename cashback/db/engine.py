from collections.abc import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from cashback.core.settings import get_settings


def build_engine(database_url: str) -> Engine:
    """Create the SQLAlchemy engine for the relational store."""
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        # Required for SQLite when used with FastAPI across threads.
        connect_args = {"check_same_thread": False}
    return create_engine(
        database_url, echo=False, connect_args=connect_args, pool_pre_ping=True
    )


engine = build_engine(get_settings().database_url)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
