import contextlib
from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.schema import MetaData

from onair.infra.exceptions import StoreUnavailableError
from onair.infra.settings import settings

# Deterministic constraint/index names (prevents Alembic churn)
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def _engine_kwargs(url: str) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"pool_pre_ping": True, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_size"] = settings.pool_size
        kwargs["max_overflow"] = settings.max_overflow
        kwargs["pool_timeout"] = settings.pool_timeout
        if "postgresql" in url:
            kwargs["connect_args"] = {"connect_timeout": settings.connect_timeout}
    return kwargs


engine = create_engine(settings.database_url, echo=settings.echo_sql, **_engine_kwargs(settings.database_url))

if "postgresql" in settings.database_url:

    @event.listens_for(engine, "connect")
    def _set_search_path(dbapi_conn, _):
        with dbapi_conn.cursor() as cur:
            cur.execute("SET search_path TO public")


SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)


def get_engine(db_url: str | None = None, for_test: bool = False) -> Engine:
    """Get or create a database engine.

    If ``for_test`` is True and ``settings.test_database_url`` is set, that URL is used.
    Otherwise falls back to the provided ``db_url`` or the default ``settings.database_url``.
    Returns the global engine when using the default, to avoid unnecessary engine creation.
    """
    if for_test and settings.test_database_url:
        chosen_url = settings.test_database_url
    else:
        chosen_url = db_url or settings.database_url

    if not db_url and not for_test and chosen_url == settings.database_url:
        return engine

    return create_engine(chosen_url, echo=False, **_engine_kwargs(chosen_url))


def get_sessionmaker(for_test: bool = False) -> sessionmaker:
    """Get a session factory.

    Returns the global sessionmaker for default usage. When ``for_test`` is True,
    returns a temporary sessionmaker bound to a test engine.
    """
    if not for_test:
        return SessionLocal
    test_engine = get_engine(for_test=True)
    return sessionmaker(bind=test_engine, autoflush=False, autocommit=False, future=True)


@contextlib.contextmanager
def store_errors(store: str) -> Generator[None, None, None]:
    """Translate connectivity failures into a retryable StoreUnavailableError."""
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        raise StoreUnavailableError(store, str(exc.orig or exc)) from exc
