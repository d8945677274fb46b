"""Database engine and session factory for the persisted exercise catalog."""
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from exercise_engine.config import get_settings


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""


def _is_sqlite(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def create_catalog_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Build an engine for the catalog database.

    File-backed SQLite databases get their parent directory created and are
    opened with ``check_same_thread`` disabled, since the catalog is loaded
    from whichever worker thread first serves a request.
    """
    connect_args = {}
    if _is_sqlite(database_url):
        connect_args["check_same_thread"] = False
        database = make_url(database_url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

    catalog_engine = create_engine(database_url, echo=echo, future=True, connect_args=connect_args)

    if _is_sqlite(database_url):
        event.listen(catalog_engine, "connect", _set_sqlite_pragma)
    return catalog_engine


def _set_sqlite_pragma(dbapi_conn, connection_record):
    """Let readers proceed while a batch load is committing."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def create_session_factory(catalog_engine: Engine) -> sessionmaker:
    return sessionmaker(bind=catalog_engine, autoflush=False, autocommit=False, future=True)


settings = get_settings()
engine = create_catalog_engine(settings.database_url, echo=settings.debug)
SessionLocal = create_session_factory(engine)


def init_db() -> None:
    """Create any missing tables for the registered ORM models."""

    # Registers the ORM classes on Base.metadata.
    from exercise_engine.models import database_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
