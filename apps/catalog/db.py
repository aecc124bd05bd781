"""Database session factory and bootstrap."""

import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from apps.catalog.config import config
from apps.catalog.models import Base


def make_engine(url: str, **kwargs) -> Engine:
    """Create an engine for url. SQLite connections get foreign keys enabled."""
    new_engine = create_engine(url, pool_pre_ping=True, echo=config.SQL_ECHO, **kwargs)
    if new_engine.dialect.name == "sqlite":
        event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = make_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def bind_engine(new_engine: Engine) -> None:
    """Rebind the session factory (tests, cron scripts with an explicit URL)."""
    global engine
    engine = new_engine
    SessionLocal.configure(bind=new_engine)


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """Provide a transactional scope for DB operations. One scope per logical operation."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def ensure_tables(bind=None):
    """Create all tables if they do not exist. Idempotent (checkfirst=True).
    Postgres schemas are owned by Alembic outside tests; SQLite is always created here.
    """
    bind = bind if bind is not None else engine
    in_test = os.environ.get("ENV") == "test" or os.environ.get("PYTEST_RUNNING") == "1"
    strategy = (os.environ.get("TEST_SCHEMA_STRATEGY") or "alembic").strip().lower()
    if bind.dialect.name == "postgresql" and not (in_test and strategy == "ensure_tables"):
        return
    _create_all_safe(bind)


def _create_all_safe(bind) -> None:
    """Run create_all with checkfirst=True; ignore 'already exists' errors for idempotency."""
    import sqlalchemy.exc

    try:
        Base.metadata.create_all(bind=bind, checkfirst=True)
    except sqlalchemy.exc.ProgrammingError as e:
        if "already exists" not in str(e).lower():
            raise
