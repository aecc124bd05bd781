"""Cron DB session. Reuses apps.catalog.db session helpers."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

from apps.catalog.db import get_db


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Provide a transactional DB session with autoflush, like the catalog services use."""
    with get_db() as session:
        session.autoflush = True
        yield session
