"""Health check endpoint. No auth required."""

import logging
import os
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError

from apps.catalog.schemas.health import HealthResponse
from apps.catalog.services import repo

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    """Returns ok, version (GIT_SHA or dev), current time (ISO) and whether the database answers."""
    version = os.getenv("GIT_SHA", "dev").strip() or "dev"
    try:
        with repo.transaction() as session:
            repo.ping(session)
        database = "ok"
    except SQLAlchemyError as e:
        logger.warning("Health check: database unavailable: %s", e)
        database = "unavailable"
    return HealthResponse(
        ok=database == "ok",
        version=version,
        time=datetime.now(timezone.utc).isoformat(),
        database=database,
    )
