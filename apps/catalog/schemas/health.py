"""Health check response schema."""

from typing import Literal

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Liveness plus database reachability. ok is False while the database is unavailable."""

    model_config = ConfigDict(extra="forbid")

    ok: bool
    version: str
    time: str
    database: Literal["ok", "unavailable"]
