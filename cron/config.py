"""Cron config from environment."""

import os


def _list(val: str | None) -> list[str]:
    if val is None or val.strip() == "":
        return []
    return [s.strip() for s in val.split(",") if s.strip()]


class Config:
    """Cron configuration from env vars. Database settings come from apps.catalog.config."""

    TENANTS: list[str] = _list(os.getenv("TENANTS"))
    FIX_LATEST: bool = (os.getenv("FIX_LATEST") or "").strip().lower() in ("1", "true", "yes")


config = Config()
