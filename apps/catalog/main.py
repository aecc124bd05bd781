"""FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

logging.basicConfig(level=logging.INFO)
from fastapi.middleware.cors import CORSMiddleware

from apps.catalog.db import ensure_tables
from apps.catalog.routes import applications, health
from apps.catalog.services.auth import auth_middleware

# CORS: allow only specified origins (no wildcard).
# Env: CORS_ALLOW_ORIGINS="https://admin.example.com,http://localhost:3000" (comma-separated).
CORS_DEFAULT_ORIGINS = ["http://localhost:3000", "http://localhost:8080"]
_cors_origins_raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
CORS_ORIGINS = (
    [o.strip() for o in _cors_origins_raw.split(",") if o.strip()]
    if _cors_origins_raw
    else CORS_DEFAULT_ORIGINS
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ensure tables exist on startup (SQLite / test; Postgres schema comes from Alembic)."""
    ensure_tables()
    yield


app = FastAPI(
    title="Application Catalog API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(CORSMiddleware, allow_origins=CORS_ORIGINS, allow_methods=["*"], allow_headers=["*"])
app.middleware("http")(auth_middleware)

app.include_router(health.router, tags=["health"])
app.include_router(applications.router, prefix="/applications", tags=["applications"])
