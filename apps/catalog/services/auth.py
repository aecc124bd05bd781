"""Auth middleware: inject tenant context from Authorization header only.
Tenant comes from Bearer tenant:<id> / superadmin:<id> or a JWT with tenant_id claim (HS256, JWT_SECRET).
Client-provided tenant_id in query/body/headers is explicitly ignored, except X-Tenant-Debug
when ENV=test AND ENABLE_TEST_TENANT_HEADER=1 (testing only)."""

import logging
import os
import re

import jwt
from starlette.requests import Request
from starlette.responses import JSONResponse

from apps.catalog.config import config

logger = logging.getLogger(__name__)

# "Bearer tenant:A", "Bearer tenant=B", "Bearer superadmin:master"
BEARER_TENANT_PATTERN = re.compile(r"^Bearer\s+(tenant|superadmin)[:=](.+)$", re.IGNORECASE)


def _is_production() -> bool:
    env = (os.getenv("ENV") or os.getenv("ENVIRONMENT") or "").lower()
    return env in ("production", "prod")


def _allow_tenant_debug_header() -> bool:
    """Only allow X-Tenant-Debug when ENV=test AND ENABLE_TEST_TENANT_HEADER=1."""
    if _is_production():
        return False
    env = (os.getenv("ENV") or os.getenv("ENVIRONMENT") or "").lower()
    if env != "test":
        return False
    return os.getenv("ENABLE_TEST_TENANT_HEADER", "").lower() in ("1", "true", "yes")


def _parse_jwt(token: str) -> tuple[str | None, str | None, bool]:
    """Decode a signed JWT. Returns (tenant_id, actor_id, is_super_admin); (None, None, False) when invalid."""
    if not config.JWT_SECRET:
        return None, None, False
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=["HS256"])
    except jwt.PyJWTError as e:
        logger.info("Rejected bearer token: %s", e)
        return None, None, False
    tid = payload.get("tenant_id")
    if not tid:
        return None, None, False
    aid = payload.get("sub")
    return str(tid).strip(), str(aid).strip() if aid else None, bool(payload.get("super_admin"))


def _extract_identity(auth_header: str) -> tuple[str | None, str | None, bool]:
    """Parse (tenant_id, actor_id, is_super_admin) from a Bearer header."""
    header = auth_header.strip()
    if not header.lower().startswith("bearer "):
        return None, None, False
    m = BEARER_TENANT_PATTERN.match(header)
    if m:
        return m.group(2).strip() or None, None, m.group(1).lower() == "superadmin"
    return _parse_jwt(header[7:].strip())


async def auth_middleware(request: Request, call_next):
    """Extract tenant context from Authorization header. /health is exempt (no auth required)."""

    if request.url.path.rstrip("/") == "/health":
        return await call_next(request)

    tenant_id: str | None = None
    actor_id: str | None = None
    is_super_admin = False

    auth_header = request.headers.get("Authorization")
    if auth_header:
        tenant_id, actor_id, is_super_admin = _extract_identity(auth_header)

    if tenant_id is None and _allow_tenant_debug_header():
        tenant_id = (request.headers.get("X-Tenant-Debug") or "").strip() or None

    if not tenant_id:
        return JSONResponse(
            status_code=401,
            content={"detail": "Missing or invalid tenant. Use Authorization: Bearer tenant:A or a signed JWT"},
        )

    request.state.tenant_id = tenant_id
    request.state.is_super_admin = is_super_admin
    if actor_id:
        request.state.actor_id = actor_id
    return await call_next(request)
