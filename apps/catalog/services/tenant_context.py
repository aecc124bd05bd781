"""Server-side tenant context injection.

Tenant is taken from auth (Authorization header: Bearer tenant:<id>, Bearer superadmin:<id>
or JWT tenant_id/super_admin claims). Client-provided tenant_id in query/body is ignored.
Engine operations receive the context explicitly; nothing is read from thread-local state.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from apps.catalog.services.errors import AnonymousAccessError

# Keys that MUST NOT be trusted from query/body; tenant comes from auth only
IGNORED_CLIENT_TENANT_KEYS = frozenset({"tenant_id", "tenant", "x-tenant-id"})


@dataclass(frozen=True)
class TenantContext:
    """Caller identity. tenant_id required; actor_id optional (e.g. from JWT sub)."""

    tenant_id: str
    actor_id: str | None = None
    is_super_admin: bool = False


def require_context(ctx: TenantContext | None) -> TenantContext:
    """Return ctx with a stripped tenant_id. Raises AnonymousAccessError if missing."""
    if ctx is None or not ctx.tenant_id or not str(ctx.tenant_id).strip():
        raise AnonymousAccessError()
    tenant_id = str(ctx.tenant_id).strip()
    if tenant_id == ctx.tenant_id:
        return ctx
    return TenantContext(tenant_id=tenant_id, actor_id=ctx.actor_id, is_super_admin=ctx.is_super_admin)


def get_tenant_context(request: Request) -> TenantContext:
    """FastAPI dependency: return TenantContext from request.state (set by auth middleware). 401 if missing."""
    tenant_id = getattr(request.state, "tenant_id", None)
    ctx = TenantContext(
        tenant_id=tenant_id or "",
        actor_id=getattr(request.state, "actor_id", None),
        is_super_admin=bool(getattr(request.state, "is_super_admin", False)),
    )
    try:
        return require_context(ctx)
    except AnonymousAccessError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict()) from e


# Type alias for Depends()
TenantContextDep = Annotated[TenantContext, Depends(get_tenant_context)]
