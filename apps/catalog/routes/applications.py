"""Application catalog endpoints. Tenant from auth middleware only; client-provided tenant_id ignored.

Handlers are sync: the engine blocks on the database and on the package inspector, so they run
in the threadpool.
"""

from collections.abc import Generator
from contextlib import contextmanager

from fastapi import APIRouter, HTTPException, Query, Response

from apps.catalog.schemas.requests import (
    ApplicationUpdate,
    ApplicationUpload,
    ApplicationVersionUpdate,
    LinkItem,
    VersionLinkItem,
    VersionUpload,
)
from apps.catalog.schemas.responses import (
    ApplicationCreated,
    ApplicationOut,
    ApplicationVersionOut,
    ConfigurationLinkOut,
    DuplicateDecisionRequired,
    PackageLookupResponse,
    PromotionResult,
)
from apps.catalog.services import catalog, ledger, links
from apps.catalog.services.errors import CatalogError
from apps.catalog.services.tenant_context import TenantContextDep

router = APIRouter()


@contextmanager
def _catalog_errors() -> Generator[None, None, None]:
    """Map engine errors to HTTP status codes."""
    try:
        yield
    except CatalogError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict()) from e


@router.get("", response_model=list[ApplicationOut])
def list_applications(ctx: TenantContextDep, value: str | None = Query(None)) -> list[ApplicationOut]:
    """Own and common applications, optionally filtered by name or package id."""
    with _catalog_errors():
        return ledger.list_applications(ctx, value)


@router.get("/admin", response_model=list[ApplicationOut])
def list_admin_applications(ctx: TenantContextDep, value: str | None = Query(None)) -> list[ApplicationOut]:
    """Applications of all tenants. Super-admin only."""
    with _catalog_errors():
        return ledger.list_admin_applications(ctx, value)


@router.get("/packages", response_model=PackageLookupResponse)
def lookup_packages(
    ctx: TenantContextDep,
    filter: str = Query("", alias="filter"),
    limit: int = Query(10, ge=1, le=100),
) -> PackageLookupResponse:
    with _catalog_errors():
        return PackageLookupResponse(packages=ledger.lookup_packages(ctx, filter, limit))


@router.post("", response_model=ApplicationCreated | DuplicateDecisionRequired)
def create_application(body: ApplicationUpload, ctx: TenantContextDep) -> ApplicationCreated | DuplicateDecisionRequired:
    """Upload a package. Returns status=decision_required with candidates when the package id is taken."""
    with _catalog_errors():
        return catalog.create_or_resolve_application(ctx, body)


@router.put("", response_model=ApplicationOut)
def update_application(body: ApplicationUpdate, ctx: TenantContextDep) -> ApplicationOut:
    with _catalog_errors():
        return catalog.update_application(ctx, body)


@router.put("/versions", response_model=ApplicationVersionOut)
def update_application_version(body: ApplicationVersionUpdate, ctx: TenantContextDep) -> ApplicationVersionOut:
    with _catalog_errors():
        return catalog.update_application_version(ctx, body)


@router.delete("/versions/{version_id}", status_code=204)
def delete_application_version(version_id: int, ctx: TenantContextDep) -> Response:
    with _catalog_errors():
        catalog.delete_application_version(ctx, version_id)
    return Response(status_code=204)


@router.get("/versions/{version_id}/configurations", response_model=list[ConfigurationLinkOut])
def get_version_configurations(version_id: int, ctx: TenantContextDep) -> list[ConfigurationLinkOut]:
    with _catalog_errors():
        return links.get_application_version_configurations(ctx, version_id)


@router.put("/versions/{version_id}/configurations", status_code=204)
def update_version_configurations(version_id: int, body: list[VersionLinkItem], ctx: TenantContextDep) -> Response:
    with _catalog_errors():
        catalog.update_version_links(ctx, version_id, body)
    return Response(status_code=204)


@router.delete("/{application_id}", status_code=204)
def delete_application(application_id: int, ctx: TenantContextDep) -> Response:
    with _catalog_errors():
        catalog.delete_application(ctx, application_id)
    return Response(status_code=204)


@router.get("/{application_id}/versions", response_model=list[ApplicationVersionOut])
def list_application_versions(application_id: int, ctx: TenantContextDep) -> list[ApplicationVersionOut]:
    with _catalog_errors():
        return ledger.list_application_versions(ctx, application_id)


@router.post("/{application_id}/versions", response_model=ApplicationVersionOut)
def create_application_version(application_id: int, body: VersionUpload, ctx: TenantContextDep) -> ApplicationVersionOut:
    with _catalog_errors():
        return catalog.create_application_version(ctx, application_id, body)


@router.get("/{application_id}/configurations", response_model=list[ConfigurationLinkOut])
def get_application_configurations(application_id: int, ctx: TenantContextDep) -> list[ConfigurationLinkOut]:
    with _catalog_errors():
        return links.get_application_configurations(ctx, application_id)


@router.put("/{application_id}/configurations", status_code=204)
def update_application_configurations(application_id: int, body: list[LinkItem], ctx: TenantContextDep) -> Response:
    with _catalog_errors():
        catalog.update_application_links(ctx, application_id, body)
    return Response(status_code=204)


@router.post("/{application_id}/common", response_model=PromotionResult)
def promote_to_common(application_id: int, ctx: TenantContextDep) -> PromotionResult:
    """Turn the application into a common one. Super-admin only."""
    with _catalog_errors():
        return catalog.promote_to_common(ctx, application_id)
