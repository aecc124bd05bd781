"""Public operation surface. One transaction per call; routes and cron scripts call only these."""

import logging

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
    DuplicateDecisionRequired,
    PromotionResult,
)
from apps.catalog.services import ledger, links, promoter, repo
from apps.catalog.services.background import TaskRunner
from apps.catalog.services.file_area import LocalFileArea
from apps.catalog.services.inspector import AaptPackageInspector, PackageInspector
from apps.catalog.services.ledger import unique_violation_as_duplicate
from apps.catalog.services.tenant_context import TenantContext, require_context

logger = logging.getLogger(__name__)


def create_or_resolve_application(
    ctx: TenantContext,
    upload: ApplicationUpload,
    inspector: PackageInspector | None = None,
    file_area: LocalFileArea | None = None,
) -> ApplicationCreated | DuplicateDecisionRequired:
    ctx = require_context(ctx)
    with unique_violation_as_duplicate(upload.pkg or "", upload.version) as conflict:
        with repo.transaction() as session:
            result = ledger.insert_application(
                session, ctx, upload, inspector or AaptPackageInspector(), file_area or LocalFileArea()
            )
            if isinstance(result, ApplicationCreated):
                conflict.pkg = result.application.pkg
                conflict.version = result.version.version if result.version is not None else upload.version
        return result


def create_application_version(
    ctx: TenantContext,
    application_id: int,
    upload: VersionUpload,
    inspector: PackageInspector | None = None,
    file_area: LocalFileArea | None = None,
) -> ApplicationVersionOut:
    ctx = require_context(ctx)
    with unique_violation_as_duplicate(upload.pkg or "", upload.version) as conflict:
        with repo.transaction() as session:
            version = ledger.insert_application_version(
                session, ctx, application_id, upload, inspector or AaptPackageInspector(), file_area or LocalFileArea()
            )
            conflict.pkg, conflict.version = version.pkg, version.version
            result = ApplicationVersionOut.model_validate(version)
        return result


def update_application(ctx: TenantContext, update: ApplicationUpdate) -> ApplicationOut:
    ctx = require_context(ctx)
    with unique_violation_as_duplicate(update.pkg, None):
        with repo.transaction() as session:
            return ApplicationOut.model_validate(ledger.update_application(session, ctx, update))


def update_application_version(ctx: TenantContext, update: ApplicationVersionUpdate) -> ApplicationVersionOut:
    ctx = require_context(ctx)
    with unique_violation_as_duplicate("", update.version) as conflict:
        with repo.transaction() as session:
            version = ledger.update_application_version(session, ctx, update)
            conflict.pkg, conflict.version = version.pkg, version.version
            result = ApplicationVersionOut.model_validate(version)
        return result


def delete_application_version(ctx: TenantContext, version_id: int, file_area: LocalFileArea | None = None) -> None:
    """Delete a version, then its artifact in the caller's file area (if the url points there)."""
    ctx = require_context(ctx)
    file_area = file_area or LocalFileArea()
    with repo.transaction() as session:
        url = ledger.remove_application_version_by_id(session, ctx, version_id)
        tenant = repo.get_tenant(session, ctx.tenant_id)
    path = file_area.resolve_url_to_local_path(tenant, url) if tenant is not None else None
    if path is not None and not file_area.delete_file(path):
        logger.warning("Artifact of deleted version %s not found at %s", version_id, path)


def delete_application(ctx: TenantContext, application_id: int) -> None:
    ctx = require_context(ctx)
    with repo.transaction() as session:
        ledger.remove_application_by_id(session, ctx, application_id)


def update_application_links(ctx: TenantContext, application_id: int, items: list[LinkItem]) -> None:
    ctx = require_context(ctx)
    with repo.transaction() as session:
        links.update_application_configurations(session, ctx, application_id, items)


def update_version_links(ctx: TenantContext, version_id: int, items: list[VersionLinkItem]) -> None:
    ctx = require_context(ctx)
    with repo.transaction() as session:
        links.update_application_version_configurations(session, ctx, version_id, items)


def promote_to_common(
    ctx: TenantContext,
    application_id: int,
    file_area: LocalFileArea | None = None,
    task_runner: TaskRunner | None = None,
) -> PromotionResult:
    return promoter.promote(ctx, application_id, file_area or LocalFileArea(), task_runner)
