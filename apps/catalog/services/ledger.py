"""Version ledger: persists applications and their versions and keeps latest_version_id correct.

Write functions take the session of the caller's transaction; the read functions at the bottom
open their own. Every insert runs the auto-update cascade in the same transaction.
"""

import hashlib
import logging
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from apps.catalog.models.application import Application
from apps.catalog.models.application_version import ApplicationVersion
from apps.catalog.models.tenant import Tenant
from apps.catalog.schemas.requests import (
    ApplicationUpdate,
    ApplicationUpload,
    ApplicationVersionUpdate,
    ChangePackageChoice,
    NewApplicationChoice,
    NewVersionChoice,
    VersionUpload,
)
from apps.catalog.schemas.responses import (
    ApplicationCreated,
    ApplicationOut,
    ApplicationVersionOut,
    DuplicateDecisionRequired,
)
from apps.catalog.services import links, repo
from apps.catalog.services.conflict import (
    ResolutionOutcome,
    guard_duplicate,
    require_usable,
    require_visible_application,
    require_visible_version,
    resolve_application,
)
from apps.catalog.services.errors import (
    ArtifactInspectionFailedError,
    DuplicateApplicationError,
    EntityNotFoundError,
    ReferenceExistsError,
    SuperAdminRequiredError,
    TenantAccessViolationError,
    VersionPackageMismatchError,
)
from apps.catalog.services.file_area import LocalFileArea
from apps.catalog.services.inspector import PackageInspector
from apps.catalog.services.tenant_context import TenantContext, require_context
from apps.catalog.services.versioning import normalize_version, pick_latest

logger = logging.getLogger(__name__)

DUPLICATE_CHOICES = ["new_application", "change_package", "new_version"]

__all__ = [
    "ConflictKey",
    "DUPLICATE_CHOICES",
    "insert_application",
    "insert_application_version",
    "list_admin_applications",
    "list_application_versions",
    "list_applications",
    "lookup_packages",
    "normalize_version",
    "recalculate_latest_version",
    "remove_application_by_id",
    "remove_application_version_by_id",
    "unique_violation_as_duplicate",
    "update_application",
    "update_application_version",
]


@dataclass
class _Artifact:
    pkg: str
    version: str
    url: str | None
    apk_hash: str | None = None
    path: Path | None = None


def _is_unique_violation(e: IntegrityError) -> bool:
    msg = str(e.orig).lower()
    return "unique" in msg or "duplicate key" in msg


@dataclass
class ConflictKey:
    """Package and version reported if the database rejects the write. Callers may narrow it
    once the real values are known, e.g. after inspecting a staged file."""

    pkg: str
    version: str | None


@contextmanager
def unique_violation_as_duplicate(pkg: str, version: str | None) -> Generator[ConflictKey, None, None]:
    """Convert a uniqueness IntegrityError raised at flush/commit into DuplicateApplicationError.

    Two concurrent uploads can both pass the duplicate guard; the database constraint decides and
    the loser gets the same error as a sequential duplicate.
    """
    key = ConflictKey(pkg, version)
    try:
        yield key
    except IntegrityError as e:
        if not _is_unique_violation(e):
            raise
        logger.info("Uniqueness constraint rejected %s %s: %s", key.pkg, key.version, e.orig)
        raise DuplicateApplicationError(key.pkg, key.version) from e


def _file_hash(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _require_tenant(session: Session, ctx: TenantContext) -> Tenant:
    tenant = repo.get_tenant(session, ctx.tenant_id)
    if tenant is None:
        raise EntityNotFoundError("tenant", ctx.tenant_id)
    return tenant


def _read_artifact(
    tenant: Tenant,
    staged_file: str | None,
    pkg: str | None,
    version: str | None,
    url: str | None,
    inspector: PackageInspector,
    file_area: LocalFileArea,
) -> _Artifact:
    """pkg/version/url of an upload. A staged file is moved into the tenant's area and inspected;
    its package id and version override the submitted ones. An explicit url is kept."""
    if staged_file and staged_file.strip():
        moved = file_area.move_incoming_file(tenant, staged_file.strip())
        info = inspector.inspect(moved)
        logger.debug("Parsed package %s %s from %s", info.pkg, info.version, moved.name)
        return _Artifact(
            pkg=info.pkg,
            version=info.version,
            url=url if url and url.strip() else file_area.url_for(tenant, moved),
            apk_hash=_file_hash(moved),
            path=moved,
        )
    if not pkg or not pkg.strip() or not version or not version.strip():
        raise ArtifactInspectionFailedError(None, ["package id and version are required without a file"])
    return _Artifact(pkg=pkg.strip(), version=version.strip(), url=url)


def _require_writable(ctx: TenantContext, application: Application, operation: str) -> None:
    """Common applications need a super-admin; private ones must belong to the caller."""
    if application.common:
        if not ctx.is_super_admin:
            raise SuperAdminRequiredError(operation)
    elif application.tenant_id != ctx.tenant_id and not ctx.is_super_admin:
        raise TenantAccessViolationError("application", application.id)


def recalculate_latest_version(session: Session, application_id: int) -> int | None:
    """Point latest_version_id at the greatest version label (ties: most recent insert). Idempotent."""
    application = repo.get_application(session, application_id)
    if application is None:
        raise EntityNotFoundError("application", application_id)
    latest = pick_latest(repo.list_application_versions(session, application_id))
    latest_id = latest.id if latest is not None else None
    if application.latest_version_id != latest_id:
        logger.debug("Latest version of application %s: %s -> %s", application_id, application.latest_version_id, latest_id)
        application.latest_version_id = latest_id
        session.flush()
    return latest_id


def _insert_version(
    session: Session,
    application: Application,
    artifact: _Artifact,
) -> ApplicationVersion:
    with unique_violation_as_duplicate(artifact.pkg, artifact.version):
        version = repo.insert_application_version(
            session,
            application,
            version=artifact.version,
            url=artifact.url,
            apk_hash=artifact.apk_hash,
        )
    links.auto_update_to_version(session, version)
    recalculate_latest_version(session, application.id)
    links.recheck_tenants(session, repo.list_auto_update_tenants(session, application.id))
    return version


def _duplicate_choices(candidates: list[Application]) -> list[str]:
    """A new private application can only sit next to a common one; private package ids are unique."""
    if candidates and all(a.common for a in candidates):
        return list(DUPLICATE_CHOICES)
    return [c for c in DUPLICATE_CHOICES if c != "new_application"]


def _created(application: Application, version: ApplicationVersion | None) -> ApplicationCreated:
    return ApplicationCreated(
        application=ApplicationOut.model_validate(application),
        version=ApplicationVersionOut.model_validate(version) if version is not None else None,
    )


def insert_application(
    session: Session,
    ctx: TenantContext,
    upload: ApplicationUpload,
    inspector: PackageInspector,
    file_area: LocalFileArea,
) -> ApplicationCreated | DuplicateDecisionRequired:
    """Register an uploaded package as a new application or as a version of an existing one.

    When the package id is already used by an application visible to the caller and no
    resolution was submitted, nothing is written and a DuplicateDecisionRequired is returned.
    """
    ctx = require_context(ctx)
    tenant = _require_tenant(session, ctx)
    artifact = _read_artifact(
        tenant, upload.staged_file, upload.pkg, upload.version, upload.url, inspector, file_area
    )
    choice = upload.resolution
    if isinstance(choice, ChangePackageChoice):
        logger.info("Package id of upload changed from %s to %s", artifact.pkg, choice.new_pkg)
        artifact.pkg = choice.new_pkg.strip()
        choice = None

    guard_duplicate(session, artifact.pkg, artifact.version)
    resolution = resolve_application(session, ctx, artifact.pkg)

    if resolution.outcome is ResolutionOutcome.FORBIDDEN:
        require_usable(resolution)

    if resolution.usable and not isinstance(choice, NewApplicationChoice):
        if not isinstance(choice, NewVersionChoice):
            logger.info("Upload of %s %s needs a duplicate decision (tenant=%s)", artifact.pkg, artifact.version, ctx.tenant_id)
            return DuplicateDecisionRequired(
                pkg=artifact.pkg,
                version=artifact.version,
                staged_file=str(artifact.path) if artifact.path is not None else None,
                candidates=[ApplicationOut.model_validate(a) for a in resolution.candidates],
                choices=_duplicate_choices(resolution.candidates),
            )
        candidate_ids = {a.id for a in resolution.candidates}
        if choice.target_application_id not in candidate_ids:
            raise TenantAccessViolationError("application", choice.target_application_id)
        application = repo.get_application(session, choice.target_application_id)
        _require_writable(ctx, application, "add a version to a common application")
        version = _insert_version(session, application, artifact)
        logger.info("Added version %s %s to application %s", artifact.pkg, artifact.version, application.id)
        return _created(application, version)

    if isinstance(choice, NewVersionChoice):
        raise TenantAccessViolationError("application", choice.target_application_id)

    with unique_violation_as_duplicate(artifact.pkg, artifact.version):
        application = repo.insert_application(
            session,
            ctx.tenant_id,
            pkg=artifact.pkg,
            name=(upload.name or "").strip() or artifact.pkg,
            show_icon=upload.show_icon,
            system=upload.system,
        )
    version = _insert_version(session, application, artifact)
    logger.info("Created application %s %s (tenant=%s)", artifact.pkg, artifact.version, ctx.tenant_id)
    return _created(application, version)


def insert_application_version(
    session: Session,
    ctx: TenantContext,
    application_id: int,
    upload: VersionUpload,
    inspector: PackageInspector,
    file_area: LocalFileArea,
) -> ApplicationVersion:
    """Add a version to an existing application. The artifact's package id must match the application's."""
    ctx = require_context(ctx)
    application = require_visible_application(session, ctx, application_id)
    _require_writable(ctx, application, "add a version to a common application")
    tenant = _require_tenant(session, ctx)
    artifact = _read_artifact(
        tenant, upload.staged_file, upload.pkg or application.pkg, upload.version, upload.url, inspector, file_area
    )
    if artifact.pkg != application.pkg:
        raise VersionPackageMismatchError(artifact.pkg, application.pkg)
    guard_duplicate(session, artifact.pkg, artifact.version)
    version = _insert_version(session, application, artifact)
    logger.info("Added version %s %s to application %s", artifact.pkg, artifact.version, application.id)
    return version


def update_application(session: Session, ctx: TenantContext, update: ApplicationUpdate) -> Application:
    ctx = require_context(ctx)
    application = repo.get_application(session, update.id)
    if application is None:
        raise EntityNotFoundError("application", update.id)
    _require_writable(ctx, application, "update a common application")

    pkg = update.pkg.strip()
    if pkg != application.pkg:
        for other in repo.find_applications_by_pkg(session, pkg):
            if other.id != application.id and other.common == application.common:
                raise DuplicateApplicationError(pkg, None, other.tenant_id)

    application.pkg = pkg
    application.name = update.name.strip()
    application.show_icon = update.show_icon
    repo.sync_version_flags(session, application)
    logger.info("Updated application %s (%s)", application.id, application.pkg)
    return application


def update_application_version(
    session: Session,
    ctx: TenantContext,
    update: ApplicationVersionUpdate,
) -> ApplicationVersion:
    ctx = require_context(ctx)
    version = require_visible_version(session, ctx, update.id)
    application = repo.get_application(session, version.application_id)
    _require_writable(ctx, application, "update a version of a common application")

    label = update.version.strip()
    if label != version.version:
        guard_duplicate(session, version.pkg, label, exclude_application_id=version.application_id)
    version.version = label
    version.url = update.url
    with unique_violation_as_duplicate(version.pkg, label):
        session.flush()
    recalculate_latest_version(session, application.id)
    logger.info("Updated application version %s (%s %s)", version.id, version.pkg, version.version)
    return version


def remove_application_version_by_id(session: Session, ctx: TenantContext, version_id: int) -> str | None:
    """Delete a version and return its url (the caller removes the artifact). Refused without mutation
    while the version is referenced, deletion-prohibited, or common for a non-super-admin."""
    ctx = require_context(ctx)
    version = require_visible_version(session, ctx, version_id)
    if version.deletion_prohibited:
        raise TenantAccessViolationError("application version", version_id)
    if version.common and not ctx.is_super_admin:
        raise SuperAdminRequiredError("delete a version of a common application")
    application = repo.get_application(session, version.application_id)
    _require_writable(ctx, application, "delete a version of a common application")
    if repo.is_application_version_used(session, version_id):
        raise ReferenceExistsError(version_id, "configuration")

    url = version.url
    was_latest = application.latest_version_id == version.id
    repo.delete_application_version(session, version)
    if was_latest:
        recalculate_latest_version(session, application.id)
    logger.info("Deleted application version %s (%s %s)", version_id, version.pkg, version.version)
    return url


def remove_application_by_id(session: Session, ctx: TenantContext, application_id: int) -> list[str]:
    """Delete an application with all its versions. Returns the urls of the removed versions."""
    ctx = require_context(ctx)
    application = repo.get_application(session, application_id)
    if application is None:
        raise EntityNotFoundError("application", application_id)
    if application.system:
        raise TenantAccessViolationError("application", application_id)
    _require_writable(ctx, application, "delete a common application")
    if repo.is_application_used(session, application_id):
        raise ReferenceExistsError(application_id, "configuration")

    urls = [v.url for v in repo.list_application_versions(session, application_id) if v.url]
    repo.delete_application(session, application)
    logger.info("Deleted application %s (%s)", application_id, application.pkg)
    return urls


def list_applications(ctx: TenantContext, value: str | None = None) -> list[ApplicationOut]:
    """Applications visible to the caller: its own plus common ones."""
    ctx = require_context(ctx)
    with repo.transaction() as session:
        return [ApplicationOut.model_validate(a) for a in repo.list_applications_for_tenant(session, ctx.tenant_id, value)]


def list_application_versions(ctx: TenantContext, application_id: int) -> list[ApplicationVersionOut]:
    ctx = require_context(ctx)
    with repo.transaction() as session:
        require_visible_application(session, ctx, application_id)
        return [ApplicationVersionOut.model_validate(v) for v in repo.list_application_versions(session, application_id)]


def lookup_packages(ctx: TenantContext, filter_value: str, limit: int = 10) -> list[str]:
    ctx = require_context(ctx)
    with repo.transaction() as session:
        return repo.find_matching_packages(session, ctx.tenant_id, filter_value, limit)


def list_admin_applications(ctx: TenantContext, value: str | None = None) -> list[ApplicationOut]:
    """All applications of all tenants."""
    ctx = require_context(ctx)
    if not ctx.is_super_admin:
        raise SuperAdminRequiredError("list applications of all tenants")
    with repo.transaction() as session:
        return [ApplicationOut.model_validate(a) for a in repo.list_all_applications(session, value)]
