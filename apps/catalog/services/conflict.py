"""Conflict resolver: decide whether an uploaded package belongs to a new or an existing application.

Uniqueness scopes: every private record of a package id shares one scope (across tenants),
common records share another. Package lookups are therefore global; visibility is applied
after the records are grouped by scope.
"""

import enum
import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from apps.catalog.models.application import Application
from apps.catalog.models.application_version import ApplicationVersion
from apps.catalog.services import repo
from apps.catalog.services.errors import (
    DuplicateApplicationError,
    EntityNotFoundError,
    InconsistentStateError,
    TenantAccessViolationError,
)
from apps.catalog.services.tenant_context import TenantContext, require_context

logger = logging.getLogger(__name__)


class ResolutionOutcome(str, enum.Enum):
    NOT_FOUND = "not_found"
    USABLE_COMMON = "usable_common"
    USABLE_PRIVATE = "usable_private"
    FORBIDDEN = "forbidden"
    AMBIGUOUS = "ambiguous"


@dataclass
class Resolution:
    outcome: ResolutionOutcome
    pkg: str
    application: Application | None = None
    candidates: list[Application] = field(default_factory=list)

    @property
    def usable(self) -> bool:
        return self.outcome in (ResolutionOutcome.USABLE_COMMON, ResolutionOutcome.USABLE_PRIVATE)


def guard_duplicate(
    session: Session,
    pkg: str,
    version: str,
    exclude_application_id: int | None = None,
) -> None:
    """Raise DuplicateApplicationError if any tenant already holds (pkg, version)."""
    for existing, owner in repo.find_versions_by_pkg_and_version(session, pkg, version):
        if exclude_application_id is not None and existing.application_id == exclude_application_id:
            continue
        logger.info("Duplicate upload rejected: %s %s already held by tenant %s", pkg, version, owner)
        raise DuplicateApplicationError(pkg, version, owner)


def classify(ctx: TenantContext, pkg: str, applications: list[Application]) -> Resolution:
    """Group records holding pkg by uniqueness scope and pick the outcome for ctx's tenant."""
    private = [a for a in applications if not a.common]
    common = [a for a in applications if a.common]
    own = [a for a in private if a.tenant_id == ctx.tenant_id]
    foreign = [a for a in private if a.tenant_id != ctx.tenant_id]

    if len(private) > 1 or len(common) > 1:
        return Resolution(ResolutionOutcome.AMBIGUOUS, pkg, candidates=list(applications))
    if own:
        return Resolution(ResolutionOutcome.USABLE_PRIVATE, pkg, application=own[0], candidates=own + common)
    if common:
        return Resolution(ResolutionOutcome.USABLE_COMMON, pkg, application=common[0], candidates=list(common))
    if foreign:
        return Resolution(ResolutionOutcome.FORBIDDEN, pkg, application=foreign[0])
    return Resolution(ResolutionOutcome.NOT_FOUND, pkg)


def resolve_application(session: Session, ctx: TenantContext, pkg: str) -> Resolution:
    """Resolve pkg for the caller. AMBIGUOUS is never returned: it is raised as InconsistentStateError."""
    ctx = require_context(ctx)
    resolution = classify(ctx, pkg, repo.find_applications_by_pkg(session, pkg))
    if resolution.outcome is ResolutionOutcome.AMBIGUOUS:
        ids = [a.id for a in resolution.candidates]
        logger.error("More than one application holds package %s in one scope: %s", pkg, ids)
        raise InconsistentStateError(pkg, ids)
    return resolution


def require_usable(resolution: Resolution) -> Application:
    """Return the resolved application or raise TenantAccessViolationError when it belongs to another tenant."""
    if resolution.outcome is ResolutionOutcome.FORBIDDEN:
        raise TenantAccessViolationError("application", resolution.application.id)
    return resolution.application


def require_visible_application(session: Session, ctx: TenantContext, application_id: int) -> Application:
    """Application owned by the caller or common. Super-admins see every application."""
    application = repo.get_application(session, application_id)
    if application is None:
        raise EntityNotFoundError("application", application_id)
    if not (application.common or application.tenant_id == ctx.tenant_id or ctx.is_super_admin):
        raise TenantAccessViolationError("application", application_id)
    return application


def require_visible_version(session: Session, ctx: TenantContext, version_id: int) -> ApplicationVersion:
    version = repo.get_application_version(session, version_id)
    if version is None:
        raise EntityNotFoundError("application version", version_id)
    require_visible_application(session, ctx, version.application_id)
    return version
