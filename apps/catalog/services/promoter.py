"""Common-app promoter: turn a tenant-private application into a common one.

Every private application holding the package id (any tenant) is merged into one new common
application owned by the master tenant. Versions are deduplicated by normalized label, links
and main/content apps are re-pointed, the old applications are deleted, and the backing files
are moved into the master tenant's area after commit.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.orm import Session

from apps.catalog.config import config
from apps.catalog.models.application import Application
from apps.catalog.models.application_version import ApplicationVersion
from apps.catalog.models.configuration_link import LinkAction
from apps.catalog.schemas.responses import ApplicationOut, ApplicationVersionOut, PromotionResult
from apps.catalog.services import background, links, repo
from apps.catalog.services.background import TaskRunner
from apps.catalog.services.errors import (
    DuplicateApplicationError,
    EntityNotFoundError,
    SuperAdminRequiredError,
)
from apps.catalog.services.file_area import LocalFileArea
from apps.catalog.services.ledger import recalculate_latest_version, unique_violation_as_duplicate
from apps.catalog.services.tenant_context import TenantContext, require_context
from apps.catalog.services.versioning import normalize_version, version_sort_key

logger = logging.getLogger(__name__)


@dataclass
class _Merge:
    """State collected inside the promotion transaction."""

    application: Application
    version_map: dict[int, ApplicationVersion] = field(default_factory=dict)
    new_versions: list[ApplicationVersion] = field(default_factory=list)
    discarded: list[str] = field(default_factory=list)
    file_moves: list[tuple[Path, Path]] = field(default_factory=list)
    tenants: set[str] = field(default_factory=set)


def _merge_versions(
    session: Session,
    merge: _Merge,
    candidates: list[Application],
    master,
    file_area: LocalFileArea,
) -> None:
    tenants = {t: repo.get_tenant(session, t) for t in {a.tenant_id for a in candidates}}
    old_versions = repo.list_versions_for_applications(session, [a.id for a in candidates])
    owner_of = {a.id: a.tenant_id for a in candidates}

    retained: dict[str, ApplicationVersion] = {}
    for old in old_versions:
        label = normalize_version(old.version)
        if label in retained:
            logger.info(
                "Version %s of application %s merged into %s when promoting %s",
                old.version,
                old.application_id,
                retained[label].version,
                old.pkg,
            )
            merge.discarded.append(old.version)
            continue
        retained[label] = old

    new_by_label: dict[str, ApplicationVersion] = {}
    for label, old in retained.items():
        url = old.url
        owner = tenants[owner_of[old.application_id]]
        relative = file_area.relative_path_from_url(owner, old.url)
        if relative is not None:
            src = file_area.tenant_dir(owner) / relative
            # master/<owner files_dir>/<file>: equal names from different tenants stay apart
            dst = src if owner.id == master.id else file_area.tenant_dir(master) / owner.files_dir / relative
            url = file_area.url_for(master, dst)
            if src != dst:
                merge.file_moves.append((src, dst))
        elif old.url:
            logger.warning("URL of version %s is outside of the files area, kept as is: %s", old.id, old.url)

        new_version = repo.insert_application_version(
            session,
            merge.application,
            version=old.version,
            url=url,
            apk_hash=old.apk_hash,
            deletion_prohibited=old.deletion_prohibited,
        )
        new_by_label[label] = new_version
        merge.new_versions.append(new_version)

    for old in old_versions:
        merge.version_map[old.id] = new_by_label[normalize_version(old.version)]


def _repoint_application_links(session: Session, merge: _Merge, candidate_ids: list[int]) -> None:
    """Move application-level links onto the new application. First link per configuration wins."""
    keep, drop, seen = [], [], set()
    for link in repo.list_application_links_for_applications(session, candidate_ids):
        merge.tenants.add(link.tenant_id)
        if link.configuration_id in seen:
            drop.append(link)
        else:
            seen.add(link.configuration_id)
            keep.append(link)
    for link in drop:
        logger.debug("Dropping duplicate application link %s of configuration %s", link.id, link.configuration_id)
        repo.delete_link(session, link)
    for link in keep:
        link.application_id = merge.application.id
        new_version = merge.version_map.get(link.application_version_id)
        link.application_version_id = new_version.id if new_version is not None else None
    session.flush()


def _repoint_version_links(session: Session, merge: _Merge, candidate_ids: list[int]) -> None:
    """Move version-level links onto the new versions, keeping one install per configuration."""
    keep, drop, seen = [], [], set()
    for link in repo.list_version_links_for_applications(session, candidate_ids):
        merge.tenants.add(link.tenant_id)
        key = (link.configuration_id, merge.version_map[link.application_version_id].id)
        if key in seen:
            drop.append(link)
        else:
            seen.add(key)
            keep.append(link)
    for link in drop:
        logger.debug("Dropping duplicate version link %s of configuration %s", link.id, link.configuration_id)
        repo.delete_link(session, link)

    installs: dict[int, list] = {}
    for link in keep:
        new_version = merge.version_map[link.application_version_id]
        link.application_id = merge.application.id
        link.application_version_id = new_version.id
        if link.action == LinkAction.INSTALL:
            installs.setdefault(link.configuration_id, []).append((new_version, link))
    for configuration_id, pairs in installs.items():
        if len(pairs) < 2:
            continue
        pairs.sort(key=lambda p: (version_sort_key(p[0].version), p[0].id))
        for _version, link in pairs[:-1]:
            link.action = int(LinkAction.PROHIBIT)
        logger.info(
            "Configuration %s installed %s versions of %s; kept %s",
            configuration_id,
            len(pairs),
            merge.application.pkg,
            pairs[-1][0].version,
        )
    session.flush()


def _repoint_configurations(session: Session, merge: _Merge) -> None:
    for configuration in repo.list_configurations_referencing_versions(session, list(merge.version_map)):
        merge.tenants.add(configuration.tenant_id)
        if configuration.main_app_version_id in merge.version_map:
            configuration.main_app_version_id = merge.version_map[configuration.main_app_version_id].id
        if configuration.content_app_version_id in merge.version_map:
            configuration.content_app_version_id = merge.version_map[configuration.content_app_version_id].id
    session.flush()


def move_files(file_area: LocalFileArea, moves: list[tuple[Path, Path]]) -> int:
    """Move promoted artifacts. Each failure is logged and skipped. Returns the number moved."""
    moved = 0
    for src, dst in moves:
        if file_area.move_file(src, dst):
            moved += 1
    logger.info("Moved %s of %s files into the common area", moved, len(moves))
    return moved


def promote(
    ctx: TenantContext,
    application_id: int,
    file_area: LocalFileArea,
    task_runner: TaskRunner | None = None,
) -> PromotionResult:
    """Turn application_id into a common application. Super-admin only. One transaction;
    file moves are handed to task_runner (default: the background pool) after commit."""
    ctx = require_context(ctx)
    if not ctx.is_super_admin:
        raise SuperAdminRequiredError("turn an application into common")

    with repo.transaction() as session:
        application = repo.get_application(session, application_id)
        if application is None:
            raise EntityNotFoundError("application", application_id)
        pkg = application.pkg

    with unique_violation_as_duplicate(pkg, None):
        with repo.transaction() as session:
            application = repo.get_application(session, application_id)
            if application is None or application.pkg != pkg:
                raise EntityNotFoundError("application", application_id)
            for existing in repo.find_applications_by_pkg(session, pkg):
                if existing.common:
                    raise DuplicateApplicationError(pkg, None, existing.tenant_id)
            master = repo.get_tenant(session, config.MASTER_TENANT_ID)
            if master is None:
                raise EntityNotFoundError("tenant", config.MASTER_TENANT_ID)

            candidates = repo.find_applications_by_pkg(session, pkg)
            candidate_ids = [a.id for a in candidates]
            merge = _Merge(
                application=repo.insert_application(
                    session,
                    master.id,
                    pkg=pkg,
                    name=application.name,
                    show_icon=application.show_icon,
                    common=True,
                    system=application.system,
                )
            )
            merge.tenants.update(a.tenant_id for a in candidates)

            _merge_versions(session, merge, candidates, master, file_area)
            _repoint_application_links(session, merge, candidate_ids)
            _repoint_version_links(session, merge, candidate_ids)
            _repoint_configurations(session, merge)

            for candidate in candidates:
                repo.delete_application(session, candidate)
            recalculate_latest_version(session, merge.application.id)
            links.recheck_tenants(session, merge.tenants)

            result = PromotionResult(
                application=ApplicationOut.model_validate(merge.application),
                versions=[ApplicationVersionOut.model_validate(v) for v in merge.new_versions],
                discarded_versions=merge.discarded,
                queued_file_moves=len(merge.file_moves),
            )
            logger.info(
                "Promoted %s to common application %s: merged %s applications, %s versions, %s discarded",
                pkg,
                merge.application.id,
                len(candidates),
                len(merge.new_versions),
                len(merge.discarded),
            )

    if merge.file_moves:
        moves = list(merge.file_moves)
        (task_runner or background.submit_task)(lambda: move_files(file_area, moves))
    return result
