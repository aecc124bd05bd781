"""Configuration link propagator.

Keeps configuration links consistent with catalog changes: applies link edits, runs the
auto-update cascade when a version is inserted, and recomputes the derived validity flags of a
tenant's configurations. Every write path that changes links must end with
recheck_configurations for each affected tenant.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from apps.catalog.models.application_version import ApplicationVersion
from apps.catalog.models.configuration_link import LinkAction
from apps.catalog.schemas.requests import LinkItem, VersionLinkItem
from apps.catalog.schemas.responses import ConfigurationLinkOut
from apps.catalog.services import repo
from apps.catalog.services.conflict import require_visible_application, require_visible_version
from apps.catalog.services.errors import EntityNotFoundError
from apps.catalog.services.tenant_context import TenantContext, require_context

logger = logging.getLogger(__name__)

__all__ = [
    "LinkAction",
    "auto_update_to_version",
    "get_application_configurations",
    "get_application_version_configurations",
    "recheck_configurations",
    "update_application_configurations",
    "update_application_version_configurations",
]


def _require_configuration(session: Session, tenant_id: str, configuration_id: int):
    configuration = repo.get_configuration(session, tenant_id, configuration_id)
    if configuration is None:
        raise EntityNotFoundError("configuration", configuration_id)
    return configuration


def recheck_configurations(session: Session, tenant_id: str) -> int:
    """Recompute main_app_valid, content_app_valid and kiosk_mode_valid for every configuration of tenant.

    Main (content) app is valid when unset or when its application is installed in the
    configuration at either link level. Kiosk mode is valid when off or when a valid content app
    is set. Returns the number of configurations whose flags changed.
    """
    configurations = repo.list_configurations(session, tenant_id)
    installed = repo.get_installed_application_ids(session, tenant_id)
    app_of_version = repo.get_version_application_ids(
        session,
        [v for c in configurations for v in (c.main_app_version_id, c.content_app_version_id) if v is not None],
    )

    changed = 0
    for configuration in configurations:
        apps = installed.get(configuration.id, set())
        main_valid = (
            configuration.main_app_version_id is None
            or app_of_version.get(configuration.main_app_version_id) in apps
        )
        content_valid = (
            configuration.content_app_version_id is None
            or app_of_version.get(configuration.content_app_version_id) in apps
        )
        kiosk_valid = not configuration.kiosk_mode or (
            configuration.content_app_version_id is not None and content_valid
        )
        flags = (main_valid, content_valid, kiosk_valid)
        if flags != (configuration.main_app_valid, configuration.content_app_valid, configuration.kiosk_mode_valid):
            configuration.main_app_valid, configuration.content_app_valid, configuration.kiosk_mode_valid = flags
            changed += 1
    session.flush()
    logger.debug("Rechecked %s configurations of tenant %s, %s changed", len(configurations), tenant_id, changed)
    return changed


def recheck_tenants(session: Session, tenant_ids: Iterable[str]) -> None:
    for tenant_id in sorted(set(tenant_ids)):
        recheck_configurations(session, tenant_id)


def auto_update_to_version(session: Session, version: ApplicationVersion) -> int:
    """Re-point auto-update links of the version's application (all tenants) to version.

    Also moves the main/content app of those configurations to version when it currently points
    at another version of the same application. Runs inside the insertion transaction.
    """
    links = repo.auto_update_application_links(session, version.application_id, version.id)
    main = repo.auto_update_main_applications(session, version.application_id, version.id)
    content = repo.auto_update_content_applications(session, version.application_id, version.id)
    logger.debug(
        "Auto-update to version %s (%s %s): %s links, %s main apps, %s content apps",
        version.id,
        version.pkg,
        version.version,
        links,
        main,
        content,
    )
    return links + main + content


def update_application_configurations(
    session: Session,
    ctx: TenantContext,
    application_id: int,
    links: list[LinkItem],
) -> None:
    """Apply application-level link edits of the caller's tenant, then recheck its configurations."""
    ctx = require_context(ctx)
    application = require_visible_application(session, ctx, application_id)

    for item in links:
        _require_configuration(session, ctx.tenant_id, item.configuration_id)
        if item.id is not None:
            link = repo.get_application_link(session, ctx.tenant_id, item.id)
            if link is None or link.application_id != application.id:
                raise EntityNotFoundError("configuration link", item.id)
        else:
            link = repo.get_application_link_for_configuration(
                session, ctx.tenant_id, item.configuration_id, application.id
            )

        if item.action == LinkAction.REMOVE:
            if link is not None:
                repo.delete_link(session, link)
            continue

        if link is None:
            repo.insert_application_link(
                session,
                ctx.tenant_id,
                configuration_id=item.configuration_id,
                application_id=application.id,
                application_version_id=application.latest_version_id,
                action=item.action,
                auto_update=item.auto_update,
            )
        else:
            link.action = int(item.action)
            link.auto_update = item.auto_update

    recheck_configurations(session, ctx.tenant_id)
    logger.info("Updated %s configuration links of application %s (tenant=%s)", len(links), application.id, ctx.tenant_id)


def update_application_version_configurations(
    session: Session,
    ctx: TenantContext,
    version_id: int,
    links: list[VersionLinkItem],
) -> None:
    """Replace the caller's version-level links of version_id.

    INSTALL items first demote INSTALL links on sibling versions to PROHIBIT so that at most one
    version of an application is installed per configuration.
    """
    ctx = require_context(ctx)
    version = require_visible_version(session, ctx, version_id)

    by_configuration = {item.configuration_id: item for item in links}
    repo.delete_version_links(session, ctx.tenant_id, version.id)
    for configuration_id, item in by_configuration.items():
        if item.action == LinkAction.REMOVE:
            continue
        _require_configuration(session, ctx.tenant_id, configuration_id)
        if item.action == LinkAction.INSTALL:
            demoted = repo.uninstall_other_versions(
                session, ctx.tenant_id, configuration_id, version.application_id, version.id
            )
            if demoted:
                logger.debug("Demoted %s sibling installs in configuration %s", demoted, configuration_id)
        repo.insert_version_link(
            session,
            ctx.tenant_id,
            configuration_id=configuration_id,
            application_id=version.application_id,
            application_version_id=version.id,
            action=item.action,
        )

    recheck_configurations(session, ctx.tenant_id)
    logger.info("Replaced version links of version %s (tenant=%s)", version.id, ctx.tenant_id)


def get_application_configurations(ctx: TenantContext, application_id: int) -> list[ConfigurationLinkOut]:
    """Every configuration of the caller's tenant with its link to the application, if any."""
    ctx = require_context(ctx)
    with repo.transaction() as session:
        require_visible_application(session, ctx, application_id)
        by_configuration = {
            link.configuration_id: link for link in repo.list_application_links(session, ctx.tenant_id, application_id)
        }
        out = []
        for configuration in repo.list_configurations(session, ctx.tenant_id):
            link = by_configuration.get(configuration.id)
            out.append(
                ConfigurationLinkOut(
                    id=link.id if link else None,
                    configuration_id=configuration.id,
                    configuration_name=configuration.name,
                    application_id=application_id,
                    application_version_id=link.application_version_id if link else None,
                    action=link.action if link else None,
                    auto_update=link.auto_update if link else False,
                )
            )
        return out


def get_application_version_configurations(ctx: TenantContext, version_id: int) -> list[ConfigurationLinkOut]:
    """Every configuration of the caller's tenant with its link to the version, if any."""
    ctx = require_context(ctx)
    with repo.transaction() as session:
        version = require_visible_version(session, ctx, version_id)
        by_configuration = {link.configuration_id: link for link in repo.list_version_links(session, ctx.tenant_id, version_id)}
        return [
            ConfigurationLinkOut(
                id=by_configuration[c.id].id if c.id in by_configuration else None,
                configuration_id=c.id,
                configuration_name=c.name,
                application_id=version.application_id,
                application_version_id=version.id,
                action=by_configuration[c.id].action if c.id in by_configuration else None,
            )
            for c in repo.list_configurations(session, ctx.tenant_id)
        ]
