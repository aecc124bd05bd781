"""Repository layer. Every function takes the active session as first argument.

RULE: Repo is the ONLY place allowed to run DB reads/writes (session.execute, session.scalars,
get_db). Services open one transaction per logical operation via transaction() and pass the
session down.

GUARD: Tenant-scoped functions MUST call require_tenant_id(tenant_id) before any DB access.
Package lookups (find_*_by_pkg*) are global on purpose: uniqueness spans tenants.
"""

from collections.abc import Iterable, Sequence
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session

from apps.catalog.db import get_db
from apps.catalog.models.application import Application
from apps.catalog.models.application_version import ApplicationVersion
from apps.catalog.models.configuration import Configuration
from apps.catalog.models.configuration_link import (
    ConfigurationApplication,
    ConfigurationApplicationVersion,
    LinkAction,
)
from apps.catalog.models.tenant import Tenant
from apps.catalog.repositories.tenant_filters import (
    select_application_link_for_tenant,
    select_configuration_for_tenant,
    select_version_link_for_tenant,
    select_visible_applications_for_tenant,
    tenant_where,
)
from apps.catalog.services.tenant_guard import require_tenant_id


@contextmanager
def transaction() -> Generator[Session, None, None]:
    """One transaction per logical operation (insert, update, promote). Commits on success.
    Autoflush is on so repo reads and bulk updates see earlier changes of the same operation."""
    with get_db() as session:
        session.autoflush = True
        yield session


def ping(session: Session) -> None:
    """Round-trip to the database (health check)."""
    session.execute(select(1))


# ---------------------------------------------------------------------------
# Tenants
# ---------------------------------------------------------------------------


def get_tenant(session: Session, tenant_id: str | None) -> Tenant | None:
    tenant_id = require_tenant_id(tenant_id)
    return session.get(Tenant, tenant_id)


def insert_tenant(
    session: Session,
    tenant_id: str | None,
    name: str,
    files_dir: str,
    *,
    is_master: bool = False,
) -> Tenant:
    tenant_id = require_tenant_id(tenant_id)
    row = Tenant(id=tenant_id, name=name, files_dir=files_dir, is_master=is_master)
    session.add(row)
    session.flush()
    return row


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------


def get_application(session: Session, application_id: int) -> Application | None:
    return session.get(Application, application_id)


def find_applications_by_pkg(session: Session, pkg: str) -> list[Application]:
    """All applications holding pkg, across tenants. Ordered by id."""
    stmt = select(Application).where(Application.pkg == pkg).order_by(Application.id)
    return list(session.scalars(stmt).all())


def find_versions_by_pkg_and_version(
    session: Session,
    pkg: str,
    version: str,
) -> list[tuple[ApplicationVersion, str]]:
    """Versions holding exactly (pkg, version) in any tenant. Returns (version, owning tenant_id) pairs."""
    stmt = (
        select(ApplicationVersion, Application.tenant_id)
        .join(Application, ApplicationVersion.application_id == Application.id)
        .where(ApplicationVersion.pkg == pkg, ApplicationVersion.version == version)
        .order_by(ApplicationVersion.id)
    )
    return [(row[0], row[1]) for row in session.execute(stmt).all()]


def insert_application(
    session: Session,
    tenant_id: str | None,
    *,
    pkg: str,
    name: str,
    show_icon: bool = True,
    common: bool = False,
    system: bool = False,
) -> Application:
    """Insert an application and flush so its id is assigned."""
    tenant_id = require_tenant_id(tenant_id)
    row = Application(
        tenant_id=tenant_id,
        pkg=pkg,
        name=name,
        show_icon=show_icon,
        common=common,
        system=system,
        latest_version_id=None,
    )
    session.add(row)
    session.flush()
    return row


def delete_application(session: Session, application: Application) -> None:
    """Delete an application; its versions go with it (ORM cascade)."""
    session.delete(application)
    session.flush()


def list_applications_for_tenant(
    session: Session,
    tenant_id: str | None,
    value: str | None = None,
) -> list[Application]:
    """Applications visible to tenant (own + common), optionally filtered by name/pkg substring."""
    tenant_id = require_tenant_id(tenant_id)
    stmt = select_visible_applications_for_tenant(tenant_id)
    if value:
        pattern = f"%{value.strip()}%"
        stmt = stmt.where(or_(Application.name.ilike(pattern), Application.pkg.ilike(pattern)))
    return list(session.scalars(stmt.order_by(Application.name, Application.id)).all())


def list_all_applications(session: Session, value: str | None = None) -> list[Application]:
    """All applications of all tenants. Super-admin listing only."""
    stmt = select(Application)
    if value:
        pattern = f"%{value.strip()}%"
        stmt = stmt.where(or_(Application.name.ilike(pattern), Application.pkg.ilike(pattern)))
    return list(session.scalars(stmt.order_by(Application.name, Application.id)).all())


def find_matching_packages(
    session: Session,
    tenant_id: str | None,
    filter_value: str,
    limit: int,
) -> list[str]:
    """Distinct package ids visible to tenant matching filter_value."""
    tenant_id = require_tenant_id(tenant_id)
    pattern = f"%{filter_value.strip()}%"
    stmt = (
        select_visible_applications_for_tenant(tenant_id)
        .where(Application.pkg.ilike(pattern))
        .with_only_columns(Application.pkg)
        .distinct()
        .order_by(Application.pkg)
        .limit(limit)
    )
    return [r[0] for r in session.execute(stmt).all()]


def find_duplicate_packages(session: Session) -> list[tuple[str, bool, list[int]]]:
    """(pkg, common, application ids) for every package held more than once inside one uniqueness scope.
    Private records of different tenants share one scope."""
    stmt = (
        select(Application.pkg, Application.common, func.count(Application.id))
        .group_by(Application.pkg, Application.common)
        .having(func.count(Application.id) > 1)
        .order_by(Application.pkg)
    )
    out: list[tuple[str, bool, list[int]]] = []
    for pkg, common, _count in session.execute(stmt).all():
        ids_stmt = (
            select(Application.id)
            .where(Application.pkg == pkg, Application.common.is_(bool(common)))
            .order_by(Application.id)
        )
        out.append((pkg, bool(common), list(session.scalars(ids_stmt).all())))
    return out


# ---------------------------------------------------------------------------
# Application versions
# ---------------------------------------------------------------------------


def get_application_version(session: Session, version_id: int) -> ApplicationVersion | None:
    return session.get(ApplicationVersion, version_id)


def list_application_versions(session: Session, application_id: int) -> list[ApplicationVersion]:
    stmt = (
        select(ApplicationVersion)
        .where(ApplicationVersion.application_id == application_id)
        .order_by(ApplicationVersion.id)
    )
    return list(session.scalars(stmt).all())


def list_versions_for_applications(
    session: Session,
    application_ids: Sequence[int],
) -> list[ApplicationVersion]:
    """Versions of all given applications, ordered by (application_id, id)."""
    if not application_ids:
        return []
    stmt = (
        select(ApplicationVersion)
        .where(ApplicationVersion.application_id.in_(list(application_ids)))
        .order_by(ApplicationVersion.application_id, ApplicationVersion.id)
    )
    return list(session.scalars(stmt).all())


def get_version_application_ids(session: Session, version_ids: Iterable[int]) -> dict[int, int]:
    """Map version_id -> application_id."""
    ids = [v for v in set(version_ids) if v is not None]
    if not ids:
        return {}
    stmt = select(ApplicationVersion.id, ApplicationVersion.application_id).where(ApplicationVersion.id.in_(ids))
    return {r[0]: r[1] for r in session.execute(stmt).all()}


def insert_application_version(
    session: Session,
    application: Application,
    *,
    version: str,
    url: str | None = None,
    apk_hash: str | None = None,
    deletion_prohibited: bool = False,
) -> ApplicationVersion:
    """Insert a version under application, copying pkg/common/system from it. Flushes."""
    row = ApplicationVersion(
        application_id=application.id,
        pkg=application.pkg,
        version=version,
        url=url,
        apk_hash=apk_hash,
        deletion_prohibited=deletion_prohibited,
        common=application.common,
        system=application.system,
    )
    session.add(row)
    session.flush()
    return row


def delete_application_version(session: Session, version: ApplicationVersion) -> None:
    session.delete(version)
    session.flush()


def sync_version_flags(session: Session, application: Application) -> int:
    """Copy pkg/common/system from application onto its versions. Returns rows updated."""
    stmt = (
        update(ApplicationVersion)
        .where(ApplicationVersion.application_id == application.id)
        .values(pkg=application.pkg, common=application.common, system=application.system)
        .execution_options(synchronize_session="fetch")
    )
    result = session.execute(stmt)
    return result.rowcount or 0


# ---------------------------------------------------------------------------
# Configurations
# ---------------------------------------------------------------------------


def insert_configuration(
    session: Session,
    tenant_id: str | None,
    name: str,
    *,
    main_app_version_id: int | None = None,
    content_app_version_id: int | None = None,
    kiosk_mode: bool = False,
) -> Configuration:
    tenant_id = require_tenant_id(tenant_id)
    row = Configuration(
        tenant_id=tenant_id,
        name=name,
        main_app_version_id=main_app_version_id,
        content_app_version_id=content_app_version_id,
        kiosk_mode=kiosk_mode,
    )
    session.add(row)
    session.flush()
    return row


def get_configuration(session: Session, tenant_id: str | None, configuration_id: int) -> Configuration | None:
    tenant_id = require_tenant_id(tenant_id)
    stmt = select_configuration_for_tenant(tenant_id).where(Configuration.id == configuration_id)
    return session.scalars(stmt).first()


def list_configurations(session: Session, tenant_id: str | None) -> list[Configuration]:
    tenant_id = require_tenant_id(tenant_id)
    stmt = select_configuration_for_tenant(tenant_id).order_by(Configuration.name, Configuration.id)
    return list(session.scalars(stmt).all())


def list_configurations_referencing_versions(
    session: Session,
    version_ids: Sequence[int],
) -> list[Configuration]:
    """Configurations of any tenant whose main or content app is one of version_ids."""
    if not version_ids:
        return []
    ids = list(version_ids)
    stmt = (
        select(Configuration)
        .where(or_(Configuration.main_app_version_id.in_(ids), Configuration.content_app_version_id.in_(ids)))
        .order_by(Configuration.id)
    )
    return list(session.scalars(stmt).all())


# ---------------------------------------------------------------------------
# Configuration links
# ---------------------------------------------------------------------------


def is_application_version_used(session: Session, version_id: int) -> bool:
    """True if any configuration (any tenant, either link level, main or content app) references the version."""
    checks = (
        select(ConfigurationApplication.id).where(ConfigurationApplication.application_version_id == version_id),
        select(ConfigurationApplicationVersion.id).where(
            ConfigurationApplicationVersion.application_version_id == version_id
        ),
        select(Configuration.id).where(
            or_(Configuration.main_app_version_id == version_id, Configuration.content_app_version_id == version_id)
        ),
    )
    return any(session.execute(stmt.limit(1)).first() is not None for stmt in checks)


def is_application_used(session: Session, application_id: int) -> bool:
    """True if any configuration references the application or one of its versions."""
    checks = (
        select(ConfigurationApplication.id).where(ConfigurationApplication.application_id == application_id),
        select(ConfigurationApplicationVersion.id).where(
            ConfigurationApplicationVersion.application_id == application_id
        ),
    )
    if any(session.execute(stmt.limit(1)).first() is not None for stmt in checks):
        return True
    version_ids = select(ApplicationVersion.id).where(ApplicationVersion.application_id == application_id)
    stmt = select(Configuration.id).where(
        or_(Configuration.main_app_version_id.in_(version_ids), Configuration.content_app_version_id.in_(version_ids))
    )
    return session.execute(stmt.limit(1)).first() is not None


def list_application_links(
    session: Session,
    tenant_id: str | None,
    application_id: int,
) -> list[ConfigurationApplication]:
    tenant_id = require_tenant_id(tenant_id)
    stmt = (
        select_application_link_for_tenant(tenant_id)
        .where(ConfigurationApplication.application_id == application_id)
        .order_by(ConfigurationApplication.configuration_id)
    )
    return list(session.scalars(stmt).all())


def get_application_link(
    session: Session,
    tenant_id: str | None,
    link_id: int,
) -> ConfigurationApplication | None:
    tenant_id = require_tenant_id(tenant_id)
    stmt = select_application_link_for_tenant(tenant_id).where(ConfigurationApplication.id == link_id)
    return session.scalars(stmt).first()


def get_application_link_for_configuration(
    session: Session,
    tenant_id: str | None,
    configuration_id: int,
    application_id: int,
) -> ConfigurationApplication | None:
    tenant_id = require_tenant_id(tenant_id)
    stmt = select_application_link_for_tenant(tenant_id).where(
        ConfigurationApplication.configuration_id == configuration_id,
        ConfigurationApplication.application_id == application_id,
    )
    return session.scalars(stmt).first()


def insert_application_link(
    session: Session,
    tenant_id: str | None,
    *,
    configuration_id: int,
    application_id: int,
    application_version_id: int | None,
    action: int,
    auto_update: bool = False,
) -> ConfigurationApplication:
    tenant_id = require_tenant_id(tenant_id)
    row = ConfigurationApplication(
        tenant_id=tenant_id,
        configuration_id=configuration_id,
        application_id=application_id,
        application_version_id=application_version_id,
        action=int(action),
        auto_update=auto_update,
    )
    session.add(row)
    session.flush()
    return row


def delete_link(session: Session, link: ConfigurationApplication | ConfigurationApplicationVersion) -> None:
    session.delete(link)
    session.flush()


def list_version_links(
    session: Session,
    tenant_id: str | None,
    version_id: int,
) -> list[ConfigurationApplicationVersion]:
    tenant_id = require_tenant_id(tenant_id)
    stmt = (
        select_version_link_for_tenant(tenant_id)
        .where(ConfigurationApplicationVersion.application_version_id == version_id)
        .order_by(ConfigurationApplicationVersion.configuration_id)
    )
    return list(session.scalars(stmt).all())


def delete_version_links(session: Session, tenant_id: str | None, version_id: int) -> int:
    """Delete tenant's version-level links of version_id. Returns count deleted."""
    tenant_id = require_tenant_id(tenant_id)
    stmt = delete(ConfigurationApplicationVersion).where(
        tenant_where(ConfigurationApplicationVersion, tenant_id),
        ConfigurationApplicationVersion.application_version_id == version_id,
    )
    result = session.execute(stmt)
    return result.rowcount or 0


def insert_version_link(
    session: Session,
    tenant_id: str | None,
    *,
    configuration_id: int,
    application_id: int,
    application_version_id: int,
    action: int,
) -> ConfigurationApplicationVersion:
    tenant_id = require_tenant_id(tenant_id)
    row = ConfigurationApplicationVersion(
        tenant_id=tenant_id,
        configuration_id=configuration_id,
        application_id=application_id,
        application_version_id=application_version_id,
        action=int(action),
    )
    session.add(row)
    session.flush()
    return row


def uninstall_other_versions(
    session: Session,
    tenant_id: str | None,
    configuration_id: int,
    application_id: int,
    version_id: int,
) -> int:
    """Demote INSTALL links on sibling versions of application in configuration to PROHIBIT. Returns count."""
    tenant_id = require_tenant_id(tenant_id)
    stmt = (
        update(ConfigurationApplicationVersion)
        .where(
            tenant_where(ConfigurationApplicationVersion, tenant_id),
            ConfigurationApplicationVersion.configuration_id == configuration_id,
            ConfigurationApplicationVersion.application_id == application_id,
            ConfigurationApplicationVersion.application_version_id != version_id,
            ConfigurationApplicationVersion.action == int(LinkAction.INSTALL),
        )
        .values(action=int(LinkAction.PROHIBIT))
        .execution_options(synchronize_session="fetch")
    )
    result = session.execute(stmt)
    return result.rowcount or 0


def auto_update_application_links(session: Session, application_id: int, version_id: int) -> int:
    """Re-point auto-update application links (all tenants) of application to version_id."""
    stmt = (
        update(ConfigurationApplication)
        .where(
            ConfigurationApplication.application_id == application_id,
            ConfigurationApplication.auto_update.is_(True),
        )
        .values(application_version_id=version_id)
        .execution_options(synchronize_session="fetch")
    )
    result = session.execute(stmt)
    return result.rowcount or 0


def _auto_update_configuration_column(session: Session, column, application_id: int, version_id: int) -> int:
    app_version_ids = select(ApplicationVersion.id).where(ApplicationVersion.application_id == application_id)
    auto_update_configs = select(ConfigurationApplication.configuration_id).where(
        ConfigurationApplication.application_id == application_id,
        ConfigurationApplication.auto_update.is_(True),
    )
    stmt = (
        update(Configuration)
        .where(
            and_(
                column.in_(app_version_ids),
                column != version_id,
                Configuration.id.in_(auto_update_configs),
            )
        )
        .values({column.key: version_id})
        .execution_options(synchronize_session="fetch")
    )
    result = session.execute(stmt)
    return result.rowcount or 0


def auto_update_main_applications(session: Session, application_id: int, version_id: int) -> int:
    """Re-point main app of auto-update configurations using application to version_id."""
    return _auto_update_configuration_column(session, Configuration.main_app_version_id, application_id, version_id)


def auto_update_content_applications(session: Session, application_id: int, version_id: int) -> int:
    """Re-point content app of auto-update configurations using application to version_id."""
    return _auto_update_configuration_column(
        session, Configuration.content_app_version_id, application_id, version_id
    )


def list_application_links_for_applications(
    session: Session,
    application_ids: Sequence[int],
) -> list[ConfigurationApplication]:
    """Application-level links of all tenants for the given applications, ordered by id."""
    if not application_ids:
        return []
    stmt = (
        select(ConfigurationApplication)
        .where(ConfigurationApplication.application_id.in_(list(application_ids)))
        .order_by(ConfigurationApplication.id)
    )
    return list(session.scalars(stmt).all())


def list_version_links_for_applications(
    session: Session,
    application_ids: Sequence[int],
) -> list[ConfigurationApplicationVersion]:
    """Version-level links of all tenants for the given applications, ordered by id."""
    if not application_ids:
        return []
    stmt = (
        select(ConfigurationApplicationVersion)
        .where(ConfigurationApplicationVersion.application_id.in_(list(application_ids)))
        .order_by(ConfigurationApplicationVersion.id)
    )
    return list(session.scalars(stmt).all())


def get_installed_application_ids(session: Session, tenant_id: str | None) -> dict[int, set[int]]:
    """Map configuration_id -> application ids with an INSTALL link (either level) for tenant."""
    tenant_id = require_tenant_id(tenant_id)
    install = int(LinkAction.INSTALL)
    app_stmt = (
        select_application_link_for_tenant(tenant_id)
        .where(ConfigurationApplication.action == install)
        .with_only_columns(ConfigurationApplication.configuration_id, ConfigurationApplication.application_id)
    )
    ver_stmt = (
        select_version_link_for_tenant(tenant_id)
        .where(ConfigurationApplicationVersion.action == install)
        .with_only_columns(
            ConfigurationApplicationVersion.configuration_id, ConfigurationApplicationVersion.application_id
        )
    )
    out: dict[int, set[int]] = {}
    for stmt in (app_stmt, ver_stmt):
        for configuration_id, application_id in session.execute(stmt).all():
            out.setdefault(configuration_id, set()).add(application_id)
    return out


def list_auto_update_tenants(session: Session, application_id: int) -> list[str]:
    """Tenants holding an auto-update link to application."""
    stmt = (
        select(ConfigurationApplication.tenant_id)
        .where(
            ConfigurationApplication.application_id == application_id,
            ConfigurationApplication.auto_update.is_(True),
        )
        .distinct()
    )
    return list(session.scalars(stmt).all())
