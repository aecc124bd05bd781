"""Tenant-scoped SQL helpers. All tenant-scoped queries MUST use these.

Provides:
  - tenant_where(model, tenant_id): binary expression for WHERE model.tenant_id == tenant_id
  - visible_to_tenant(tenant_id): applications owned by the tenant or common
  - select_*_for_tenant(tenant_id): SQLAlchemy Select with tenant filter applied
"""

from sqlalchemy import BinaryExpression, ColumnElement, Select, or_, select

from apps.catalog.models.application import Application
from apps.catalog.models.configuration import Configuration
from apps.catalog.models.configuration_link import ConfigurationApplication, ConfigurationApplicationVersion


def tenant_where(model: type, tenant_id: str) -> BinaryExpression[bool]:
    """Return WHERE clause: model.tenant_id == tenant_id. Use for filters and joins."""
    col = getattr(model, "tenant_id", None)
    if col is None:
        raise ValueError(f"Model {model.__name__} has no tenant_id column")
    return col == tenant_id


def visible_to_tenant(tenant_id: str) -> ColumnElement[bool]:
    """Applications a tenant can see: its own plus every common application."""
    return or_(tenant_where(Application, tenant_id), Application.common.is_(True))


def select_visible_applications_for_tenant(tenant_id: str) -> Select[tuple[Application]]:
    """Select applications visible to tenant. Add .where() for further filters."""
    return select(Application).where(visible_to_tenant(tenant_id))


def select_configuration_for_tenant(tenant_id: str) -> Select[tuple[Configuration]]:
    """Select from configurations with tenant filter. Add .where() for further filters."""
    return select(Configuration).where(tenant_where(Configuration, tenant_id))


def select_application_link_for_tenant(tenant_id: str) -> Select[tuple[ConfigurationApplication]]:
    """Select from configuration_applications with tenant filter."""
    return select(ConfigurationApplication).where(tenant_where(ConfigurationApplication, tenant_id))


def select_version_link_for_tenant(tenant_id: str) -> Select[tuple[ConfigurationApplicationVersion]]:
    """Select from configuration_application_versions with tenant filter."""
    return select(ConfigurationApplicationVersion).where(tenant_where(ConfigurationApplicationVersion, tenant_id))
