"""Repository layer: tenant-scoped queries and helpers."""

from apps.catalog.repositories.tenant_filters import (
    select_application_link_for_tenant,
    select_configuration_for_tenant,
    select_version_link_for_tenant,
    select_visible_applications_for_tenant,
    tenant_where,
    visible_to_tenant,
)

__all__ = [
    "tenant_where",
    "visible_to_tenant",
    "select_visible_applications_for_tenant",
    "select_configuration_for_tenant",
    "select_application_link_for_tenant",
    "select_version_link_for_tenant",
]
