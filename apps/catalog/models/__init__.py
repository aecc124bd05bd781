"""SQLAlchemy models. Tenant-owned tables carry tenant_id; tenant-scoped queries MUST filter by it."""

from apps.catalog.models.application import Application
from apps.catalog.models.application_version import ApplicationVersion
from apps.catalog.models.base import Base
from apps.catalog.models.configuration import Configuration
from apps.catalog.models.configuration_link import (
    ConfigurationApplication,
    ConfigurationApplicationVersion,
    LinkAction,
)
from apps.catalog.models.tenant import Tenant

__all__ = [
    "Application",
    "ApplicationVersion",
    "Base",
    "Configuration",
    "ConfigurationApplication",
    "ConfigurationApplicationVersion",
    "LinkAction",
    "Tenant",
]
