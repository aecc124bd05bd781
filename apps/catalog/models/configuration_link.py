"""Configuration links: application level and version level."""

import enum

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from apps.catalog.models.base import Base, BigIntId


class LinkAction(enum.IntEnum):
    """Closed set of link action codes. REMOVE only appears in requests; it is never stored."""

    REMOVE = 0
    INSTALL = 1
    PROHIBIT = 2
    PERMIT = 3


class ConfigurationApplication(Base):
    """Zero or one per (configuration, application). application_version_id is the version the link resolves to."""

    __tablename__ = "configuration_applications"
    __table_args__ = (
        UniqueConstraint("configuration_id", "application_id", name="uq_configuration_applications_cfg_app"),
        Index("ix_configuration_applications_tenant_id", "tenant_id", "id"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    configuration_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("configurations.id", ondelete="CASCADE"), nullable=False
    )
    application_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("applications.id"), nullable=False)
    application_version_id: Mapped[int | None] = mapped_column(
        BigIntId, ForeignKey("application_versions.id"), nullable=True
    )
    action: Mapped[int] = mapped_column(Integer, nullable=False)
    auto_update: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class ConfigurationApplicationVersion(Base):
    """One per (configuration, application version). At most one INSTALL per (configuration, application)."""

    __tablename__ = "configuration_application_versions"
    __table_args__ = (
        UniqueConstraint(
            "configuration_id", "application_version_id", name="uq_configuration_application_versions_cfg_ver"
        ),
        Index("ix_configuration_application_versions_tenant_id", "tenant_id", "id"),
        Index("ix_configuration_application_versions_cfg_app", "configuration_id", "application_id"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    configuration_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("configurations.id", ondelete="CASCADE"), nullable=False
    )
    application_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("applications.id"), nullable=False)
    application_version_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("application_versions.id"), nullable=False
    )
    action: Mapped[int] = mapped_column(Integer, nullable=False)
