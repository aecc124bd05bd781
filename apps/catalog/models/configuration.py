"""configurations model. *_valid flags are derived and recomputed by the tenant recheck."""

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from apps.catalog.models.base import Base, BigIntId


class Configuration(Base):
    __tablename__ = "configurations"
    __table_args__ = (Index("ix_configurations_tenant_id", "tenant_id", "id"),)

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(255), ForeignKey("tenants.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    main_app_version_id: Mapped[int | None] = mapped_column(
        BigIntId, ForeignKey("application_versions.id"), nullable=True
    )
    content_app_version_id: Mapped[int | None] = mapped_column(
        BigIntId, ForeignKey("application_versions.id"), nullable=True
    )
    kiosk_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    main_app_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    content_app_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    kiosk_mode_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=True)
