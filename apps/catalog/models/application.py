"""applications model.

Uniqueness: a private package id belongs to at most one tenant; a common package id is
globally unique. Both are enforced with partial unique indexes on pkg.
"""

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from apps.catalog.models.base import Base, BigIntId


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        Index("ix_applications_tenant_id", "tenant_id", "id"),
        Index(
            "uq_applications_private_pkg",
            "pkg",
            unique=True,
            postgresql_where=text("NOT common"),
            sqlite_where=text("NOT common"),
        ),
        Index(
            "uq_applications_common_pkg",
            "pkg",
            unique=True,
            postgresql_where=text("common"),
            sqlite_where=text("common"),
        ),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(255), ForeignKey("tenants.id"), nullable=False)
    pkg: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    show_icon: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    common: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # No FK: the pointer is recomputed after every version insert/delete
    latest_version_id: Mapped[int | None] = mapped_column(BigIntId, nullable=True)
    created_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=True)

    versions = relationship(
        "ApplicationVersion",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="ApplicationVersion.id",
    )
