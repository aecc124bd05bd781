"""application_versions model. pkg, common and system are denormalized from the parent application."""

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from apps.catalog.models.base import Base, BigIntId


class ApplicationVersion(Base):
    __tablename__ = "application_versions"
    __table_args__ = (
        UniqueConstraint("pkg", "version", "common", name="uq_application_versions_pkg_version"),
        Index("ix_application_versions_application_id", "application_id", "id"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    application_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False
    )
    pkg: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    deletion_prohibited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    common: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    apk_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=True)

    application = relationship("Application", back_populates="versions")
