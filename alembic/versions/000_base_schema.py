"""Base schema: tenants, applications, application_versions, configurations, configuration_applications,
configuration_application_versions.

Package uniqueness: a private package id belongs to at most one tenant, a common one is global.
Both are partial unique indexes on applications.pkg.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "000_base"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1) tenants
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("files_dir", sa.String(255), nullable=False),
        sa.Column("is_master", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )

    # 2) applications (latest_version_id has no FK; recomputed after every version change)
    op.create_table(
        "applications",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(255), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("pkg", sa.String(255), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("show_icon", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("common", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("latest_version_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_applications_tenant_id", "applications", ["tenant_id", "id"], unique=False, if_not_exists=True)
    op.create_index(
        "uq_applications_private_pkg",
        "applications",
        ["pkg"],
        unique=True,
        postgresql_where=sa.text("NOT common"),
        if_not_exists=True,
    )
    op.create_index(
        "uq_applications_common_pkg",
        "applications",
        ["pkg"],
        unique=True,
        postgresql_where=sa.text("common"),
        if_not_exists=True,
    )

    # 3) application_versions
    op.create_table(
        "application_versions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "application_id",
            sa.BigInteger(),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("pkg", sa.String(255), nullable=False),
        sa.Column("version", sa.String(255), nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("deletion_prohibited", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("common", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("apk_hash", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.UniqueConstraint("pkg", "version", "common", name="uq_application_versions_pkg_version"),
    )
    op.create_index(
        "ix_application_versions_application_id",
        "application_versions",
        ["application_id", "id"],
        unique=False,
        if_not_exists=True,
    )

    # 4) configurations
    op.create_table(
        "configurations",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(255), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("main_app_version_id", sa.BigInteger(), sa.ForeignKey("application_versions.id"), nullable=True),
        sa.Column("content_app_version_id", sa.BigInteger(), sa.ForeignKey("application_versions.id"), nullable=True),
        sa.Column("kiosk_mode", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("main_app_valid", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("content_app_valid", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("kiosk_mode_valid", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_configurations_tenant_id", "configurations", ["tenant_id", "id"], unique=False, if_not_exists=True)

    # 5) configuration_applications (application-level links)
    op.create_table(
        "configuration_applications",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(255), nullable=False),
        sa.Column(
            "configuration_id",
            sa.BigInteger(),
            sa.ForeignKey("configurations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("application_id", sa.BigInteger(), sa.ForeignKey("applications.id"), nullable=False),
        sa.Column("application_version_id", sa.BigInteger(), sa.ForeignKey("application_versions.id"), nullable=True),
        sa.Column("action", sa.Integer(), nullable=False),
        sa.Column("auto_update", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("configuration_id", "application_id", name="uq_configuration_applications_cfg_app"),
    )
    op.create_index(
        "ix_configuration_applications_tenant_id",
        "configuration_applications",
        ["tenant_id", "id"],
        unique=False,
        if_not_exists=True,
    )

    # 6) configuration_application_versions (version-level links)
    op.create_table(
        "configuration_application_versions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(255), nullable=False),
        sa.Column(
            "configuration_id",
            sa.BigInteger(),
            sa.ForeignKey("configurations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("application_id", sa.BigInteger(), sa.ForeignKey("applications.id"), nullable=False),
        sa.Column("application_version_id", sa.BigInteger(), sa.ForeignKey("application_versions.id"), nullable=False),
        sa.Column("action", sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            "configuration_id", "application_version_id", name="uq_configuration_application_versions_cfg_ver"
        ),
    )
    op.create_index(
        "ix_configuration_application_versions_tenant_id",
        "configuration_application_versions",
        ["tenant_id", "id"],
        unique=False,
        if_not_exists=True,
    )
    op.create_index(
        "ix_configuration_application_versions_cfg_app",
        "configuration_application_versions",
        ["configuration_id", "application_id"],
        unique=False,
        if_not_exists=True,
    )


def downgrade() -> None:
    op.drop_index("ix_configuration_application_versions_cfg_app", table_name="configuration_application_versions")
    op.drop_index("ix_configuration_application_versions_tenant_id", table_name="configuration_application_versions")
    op.drop_table("configuration_application_versions")
    op.drop_index("ix_configuration_applications_tenant_id", table_name="configuration_applications")
    op.drop_table("configuration_applications")
    op.drop_index("ix_configurations_tenant_id", table_name="configurations")
    op.drop_table("configurations")
    op.drop_index("ix_application_versions_application_id", table_name="application_versions")
    op.drop_table("application_versions")
    op.drop_index("uq_applications_common_pkg", table_name="applications")
    op.drop_index("uq_applications_private_pkg", table_name="applications")
    op.drop_index("ix_applications_tenant_id", table_name="applications")
    op.drop_table("applications")
    op.drop_table("tenants")
