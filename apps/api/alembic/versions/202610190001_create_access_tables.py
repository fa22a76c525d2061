"""create access tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "crm_user",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("username", sa.String(length=128), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=64), nullable=False, server_default="default"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("reports_to", sa.String(length=64), nullable=True),
        sa.Column("department", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_user_reports_to", "crm_user", ["reports_to"], unique=False)
    op.create_index("ix_crm_user_role", "crm_user", ["role"], unique=False)

    op.create_table(
        "access_user_restriction",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("admin_id", sa.String(length=64), nullable=False),
        sa.Column("restricted_user_id", sa.String(length=64), nullable=False),
        sa.Column("restricted_by", sa.String(length=64), nullable=False),
        sa.Column("restriction_type", sa.String(length=64), nullable=False, server_default="user_access"),
        sa.Column("restriction_scope", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_access_user_restriction_admin_id",
        "access_user_restriction",
        ["admin_id"],
        unique=False,
    )
    op.create_index(
        "ix_access_user_restriction_restricted_user_id",
        "access_user_restriction",
        ["restricted_user_id"],
        unique=False,
    )
    op.create_index(
        "uq_access_user_restriction_active_pair",
        "access_user_restriction",
        ["admin_id", "restricted_user_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active"),
    )


def downgrade() -> None:
    op.drop_index("uq_access_user_restriction_active_pair", table_name="access_user_restriction")
    op.drop_index("ix_access_user_restriction_restricted_user_id", table_name="access_user_restriction")
    op.drop_index("ix_access_user_restriction_admin_id", table_name="access_user_restriction")
    op.drop_table("access_user_restriction")

    op.drop_index("ix_crm_user_role", table_name="crm_user")
    op.drop_index("ix_crm_user_reports_to", table_name="crm_user")
    op.drop_table("crm_user")
