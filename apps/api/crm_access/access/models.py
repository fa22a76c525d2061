from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from crm_access.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DirectoryUser(Base):
    __tablename__ = "crm_user"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    username: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(64), nullable=False, default="default", server_default="default")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    # no foreign key: the directory may hold dangling supervisor ids
    reports_to: Mapped[str | None] = mapped_column(String(64), nullable=True)
    department: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class UserRestriction(Base):
    __tablename__ = "access_user_restriction"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    admin_id: Mapped[str] = mapped_column(String(64), nullable=False)
    restricted_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    restricted_by: Mapped[str] = mapped_column(String(64), nullable=False)
    restriction_type: Mapped[str] = mapped_column(
        String(64), nullable=False, default="user_access", server_default="user_access"
    )
    restriction_scope: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


Index("ix_crm_user_reports_to", DirectoryUser.reports_to)
Index("ix_crm_user_role", DirectoryUser.role)
Index("ix_access_user_restriction_admin_id", UserRestriction.admin_id)
Index("ix_access_user_restriction_restricted_user_id", UserRestriction.restricted_user_id)
Index(
    "uq_access_user_restriction_active_pair",
    UserRestriction.admin_id,
    UserRestriction.restricted_user_id,
    unique=True,
    sqlite_where=text("is_active"),
    postgresql_where=text("is_active"),
)
