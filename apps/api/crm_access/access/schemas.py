from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PermissionCheckRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    feature: str
    allowed: bool
    description: str


class BulkPermissionCheckRequest(BaseModel):
    features: list[str] = Field(min_length=1)


class BulkPermissionCheckRead(BaseModel):
    role: str
    results: list[PermissionCheckRead]


class PermissionResolutionRead(BaseModel):
    role: str
    access_level: int
    capabilities: dict[str, bool]
    accessible: list[str]
    restricted: list[str]
    total_features: int
    accessible_count: int
    restricted_count: int


class UserSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str | None
    username: str | None
    email: str | None
    role: str
    department: str | None
    display_name: str


class RestrictionCreate(BaseModel):
    restricted_user_id: str = Field(min_length=1)
    restriction_type: str | None = None
    scope: dict[str, Any] | None = None
    notes: str | None = None


class RestrictionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    restriction_type: str | None = Field(default=None, min_length=1)
    scope: dict[str, Any] | None = None
    notes: str | None = None


class RestrictedUserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str | None
    username: str | None
    email: str | None
    role: str
    department: str | None


class RestrictionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    admin_id: str
    restricted_user_id: str
    restricted_by: str
    restriction_type: str
    scope: dict[str, Any]
    notes: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    restricted_user: RestrictedUserRead | None = None


class HierarchyReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    total_users: int
    active_users: int
    users_with_supervisor: int
    users_without_supervisor: int
    role_counts: dict[str, int]
    direct_subordinates: list[str]
    subordinate_count: int
    supervisor_chain: list[str]
    on_reporting_cycle: bool
    dangling_references: list[str]


class SupervisorValidationRequest(BaseModel):
    user_id: str = Field(min_length=1)
    reports_to: str | None = None


class SupervisorValidationRead(BaseModel):
    user_id: str
    reports_to: str | None
    valid: bool


class AccessResolutionRead(BaseModel):
    actor_id: str
    permissions: PermissionResolutionRead
    assignable_users: list[UserSummaryRead]
    restrictions: list[RestrictionRead]
