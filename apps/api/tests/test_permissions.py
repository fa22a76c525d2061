from __future__ import annotations

import pytest

from crm_access.access.permissions import PermissionResolver, permission_resolver
from crm_access.access.roles import (
    ROLE_CAPABILITIES,
    UNKNOWN_FEATURE_DESCRIPTION,
    Feature,
    Role,
    normalize_key,
    resolve_feature,
    resolve_role,
)


def test_every_role_has_a_capability_row() -> None:
    assert set(ROLE_CAPABILITIES) == set(Role)


def test_only_admin_can_manage_restrictions() -> None:
    allowed = [role for role in Role if permission_resolver.has_permission(role, Feature.USER_RESTRICTIONS)]
    assert allowed == [Role.ADMIN]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("  Super Admin ", "super_admin"),
        ("super-admin", "super_admin"),
        ("MANAGER", "manager"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_key(raw: str | None, expected: str) -> None:
    assert normalize_key(raw) == expected


def test_unknown_role_falls_back_to_default_row() -> None:
    assert resolve_role("unknown_role") == Role.DEFAULT
    assert resolve_role(None) == Role.DEFAULT
    assert permission_resolver.has_permission("unknown_role", "dashboard") is True
    assert permission_resolver.has_permission("unknown_role", "lead_management") is False


def test_unknown_feature_is_denied() -> None:
    assert resolve_feature("unknown_feature") is None
    assert permission_resolver.has_permission("manager", "unknown_feature") is False
    assert permission_resolver.has_permission("admin", "unknown_feature") is False
    assert permission_resolver.has_permission("manager", None) is False


def test_role_and_feature_lookups_are_normalized() -> None:
    assert permission_resolver.has_permission(" Manager ", "Lead Management") is True
    assert permission_resolver.has_permission("Team Leader", "settings") is False


def test_check_describes_known_and_unknown_features() -> None:
    known = permission_resolver.check("counselor", "dashboard")
    assert known.allowed is True
    assert known.description == "Main dashboard with overview statistics"

    unknown = permission_resolver.check("counselor", "time_travel")
    assert unknown.feature == "time_travel"
    assert unknown.allowed is False
    assert unknown.description == UNKNOWN_FEATURE_DESCRIPTION


def test_check_many_preserves_request_order() -> None:
    results = permission_resolver.check_many("manager", ["integrations", "dashboard", "nope"])
    assert [(item.feature, item.allowed) for item in results] == [
        ("integrations", False),
        ("dashboard", True),
        ("nope", False),
    ]


def test_resolve_all_partitions_features() -> None:
    resolution = permission_resolver.resolve_all("team_leader")

    assert resolution.role == Role.TEAM_LEADER
    assert resolution.access_level == 50
    assert set(resolution.accessible).isdisjoint(resolution.restricted)
    assert set(resolution.accessible) | set(resolution.restricted) == set(resolution.capabilities)
    assert "lead_management" in resolution.accessible
    assert "documents" in resolution.restricted


def test_resolve_all_for_unknown_role_is_default() -> None:
    resolution = permission_resolver.resolve_all("intern")
    assert resolution.role == Role.DEFAULT
    assert resolution.accessible == ["dashboard", "profile"]


def test_access_levels_rank_roles() -> None:
    assert permission_resolver.access_level("admin") == 110
    assert permission_resolver.access_level("ghost") == 10
    assert permission_resolver.role_at_least("senior_manager", "manager") is True
    assert permission_resolver.role_at_least("counselor", "team_leader") is False


def test_custom_table_missing_row_denies() -> None:
    resolver = PermissionResolver(table={Role.DEFAULT: {Feature.PROFILE: True}})
    assert resolver.has_permission("admin", "profile") is True
    assert resolver.has_permission("admin", "dashboard") is False
