"""Static role capability table.

Roles and features are closed enumerations. Lookups are total: an
unrecognised role resolves to ``Role.DEFAULT`` and an unrecognised feature
resolves to ``None``, which every capability query treats as a deny.
"""

from __future__ import annotations

import re
from enum import StrEnum


class Role(StrEnum):
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    SENIOR_MANAGER = "senior_manager"
    MANAGER = "manager"
    TEAM_LEADER = "team_leader"
    COUNSELOR = "counselor"
    DEFAULT = "default"


class Feature(StrEnum):
    DASHBOARD = "dashboard"
    CRM_PIPELINE = "crm_pipeline"
    LEAD_MANAGEMENT = "lead_management"
    LEAD_MONITORING = "lead_monitoring"
    FACEBOOK_INTEGRATION = "facebook_integration"
    UNIFIED_INBOX = "unified_inbox"
    COMMUNICATIONS_HUB = "communications_hub"
    COURSE_ENROLLMENTS = "course_enrollments"
    CRM_ANALYTICS = "crm_analytics"
    DOCUMENTS = "documents"
    AUTOMATIONS = "automations"
    INTEGRATIONS = "integrations"
    DATA_EXPORT = "data_export"
    PROFILE = "profile"
    USER_MANAGEMENT = "user_management"
    USER_RESTRICTIONS = "user_restrictions"
    BRANCH_MANAGEMENT = "branch_management"
    SUPER_ADMIN_CONTROL = "super_admin_control"
    SETTINGS = "settings"


_STAFF_FEATURES = frozenset(Feature) - {
    Feature.USER_RESTRICTIONS,
    Feature.BRANCH_MANAGEMENT,
    Feature.SUPER_ADMIN_CONTROL,
}


def _row(*denied: Feature) -> dict[Feature, bool]:
    return {feature: feature not in denied for feature in Feature if feature in _STAFF_FEATURES}


ROLE_CAPABILITIES: dict[Role, dict[Feature, bool]] = {
    # admin is the only role with the restriction/branch controls
    Role.ADMIN: {feature: True for feature in Feature},
    Role.SUPER_ADMIN: _row(),
    Role.SENIOR_MANAGER: _row(),
    Role.MANAGER: _row(Feature.FACEBOOK_INTEGRATION, Feature.INTEGRATIONS),
    Role.TEAM_LEADER: _row(
        Feature.FACEBOOK_INTEGRATION,
        Feature.DOCUMENTS,
        Feature.AUTOMATIONS,
        Feature.INTEGRATIONS,
        Feature.USER_MANAGEMENT,
        Feature.SETTINGS,
    ),
    Role.COUNSELOR: _row(
        Feature.FACEBOOK_INTEGRATION,
        Feature.DOCUMENTS,
        Feature.AUTOMATIONS,
        Feature.INTEGRATIONS,
        Feature.USER_MANAGEMENT,
        Feature.SETTINGS,
    ),
    Role.DEFAULT: {
        feature: feature in {Feature.DASHBOARD, Feature.PROFILE} for feature in Feature if feature in _STAFF_FEATURES
    },
}

FEATURE_DESCRIPTIONS: dict[Feature, str] = {
    Feature.DASHBOARD: "Main dashboard with overview statistics",
    Feature.CRM_PIPELINE: "View and manage sales pipeline stages",
    Feature.LEAD_MANAGEMENT: "Create, edit, and manage leads",
    Feature.LEAD_MONITORING: "Monitor lead progress and activities",
    Feature.FACEBOOK_INTEGRATION: "Facebook Ads and Lead Gen integration",
    Feature.UNIFIED_INBOX: "Centralized message management",
    Feature.COMMUNICATIONS_HUB: "Email, WhatsApp, and call management",
    Feature.COURSE_ENROLLMENTS: "Student enrollment and course management",
    Feature.CRM_ANALYTICS: "Reports and analytics dashboard",
    Feature.DOCUMENTS: "Document management and file uploads",
    Feature.AUTOMATIONS: "Workflow automation and triggers",
    Feature.INTEGRATIONS: "Third-party integrations management",
    Feature.DATA_EXPORT: "Export data to various formats",
    Feature.PROFILE: "User profile management",
    Feature.USER_MANAGEMENT: "Create and manage team members",
    Feature.USER_RESTRICTIONS: "Restrict user access for super admins",
    Feature.BRANCH_MANAGEMENT: "Manage branch access and restrictions",
    Feature.SUPER_ADMIN_CONTROL: "Control super admin permissions and access",
    Feature.SETTINGS: "System settings and configuration",
}

UNKNOWN_FEATURE_DESCRIPTION = "Unknown feature"

# Higher numbers rank above lower ones. Used for coarse comparisons only.
ROLE_ACCESS_LEVELS: dict[Role, int] = {
    Role.ADMIN: 110,
    Role.SUPER_ADMIN: 100,
    Role.SENIOR_MANAGER: 90,
    Role.MANAGER: 70,
    Role.TEAM_LEADER: 50,
    Role.COUNSELOR: 30,
    Role.DEFAULT: 10,
}

_NON_KEY_CHAR_RE = re.compile(r"[^a-z_]")


def normalize_key(value: str | None) -> str:
    if not value:
        return ""
    return _NON_KEY_CHAR_RE.sub("_", value.strip().lower())


def resolve_role(value: str | Role | None) -> Role:
    try:
        return Role(normalize_key(value))
    except ValueError:
        return Role.DEFAULT


def resolve_feature(value: str | Feature | None) -> Feature | None:
    try:
        return Feature(normalize_key(value))
    except ValueError:
        return None


def capabilities_for(role: str | Role | None) -> dict[Feature, bool]:
    return ROLE_CAPABILITIES[resolve_role(role)]


def describe_feature(feature: str | Feature | None) -> str:
    resolved = resolve_feature(feature)
    if resolved is None:
        return UNKNOWN_FEATURE_DESCRIPTION
    return FEATURE_DESCRIPTIONS[resolved]
