from crm_access.access.assignment import Actor, AssignmentResolver, UserSummary
from crm_access.access.directory import DbDirectory, Directory, InMemoryDirectory, UserRecord, UserStatus
from crm_access.access.errors import (
    AccessError,
    ConflictError,
    ForbiddenError,
    InvalidReferenceError,
    NotFoundError,
    UnavailableError,
)
from crm_access.access.hierarchy import HierarchyReport, HierarchyResolver
from crm_access.access.permissions import PermissionCheck, PermissionResolution, PermissionResolver
from crm_access.access.restrictions import (
    DbRestrictionStore,
    InMemoryRestrictionStore,
    RestrictionEngine,
    RestrictionRecord,
    RestrictionStore,
)
from crm_access.access.roles import Feature, Role

__all__ = [
    "AccessError",
    "Actor",
    "AssignmentResolver",
    "ConflictError",
    "DbDirectory",
    "DbRestrictionStore",
    "Directory",
    "Feature",
    "ForbiddenError",
    "HierarchyReport",
    "HierarchyResolver",
    "InMemoryDirectory",
    "InMemoryRestrictionStore",
    "InvalidReferenceError",
    "NotFoundError",
    "PermissionCheck",
    "PermissionResolution",
    "PermissionResolver",
    "RestrictionEngine",
    "RestrictionRecord",
    "RestrictionStore",
    "Role",
    "UnavailableError",
    "UserRecord",
    "UserStatus",
    "UserSummary",
]
