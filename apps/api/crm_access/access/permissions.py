from __future__ import annotations

from dataclasses import dataclass, field

from crm_access.access.roles import (
    ROLE_ACCESS_LEVELS,
    ROLE_CAPABILITIES,
    Feature,
    Role,
    describe_feature,
    resolve_feature,
    resolve_role,
)
from crm_access.metrics import observe_permission_check


@dataclass(slots=True)
class PermissionCheck:
    feature: str
    allowed: bool
    description: str


@dataclass(slots=True)
class PermissionResolution:
    role: Role
    access_level: int
    capabilities: dict[str, bool] = field(default_factory=dict)
    accessible: list[str] = field(default_factory=list)
    restricted: list[str] = field(default_factory=list)


class PermissionResolver:
    """Answers feature capability queries against a role capability table."""

    def __init__(
        self,
        table: dict[Role, dict[Feature, bool]] | None = None,
        access_levels: dict[Role, int] | None = None,
    ) -> None:
        self._table = table if table is not None else ROLE_CAPABILITIES
        self._access_levels = access_levels if access_levels is not None else ROLE_ACCESS_LEVELS

    def has_permission(self, role: str | Role | None, feature: str | Feature | None) -> bool:
        resolved_role = resolve_role(role)
        resolved_feature = resolve_feature(feature)
        allowed = False
        if resolved_feature is not None:
            allowed = self._row(resolved_role).get(resolved_feature, False)
        observe_permission_check(resolved_role.value, allowed)
        return allowed

    def check(self, role: str | Role | None, feature: str) -> PermissionCheck:
        return PermissionCheck(
            feature=feature,
            allowed=self.has_permission(role, feature),
            description=describe_feature(feature),
        )

    def check_many(self, role: str | Role | None, features: list[str]) -> list[PermissionCheck]:
        return [self.check(role, feature) for feature in features]

    def resolve_all(self, role: str | Role | None) -> PermissionResolution:
        resolved_role = resolve_role(role)
        row = self._row(resolved_role)
        return PermissionResolution(
            role=resolved_role,
            access_level=self.access_level(resolved_role),
            capabilities={feature.value: allowed for feature, allowed in row.items()},
            accessible=[feature.value for feature, allowed in row.items() if allowed],
            restricted=[feature.value for feature, allowed in row.items() if not allowed],
        )

    def access_level(self, role: str | Role | None) -> int:
        resolved_role = resolve_role(role)
        return self._access_levels.get(resolved_role, self._access_levels[Role.DEFAULT])

    def role_at_least(self, role: str | Role | None, required: str | Role | None) -> bool:
        return self.access_level(role) >= self.access_level(required)

    def _row(self, role: Role) -> dict[Feature, bool]:
        row = self._table.get(role)
        if row is None:
            return self._table[Role.DEFAULT]
        return row


permission_resolver = PermissionResolver()
