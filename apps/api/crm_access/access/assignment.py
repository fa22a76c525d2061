from __future__ import annotations

import logging
from dataclasses import dataclass

from opentelemetry import trace

from crm_access.access.directory import Directory, UserRecord
from crm_access.access.errors import NotFoundError
from crm_access.access.hierarchy import HierarchyResolver
from crm_access.access.roles import Role, resolve_role
from crm_access.metrics import observe_assignable_users


logger = logging.getLogger("crm_access.access.assignment")
tracer = trace.get_tracer("crm_access.access.assignment")


# super_admin is granted every active user and is handled separately
ROLE_GRANTS: dict[Role, frozenset[Role]] = {
    Role.SENIOR_MANAGER: frozenset({Role.MANAGER, Role.TEAM_LEADER, Role.COUNSELOR}),
    Role.MANAGER: frozenset({Role.TEAM_LEADER, Role.COUNSELOR}),
}


@dataclass(frozen=True, slots=True)
class Actor:
    id: str
    role: str


@dataclass(slots=True)
class UserSummary:
    id: str
    name: str | None
    username: str | None
    email: str | None
    role: str
    department: str | None
    display_name: str


def summarize_user(user: UserRecord, *, is_self: bool = False) -> UserSummary:
    label = user.name or user.username or user.id
    suffix = "You" if is_self else (user.department or "No Department")
    return UserSummary(
        id=user.id,
        name=user.name,
        username=user.username,
        email=user.email,
        role=user.role,
        department=user.department,
        display_name=f"{label} ({user.role}) - {suffix}",
    )


def is_granted(actor_role: Role, user: UserRecord) -> bool:
    if actor_role == Role.SUPER_ADMIN:
        return True
    granted_roles = ROLE_GRANTS.get(actor_role)
    if granted_roles is None:
        return False
    return resolve_role(user.role) in granted_roles


class AssignmentResolver:
    """Resolves the ordered set of users an actor may assign work to or view."""

    def __init__(self, directory: Directory, hierarchy: HierarchyResolver | None = None) -> None:
        self._directory = directory
        self._hierarchy = hierarchy or HierarchyResolver(directory)

    def assignable_users_for(self, actor: Actor) -> list[UserSummary]:
        actor_role = resolve_role(actor.role)
        with tracer.start_as_current_span("access.assignable_users") as span:
            span.set_attribute("access.actor_id", actor.id)
            span.set_attribute("access.role", actor_role.value)

            users = self._directory.list_users()
            by_id = {user.id: user for user in users}
            me = by_id.get(actor.id)
            if me is None:
                raise NotFoundError("actor not found", details={"actor_id": actor.id})

            # the actor is always resolvable for themselves, whatever their status
            resolved: dict[str, UserSummary] = {me.id: summarize_user(me, is_self=True)}

            # inactive users drop out of the graph, cutting off the subtree below them
            reporting_graph = [user for user in users if user.is_active or user.id == actor.id]
            subordinate_ids = self._hierarchy.closure(actor.id, reporting_graph)
            for user_id in subordinate_ids:
                if user_id not in resolved:
                    resolved[user_id] = summarize_user(by_id[user_id])

            for user in users:
                if user.id in resolved or not user.is_active:
                    continue
                if is_granted(actor_role, user):
                    resolved[user.id] = summarize_user(user)

            span.set_attribute("access.assignable_count", len(resolved))

        observe_assignable_users(actor_role.value, len(resolved))
        logger.info(
            "access.assignable_users.resolved",
            extra={
                "actor_id": actor.id,
                "role": actor_role.value,
                "subordinate_count": len(subordinate_ids),
                "assignable_count": len(resolved),
            },
        )
        return list(resolved.values())
