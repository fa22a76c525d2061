"""Reporting hierarchy traversal over a directory snapshot.

The ``reports_to`` edges are external data and may contain cycles or point at
users that no longer exist. Every traversal here keeps a visited set that is
allocated per call, so it terminates on any edge set and visits each user at
most once.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field

from crm_access.access.directory import Directory, UserRecord
from crm_access.access.errors import InvalidReferenceError, NotFoundError
from crm_access.access.roles import resolve_role
from crm_access.metrics import observe_hierarchy_nodes_visited


@dataclass(slots=True)
class HierarchyReport:
    user_id: str
    total_users: int
    active_users: int
    users_with_supervisor: int
    users_without_supervisor: int
    role_counts: dict[str, int] = field(default_factory=dict)
    direct_subordinates: list[str] = field(default_factory=list)
    subordinate_count: int = 0
    supervisor_chain: list[str] = field(default_factory=list)
    on_reporting_cycle: bool = False
    dangling_references: list[str] = field(default_factory=list)


def index_children(users: list[UserRecord]) -> dict[str, list[str]]:
    children: dict[str, list[str]] = defaultdict(list)
    for user in users:
        if user.reports_to is not None:
            children[user.reports_to].append(user.id)
    return children


class HierarchyResolver:
    def __init__(self, directory: Directory) -> None:
        self._directory = directory

    def subordinates_of(self, user_id: str) -> list[str]:
        """Return every user reporting to ``user_id`` directly or transitively."""

        return self.closure(user_id, self._directory.list_users())

    @staticmethod
    def closure(user_id: str, users: list[UserRecord]) -> list[str]:
        children = index_children(users)
        visited = {user_id}
        ordered: list[str] = []
        stack = list(reversed(children.get(user_id, [])))
        while stack:
            node = stack.pop()
            if node in visited:
                continue
            visited.add(node)
            ordered.append(node)
            stack.extend(reversed(children.get(node, [])))

        observe_hierarchy_nodes_visited(len(visited))
        return ordered

    @staticmethod
    def supervisor_chain(user_id: str, users: list[UserRecord]) -> tuple[list[str], bool]:
        """Walk ``reports_to`` upwards. Returns the chain and whether it loops back."""

        by_id = {user.id: user for user in users}
        chain: list[str] = []
        visited = {user_id}
        current = by_id.get(user_id)
        while current is not None and current.reports_to is not None:
            supervisor_id = current.reports_to
            if supervisor_id in visited:
                return chain, supervisor_id == user_id
            visited.add(supervisor_id)
            chain.append(supervisor_id)
            current = by_id.get(supervisor_id)
        return chain, False

    def validate_supervisor(self, user_id: str, reports_to: str | None) -> None:
        if not reports_to:
            return
        if reports_to == user_id:
            raise InvalidReferenceError("user cannot report to themselves", details={"user_id": user_id})

        users = self._directory.list_users()
        known_ids = {user.id for user in users}
        if user_id not in known_ids:
            raise NotFoundError("user not found", details={"user_id": user_id})
        if reports_to not in known_ids:
            raise InvalidReferenceError("invalid supervisor selected", details={"reports_to": reports_to})
        if reports_to in set(self.closure(user_id, users)):
            raise InvalidReferenceError(
                "supervisor reports to this user; the change would create a reporting cycle",
                details={"user_id": user_id, "reports_to": reports_to},
            )

    def report(self, user_id: str) -> HierarchyReport:
        users = self._directory.list_users()
        known_ids = {user.id for user in users}
        if user_id not in known_ids:
            raise NotFoundError("user not found", details={"user_id": user_id})

        chain, on_cycle = self.supervisor_chain(user_id, users)
        with_supervisor = [user for user in users if user.reports_to is not None]
        return HierarchyReport(
            user_id=user_id,
            total_users=len(users),
            active_users=sum(1 for user in users if user.is_active),
            users_with_supervisor=len(with_supervisor),
            users_without_supervisor=len(users) - len(with_supervisor),
            role_counts=dict(Counter(resolve_role(user.role).value for user in users)),
            direct_subordinates=index_children(users).get(user_id, []),
            subordinate_count=len(self.closure(user_id, users)),
            supervisor_chain=chain,
            on_reporting_cycle=on_cycle,
            dangling_references=[user.id for user in with_supervisor if user.reports_to not in known_ids],
        )
