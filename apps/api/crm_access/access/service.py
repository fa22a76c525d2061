from __future__ import annotations

import uuid
from collections.abc import Callable

from sqlalchemy.orm import Session

from crm_access.access.assignment import Actor, AssignmentResolver
from crm_access.access.directory import DbDirectory, Directory, UserRecord
from crm_access.access.errors import ForbiddenError
from crm_access.access.hierarchy import HierarchyResolver
from crm_access.access.permissions import PermissionResolver, permission_resolver
from crm_access.access.restrictions import (
    DbRestrictionStore,
    RestrictionEngine,
    RestrictionRecord,
    RestrictionStore,
)
from crm_access.access.roles import Feature, Role, resolve_role
from crm_access.access.schemas import (
    AccessResolutionRead,
    HierarchyReportRead,
    PermissionCheckRead,
    PermissionResolutionRead,
    RestrictedUserRead,
    RestrictionCreate,
    RestrictionRead,
    RestrictionUpdate,
    SupervisorValidationRead,
    UserSummaryRead,
)


DirectoryFactory = Callable[[Session], Directory]
RestrictionStoreFactory = Callable[[Session], RestrictionStore]


class AccessService:
    """Logical access contracts wrapped by the HTTP layer.

    Every call builds its directory and store views from the session it is
    given, so answers always reflect the current snapshot.
    """

    def __init__(
        self,
        resolver: PermissionResolver | None = None,
        *,
        directory_factory: DirectoryFactory = DbDirectory,
        store_factory: RestrictionStoreFactory = DbRestrictionStore,
    ) -> None:
        self._permissions = resolver or permission_resolver
        self._directory_factory = directory_factory
        self._store_factory = store_factory

    def check_permission(self, role: str, feature: str) -> PermissionCheckRead:
        return PermissionCheckRead.model_validate(self._permissions.check(role, feature))

    def bulk_check_permissions(self, role: str, features: list[str]) -> list[PermissionCheckRead]:
        return [PermissionCheckRead.model_validate(check) for check in self._permissions.check_many(role, features)]

    def resolve_permissions(self, role: str) -> PermissionResolutionRead:
        resolution = self._permissions.resolve_all(role)
        return PermissionResolutionRead(
            role=resolution.role.value,
            access_level=resolution.access_level,
            capabilities=resolution.capabilities,
            accessible=resolution.accessible,
            restricted=resolution.restricted,
            total_features=len(resolution.capabilities),
            accessible_count=len(resolution.accessible),
            restricted_count=len(resolution.restricted),
        )

    def get_assignable_users(self, session: Session, actor_id: str, role: str) -> list[UserSummaryRead]:
        resolver = AssignmentResolver(self._directory_factory(session))
        summaries = resolver.assignable_users_for(Actor(id=actor_id, role=role))
        return [UserSummaryRead.model_validate(summary) for summary in summaries]

    def resolve_access(self, session: Session, actor_id: str, role: str) -> AccessResolutionRead:
        """Permissions, assignable users and the active restriction overlay for one actor."""
        return AccessResolutionRead(
            actor_id=actor_id,
            permissions=self.resolve_permissions(role),
            assignable_users=self.get_assignable_users(session, actor_id, role),
            restrictions=self.get_active_restrictions(session, actor_id),
        )

    def create_restriction(self, session: Session, actor: Actor, dto: RestrictionCreate) -> RestrictionRead:
        self.require_admin(actor)
        directory = self._directory_factory(session)
        record = self._restriction_engine(session, directory).create(
            admin_id=actor.id,
            restricted_user_id=dto.restricted_user_id.strip(),
            scope=dto.scope,
            notes=dto.notes,
            restriction_type=dto.restriction_type,
        )
        return _restriction_read(record, directory.get_user(record.restricted_user_id))

    def list_restrictions(self, session: Session, actor: Actor) -> list[RestrictionRead]:
        self.require_admin(actor)
        directory = self._directory_factory(session)
        return _restriction_reads(self._restriction_engine(session, directory).list_active(actor.id), directory)

    def update_restriction(
        self,
        session: Session,
        actor: Actor,
        restriction_id: uuid.UUID,
        dto: RestrictionUpdate,
    ) -> RestrictionRead:
        self.require_admin(actor)
        directory = self._directory_factory(session)
        record = self._restriction_engine(session, directory).update(
            restriction_id,
            actor.id,
            dto.model_dump(exclude_unset=True),
        )
        return _restriction_read(record, directory.get_user(record.restricted_user_id))

    def deactivate_restriction(self, session: Session, actor: Actor, restriction_id: uuid.UUID) -> RestrictionRead:
        self.require_admin(actor)
        directory = self._directory_factory(session)
        record = self._restriction_engine(session, directory).deactivate(restriction_id, actor.id)
        return _restriction_read(record, directory.get_user(record.restricted_user_id))

    def get_active_restrictions(self, session: Session, user_id: str) -> list[RestrictionRead]:
        directory = self._directory_factory(session)
        return _restriction_reads(self._restriction_engine(session, directory).active_for(user_id), directory)

    def validate_supervisor(self, session: Session, user_id: str, reports_to: str | None) -> SupervisorValidationRead:
        HierarchyResolver(self._directory_factory(session)).validate_supervisor(user_id, reports_to)
        return SupervisorValidationRead(user_id=user_id, reports_to=reports_to or None, valid=True)

    def get_hierarchy_report(self, session: Session, actor_id: str) -> HierarchyReportRead:
        report = HierarchyResolver(self._directory_factory(session)).report(actor_id)
        return HierarchyReportRead.model_validate(report)

    def require_admin(self, actor: Actor) -> None:
        if resolve_role(actor.role) != Role.ADMIN:
            raise ForbiddenError("Access denied. Admin role required.", details={"role": actor.role})

    def require_feature(self, actor: Actor, feature: Feature) -> None:
        if not self._permissions.has_permission(actor.role, feature):
            raise ForbiddenError(
                f"role '{actor.role}' cannot use {feature.value}",
                details={"role": actor.role, "feature": feature.value},
            )

    def _restriction_engine(self, session: Session, directory: Directory | None = None) -> RestrictionEngine:
        if directory is None:
            directory = self._directory_factory(session)
        return RestrictionEngine(self._store_factory(session), directory)


def _restriction_read(record: RestrictionRecord, user: UserRecord | None) -> RestrictionRead:
    read = RestrictionRead.model_validate(record)
    if user is not None:
        read.restricted_user = RestrictedUserRead.model_validate(user)
    return read


def _restriction_reads(records: list[RestrictionRecord], directory: Directory) -> list[RestrictionRead]:
    # one directory read per listing
    users = {user.id: user for user in directory.list_users()} if records else {}
    return [_restriction_read(record, users.get(record.restricted_user_id)) for record in records]


access_service = AccessService()
