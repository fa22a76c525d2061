"""Administrator-imposed restrictions on super_admin users.

A restriction is an overlay: callers resolve permissions and assignable users
first, then ask ``RestrictionEngine.active_for`` whether an active restriction
narrows the result. The ``scope`` payload is stored and returned verbatim;
interpreting it is up to whoever supplies it.

Lifecycle is ``active -> inactive`` only. Deactivated rows are kept.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from threading import Lock
from typing import Any, Protocol

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm_access import audit
from crm_access.access.directory import Directory
from crm_access.access.errors import AccessError, ConflictError, InvalidReferenceError, NotFoundError
from crm_access.access.models import UserRestriction, utcnow
from crm_access.access.roles import Role, resolve_role
from crm_access.access.storage import store_guard
from crm_access.metrics import observe_restriction_mutation


logger = logging.getLogger("crm_access.access.restrictions")
tracer = trace.get_tracer("crm_access.access.restrictions")

DEFAULT_RESTRICTION_TYPE = "user_access"
RESTRICTABLE_ROLE = Role.SUPER_ADMIN
PATCHABLE_FIELDS = frozenset({"scope", "notes", "restriction_type"})


@dataclass(slots=True)
class RestrictionRecord:
    id: uuid.UUID
    admin_id: str
    restricted_user_id: str
    restricted_by: str
    restriction_type: str = DEFAULT_RESTRICTION_TYPE
    scope: dict[str, Any] = field(default_factory=dict)
    notes: str | None = None
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


class RestrictionStore(Protocol):
    """Persistence for restriction rows.

    ``insert`` must raise ``ConflictError`` when a second active row for the
    same ``(admin_id, restricted_user_id)`` pair would be written.
    """

    def find_active(self, admin_id: str, restricted_user_id: str) -> RestrictionRecord | None:
        ...

    def get_owned_active(self, restriction_id: uuid.UUID, admin_id: str) -> RestrictionRecord | None:
        ...

    def insert(self, record: RestrictionRecord) -> RestrictionRecord:
        ...

    def save(self, record: RestrictionRecord) -> RestrictionRecord:
        ...

    def list_active_by_admin(self, admin_id: str) -> list[RestrictionRecord]:
        ...

    def list_active_for_user(self, restricted_user_id: str) -> list[RestrictionRecord]:
        ...


class InMemoryRestrictionStore:
    def __init__(self) -> None:
        self._rows: dict[uuid.UUID, RestrictionRecord] = {}
        self._lock = Lock()

    def find_active(self, admin_id: str, restricted_user_id: str) -> RestrictionRecord | None:
        for row in self._rows.values():
            if row.is_active and row.admin_id == admin_id and row.restricted_user_id == restricted_user_id:
                return copy.deepcopy(row)
        return None

    def get_owned_active(self, restriction_id: uuid.UUID, admin_id: str) -> RestrictionRecord | None:
        row = self._rows.get(restriction_id)
        if row is None or row.admin_id != admin_id or not row.is_active:
            return None
        return copy.deepcopy(row)

    def insert(self, record: RestrictionRecord) -> RestrictionRecord:
        with self._lock:
            if record.is_active and self.find_active(record.admin_id, record.restricted_user_id) is not None:
                raise ConflictError("restriction already exists for this user")
            self._rows[record.id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    def save(self, record: RestrictionRecord) -> RestrictionRecord:
        with self._lock:
            self._rows[record.id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    def list_active_by_admin(self, admin_id: str) -> list[RestrictionRecord]:
        rows = [row for row in self._rows.values() if row.is_active and row.admin_id == admin_id]
        return [copy.deepcopy(row) for row in sorted(rows, key=lambda row: row.created_at, reverse=True)]

    def list_active_for_user(self, restricted_user_id: str) -> list[RestrictionRecord]:
        rows = [row for row in self._rows.values() if row.is_active and row.restricted_user_id == restricted_user_id]
        return [copy.deepcopy(row) for row in sorted(rows, key=lambda row: row.created_at, reverse=True)]

    def all_rows(self) -> list[RestrictionRecord]:
        return [copy.deepcopy(row) for row in self._rows.values()]


class DbRestrictionStore:
    """Restriction store backed by ``access_user_restriction``.

    The partial unique index on active ``(admin_id, restricted_user_id)``
    pairs arbitrates concurrent creates.
    """

    STORE_NAME = "restrictions"

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_active(self, admin_id: str, restricted_user_id: str) -> RestrictionRecord | None:
        with store_guard(self._session, self.STORE_NAME):
            row = self._session.scalar(
                select(UserRestriction).where(
                    UserRestriction.admin_id == admin_id,
                    UserRestriction.restricted_user_id == restricted_user_id,
                    UserRestriction.is_active.is_(True),
                )
            )
        return _to_record(row) if row is not None else None

    def get_owned_active(self, restriction_id: uuid.UUID, admin_id: str) -> RestrictionRecord | None:
        with store_guard(self._session, self.STORE_NAME):
            row = self._session.scalar(
                select(UserRestriction).where(
                    UserRestriction.id == restriction_id,
                    UserRestriction.admin_id == admin_id,
                    UserRestriction.is_active.is_(True),
                )
            )
        return _to_record(row) if row is not None else None

    def insert(self, record: RestrictionRecord) -> RestrictionRecord:
        row = UserRestriction(
            id=record.id,
            admin_id=record.admin_id,
            restricted_user_id=record.restricted_user_id,
            restricted_by=record.restricted_by,
            restriction_type=record.restriction_type,
            restriction_scope=record.scope,
            notes=record.notes,
            is_active=record.is_active,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        with store_guard(self._session, self.STORE_NAME):
            self._session.add(row)
            try:
                self._session.commit()
            except IntegrityError:
                self._session.rollback()
                raise ConflictError("restriction already exists for this user")
            self._session.refresh(row)
        return _to_record(row)

    def save(self, record: RestrictionRecord) -> RestrictionRecord:
        with store_guard(self._session, self.STORE_NAME):
            row = self._session.get(UserRestriction, record.id)
            if row is None:
                raise NotFoundError("restriction not found or access denied")
            row.restriction_type = record.restriction_type
            row.restriction_scope = record.scope
            row.notes = record.notes
            row.is_active = record.is_active
            row.updated_at = record.updated_at
            self._session.commit()
            self._session.refresh(row)
        return _to_record(row)

    def list_active_by_admin(self, admin_id: str) -> list[RestrictionRecord]:
        return self._list_active(UserRestriction.admin_id == admin_id)

    def list_active_for_user(self, restricted_user_id: str) -> list[RestrictionRecord]:
        return self._list_active(UserRestriction.restricted_user_id == restricted_user_id)

    def _list_active(self, criterion: Any) -> list[RestrictionRecord]:
        with store_guard(self._session, self.STORE_NAME):
            rows = self._session.scalars(
                select(UserRestriction)
                .where(criterion, UserRestriction.is_active.is_(True))
                .order_by(UserRestriction.created_at.desc())
            ).all()
        return [_to_record(row) for row in rows]


def _to_record(row: UserRestriction) -> RestrictionRecord:
    return RestrictionRecord(
        id=row.id,
        admin_id=row.admin_id,
        restricted_user_id=row.restricted_user_id,
        restricted_by=row.restricted_by,
        restriction_type=row.restriction_type,
        scope=dict(row.restriction_scope or {}),
        notes=row.notes,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _audit_view(record: RestrictionRecord) -> dict[str, Any]:
    return {
        "admin_id": record.admin_id,
        "restricted_user_id": record.restricted_user_id,
        "restriction_type": record.restriction_type,
        "scope": record.scope,
        "notes": record.notes,
        "is_active": record.is_active,
    }


class RestrictionEngine:
    def __init__(self, store: RestrictionStore, directory: Directory) -> None:
        self._store = store
        self._directory = directory

    def create(
        self,
        admin_id: str,
        restricted_user_id: str,
        scope: dict[str, Any] | None = None,
        notes: str | None = None,
        restriction_type: str | None = None,
    ) -> RestrictionRecord:
        def _create() -> RestrictionRecord:
            target = self._directory.get_user(restricted_user_id)
            if target is None:
                raise InvalidReferenceError(
                    "restricted user not found", details={"restricted_user_id": restricted_user_id}
                )
            if resolve_role(target.role) != RESTRICTABLE_ROLE:
                raise InvalidReferenceError(
                    f"can only restrict {RESTRICTABLE_ROLE.value} users",
                    details={"restricted_user_id": restricted_user_id, "role": target.role},
                )
            if self._store.find_active(admin_id, restricted_user_id) is not None:
                raise ConflictError(
                    "restriction already exists for this user",
                    details={"restricted_user_id": restricted_user_id},
                )

            now = utcnow()
            record = RestrictionRecord(
                id=uuid.uuid4(),
                admin_id=admin_id,
                restricted_user_id=restricted_user_id,
                restricted_by=admin_id,
                restriction_type=restriction_type or DEFAULT_RESTRICTION_TYPE,
                scope=dict(scope or {}),
                notes=notes,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            created = self._store.insert(record)
            audit.record(
                actor_user_id=admin_id,
                entity_type="access.restriction",
                entity_id=str(created.id),
                action="restriction.created",
                before=None,
                after=_audit_view(created),
            )
            return created

        return self._mutate("create", admin_id, restricted_user_id, _create)

    def list_active(self, admin_id: str) -> list[RestrictionRecord]:
        return self._store.list_active_by_admin(admin_id)

    def active_for(self, user_id: str) -> list[RestrictionRecord]:
        return self._store.list_active_for_user(user_id)

    def update(self, restriction_id: uuid.UUID, admin_id: str, patch: dict[str, Any]) -> RestrictionRecord:
        def _update() -> RestrictionRecord:
            existing = self._get_owned_active(restriction_id, admin_id)
            changes = {key: value for key, value in patch.items() if key in PATCHABLE_FIELDS}
            if "scope" in changes:
                changes["scope"] = dict(changes["scope"] or {})
            if "restriction_type" in changes and not changes["restriction_type"]:
                changes["restriction_type"] = DEFAULT_RESTRICTION_TYPE
            updated = self._store.save(replace(existing, **changes, updated_at=utcnow()))
            audit.record(
                actor_user_id=admin_id,
                entity_type="access.restriction",
                entity_id=str(updated.id),
                action="restriction.updated",
                before=_audit_view(existing),
                after=_audit_view(updated),
            )
            return updated

        return self._mutate("update", admin_id, None, _update, restriction_id=restriction_id)

    def deactivate(self, restriction_id: uuid.UUID, admin_id: str) -> RestrictionRecord:
        def _deactivate() -> RestrictionRecord:
            existing = self._get_owned_active(restriction_id, admin_id)
            deactivated = self._store.save(replace(existing, is_active=False, updated_at=utcnow()))
            audit.record(
                actor_user_id=admin_id,
                entity_type="access.restriction",
                entity_id=str(deactivated.id),
                action="restriction.deactivated",
                before=_audit_view(existing),
                after=_audit_view(deactivated),
            )
            return deactivated

        return self._mutate("deactivate", admin_id, None, _deactivate, restriction_id=restriction_id)

    def _get_owned_active(self, restriction_id: uuid.UUID, admin_id: str) -> RestrictionRecord:
        # foreign and missing rows are indistinguishable to the caller
        existing = self._store.get_owned_active(restriction_id, admin_id)
        if existing is None:
            raise NotFoundError(
                "restriction not found or access denied", details={"restriction_id": str(restriction_id)}
            )
        return existing

    def _mutate(
        self,
        action: str,
        admin_id: str,
        restricted_user_id: str | None,
        operation: Callable[[], RestrictionRecord],
        *,
        restriction_id: uuid.UUID | None = None,
    ) -> RestrictionRecord:
        with tracer.start_as_current_span(f"access.restriction.{action}") as span:
            span.set_attribute("access.admin_id", admin_id)
            try:
                record = operation()
            except AccessError as exc:
                observe_restriction_mutation(action, exc.code)
                logger.warning(
                    f"access.restriction.{action}_rejected",
                    extra={
                        "admin_id": admin_id,
                        "restricted_user_id": restricted_user_id,
                        "restriction_id": str(restriction_id) if restriction_id else None,
                        "error": exc.message,
                    },
                )
                raise
            span.set_attribute("access.restriction_id", str(record.id))

        observe_restriction_mutation(action, "ok")
        logger.info(
            f"access.restriction.{action}_succeeded",
            extra={
                "admin_id": admin_id,
                "restricted_user_id": record.restricted_user_id,
                "restriction_id": str(record.id),
            },
        )
        return record
