from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm_access.access.models import DirectoryUser
from crm_access.access.storage import store_guard


class UserStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"

    @classmethod
    def parse(cls, value: str | None) -> UserStatus:
        if value is not None and value.strip().lower() == cls.ACTIVE.value:
            return cls.ACTIVE
        return cls.INACTIVE


@dataclass(frozen=True, slots=True)
class UserRecord:
    id: str
    role: str
    status: UserStatus = UserStatus.ACTIVE
    reports_to: str | None = None
    department: str | None = None
    name: str | None = None
    username: str | None = None
    email: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


class Directory(Protocol):
    """Read-only view over the user directory."""

    def get_user(self, user_id: str) -> UserRecord | None:
        ...

    def list_users(self) -> list[UserRecord]:
        ...


class InMemoryDirectory:
    def __init__(self, users: Iterable[UserRecord] = ()) -> None:
        self._users: dict[str, UserRecord] = {}
        for user in users:
            self._users[user.id] = user

    def get_user(self, user_id: str) -> UserRecord | None:
        return self._users.get(user_id)

    def list_users(self) -> list[UserRecord]:
        return list(self._users.values())


class DbDirectory:
    """Directory backed by the ``crm_user`` table of the caller's session."""

    STORE_NAME = "directory"

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_user(self, user_id: str) -> UserRecord | None:
        with store_guard(self._session, self.STORE_NAME):
            row = self._session.get(DirectoryUser, user_id)
        return _to_record(row) if row is not None else None

    def list_users(self) -> list[UserRecord]:
        with store_guard(self._session, self.STORE_NAME):
            rows = self._session.scalars(
                select(DirectoryUser).order_by(DirectoryUser.name.asc(), DirectoryUser.id.asc())
            ).all()
        return [_to_record(row) for row in rows]


def _to_record(row: DirectoryUser) -> UserRecord:
    reports_to = row.reports_to if row.reports_to else None
    return UserRecord(
        id=row.id,
        role=row.role,
        status=UserStatus.parse(row.status),
        reports_to=reports_to,
        department=row.department,
        name=row.name,
        username=row.username,
        email=row.email,
    )
