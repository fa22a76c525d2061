from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from crm_access.access.errors import UnavailableError
from crm_access.metrics import observe_store_unavailable


logger = logging.getLogger("crm_access.access.storage")

_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


@contextmanager
def store_guard(session: Session, store: str) -> Iterator[None]:
    """Translate connectivity failures into ``UnavailableError`` and roll back."""

    try:
        yield
    except _UNAVAILABLE_ERRORS as exc:
        session.rollback()
        observe_store_unavailable(store)
        logger.error("access.store_unavailable", extra={"error": f"{store}: {exc}"})
        raise UnavailableError(store) from exc
