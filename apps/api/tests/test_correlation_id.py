from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crm_access import audit
from crm_access.access.api import get_current_actor
from crm_access.access.assignment import Actor
from crm_access.access.models import DirectoryUser
from crm_access.core.config import get_settings
from crm_access.core.database import Base, get_db
from crm_access.main import app
from crm_access.middleware.rate_limit import reset_rate_limiter


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    session.add_all([DirectoryUser(id="admin-1", role="admin"), DirectoryUser(id="sa-1", role="super_admin")])
    session.commit()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_stubs() -> Generator[None, None, None]:
    audit.clear()
    reset_rate_limiter()
    get_settings.cache_clear()
    yield
    audit.clear()
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_actor() -> Actor:
        return Actor(id="admin-1", role="admin")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_actor] = override_get_current_actor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_generated_correlation_id_returned_in_header_and_error_envelope(client: TestClient) -> None:
    response = client.delete("/api/access/restrictions/00000000-0000-4000-8000-000000000000")
    assert response.status_code == 404
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    body = response.json()
    assert body["correlation_id"] == header_value


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.delete(
        "/api/access/restrictions/00000000-0000-4000-8000-000000000000",
        headers={"X-Correlation-Id": "abc-123"},
    )
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"
    assert response.json()["correlation_id"] == "abc-123"


def test_audit_uses_request_correlation_id(client: TestClient) -> None:
    response = client.post(
        "/api/access/restrictions",
        json={"restricted_user_id": "sa-1"},
        headers={"X-Correlation-Id": "corr-audit-1"},
    )
    assert response.status_code == 201

    entries = audit.entries_for("access.restriction", response.json()["id"])
    assert entries
    assert entries[-1]["correlation_id"] == "corr-audit-1"


def test_rate_limited_response_includes_correlation_id(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "false")
    monkeypatch.setenv("RATE_LIMIT_RESTRICTION_MUTATIONS_PER_MINUTE", "1")
    get_settings.cache_clear()
    reset_rate_limiter()

    first = client.post(
        "/api/access/restrictions",
        json={"restricted_user_id": "sa-1"},
        headers={"X-Correlation-Id": "corr-rate-1"},
    )
    assert first.status_code == 201

    second = client.post(
        "/api/access/restrictions",
        json={"restricted_user_id": "sa-1"},
        headers={"X-Correlation-Id": "corr-rate-1"},
    )
    assert second.status_code == 429
    payload = second.json()
    assert payload["correlation_id"] == "corr-rate-1"
    assert second.headers.get("x-correlation-id") == "corr-rate-1"
