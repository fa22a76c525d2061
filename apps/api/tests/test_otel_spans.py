from __future__ import annotations

import os
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from crm_access.access.api import get_current_actor
from crm_access.access.assignment import Actor
from crm_access.access.models import DirectoryUser
from crm_access.core.config import get_settings
from crm_access.core.database import Base, get_db
from crm_access.main import app
from crm_access.middleware.rate_limit import reset_rate_limiter
from crm_access.otel import setup_inmemory_otel


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
    session.add_all(
        [
            DirectoryUser(id="admin-1", role="admin"),
            DirectoryUser(id="sa-1", role="super_admin"),
            DirectoryUser(id="c-1", role="counselor", reports_to="admin-1"),
        ]
    )
    session.commit()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def setup_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("access-api")
    exporter.clear()
    return exporter


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


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/api/access/assignable-users", headers={"X-Correlation-Id": "otel-corr-1"})
    assert response.status_code == 200

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_assignment_span_records_actor_and_count(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/api/access/assignable-users")
    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == ["admin-1", "c-1"]

    spans = span_exporter.get_finished_spans()
    assignment_spans = [span for span in spans if span.name == "access.assignable_users"]
    assert assignment_spans
    assert assignment_spans[-1].attributes.get("access.actor_id") == "admin-1"
    assert assignment_spans[-1].attributes.get("access.assignable_count") == 2


def test_restriction_mutation_spans(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    created = client.post("/api/access/restrictions", json={"restricted_user_id": "sa-1"})
    assert created.status_code == 201
    deleted = client.delete(f"/api/access/restrictions/{created.json()['id']}")
    assert deleted.status_code == 200

    spans = {span.name: span for span in span_exporter.get_finished_spans()}
    assert spans["access.restriction.create"].attributes.get("access.restriction_id") == created.json()["id"]
    assert spans["access.restriction.deactivate"].attributes.get("access.admin_id") == "admin-1"
