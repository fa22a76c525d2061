from __future__ import annotations

import logging

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client import REGISTRY

from crm_access.access.assignment import Actor, AssignmentResolver, summarize_user
from crm_access.access.directory import InMemoryDirectory, UserRecord, UserStatus
from crm_access.access.errors import NotFoundError
from crm_access.access.hierarchy import HierarchyResolver
from crm_access.otel import setup_inmemory_otel


def _scenario_directory() -> InMemoryDirectory:
    return InMemoryDirectory(
        [
            UserRecord(id="1", role="super_admin", name="Sam"),
            UserRecord(id="2", role="senior_manager", reports_to="1", name="Sue", department="Sales"),
            UserRecord(id="3", role="manager", reports_to="2", name="Max"),
            UserRecord(id="4", role="counselor", reports_to="3", name="Cat"),
            UserRecord(id="5", role="counselor", reports_to="3", name="Cal"),
        ]
    )


def _ids(directory: InMemoryDirectory, actor: Actor) -> list[str]:
    return [summary.id for summary in AssignmentResolver(directory).assignable_users_for(actor)]


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel()
    exporter.clear()
    return exporter


def test_scenario_senior_manager_sees_their_tree() -> None:
    directory = _scenario_directory()

    assert HierarchyResolver(directory).subordinates_of("2") == ["3", "4", "5"]
    assert _ids(directory, Actor(id="2", role="senior_manager")) == ["2", "3", "4", "5"]


def test_scenario_super_admin_sees_everyone() -> None:
    assert _ids(_scenario_directory(), Actor(id="1", role="super_admin")) == ["1", "2", "3", "4", "5"]


def test_every_user_can_assign_to_themselves() -> None:
    directory = _scenario_directory()
    for user in directory.list_users():
        assert user.id in _ids(directory, Actor(id=user.id, role=user.role))


def test_inactive_actor_still_resolves_to_themselves() -> None:
    directory = InMemoryDirectory([UserRecord(id="x", role="counselor", status=UserStatus.INACTIVE)])
    assert _ids(directory, Actor(id="x", role="counselor")) == ["x"]


def test_super_admin_gets_all_active_users_regardless_of_position() -> None:
    directory = InMemoryDirectory(
        [
            UserRecord(id="root", role="admin"),
            UserRecord(id="sa", role="super_admin", reports_to="root"),
            UserRecord(id="peer", role="admin"),
            UserRecord(id="off", role="manager", status=UserStatus.INACTIVE),
            UserRecord(id="c", role="counselor", reports_to="peer"),
        ]
    )

    ids = _ids(directory, Actor(id="sa", role="super_admin"))
    expected = {user.id for user in directory.list_users() if user.is_active}
    assert set(ids) == expected
    assert "off" not in ids


def test_manager_grants_cover_team_leaders_and_counselors_only() -> None:
    directory = InMemoryDirectory(
        [
            UserRecord(id="m", role="manager"),
            UserRecord(id="tl", role="team_leader"),
            UserRecord(id="c", role="Counselor"),
            UserRecord(id="other_manager", role="manager"),
            UserRecord(id="sm", role="senior_manager"),
        ]
    )

    assert _ids(directory, Actor(id="m", role="manager")) == ["m", "tl", "c"]


def test_counselor_without_reports_sees_only_themselves() -> None:
    assert _ids(_scenario_directory(), Actor(id="4", role="counselor")) == ["4"]


def test_grant_uses_role_from_identity_provider() -> None:
    directory = _scenario_directory()
    # user 4 is a counselor in the directory but presents a super_admin token
    assert _ids(directory, Actor(id="4", role="Super Admin")) == ["4", "1", "2", "3", "5"]


def test_overlapping_closure_and_grants_do_not_duplicate() -> None:
    directory = InMemoryDirectory(
        [
            UserRecord(id="sm", role="senior_manager"),
            UserRecord(id="m", role="manager", reports_to="sm"),
            UserRecord(id="c", role="counselor", reports_to="m"),
            UserRecord(id="deep", role="counselor", reports_to="c"),
            UserRecord(id="c2", role="counselor"),
        ]
    )
    ids = _ids(directory, Actor(id="sm", role="senior_manager"))
    assert ids == ["sm", "m", "c", "deep", "c2"]
    assert len(ids) == len(set(ids))


def test_inactive_supervisor_cuts_off_their_subtree() -> None:
    directory = InMemoryDirectory(
        [
            UserRecord(id="tl", role="team_leader"),
            UserRecord(id="gone", role="counselor", reports_to="tl", status=UserStatus.INACTIVE),
            UserRecord(id="kept", role="counselor", reports_to="gone"),
        ]
    )

    assert _ids(directory, Actor(id="tl", role="team_leader")) == ["tl"]


def test_role_grants_still_reach_users_below_inactive_supervisor() -> None:
    directory = InMemoryDirectory(
        [
            UserRecord(id="sm", role="senior_manager"),
            UserRecord(id="gone", role="manager", reports_to="sm", status=UserStatus.INACTIVE),
            UserRecord(id="orphan", role="counselor", reports_to="gone"),
            UserRecord(id="peer", role="senior_manager", reports_to="gone"),
        ]
    )

    assert _ids(directory, Actor(id="sm", role="senior_manager")) == ["sm", "orphan"]


def test_inactive_actor_keeps_their_active_reports() -> None:
    directory = InMemoryDirectory(
        [
            UserRecord(id="lead", role="team_leader", status=UserStatus.INACTIVE),
            UserRecord(id="c", role="counselor", reports_to="lead"),
        ]
    )

    assert _ids(directory, Actor(id="lead", role="team_leader")) == ["lead", "c"]


def test_unknown_actor_raises_not_found() -> None:
    with pytest.raises(NotFoundError):
        AssignmentResolver(_scenario_directory()).assignable_users_for(Actor(id="ghost", role="admin"))


def test_display_names_follow_directory_labels() -> None:
    me = UserRecord(id="7", role="manager", name="Mia")
    other = UserRecord(id="8", role="counselor", username="cody", department="Admissions")
    nameless = UserRecord(id="9", role="counselor")

    assert summarize_user(me, is_self=True).display_name == "Mia (manager) - You"
    assert summarize_user(other).display_name == "cody (counselor) - Admissions"
    assert summarize_user(nameless).display_name == "9 (counselor) - No Department"


def test_resolution_emits_span_log_and_metric(
    span_exporter: InMemorySpanExporter,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)
    before = REGISTRY.get_sample_value("access_assignable_users_size_count", {"role": "senior_manager"}) or 0.0

    AssignmentResolver(_scenario_directory()).assignable_users_for(Actor(id="2", role="senior_manager"))

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "access.assignable_users"]
    assert spans
    assert spans[-1].attributes.get("access.actor_id") == "2"
    assert spans[-1].attributes.get("access.assignable_count") == 4

    records = [record for record in caplog.records if record.getMessage() == "access.assignable_users.resolved"]
    assert records
    assert getattr(records[-1], "assignable_count", None) == 4
    assert getattr(records[-1], "subordinate_count", None) == 3

    after = REGISTRY.get_sample_value("access_assignable_users_size_count", {"role": "senior_manager"})
    assert after == before + 1
