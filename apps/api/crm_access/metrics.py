from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

access_permission_checks_total = Counter(
    "access_permission_checks_total",
    "Feature permission checks by role and outcome",
    ["role", "result"],
)

access_assignable_users_size = Histogram(
    "access_assignable_users_size",
    "Size of resolved assignable user sets",
    ["role"],
    buckets=(1, 2, 5, 10, 25, 50, 100, 250, 500, 1000),
)

access_hierarchy_nodes_visited_total = Counter(
    "access_hierarchy_nodes_visited_total",
    "Directory nodes visited while resolving subordinate closures",
)

access_restriction_mutations_total = Counter(
    "access_restriction_mutations_total",
    "Restriction mutations by action and outcome",
    ["action", "outcome"],
)

access_store_unavailable_total = Counter(
    "access_store_unavailable_total",
    "Aborted computations caused by an unreachable store",
    ["store"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _PATH_PARAM_RE.sub("{id}", path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _PATH_PARAM_RE.sub("{id}", route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_permission_check(role: str, allowed: bool) -> None:
    access_permission_checks_total.labels(role=role, result="allow" if allowed else "deny").inc()


def observe_assignable_users(role: str, count: int) -> None:
    access_assignable_users_size.labels(role=role).observe(count)


def observe_hierarchy_nodes_visited(count: int) -> None:
    if count > 0:
        access_hierarchy_nodes_visited_total.inc(count)


def observe_restriction_mutation(action: str, outcome: str) -> None:
    access_restriction_mutations_total.labels(action=action, outcome=outcome).inc()


def observe_store_unavailable(store: str) -> None:
    access_store_unavailable_total.labels(store=store).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
