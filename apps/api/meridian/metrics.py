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

state_transition_rejections_total = Counter(
    "state_transition_rejections_total",
    "Requested state changes rejected by the transition tables",
    ["domain"],
)

state_precondition_blocks_total = Counter(
    "state_precondition_blocks_total",
    "Legal transitions blocked by an unmet precondition",
    ["precondition"],
)

state_write_conflicts_total = Counter(
    "state_write_conflicts_total",
    "Compare-and-set status writes that lost to a concurrent change",
    ["domain"],
)

dependency_cycle_rejections_total = Counter(
    "dependency_cycle_rejections_total",
    "Dependency edges rejected because they would close a cycle",
)

automation_events_total = Counter(
    "automation_events_total",
    "Automation events ingested by result",
    ["result"],
)

automation_rule_outcomes_total = Counter(
    "automation_rule_outcomes_total",
    "Automation rule evaluations by outcome",
    ["outcome"],
)

automation_jobs_total = Counter(
    "automation_jobs_total",
    "Automation job state changes",
    ["action_type", "status"],
)

automation_processing_duration_seconds = Histogram(
    "automation_processing_duration_seconds",
    "Time spent evaluating rules for one ingested event",
)

org_scope_denied_total = Counter(
    "org_scope_denied_total",
    "Reads and writes rejected for targeting another organization",
    ["resource", "action"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return path_format
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return route_path
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_transition_rejected(domain: str) -> None:
    state_transition_rejections_total.labels(domain=domain).inc()


def observe_precondition_block(precondition: str) -> None:
    state_precondition_blocks_total.labels(precondition=precondition).inc()


def observe_write_conflict(domain: str) -> None:
    state_write_conflicts_total.labels(domain=domain).inc()


def observe_dependency_cycle_rejected() -> None:
    dependency_cycle_rejections_total.inc()


def observe_automation_event(result: str) -> None:
    automation_events_total.labels(result=result).inc()


def observe_automation_outcome(outcome: str) -> None:
    automation_rule_outcomes_total.labels(outcome=outcome).inc()


def observe_automation_job(action_type: str, status: str) -> None:
    automation_jobs_total.labels(action_type=action_type, status=status).inc()


def observe_automation_processing(duration: float) -> None:
    automation_processing_duration_seconds.observe(duration)


def observe_org_scope_denied(resource: str, action: str) -> None:
    org_scope_denied_total.labels(resource=resource, action=action).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
