from __future__ import annotations

from typing import Any

import pytest

from meridian.business.automation import ACTION_PERMISSIONS, evaluate_condition, matches_trigger, validate_action_permissions
from meridian.business.automation.conditions import resolve_path
from meridian.business.automation.permissions import action_signature, idempotency_key, missing_action_permissions


CONTEXT = {
    "type": "invoice.overdue",
    "payload": {"amount": 1200, "currency": "USD", "customer": {"tier": "gold"}},
}


def test_resolve_path_walks_nested_dicts() -> None:
    assert resolve_path(CONTEXT, "payload.customer.tier") == "gold"
    assert resolve_path(CONTEXT, "payload.customer.missing") is None
    assert resolve_path(CONTEXT, "payload.amount.value") is None


@pytest.mark.parametrize(
    ("condition", "expected"),
    [
        (None, True),
        ({}, True),
        ({"var": "payload.amount", ">": 1000}, True),
        ({"var": "payload.amount", "<": 1000}, False),
        ({"var": "payload.currency", "==": "USD"}, True),
        ({"var": "payload.currency", "!=": "USD"}, False),
        ({"var": "payload.customer.tier", "regex": "^go"}, True),
        ({"var": "payload.missing", "regex": ".*"}, False),
        ({"var": "payload.missing", ">": 1}, False),
        ({"var": "payload.currency", ">": 1}, False),
        ({"and": [{"var": "payload.amount", ">": 1000}, {"var": "payload.currency", "==": "USD"}]}, True),
        ({"and": [{"var": "payload.amount", ">": 1000}, {"var": "payload.currency", "==": "EUR"}]}, False),
        ({"or": [{"var": "payload.amount", "<": 10}, {"var": "payload.customer.tier", "==": "gold"}]}, True),
        ({"or": []}, False),
        ("not-a-condition", True),
        ({"and": [1]}, True),
        ({"and": [1, {"var": "payload.amount", "<": 10}]}, False),
        ({"or": 5}, True),
        ({"and": "payload.amount"}, True),
    ],
)
def test_evaluate_condition(condition: Any, expected: bool) -> None:
    assert evaluate_condition(condition, CONTEXT) is expected


@pytest.mark.parametrize(
    ("event_type", "trigger", "expected"),
    [
        ("invoice.overdue", {"event_types": ["invoice.overdue"]}, True),
        ("invoice.overdue", {"event_types": "invoice.overdue"}, True),
        ("invoice.overdue", {"event_types": ["invoice.*"]}, True),
        ("invoice.overdue", {"event_types": ["*"]}, True),
        ("invoice.overdue", {"event_types": ["payment.*"]}, False),
        ("invoice.overdue", {}, False),
        ("invoice.overdue", None, False),
    ],
)
def test_matches_trigger(event_type: str, trigger: dict | None, expected: bool) -> None:
    assert matches_trigger(event_type, trigger) is expected


def test_action_permissions() -> None:
    assert ACTION_PERMISSIONS["comms.draft_reply"] == ("comms.write",)
    assert validate_action_permissions("comms.draft_reply", ["comms.write"])
    assert not validate_action_permissions("engagements.generate_report_doc", ["engagements.write"])
    assert validate_action_permissions("custom.unlisted_action", [])


def test_missing_action_permissions_are_collected_once() -> None:
    actions = [
        {"type": "comms.draft_reply"},
        {"type": "comms.set_status"},
        {"type": "docs.render_template"},
    ]
    assert missing_action_permissions(actions, ["docs.write"]) == ["comms.write"]


def test_idempotency_key_is_stable_per_action() -> None:
    action = {"type": "comms.draft_reply", "params": {"template": "ack", "tone": "brief"}}
    reordered = {"params": {"tone": "brief", "template": "ack"}, "type": "comms.draft_reply"}

    assert action_signature(action) == action_signature(reordered)
    assert action_signature(action).startswith("comms.draft_reply#")
    assert len(action_signature(action).split("#")[1]) == 16

    key = idempotency_key("rule-1", "event-1", action)
    assert key.startswith("rule-1:event-1:comms.draft_reply#")
    assert key != idempotency_key("rule-1", "event-2", action)
    assert key != idempotency_key("rule-1", "event-1", {"type": "comms.draft_reply", "params": {"template": "other"}})
