from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest

from meridian.platform.state import (
    CycleDetectedError,
    DedupeRecord,
    DependencyEdgeRef,
    NodeRef,
    PreconditionNotMetError,
    as_utc,
    checklist_complete,
    ensure_checklist_complete,
    ensure_no_cycle,
    incomplete_items,
    is_duplicate,
    resolve_window,
    within_throttle,
    would_create_cycle,
)


@dataclass
class Item:
    name: str
    is_complete: bool


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def _edge(org_id: int, source: str, target: str) -> DependencyEdgeRef:
    return DependencyEdgeRef(org_id=org_id, from_node=NodeRef("task", source), to_node=NodeRef("task", target))


def test_checklist_requires_at_least_one_item() -> None:
    assert not checklist_complete([])
    with pytest.raises(PreconditionNotMetError) as exc_info:
        ensure_checklist_complete("pink_checklist", [], label="Pink")
    assert exc_info.value.precondition == "pink_checklist"
    assert exc_info.value.missing == []


def test_checklist_reports_incomplete_items() -> None:
    items = [Item("scope", True), Item("pricing", False), Item("legal", False)]
    assert not checklist_complete(items)
    assert incomplete_items(items) == ["pricing", "legal"]
    with pytest.raises(PreconditionNotMetError) as exc_info:
        ensure_checklist_complete("red_checklist", items, label="Red")
    assert exc_info.value.to_detail() == {
        "message": "Red checklist incomplete: pricing, legal",
        "precondition": "red_checklist",
        "missing": ["pricing", "legal"],
    }


def test_complete_checklist_passes() -> None:
    items = [Item("scope", True), Item("pricing", True)]
    assert checklist_complete(items)
    ensure_checklist_complete("pink_checklist", items, label="Pink")


def test_cycle_detection_on_chain() -> None:
    edges = [_edge(1, "A", "B"), _edge(1, "B", "C")]
    assert would_create_cycle(1, NodeRef("task", "C"), NodeRef("task", "A"), edges)
    assert not would_create_cycle(1, NodeRef("task", "D"), NodeRef("task", "A"), edges)
    assert not would_create_cycle(1, NodeRef("task", "A"), NodeRef("task", "C"), edges)


def test_self_edge_is_a_cycle() -> None:
    node = NodeRef("feature", "F1")
    assert would_create_cycle(1, node, node, [])


def test_cycle_detection_ignores_other_orgs() -> None:
    edges = [_edge(2, "A", "B"), _edge(2, "B", "C")]
    assert not would_create_cycle(1, NodeRef("task", "C"), NodeRef("task", "A"), edges)


def test_node_type_is_part_of_identity() -> None:
    edges = [DependencyEdgeRef(1, NodeRef("task", "1"), NodeRef("step", "1"))]
    assert not would_create_cycle(1, NodeRef("feature", "1"), NodeRef("task", "1"), edges)
    assert would_create_cycle(1, NodeRef("step", "1"), NodeRef("task", "1"), edges)


def test_ensure_no_cycle_raises_with_detail() -> None:
    with pytest.raises(CycleDetectedError) as exc_info:
        ensure_no_cycle(7, NodeRef("task", "C"), NodeRef("task", "A"), [_edge(7, "A", "B"), _edge(7, "B", "C")])
    assert exc_info.value.to_detail()["from"] == "task:C"
    assert exc_info.value.to_detail()["to"] == "task:A"


def test_dedupe_within_retention() -> None:
    records = [DedupeRecord(org_id=1, dedupe_key="evt-1", recorded_at=NOW - timedelta(hours=2))]
    assert is_duplicate(1, "evt-1", records, now=NOW)
    assert not is_duplicate(2, "evt-1", records, now=NOW)
    assert not is_duplicate(1, "evt-2", records, now=NOW)


def test_dedupe_expires_after_retention() -> None:
    records = [DedupeRecord(org_id=1, dedupe_key="evt-1", recorded_at=NOW - timedelta(hours=25))]
    assert not is_duplicate(1, "evt-1", records, now=NOW)
    assert is_duplicate(1, "evt-1", records, now=NOW, retention=timedelta(hours=48))


def test_blank_dedupe_key_never_duplicates() -> None:
    records = [DedupeRecord(org_id=1, dedupe_key="", recorded_at=NOW)]
    assert not is_duplicate(1, "", records, now=NOW)
    assert not is_duplicate(1, None, records, now=NOW)


def test_naive_timestamps_are_treated_as_utc() -> None:
    naive = datetime(2026, 10, 19, 11, 0)
    assert as_utc(naive) == datetime(2026, 10, 19, 11, 0, tzinfo=UTC)
    records = [DedupeRecord(org_id=1, dedupe_key="evt-1", recorded_at=naive)]
    assert is_duplicate(1, "evt-1", records, now=NOW)


def test_throttle_window_counts_recent_firings() -> None:
    firings = [NOW - timedelta(minutes=10), NOW - timedelta(minutes=50)]
    assert not within_throttle(firings, "hour", 2, now=NOW)
    assert within_throttle(firings, "hour", 3, now=NOW)
    assert within_throttle(firings, "minute", 1, now=NOW)
    assert not within_throttle(firings, "day", 1, now=NOW)


def test_throttle_disabled_without_window_or_limit() -> None:
    firings = [NOW] * 10
    assert within_throttle(firings, None, 1, now=NOW)
    assert within_throttle(firings, "hour", None, now=NOW)
    assert within_throttle(firings, "fortnight", 1, now=NOW)
    assert resolve_window("fortnight") is None
    assert resolve_window("minute") == timedelta(minutes=1)
