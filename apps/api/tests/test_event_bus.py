from __future__ import annotations

from fastapi.testclient import TestClient

from meridian.core.events import InProcessEventBus, InternalEvent, event_bus
from meridian.main import app


def test_subscribe_is_idempotent_and_unsubscribe_stops_delivery() -> None:
    bus = InProcessEventBus()
    received: list[InternalEvent] = []

    bus.subscribe("invoice.paid", received.append)
    bus.subscribe("invoice.paid", received.append)
    bus.publish("invoice.paid", {"org_id": "3", "invoice_id": "inv-1"})

    assert bus.handler_count("invoice.paid") == 1
    assert len(received) == 1
    assert received[0].org_id == 3

    bus.unsubscribe("invoice.paid", received.append)
    bus.publish("invoice.paid", {"org_id": 3})
    assert len(received) == 1


def test_publish_without_subscribers_is_a_no_op() -> None:
    bus = InProcessEventBus()
    bus.publish("document.released", {"org_id": 1})
    assert bus.handler_count("document.released") == 0


def test_lifespan_registers_and_removes_automation_bridge() -> None:
    before = event_bus.handler_count("feature.completed")

    with TestClient(app):
        assert event_bus.handler_count("feature.completed") == before + 1
        assert event_bus.handler_count("document.released") >= 1

    assert event_bus.handler_count("feature.completed") == before
