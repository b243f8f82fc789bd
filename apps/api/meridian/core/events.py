from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class InternalEvent:
    name: str
    payload: dict[str, Any]

    @property
    def org_id(self) -> int | None:
        value = self.payload.get("org_id")
        return int(value) if value is not None else None


EventHandler = Callable[[InternalEvent], None]


class InProcessEventBus:
    """Synchronous fan-out of domain envelopes to handlers in this process.

    Handlers run in subscription order on the publishing thread, inside the
    request that published the event.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._subscribers[event_name]
        if handler not in handlers:
            handlers.append(handler)

    def subscribe_many(self, event_names: Iterable[str], handler: EventHandler) -> None:
        for event_name in event_names:
            self.subscribe(event_name, handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._subscribers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def unsubscribe_many(self, event_names: Iterable[str], handler: EventHandler) -> None:
        for event_name in event_names:
            self.unsubscribe(event_name, handler)

    def handler_count(self, event_name: str) -> int:
        return len(self._subscribers.get(event_name, []))

    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        event = InternalEvent(name=event_name, payload=payload)
        for handler in list(self._subscribers.get(event_name, [])):
            handler(event)


event_bus = InProcessEventBus()
