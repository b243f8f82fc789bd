from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

from meridian.platform.state.errors import PreconditionNotMetError


class ChecklistEntry(Protocol):
    name: str
    is_complete: bool


def checklist_complete(items: Iterable[ChecklistEntry]) -> bool:
    """An empty checklist is never complete."""
    items = list(items)
    return bool(items) and all(item.is_complete for item in items)


def incomplete_items(items: Iterable[ChecklistEntry]) -> list[str]:
    return [item.name for item in items if not item.is_complete]


def ensure_checklist_complete(precondition: str, items: Sequence[ChecklistEntry], *, label: str) -> None:
    if checklist_complete(items):
        return
    if not items:
        raise PreconditionNotMetError(precondition, f"{label} checklist has no items")
    missing = incomplete_items(items)
    raise PreconditionNotMetError(
        precondition,
        f"{label} checklist incomplete: {', '.join(missing)}",
        missing=missing,
    )
