from __future__ import annotations

from meridian.platform.state.errors import InvalidTransitionError, UnknownTransitionDomainError
from meridian.platform.state.tables import (
    TRANSITION_TABLES,
    SelfTransitionPolicy,
    TransitionDomain,
    TransitionTable,
)


def get_table(domain: str | TransitionDomain) -> TransitionTable:
    try:
        return TRANSITION_TABLES[TransitionDomain(domain)]
    except ValueError as exc:
        raise UnknownTransitionDomainError(str(domain)) from exc


def _default_label(domain: TransitionDomain) -> str:
    return domain.value.replace("_", " ") + " transition"


def can_transition(domain: str | TransitionDomain, from_state: str | None, to_state: str | None) -> bool:
    table = get_table(domain)
    if not from_state or not to_state:
        return False
    if from_state == to_state:
        return table.self_transition == SelfTransitionPolicy.ALLOW and table.knows(from_state)
    return to_state in table.allowed_from(from_state)


def assert_transition(
    domain: str | TransitionDomain,
    from_state: str | None,
    to_state: str | None,
    label: str | None = None,
) -> None:
    """Raise ``InvalidTransitionError`` unless ``from_state -> to_state`` is a legal edge.

    The check is pure: it reads the static table and nothing else, so callers
    fetch the current state, call this, and only then write.
    """
    table = get_table(domain)
    if can_transition(table.domain, from_state, to_state):
        return
    raise InvalidTransitionError(
        domain=table.domain.value,
        from_state=str(from_state or ""),
        to_state=str(to_state or ""),
        label=label or _default_label(table.domain),
    )


def allowed_transitions(domain: str | TransitionDomain, from_state: str) -> list[str]:
    table = get_table(domain)
    targets = set(table.allowed_from(from_state))
    if table.self_transition == SelfTransitionPolicy.ALLOW and table.knows(from_state):
        targets.add(from_state)
    return sorted(targets)
