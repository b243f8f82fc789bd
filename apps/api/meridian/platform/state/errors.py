from __future__ import annotations

from typing import Any


class StateGuardError(Exception):
    """Base error for business-rule rejections raised by the state guards."""


class UnknownTransitionDomainError(StateGuardError):
    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(f"Unknown transition domain '{domain}'")


class InvalidTransitionError(StateGuardError):
    """Requested state change is not an edge of the domain's transition table."""

    def __init__(self, domain: str, from_state: str, to_state: str, label: str) -> None:
        self.domain = domain
        self.from_state = from_state
        self.to_state = to_state
        self.label = label
        super().__init__(f"Invalid {label} {from_state}->{to_state}")

    def to_detail(self) -> dict[str, Any]:
        return {
            "message": str(self),
            "domain": self.domain,
            "from": self.from_state,
            "to": self.to_state,
            "label": self.label,
        }


class PreconditionNotMetError(StateGuardError):
    """Structurally legal transition blocked by an unmet gate."""

    def __init__(self, precondition: str, message: str, missing: list[str] | None = None) -> None:
        self.precondition = precondition
        self.missing = list(missing or [])
        super().__init__(message)

    def to_detail(self) -> dict[str, Any]:
        return {"message": str(self), "precondition": self.precondition, "missing": self.missing}


class CycleDetectedError(StateGuardError):
    def __init__(self, org_id: int, from_node: Any, to_node: Any) -> None:
        self.org_id = org_id
        self.from_node = from_node
        self.to_node = to_node
        super().__init__("Dependency would create a cycle")

    def to_detail(self) -> dict[str, Any]:
        return {
            "message": str(self),
            "org_id": self.org_id,
            "from": str(self.from_node),
            "to": str(self.to_node),
        }
