from __future__ import annotations

from contextvars import ContextVar, Token

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(value: str | None) -> Token[str | None]:
    return correlation_id_var.set(value)


def reset_correlation_id(token: Token[str | None]) -> None:
    correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()



org_id_var: ContextVar[int | None] = ContextVar("org_id", default=None)


def set_org_id(value: int | None) -> Token[int | None]:
    return org_id_var.set(value)


def reset_org_id(token: Token[int | None]) -> None:
    org_id_var.reset(token)


def get_org_id() -> int | None:
    return org_id_var.get()
