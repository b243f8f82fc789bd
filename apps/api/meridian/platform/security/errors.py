from __future__ import annotations


class AuthorizationError(Exception):
    """Base authorization error for organization scope failures."""


class OrgScopeError(AuthorizationError):
    """Raised when a record or payload belongs to a different organization."""

    def __init__(self, resource: str, org_id: int, target_org_id: int | None) -> None:
        self.resource = resource
        self.org_id = org_id
        self.target_org_id = target_org_id
        super().__init__(f"Out-of-scope organization for resource '{resource}'")
