from __future__ import annotations

import pytest
from sqlalchemy import select

from meridian.business.workstream.models import Candidate
from meridian.business.workstream.repository import CandidateRepository
from meridian.metrics import org_scope_denied_total
from meridian.platform.security import OrgScopeError, apply_org_filter, validate_org_write
from meridian.platform.security.context import AuthContext


def _denied(resource: str, action: str) -> float:
    return org_scope_denied_total.labels(resource=resource, action=action)._value.get()


def test_write_to_other_org_is_rejected_and_counted() -> None:
    ctx = AuthContext(user_id="scope-user", org_id=1)
    before = _denied("candidate", "create")

    with pytest.raises(OrgScopeError) as exc_info:
        validate_org_write("candidate", {"org_id": 2, "title": "Elsewhere"}, ctx, action="create")

    assert exc_info.value.org_id == 1
    assert exc_info.value.target_org_id == 2
    assert _denied("candidate", "create") == before + 1


def test_write_to_own_org_or_unset_org_passes() -> None:
    ctx = AuthContext(user_id="scope-user", org_id=3)

    validate_org_write("candidate", {"org_id": 3}, ctx)
    validate_org_write("candidate", {"title": "No org yet"}, ctx)


def test_repository_write_check_uses_its_resource_name() -> None:
    ctx = AuthContext(user_id="scope-user", org_id=1)
    repository = CandidateRepository()

    with pytest.raises(OrgScopeError) as exc_info:
        repository.validate_write_security({"org_id": 9}, ctx, action="update")

    assert exc_info.value.resource == repository.resource


def test_org_filter_adds_org_predicate() -> None:
    ctx = AuthContext(user_id="scope-user", org_id=5)

    compiled = apply_org_filter(select(Candidate), ctx).compile(compile_kwargs={"literal_binds": True})

    assert "ws_candidate.org_id = 5" in str(compiled)
