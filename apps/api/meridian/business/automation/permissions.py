from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from types import MappingProxyType
from typing import Any


ACTION_PERMISSIONS = MappingProxyType(
    {
        "comms.draft_reply": ("comms.write",),
        "comms.send_email": ("comms.send",),
        "comms.set_status": ("comms.write",),
        "comms.escalate": ("comms.escalate",),
        "workstream.create_candidate": ("workstream.write",),
        "workstream.promote_to_pursuit": ("workstream.write",),
        "engagements.create_task": ("engagements.write",),
        "engagements.update_state": ("engagements.write",),
        "engagements.generate_report_doc": ("engagements.write", "docs.write"),
        "docs.render_template": ("docs.write",),
        "docs.approve_version": ("docs.approve",),
        "docs.share_link": ("docs.share",),
        "billing.create_invoice": ("billing.write",),
        "billing.add_milestone_line": ("billing.write",),
        "billing.post_invoice": ("billing.post",),
        "billing.send_dunning": ("billing.send",),
        "automation.schedule_followup": ("automation.write",),
        "automation.emit_event": ("automation.write",),
        "automation.call_webhook": ("automation.call",),
    }
)


def required_permissions(action_type: str) -> tuple[str, ...]:
    return ACTION_PERMISSIONS.get(action_type, ())


def validate_action_permissions(action_type: str, permissions: Iterable[str]) -> bool:
    granted = set(permissions)
    return all(permission in granted for permission in required_permissions(action_type))


def missing_action_permissions(actions: Iterable[dict[str, Any]], permissions: Iterable[str]) -> list[str]:
    granted = set(permissions)
    missing: list[str] = []
    for action in actions:
        for permission in required_permissions(str(action.get("type", ""))):
            if permission not in granted and permission not in missing:
                missing.append(permission)
    return missing


def action_signature(action: dict[str, Any]) -> str:
    canonical = json.dumps(action, sort_keys=True, separators=(",", ":"), default=str)
    return f"{action.get('type', 'unknown')}#{hashlib.sha256(canonical.encode('utf-8')).hexdigest()[:16]}"


def idempotency_key(rule_id: Any, event_id: Any, action: dict[str, Any]) -> str:
    return f"{rule_id}:{event_id}:{action_signature(action)}"
