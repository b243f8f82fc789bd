from meridian.business.automation.api import router
from meridian.business.automation.conditions import evaluate_condition, matches_trigger
from meridian.business.automation.models import (
    AutomationDedupeKey,
    AutomationEvent,
    AutomationJob,
    AutomationLog,
    AutomationRule,
)
from meridian.business.automation.permissions import ACTION_PERMISSIONS, validate_action_permissions
from meridian.business.automation.service import AutomationService, automation_service

__all__ = [
    "router",
    "ACTION_PERMISSIONS",
    "AutomationDedupeKey",
    "AutomationEvent",
    "AutomationJob",
    "AutomationLog",
    "AutomationRule",
    "AutomationService",
    "automation_service",
    "evaluate_condition",
    "matches_trigger",
    "validate_action_permissions",
]
