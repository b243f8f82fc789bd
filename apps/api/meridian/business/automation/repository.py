from __future__ import annotations

from meridian.business.automation.models import AutomationEvent, AutomationJob, AutomationLog, AutomationRule
from meridian.platform.security.repository import BaseRepository


class RuleRepository(BaseRepository[AutomationRule]):
    resource = "automation.rule"
    model = AutomationRule


class EventRepository(BaseRepository[AutomationEvent]):
    resource = "automation.event"
    model = AutomationEvent


class JobRepository(BaseRepository[AutomationJob]):
    resource = "automation.job"
    model = AutomationJob


class LogRepository(BaseRepository[AutomationLog]):
    resource = "automation.log"
    model = AutomationLog
