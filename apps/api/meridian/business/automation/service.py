from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any

from fastapi import HTTPException, status
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from meridian.business.automation.conditions import evaluate_condition, matches_trigger
from meridian.business.automation.models import (
    AutomationDedupeKey,
    AutomationEvent,
    AutomationJob,
    AutomationLog,
    AutomationRule,
    utcnow,
)
from meridian.business.automation.permissions import idempotency_key, missing_action_permissions
from meridian.business.automation.repository import EventRepository, JobRepository, LogRepository, RuleRepository
from meridian.business.automation.schemas import (
    EventIngest,
    IngestResult,
    JobRead,
    LogRead,
    ProcessResult,
    RuleCreate,
    RuleEvaluation,
    RuleOutcome,
    RuleRead,
    RuleStatusChange,
    RuleTestRequest,
    RuleTestResult,
    RuleUpdate,
)
from meridian.core.config import get_settings
from meridian.metrics import (
    observe_automation_event,
    observe_automation_job,
    observe_automation_outcome,
    observe_automation_processing,
)
from meridian.platform.security.context import AuthContext
from meridian.platform.state import (
    DedupeRecord,
    PreconditionNotMetError,
    TransitionDomain,
    is_duplicate,
    resolve_window,
    within_throttle,
)
from meridian.services.state_changes import compare_and_set_status, guard_transition, raise_precondition
from meridian.services.work_events import record_work_event


logger = logging.getLogger("meridian.automation")
tracer = trace.get_tracer("meridian.automation")

JOB_ACTION_TARGETS = MappingProxyType(
    {
        "start": "running",
        "succeed": "succeeded",
        "fail": "failed",
        "retry": "queued",
        "dead_letter": "dead",
    }
)
MAX_BACKOFF_MINUTES = 60


def _event_context(event_type: str, payload: dict[str, Any] | None, **extra: Any) -> dict[str, Any]:
    return {"type": event_type, "event_type": event_type, "payload": payload or {}, **extra}


@dataclass(slots=True)
class AutomationService:
    rule_repository: RuleRepository = RuleRepository()
    event_repository: EventRepository = EventRepository()
    job_repository: JobRepository = JobRepository()
    log_repository: LogRepository = LogRepository()

    # rules

    def create_rule(self, session: Session, ctx: AuthContext, payload: RuleCreate) -> RuleRead:
        actions = [action.model_dump() for action in payload.actions]
        self._ensure_action_permissions(ctx, actions)
        rule = AutomationRule(
            org_id=ctx.org_id,
            name=payload.name,
            status=payload.status,
            trigger_json=payload.trigger.model_dump(),
            conditions_json=payload.conditions,
            throttle_per=payload.throttle.per if payload.throttle else None,
            throttle_limit=payload.throttle.limit if payload.throttle else None,
            actions_json=actions,
            created_by=ctx.user_id,
        )
        session.add(rule)
        session.flush()
        record_work_event(session, ctx, "automation_rule", rule.id, "automation_rule.created", {"name": rule.name})
        session.commit()
        session.refresh(rule)
        logger.info("automation.rule_created", extra={"org_id": ctx.org_id, "rule_id": str(rule.id), "status": rule.status})
        return RuleRead.model_validate(rule)

    def list_rules(self, session: Session, ctx: AuthContext, status_filter: str | None = None) -> list[RuleRead]:
        filters = [AutomationRule.status == status_filter] if status_filter else []
        rows = self.rule_repository.list_records(session, ctx, *filters, order_by=AutomationRule.updated_at.desc())
        return [RuleRead.model_validate(row) for row in rows]

    def get_rule(self, session: Session, ctx: AuthContext, rule_id: uuid.UUID) -> RuleRead:
        return RuleRead.model_validate(self._get_rule(session, ctx, rule_id))

    def update_rule(self, session: Session, ctx: AuthContext, rule_id: uuid.UUID, payload: RuleUpdate) -> RuleRead:
        rule = self._get_rule(session, ctx, rule_id)
        changes = payload.model_fields_set
        if "name" in changes and payload.name is not None:
            rule.name = payload.name
        if "trigger" in changes and payload.trigger is not None:
            rule.trigger_json = payload.trigger.model_dump()
        if "conditions" in changes:
            rule.conditions_json = payload.conditions
        if "throttle" in changes:
            rule.throttle_per = payload.throttle.per if payload.throttle else None
            rule.throttle_limit = payload.throttle.limit if payload.throttle else None
        if "actions" in changes and payload.actions is not None:
            actions = [action.model_dump() for action in payload.actions]
            self._ensure_action_permissions(ctx, actions)
            rule.actions_json = actions
        rule.updated_at = utcnow()
        record_work_event(
            session, ctx, "automation_rule", rule.id, "automation_rule.updated", {"fields": sorted(changes)}
        )
        session.commit()
        session.refresh(rule)
        return RuleRead.model_validate(rule)

    def change_rule_status(
        self, session: Session, ctx: AuthContext, rule_id: uuid.UUID, payload: RuleStatusChange
    ) -> RuleRead:
        rule = self._get_rule(session, ctx, rule_id)
        from_status = rule.status
        guard_transition(
            ctx, TransitionDomain.AUTOMATION_RULE, from_status, payload.status, entity_id=rule.id, label="automation rule"
        )
        compare_and_set_status(
            session,
            AutomationRule,
            rule.id,
            ctx,
            domain=TransitionDomain.AUTOMATION_RULE,
            expected=from_status,
            values={"status": payload.status, "updated_at": utcnow()},
        )
        record_work_event(
            session,
            ctx,
            "automation_rule",
            rule.id,
            f"automation_rule.status.{payload.status}",
            {"from": from_status, "to": payload.status},
        )
        session.commit()
        session.refresh(rule)
        logger.info(
            "state.changed",
            extra={
                "org_id": ctx.org_id,
                "domain": TransitionDomain.AUTOMATION_RULE.value,
                "rule_id": str(rule.id),
                "from_state": from_status,
                "to_state": rule.status,
            },
        )
        return RuleRead.model_validate(rule)

    def test_rule(self, session: Session, ctx: AuthContext, payload: RuleTestRequest) -> RuleTestResult:
        """Dry-run a rule against a sample event. Nothing is written."""
        rule = payload.rule
        sample = payload.sample_event
        actions = [action.model_dump() for action in rule.actions]

        if not matches_trigger(sample.type, rule.trigger.model_dump()):
            return RuleTestResult(
                matches=False,
                reason="Event type does not match trigger",
                evaluation=RuleEvaluation(trigger_matched=False, conditions_passed=False, throttle_ok=False),
            )

        extras = sample.model_dump(exclude={"type", "payload"})
        try:
            conditions_passed = evaluate_condition(rule.conditions, _event_context(sample.type, sample.payload, **extras))
        except re.error as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Test failed: {exc}")
        if not conditions_passed:
            return RuleTestResult(
                matches=False,
                reason="Conditions not satisfied",
                evaluation=RuleEvaluation(trigger_matched=True, conditions_passed=False, throttle_ok=False),
            )

        throttle_ok = True
        if rule.throttle is not None:
            firings = []
            if payload.rule_id is not None:
                firings = self._recent_firings(session, ctx.org_id, payload.rule_id, rule.throttle.per)
            throttle_ok = within_throttle(firings, rule.throttle.per, rule.throttle.limit, now=utcnow())
        if not throttle_ok:
            return RuleTestResult(
                matches=False,
                reason="Throttle limit exceeded",
                evaluation=RuleEvaluation(trigger_matched=True, conditions_passed=True, throttle_ok=False),
            )

        return RuleTestResult(
            matches=True,
            actions=actions,
            evaluation=RuleEvaluation(trigger_matched=True, conditions_passed=True, throttle_ok=True),
        )

    # events

    def ingest_event(self, session: Session, org_id: int, payload: EventIngest) -> IngestResult:
        settings = get_settings()
        with tracer.start_as_current_span("automation.event.ingest") as span:
            span.set_attribute("org_id", org_id)
            span.set_attribute("event_type", payload.type)
            if payload.correlation_id:
                span.set_attribute("correlation_id", payload.correlation_id)

            if payload.dedupe_key and self._seen_recently(session, org_id, payload.dedupe_key):
                session.commit()
                return self._duplicate(span, org_id, payload)

            event = AutomationEvent(
                org_id=org_id,
                event_type=payload.type,
                aggregate_type=payload.aggregate_type,
                aggregate_id=payload.aggregate_id,
                payload=payload.payload,
                source=payload.source,
                correlation_id=payload.correlation_id,
                dedupe_key=payload.dedupe_key,
            )
            session.add(event)
            session.flush()
            if payload.dedupe_key:
                session.add(AutomationDedupeKey(org_id=org_id, dedupe_key=payload.dedupe_key, event_id=event.id))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return self._duplicate(span, org_id, payload)

            span.set_attribute("event_id", str(event.id))
            observe_automation_event("ingested")
            logger.info(
                "automation.event_ingested",
                extra={"org_id": org_id, "event_id": str(event.id), "dedupe_key": payload.dedupe_key},
            )

        outcomes: list[RuleOutcome] = []
        if settings.automation_process_on_ingest:
            outcomes = self.process_event(session, event)
        return IngestResult(event_id=event.id, ingested=True, outcomes=outcomes)

    def ingest_envelope(self, session: Session, envelope: dict[str, Any]) -> IngestResult | None:
        """Feed a published domain event into automation. Envelopes without an org are ignored."""
        org_id = envelope.get("org_id")
        event_type = envelope.get("event_type")
        if not isinstance(org_id, int) or not isinstance(event_type, str) or not event_type:
            return None
        event_id = str(envelope.get("event_id") or "").strip()
        entity_id = envelope.get("entity_id")
        payload = envelope.get("payload") if isinstance(envelope.get("payload"), dict) else {}
        ingest = EventIngest(
            type=event_type,
            source="domain",
            aggregate_type=envelope.get("entity_type"),
            aggregate_id=str(entity_id) if entity_id is not None else None,
            payload=payload,
            correlation_id=envelope.get("correlation_id"),
            dedupe_key=f"{event_type}:{event_id}" if event_id else None,
        )
        return self.ingest_event(session, org_id, ingest)

    def process_pending(self, session: Session, ctx: AuthContext, limit: int = 100) -> ProcessResult:
        events = session.scalars(
            self.event_repository.query(ctx)
            .where(AutomationEvent.processed_at.is_(None))
            .order_by(AutomationEvent.occurred_at.asc())
            .limit(limit)
        ).all()
        outcomes: list[RuleOutcome] = []
        for event in events:
            outcomes.extend(self.process_event(session, event))
        return ProcessResult(processed_events=len(events), outcomes=outcomes)

    def process_event(self, session: Session, event: AutomationEvent) -> list[RuleOutcome]:
        started = time.perf_counter()
        outcomes: list[RuleOutcome] = []
        with tracer.start_as_current_span("automation.event.process") as span:
            span.set_attribute("org_id", event.org_id)
            span.set_attribute("event_id", str(event.id))
            span.set_attribute("event_type", event.event_type)
            rules = session.scalars(
                select(AutomationRule)
                .where(AutomationRule.org_id == event.org_id, AutomationRule.status == "active")
                .order_by(AutomationRule.created_at.asc())
            ).all()
            context = _event_context(
                event.event_type,
                event.payload,
                aggregate_type=event.aggregate_type,
                aggregate_id=event.aggregate_id,
                source=event.source,
                correlation_id=event.correlation_id,
            )
            matched = [rule for rule in rules if matches_trigger(event.event_type, rule.trigger_json)]
            for rule in matched:
                outcomes.append(self._apply_rule(session, event, rule, context))

            event.processed_at = utcnow()
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, "job idempotency conflict"))
                logger.warning(
                    "automation.job_conflict",
                    extra={"org_id": event.org_id, "event_id": str(event.id), "error": str(exc)},
                )
                # processed_at was rolled back; the event stays pending
                outcomes = [
                    self._record_outcome(session, event, rule, "error", reason="job_idempotency_conflict")
                    for rule in matched
                ]
                session.commit()
                span.set_attribute("rules_matched", len(outcomes))
                return outcomes
            span.set_attribute("rules_matched", len(outcomes))
        observe_automation_processing(time.perf_counter() - started)
        return outcomes

    def list_logs(
        self,
        session: Session,
        ctx: AuthContext,
        rule_id: uuid.UUID | None = None,
        event_id: uuid.UUID | None = None,
        outcome: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[LogRead]:
        stmt = self.log_repository.query(ctx)
        if rule_id is not None:
            stmt = stmt.where(AutomationLog.rule_id == rule_id)
        if event_id is not None:
            stmt = stmt.where(AutomationLog.event_id == event_id)
        if outcome:
            stmt = stmt.where(AutomationLog.outcome == outcome)
        rows = session.scalars(stmt.order_by(AutomationLog.created_at.desc()).offset(offset).limit(limit)).all()
        return [LogRead.model_validate(row) for row in rows]

    # jobs

    def list_jobs(
        self,
        session: Session,
        ctx: AuthContext,
        status_filter: str | None = None,
        rule_id: uuid.UUID | None = None,
    ) -> list[JobRead]:
        filters: list[Any] = []
        if status_filter:
            filters.append(AutomationJob.status == status_filter)
        if rule_id is not None:
            filters.append(AutomationJob.rule_id == rule_id)
        rows = self.job_repository.list_records(session, ctx, *filters, order_by=AutomationJob.created_at.asc())
        return [JobRead.model_validate(row) for row in rows]

    def get_job(self, session: Session, ctx: AuthContext, job_id: uuid.UUID) -> JobRead:
        return JobRead.model_validate(self._get_job(session, ctx, job_id))

    def transition_job(
        self,
        session: Session,
        ctx: AuthContext,
        job_id: uuid.UUID,
        action: str,
        error_message: str | None = None,
    ) -> JobRead:
        job = self._get_job(session, ctx, job_id)
        to_status = JOB_ACTION_TARGETS[action]
        from_status = job.status
        guard_transition(ctx, TransitionDomain.AUTOMATION_JOB, from_status, to_status, entity_id=job.id, label="automation job")

        now = utcnow()
        values: dict[str, Any] = {"status": to_status, "updated_at": now}
        if action == "start":
            values.update(attempts=AutomationJob.attempts + 1, started_at=now, next_run_at=None, error_message=None)
        elif action == "succeed":
            values.update(finished_at=now)
        elif action == "fail":
            values.update(finished_at=now, error_message=error_message)
        elif action == "retry":
            if job.attempts >= job.max_attempts:
                raise_precondition(
                    ctx,
                    PreconditionNotMetError(
                        "attempts_remaining",
                        f"job used {job.attempts} of {job.max_attempts} attempts",
                    ),
                    entity_id=job.id,
                )
            backoff = min(2**job.attempts, MAX_BACKOFF_MINUTES)
            values.update(next_run_at=now + timedelta(minutes=backoff), finished_at=None)
        elif action == "dead_letter":
            values.update(finished_at=now, error_message=error_message or job.error_message)

        compare_and_set_status(
            session,
            AutomationJob,
            job.id,
            ctx,
            domain=TransitionDomain.AUTOMATION_JOB,
            expected=from_status,
            values=values,
        )
        record_work_event(
            session, ctx, "automation_job", job.id, f"automation_job.{to_status}", {"from": from_status, "to": to_status}
        )
        session.commit()
        session.refresh(job)
        observe_automation_job(job.action_type, to_status)
        logger.info(
            "automation.job_transitioned",
            extra={
                "org_id": ctx.org_id,
                "job_id": str(job.id),
                "action_type": job.action_type,
                "from_state": from_status,
                "to_state": to_status,
            },
        )
        return JobRead.model_validate(job)

    # helpers

    def _apply_rule(
        self,
        session: Session,
        event: AutomationEvent,
        rule: AutomationRule,
        context: dict[str, Any],
    ) -> RuleOutcome:
        with tracer.start_as_current_span("automation.rule.evaluate") as span:
            span.set_attribute("rule_id", str(rule.id))
            span.set_attribute("event_id", str(event.id))
            try:
                if not evaluate_condition(rule.conditions_json, context):
                    return self._record_outcome(session, event, rule, "skipped", reason="conditions_not_met")

                firings = self._recent_firings(session, event.org_id, rule.id, rule.throttle_per)
                if not within_throttle(firings, rule.throttle_per, rule.throttle_limit, now=utcnow()):
                    return self._record_outcome(session, event, rule, "throttled", reason="throttle_limit_exceeded")

                job_ids = self._queue_jobs(session, event, rule)
            except re.error as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                return self._record_outcome(session, event, rule, "error", reason=str(exc))

            span.set_attribute("jobs_queued", len(job_ids))
            return self._record_outcome(session, event, rule, "triggered", job_ids=job_ids)

    def _queue_jobs(self, session: Session, event: AutomationEvent, rule: AutomationRule) -> list[uuid.UUID]:
        job_ids: list[uuid.UUID] = []
        for action in rule.actions_json or []:
            key = idempotency_key(rule.id, event.id, action)
            existing = session.scalar(select(AutomationJob.id).where(AutomationJob.idempotency_key == key))
            if existing is not None:
                job_ids.append(existing)
                continue
            action_type = str(action.get("type", "unknown"))
            job = AutomationJob(
                org_id=event.org_id,
                rule_id=rule.id,
                event_id=event.id,
                action_type=action_type,
                payload=action.get("params") or {},
                status="queued",
                idempotency_key=key,
            )
            session.add(job)
            session.flush()
            job_ids.append(job.id)
            observe_automation_job(action_type, "queued")
            logger.info(
                "automation.job_queued",
                extra={
                    "org_id": event.org_id,
                    "job_id": str(job.id),
                    "rule_id": str(rule.id),
                    "event_id": str(event.id),
                    "action_type": action_type,
                },
            )
        return job_ids

    def _record_outcome(
        self,
        session: Session,
        event: AutomationEvent,
        rule: AutomationRule,
        outcome: str,
        *,
        reason: str | None = None,
        job_ids: list[uuid.UUID] | None = None,
    ) -> RuleOutcome:
        metrics: dict[str, Any] = {}
        if reason:
            metrics["reason"] = reason
        if job_ids:
            metrics["job_ids"] = [str(job_id) for job_id in job_ids]
        session.add(
            AutomationLog(
                org_id=event.org_id,
                event_id=event.id,
                rule_id=rule.id,
                outcome=outcome,
                error_message=reason if outcome == "error" else None,
                metrics_json=metrics or None,
            )
        )
        observe_automation_outcome(outcome)
        logger.info(
            "automation.rule_outcome",
            extra={
                "org_id": event.org_id,
                "rule_id": str(rule.id),
                "event_id": str(event.id),
                "outcome": outcome,
                "reason": reason,
            },
        )
        return RuleOutcome(rule_id=rule.id, outcome=outcome, job_ids=job_ids or [], reason=reason)

    def _recent_firings(self, session: Session, org_id: int, rule_id: uuid.UUID, throttle_per: str | None) -> list[datetime]:
        duration = resolve_window(throttle_per)
        if duration is None:
            return []
        since = utcnow() - duration
        return list(
            session.scalars(
                select(AutomationLog.created_at).where(
                    AutomationLog.org_id == org_id,
                    AutomationLog.rule_id == rule_id,
                    AutomationLog.outcome == "triggered",
                    AutomationLog.created_at >= since,
                )
            ).all()
        )

    def _seen_recently(self, session: Session, org_id: int, dedupe_key: str) -> bool:
        retention = timedelta(hours=get_settings().dedupe_retention_hours)
        now = utcnow()
        session.execute(
            delete(AutomationDedupeKey).where(
                AutomationDedupeKey.org_id == org_id,
                AutomationDedupeKey.recorded_at < now - retention,
            )
        )
        rows = session.scalars(
            select(AutomationDedupeKey).where(
                AutomationDedupeKey.org_id == org_id,
                AutomationDedupeKey.dedupe_key == dedupe_key,
            )
        ).all()
        records = [DedupeRecord(org_id=row.org_id, dedupe_key=row.dedupe_key, recorded_at=row.recorded_at) for row in rows]
        return is_duplicate(org_id, dedupe_key, records, now=now, retention=retention)

    def _duplicate(self, span: Any, org_id: int, payload: EventIngest) -> IngestResult:
        span.set_attribute("duplicate", True)
        observe_automation_event("duplicate")
        logger.info(
            "automation.event_duplicate",
            extra={"org_id": org_id, "dedupe_key": payload.dedupe_key, "reason": "dedupe_key_seen"},
        )
        return IngestResult(event_id=None, duplicate=True)

    def _ensure_action_permissions(self, ctx: AuthContext, actions: list[dict[str, Any]]) -> None:
        if ctx.is_super_admin:
            return
        missing = missing_action_permissions(actions, ctx.permissions)
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "ACTION_PERMISSION_DENIED", "message": "Missing action permissions", "missing": missing},
            )

    def _get_rule(self, session: Session, ctx: AuthContext, rule_id: uuid.UUID) -> AutomationRule:
        rule = self.rule_repository.get(session, ctx, rule_id)
        if rule is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="automation rule not found")
        return rule

    def _get_job(self, session: Session, ctx: AuthContext, job_id: uuid.UUID) -> AutomationJob:
        job = self.job_repository.get(session, ctx, job_id)
        if job is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="automation job not found")
        return job


automation_service = AutomationService()
