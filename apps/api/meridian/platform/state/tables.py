"""Static transition tables for every stateful domain.

Each domain owns a closed ``StrEnum`` of its states and an immutable table
mapping a state to the states it may move to. Tables are built once at import
and exposed read-only through ``TRANSITION_TABLES``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType


class SelfTransitionPolicy(StrEnum):
    REJECT = "reject"
    ALLOW = "allow"


class TransitionDomain(StrEnum):
    PURSUIT = "pursuit"
    CANDIDATE = "candidate"
    COMMS_THREAD = "comms_thread"
    INVOICE = "invoice"
    CONTRACT = "contract"
    TIME_ENTRY = "time_entry"
    CONTRACT_MILESTONE = "contract_milestone"
    CREDIT_NOTE = "credit_note"
    DOCUMENT = "document"
    AUTOMATION_RULE = "automation_rule"
    AUTOMATION_JOB = "automation_job"
    ENGAGEMENT = "engagement"
    FEATURE = "feature"
    STORY_TASK = "story_task"
    AUDIT_STEP = "audit_step"
    JOB_TASK = "job_task"
    MILESTONE = "milestone"
    CHANGE_REQUEST = "change_request"


class PursuitStage(StrEnum):
    QUAL = "qual"
    PINK = "pink"
    RED = "red"
    SUBMIT = "submit"
    WON = "won"
    LOST = "lost"


class CandidateStatus(StrEnum):
    NEW = "new"
    TRIAGED = "triaged"
    NURTURE = "nurture"
    ON_HOLD = "on_hold"
    PROMOTED = "promoted"
    ARCHIVED = "archived"


class CommsThreadStatus(StrEnum):
    ACTIVE = "active"
    PENDING = "pending"
    ESCALATED = "escalated"
    ON_HOLD = "on_hold"
    RESOLVED = "resolved"
    REOPENED = "reopened"


class InvoiceStatus(StrEnum):
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    OVERDUE = "overdue"
    PAID = "paid"
    CREDITED = "credited"
    VOIDED = "voided"
    COLLECTIONS = "collections"
    WRITTEN_OFF = "written_off"


class ContractStatus(StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    TERMINATED = "terminated"
    CANCELLED = "cancelled"


class TimeEntryStatus(StrEnum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ContractMilestoneStatus(StrEnum):
    PENDING = "pending"
    READY = "ready"
    BILLED = "billed"
    PAID = "paid"
    CANCELLED = "cancelled"


class CreditNoteStatus(StrEnum):
    DRAFT = "draft"
    ISSUED = "issued"
    APPLIED = "applied"
    EXPIRED = "expired"


class DocumentStatus(StrEnum):
    DRAFT = "draft"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    RELEASED = "released"
    ARCHIVED = "archived"


class AutomationRuleStatus(StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    DISABLED = "disabled"


class AutomationJobStatus(StrEnum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DEAD = "dead"


class EngagementStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class FeatureState(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    REVIEW = "review"
    DONE = "done"


class StoryTaskState(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    REVIEW = "review"
    DONE = "done"


class AuditStepState(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"


class JobTaskState(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"


class MilestoneStatus(StrEnum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"


class ChangeRequestStatus(StrEnum):
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class TransitionTable:
    """Allowed moves for one domain. Every state must appear as a source."""

    domain: TransitionDomain
    states: type[StrEnum]
    edges: Mapping[str, frozenset[str]]
    self_transition: SelfTransitionPolicy = SelfTransitionPolicy.REJECT

    def __post_init__(self) -> None:
        known = {member.value for member in self.states}
        frozen: dict[str, frozenset[str]] = {}
        for source, targets in self.edges.items():
            source_value = str(source)
            target_values = frozenset(str(target) for target in targets)
            if source_value not in known:
                raise ValueError(f"{self.domain}: unknown source state '{source_value}'")
            unknown = target_values - known
            if unknown:
                raise ValueError(f"{self.domain}: unknown destination states {sorted(unknown)}")
            frozen[source_value] = target_values
        missing = known - set(frozen)
        if missing:
            raise ValueError(f"{self.domain}: states without an entry {sorted(missing)}")
        object.__setattr__(self, "edges", MappingProxyType(frozen))

    def allowed_from(self, state: str) -> frozenset[str]:
        return self.edges.get(state, frozenset())

    def is_terminal(self, state: str) -> bool:
        return state in self.edges and not self.edges[state]

    def knows(self, state: str) -> bool:
        return state in self.edges


def _table(
    domain: TransitionDomain,
    states: type[StrEnum],
    edges: Mapping[StrEnum, set[StrEnum]],
    *,
    self_transition: SelfTransitionPolicy = SelfTransitionPolicy.REJECT,
) -> TransitionTable:
    return TransitionTable(
        domain=domain,
        states=states,
        edges={source: frozenset(targets) for source, targets in edges.items()},
        self_transition=self_transition,
    )


P, C, T = PursuitStage, CandidateStatus, CommsThreadStatus

PURSUIT_TX = _table(
    TransitionDomain.PURSUIT,
    PursuitStage,
    {
        P.QUAL: {P.PINK},
        P.PINK: {P.RED, P.QUAL},
        P.RED: {P.SUBMIT, P.PINK},
        P.SUBMIT: {P.WON, P.LOST},
        P.WON: set(),
        P.LOST: set(),
    },
)

CANDIDATE_TX = _table(
    TransitionDomain.CANDIDATE,
    CandidateStatus,
    {
        C.NEW: {C.TRIAGED},
        C.TRIAGED: {C.NURTURE, C.ON_HOLD, C.PROMOTED, C.ARCHIVED},
        C.NURTURE: {C.TRIAGED, C.ON_HOLD, C.ARCHIVED},
        C.ON_HOLD: {C.TRIAGED, C.ARCHIVED},
        C.PROMOTED: set(),
        C.ARCHIVED: set(),
    },
)

COMMS_THREAD_TX = _table(
    TransitionDomain.COMMS_THREAD,
    CommsThreadStatus,
    {
        T.ACTIVE: {T.PENDING, T.RESOLVED, T.ESCALATED, T.ON_HOLD},
        T.PENDING: {T.ACTIVE, T.RESOLVED, T.ESCALATED},
        T.ESCALATED: {T.ACTIVE, T.RESOLVED, T.ON_HOLD},
        T.ON_HOLD: {T.ACTIVE, T.ESCALATED, T.RESOLVED},
        T.RESOLVED: {T.REOPENED},
        T.REOPENED: {T.ACTIVE, T.RESOLVED, T.ESCALATED, T.ON_HOLD},
    },
)

Inv = InvoiceStatus

INVOICE_TX = _table(
    TransitionDomain.INVOICE,
    InvoiceStatus,
    {
        Inv.DRAFT: {Inv.SENT, Inv.VOIDED},
        Inv.SENT: {Inv.VIEWED, Inv.OVERDUE, Inv.PAID, Inv.CREDITED},
        Inv.VIEWED: {Inv.OVERDUE, Inv.PAID, Inv.CREDITED},
        Inv.OVERDUE: {Inv.PAID, Inv.CREDITED, Inv.COLLECTIONS},
        Inv.PAID: set(),
        Inv.CREDITED: set(),
        Inv.VOIDED: set(),
        Inv.COLLECTIONS: {Inv.PAID, Inv.WRITTEN_OFF},
        Inv.WRITTEN_OFF: set(),
    },
)

CONTRACT_TX = _table(
    TransitionDomain.CONTRACT,
    ContractStatus,
    {
        ContractStatus.DRAFT: {ContractStatus.ACTIVE, ContractStatus.CANCELLED},
        ContractStatus.ACTIVE: {ContractStatus.COMPLETED, ContractStatus.TERMINATED, ContractStatus.SUSPENDED},
        ContractStatus.SUSPENDED: {ContractStatus.ACTIVE, ContractStatus.TERMINATED},
        ContractStatus.COMPLETED: set(),
        ContractStatus.TERMINATED: set(),
        ContractStatus.CANCELLED: set(),
    },
)

TIME_ENTRY_TX = _table(
    TransitionDomain.TIME_ENTRY,
    TimeEntryStatus,
    {
        TimeEntryStatus.SUBMITTED: {TimeEntryStatus.APPROVED, TimeEntryStatus.REJECTED},
        TimeEntryStatus.APPROVED: set(),
        TimeEntryStatus.REJECTED: {TimeEntryStatus.SUBMITTED},
    },
)

CONTRACT_MILESTONE_TX = _table(
    TransitionDomain.CONTRACT_MILESTONE,
    ContractMilestoneStatus,
    {
        ContractMilestoneStatus.PENDING: {ContractMilestoneStatus.READY, ContractMilestoneStatus.CANCELLED},
        ContractMilestoneStatus.READY: {ContractMilestoneStatus.BILLED, ContractMilestoneStatus.CANCELLED},
        ContractMilestoneStatus.BILLED: {ContractMilestoneStatus.PAID},
        ContractMilestoneStatus.PAID: set(),
        ContractMilestoneStatus.CANCELLED: set(),
    },
)

CREDIT_NOTE_TX = _table(
    TransitionDomain.CREDIT_NOTE,
    CreditNoteStatus,
    {
        CreditNoteStatus.DRAFT: {CreditNoteStatus.ISSUED},
        CreditNoteStatus.ISSUED: {CreditNoteStatus.APPLIED, CreditNoteStatus.EXPIRED},
        CreditNoteStatus.APPLIED: set(),
        CreditNoteStatus.EXPIRED: set(),
    },
)

DOCUMENT_TX = _table(
    TransitionDomain.DOCUMENT,
    DocumentStatus,
    {
        DocumentStatus.DRAFT: {DocumentStatus.IN_REVIEW},
        DocumentStatus.IN_REVIEW: {DocumentStatus.APPROVED, DocumentStatus.DRAFT},
        DocumentStatus.APPROVED: {DocumentStatus.RELEASED, DocumentStatus.IN_REVIEW},
        DocumentStatus.RELEASED: {DocumentStatus.ARCHIVED},
        DocumentStatus.ARCHIVED: set(),
    },
)

AUTOMATION_RULE_TX = _table(
    TransitionDomain.AUTOMATION_RULE,
    AutomationRuleStatus,
    {
        AutomationRuleStatus.DRAFT: {AutomationRuleStatus.ACTIVE, AutomationRuleStatus.DISABLED},
        AutomationRuleStatus.ACTIVE: {AutomationRuleStatus.DISABLED},
        AutomationRuleStatus.DISABLED: {AutomationRuleStatus.ACTIVE, AutomationRuleStatus.DRAFT},
    },
)

AUTOMATION_JOB_TX = _table(
    TransitionDomain.AUTOMATION_JOB,
    AutomationJobStatus,
    {
        AutomationJobStatus.QUEUED: {AutomationJobStatus.RUNNING},
        AutomationJobStatus.RUNNING: {AutomationJobStatus.SUCCEEDED, AutomationJobStatus.FAILED},
        # failed jobs are retried or dead-lettered
        AutomationJobStatus.FAILED: {AutomationJobStatus.QUEUED, AutomationJobStatus.DEAD},
        AutomationJobStatus.SUCCEEDED: set(),
        AutomationJobStatus.DEAD: set(),
    },
)

ENGAGEMENT_TX = _table(
    TransitionDomain.ENGAGEMENT,
    EngagementStatus,
    {
        EngagementStatus.ACTIVE: {EngagementStatus.PAUSED, EngagementStatus.COMPLETE, EngagementStatus.CANCELLED},
        EngagementStatus.PAUSED: {EngagementStatus.ACTIVE, EngagementStatus.CANCELLED},
        EngagementStatus.COMPLETE: set(),
        EngagementStatus.CANCELLED: set(),
    },
)

FEATURE_TX = _table(
    TransitionDomain.FEATURE,
    FeatureState,
    {
        FeatureState.TODO: {FeatureState.IN_PROGRESS, FeatureState.BLOCKED},
        FeatureState.IN_PROGRESS: {FeatureState.BLOCKED, FeatureState.REVIEW, FeatureState.DONE},
        FeatureState.BLOCKED: {FeatureState.IN_PROGRESS},
        FeatureState.REVIEW: {FeatureState.IN_PROGRESS, FeatureState.DONE},
        FeatureState.DONE: set(),
    },
)

STORY_TASK_TX = _table(
    TransitionDomain.STORY_TASK,
    StoryTaskState,
    {
        StoryTaskState.TODO: {StoryTaskState.IN_PROGRESS, StoryTaskState.BLOCKED},
        StoryTaskState.IN_PROGRESS: {StoryTaskState.REVIEW, StoryTaskState.BLOCKED, StoryTaskState.DONE},
        StoryTaskState.REVIEW: {StoryTaskState.IN_PROGRESS, StoryTaskState.DONE},
        StoryTaskState.BLOCKED: {StoryTaskState.IN_PROGRESS},
        StoryTaskState.DONE: set(),
    },
)

AUDIT_STEP_TX = _table(
    TransitionDomain.AUDIT_STEP,
    AuditStepState,
    {
        AuditStepState.TODO: {AuditStepState.IN_PROGRESS, AuditStepState.BLOCKED},
        AuditStepState.IN_PROGRESS: {AuditStepState.DONE, AuditStepState.BLOCKED},
        AuditStepState.BLOCKED: {AuditStepState.IN_PROGRESS},
        AuditStepState.DONE: set(),
    },
)

JOB_TASK_TX = _table(
    TransitionDomain.JOB_TASK,
    JobTaskState,
    {
        JobTaskState.TODO: {JobTaskState.IN_PROGRESS, JobTaskState.BLOCKED},
        JobTaskState.IN_PROGRESS: {JobTaskState.DONE, JobTaskState.BLOCKED},
        JobTaskState.BLOCKED: {JobTaskState.IN_PROGRESS},
        JobTaskState.DONE: set(),
    },
)

MILESTONE_TX = _table(
    TransitionDomain.MILESTONE,
    MilestoneStatus,
    {
        MilestoneStatus.PLANNED: {MilestoneStatus.IN_PROGRESS, MilestoneStatus.CANCELLED},
        MilestoneStatus.IN_PROGRESS: {MilestoneStatus.DONE, MilestoneStatus.CANCELLED},
        MilestoneStatus.DONE: set(),
        MilestoneStatus.CANCELLED: set(),
    },
)

CHANGE_REQUEST_TX = _table(
    TransitionDomain.CHANGE_REQUEST,
    ChangeRequestStatus,
    {
        ChangeRequestStatus.DRAFT: {ChangeRequestStatus.REVIEW},
        ChangeRequestStatus.REVIEW: {ChangeRequestStatus.APPROVED, ChangeRequestStatus.REJECTED},
        ChangeRequestStatus.APPROVED: set(),
        ChangeRequestStatus.REJECTED: set(),
    },
)

del P, C, T, Inv

TRANSITION_TABLES: Mapping[TransitionDomain, TransitionTable] = MappingProxyType(
    {
        table.domain: table
        for table in (
            PURSUIT_TX,
            CANDIDATE_TX,
            COMMS_THREAD_TX,
            INVOICE_TX,
            CONTRACT_TX,
            TIME_ENTRY_TX,
            CONTRACT_MILESTONE_TX,
            CREDIT_NOTE_TX,
            DOCUMENT_TX,
            AUTOMATION_RULE_TX,
            AUTOMATION_JOB_TX,
            ENGAGEMENT_TX,
            FEATURE_TX,
            STORY_TASK_TX,
            AUDIT_STEP_TX,
            JOB_TASK_TX,
            MILESTONE_TX,
            CHANGE_REQUEST_TX,
        )
    }
)
