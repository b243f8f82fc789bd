"""baseline schema

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return columns


def upgrade() -> None:
    op.create_table(
        "work_event",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("item_type", sa.String(length=32), nullable=False),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("event_name", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("actor_user_id", sa.String(length=128), nullable=True),
        sa.Column("correlation_id", sa.String(length=128), nullable=True),
        sa.Column("happened_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_event_org_id", "work_event", ["org_id"], unique=False)
    op.create_index("ix_work_event_item", "work_event", ["org_id", "item_type", "item_id", "happened_at"], unique=False)

    # workstream
    op.create_table(
        "ws_candidate",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("one_liner_scope", sa.String(length=280), nullable=True),
        sa.Column("value_band", sa.String(length=8), nullable=True),
        sa.Column("confidence", sa.Numeric(3, 2), nullable=True),
        sa.Column("next_step", sa.String(length=200), nullable=True),
        sa.Column("status", sa.String(length=12), server_default="new", nullable=False),
        sa.Column("owner_user_id", sa.String(length=128), nullable=True),
        sa.Column("last_touch_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ws_candidate_org_status", "ws_candidate", ["org_id", "status"], unique=False)

    op.create_table(
        "ws_pursuit",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("candidate_id", sa.Uuid(), nullable=False),
        sa.Column("stage", sa.String(length=8), server_default="qual", nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("forecast_value_usd", sa.Numeric(18, 2), nullable=True),
        sa.Column("lost_reason", sa.String(length=280), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["candidate_id"], ["ws_candidate.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "candidate_id", name="uq_ws_pursuit_candidate"),
    )
    op.create_index("ix_ws_pursuit_org_stage", "ws_pursuit", ["org_id", "stage"], unique=False)

    op.create_table(
        "ws_pursuit_checklist",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("pursuit_id", sa.Uuid(), nullable=False),
        sa.Column("checklist_type", sa.String(length=8), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("is_complete", sa.Boolean(), server_default="0", nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["pursuit_id"], ["ws_pursuit.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "pursuit_id", "checklist_type", "name", name="uq_ws_pursuit_checklist_name"),
    )

    op.create_table(
        "ws_proposal",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("pursuit_id", sa.Uuid(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("doc_ref", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=12), server_default="draft", nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["pursuit_id"], ["ws_pursuit.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "pursuit_id", "version", name="uq_ws_proposal_version"),
    )

    # engagements
    op.create_table(
        "eng_engagement",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("engagement_type", sa.String(length=10), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("owner_user_id", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=12), server_default="active", nullable=False),
        sa.Column("health", sa.String(length=6), server_default="green", nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_eng_engagement_org_status", "eng_engagement", ["org_id", "status", "due_at"], unique=False)

    op.create_table(
        "eng_feature",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("engagement_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("priority", sa.String(length=12), server_default="medium", nullable=False),
        sa.Column("state", sa.String(length=12), server_default="todo", nullable=False),
        sa.Column("order_index", sa.Integer(), server_default="0", nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["engagement_id"], ["eng_engagement.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_eng_feature_org_engagement_state", "eng_feature", ["org_id", "engagement_id", "state"], unique=False
    )

    op.create_table(
        "eng_milestone",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("engagement_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("milestone_type", sa.String(length=24), server_default="delivery", nullable=False),
        sa.Column("status", sa.String(length=12), server_default="planned", nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["engagement_id"], ["eng_engagement.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "eng_change_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("engagement_id", sa.Uuid(), nullable=False),
        sa.Column("origin", sa.String(length=10), nullable=False),
        sa.Column("scope_delta", sa.Text(), nullable=True),
        sa.Column("hours_delta", sa.Numeric(18, 2), nullable=True),
        sa.Column("value_delta", sa.Numeric(18, 2), nullable=True),
        sa.Column("status", sa.String(length=12), server_default="draft", nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["engagement_id"], ["eng_engagement.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_eng_change_request_org_status", "eng_change_request", ["org_id", "engagement_id", "status"], unique=False
    )

    op.create_table(
        "eng_dependency",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("from_type", sa.String(length=16), nullable=False),
        sa.Column("from_id", sa.String(length=64), nullable=False),
        sa.Column("to_type", sa.String(length=16), nullable=False),
        sa.Column("to_id", sa.String(length=64), nullable=False),
        sa.Column("dep_type", sa.String(length=2), server_default="FS", nullable=False),
        sa.Column("lag_days", sa.Integer(), server_default="0", nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "org_id", "from_type", "from_id", "to_type", "to_id", "dep_type", name="uq_eng_dependency_edge"
        ),
    )
    op.create_index("ix_eng_dependency_org_to", "eng_dependency", ["org_id", "to_type", "to_id"], unique=False)

    # billing
    op.create_table(
        "billing_contract",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("engagement_id", sa.Uuid(), nullable=True),
        sa.Column("contract_type", sa.String(length=20), nullable=False),
        sa.Column("currency", sa.String(length=3), server_default="USD", nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("retainer_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("included_hours", sa.Numeric(8, 2), nullable=True),
        sa.Column("budget_cap", sa.Numeric(12, 2), nullable=True),
        sa.Column("status", sa.String(length=16), server_default="draft", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_billing_contract_org_status", "billing_contract", ["org_id", "status"], unique=False)

    op.create_table(
        "billing_contract_milestone",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("contract_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=12), server_default="pending", nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["contract_id"], ["billing_contract.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "billing_time_entry",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("contract_id", sa.Uuid(), nullable=True),
        sa.Column("person_ref", sa.String(length=128), nullable=False),
        sa.Column("hours", sa.Numeric(5, 2), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("bill_rate", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("currency", sa.String(length=3), server_default="USD", nullable=False),
        sa.Column("status", sa.String(length=12), server_default="submitted", nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(length=128), nullable=True),
        sa.Column("rejected_reason", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["contract_id"], ["billing_contract.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_billing_time_entry_org_contract_date",
        "billing_time_entry",
        ["org_id", "contract_id", "entry_date"],
        unique=False,
    )

    op.create_table(
        "billing_invoice",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("contract_id", sa.Uuid(), nullable=True),
        sa.Column("invoice_number", sa.String(length=64), nullable=False),
        sa.Column("currency", sa.String(length=3), server_default="USD", nullable=False),
        sa.Column("status", sa.String(length=16), server_default="draft", nullable=False),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("period_end", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("tax_amount", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("paid_amount", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["contract_id"], ["billing_contract.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "invoice_number", name="uq_billing_invoice_number_org"),
    )
    op.create_index("ix_billing_invoice_org_status", "billing_invoice", ["org_id", "status"], unique=False)

    op.create_table(
        "billing_payment",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), server_default="USD", nullable=False),
        sa.Column("payment_method", sa.String(length=20), nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reference_number", sa.String(length=100), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["invoice_id"], ["billing_invoice.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_billing_payment_invoice", "billing_payment", ["invoice_id"], unique=False)

    op.create_table(
        "billing_credit_note",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=12), server_default="draft", nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["invoice_id"], ["billing_invoice.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    # documents
    op.create_table(
        "doc_document",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("doc_type", sa.String(length=32), nullable=False),
        sa.Column("classification", sa.String(length=32), server_default="internal", nullable=False),
        sa.Column("source", sa.String(length=32), server_default="file", nullable=False),
        sa.Column("storage_url", sa.String(length=500), nullable=True),
        sa.Column("mime_type", sa.String(length=100), nullable=True),
        sa.Column("size_bytes", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.String(length=16), server_default="draft", nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_doc_document_org_status", "doc_document", ["org_id", "status"], unique=False)
    op.create_index("ix_doc_document_org_type", "doc_document", ["org_id", "doc_type"], unique=False)

    op.create_table(
        "doc_document_version",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("vnum", sa.Integer(), nullable=False),
        sa.Column("author_user_id", sa.String(length=128), nullable=True),
        sa.Column("change_note", sa.String(length=500), nullable=True),
        sa.Column("storage_ref", sa.String(length=500), nullable=False),
        sa.Column("hash_sha256", sa.String(length=64), nullable=False),
        sa.Column("hash_prefix", sa.String(length=12), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["document_id"], ["doc_document.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("document_id", "vnum", name="uq_doc_document_version_vnum"),
    )
    op.create_index(
        "ix_doc_document_version_org_hash", "doc_document_version", ["org_id", "hash_prefix"], unique=False
    )

    # comms
    op.create_table(
        "comms_thread",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("channel", sa.String(length=16), nullable=False),
        sa.Column("subject", sa.String(length=500), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="active", nullable=False),
        sa.Column("process_state", sa.String(length=20), server_default="triage", nullable=False),
        sa.Column("assigned_user_id", sa.String(length=128), nullable=True),
        sa.Column("first_msg_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_msg_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_comms_thread_org_status", "comms_thread", ["org_id", "process_state", "status"], unique=False
    )

    op.create_table(
        "comms_message",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("thread_id", sa.Uuid(), nullable=False),
        sa.Column("direction", sa.String(length=3), nullable=False),
        sa.Column("from_addr", sa.String(length=256), nullable=True),
        sa.Column("snippet", sa.String(length=1000), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["thread_id"], ["comms_thread.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_comms_message_thread_sent", "comms_message", ["thread_id", "sent_at"], unique=False)

    # automation
    op.create_table(
        "automation_rule",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("status", sa.String(length=16), server_default="draft", nullable=False),
        sa.Column("trigger_json", sa.JSON(), nullable=False),
        sa.Column("conditions_json", sa.JSON(), nullable=True),
        sa.Column("throttle_per", sa.String(length=16), nullable=True),
        sa.Column("throttle_limit", sa.Integer(), nullable=True),
        sa.Column("actions_json", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_automation_rule_org_status", "automation_rule", ["org_id", "status"], unique=False)

    op.create_table(
        "automation_event",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("aggregate_type", sa.String(length=50), nullable=True),
        sa.Column("aggregate_id", sa.String(length=64), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("source", sa.String(length=50), nullable=False),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
        sa.Column("dedupe_key", sa.String(length=128), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_automation_event_org_type", "automation_event", ["org_id", "event_type"], unique=False)
    op.create_index(
        "ix_automation_event_unprocessed", "automation_event", ["org_id", "processed_at"], unique=False
    )

    op.create_table(
        "automation_dedupe_key",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("dedupe_key", sa.String(length=128), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "dedupe_key", name="uq_automation_dedupe_key_org"),
    )

    op.create_table(
        "automation_job",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("rule_id", sa.Uuid(), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=True),
        sa.Column("action_type", sa.String(length=100), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=16), server_default="queued", nullable=False),
        sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
        sa.Column("max_attempts", sa.Integer(), server_default="3", nullable=False),
        sa.Column("next_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("error_message", sa.String(length=1000), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["rule_id"], ["automation_rule.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key", name="uq_automation_job_idempotency_key"),
    )
    op.create_index("ix_automation_job_status_next_run", "automation_job", ["status", "next_run_at"], unique=False)
    op.create_index("ix_automation_job_rule", "automation_job", ["rule_id"], unique=False)

    op.create_table(
        "automation_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=True),
        sa.Column("rule_id", sa.Uuid(), nullable=True),
        sa.Column("outcome", sa.String(length=20), nullable=False),
        sa.Column("error_message", sa.String(length=1000), nullable=True),
        sa.Column("metrics_json", sa.JSON(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["rule_id"], ["automation_rule.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_automation_log_rule_outcome", "automation_log", ["rule_id", "outcome", "created_at"], unique=False
    )


def downgrade() -> None:
    for index_name, table_name in (
        ("ix_automation_log_rule_outcome", "automation_log"),
        ("ix_automation_job_rule", "automation_job"),
        ("ix_automation_job_status_next_run", "automation_job"),
        ("ix_automation_event_unprocessed", "automation_event"),
        ("ix_automation_event_org_type", "automation_event"),
        ("ix_automation_rule_org_status", "automation_rule"),
        ("ix_comms_message_thread_sent", "comms_message"),
        ("ix_comms_thread_org_status", "comms_thread"),
        ("ix_doc_document_version_org_hash", "doc_document_version"),
        ("ix_doc_document_org_type", "doc_document"),
        ("ix_doc_document_org_status", "doc_document"),
        ("ix_billing_payment_invoice", "billing_payment"),
        ("ix_billing_invoice_org_status", "billing_invoice"),
        ("ix_billing_time_entry_org_contract_date", "billing_time_entry"),
        ("ix_billing_contract_org_status", "billing_contract"),
        ("ix_eng_dependency_org_to", "eng_dependency"),
        ("ix_eng_change_request_org_status", "eng_change_request"),
        ("ix_eng_feature_org_engagement_state", "eng_feature"),
        ("ix_eng_engagement_org_status", "eng_engagement"),
        ("ix_ws_pursuit_org_stage", "ws_pursuit"),
        ("ix_ws_candidate_org_status", "ws_candidate"),
        ("ix_work_event_item", "work_event"),
        ("ix_work_event_org_id", "work_event"),
    ):
        op.drop_index(index_name, table_name=table_name)

    for table_name in (
        "automation_log",
        "automation_job",
        "automation_dedupe_key",
        "automation_event",
        "automation_rule",
        "comms_message",
        "comms_thread",
        "doc_document_version",
        "doc_document",
        "billing_credit_note",
        "billing_payment",
        "billing_invoice",
        "billing_time_entry",
        "billing_contract_milestone",
        "billing_contract",
        "eng_dependency",
        "eng_change_request",
        "eng_milestone",
        "eng_feature",
        "eng_engagement",
        "ws_proposal",
        "ws_pursuit_checklist",
        "ws_pursuit",
        "ws_candidate",
        "work_event",
    ):
        op.drop_table(table_name)
