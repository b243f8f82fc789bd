from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


Channel = Literal["email", "ticket"]
ThreadStatus = Literal["active", "pending", "escalated", "on_hold", "resolved", "reopened"]
ProcessState = Literal["triage", "in_processing", "queued", "done", "archived"]
Direction = Literal["in", "out"]


class ThreadCreate(BaseModel):
    channel: Channel
    subject: str = Field(min_length=1, max_length=500)
    assigned_user_id: str | None = Field(default=None, max_length=128)
    body: str | None = None
    from_addr: str | None = Field(default=None, max_length=256)


class ThreadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: int
    channel: Channel | str
    subject: str
    status: ThreadStatus | str
    process_state: ProcessState | str
    assigned_user_id: str | None
    first_msg_at: datetime | None
    last_msg_at: datetime
    created_at: datetime
    updated_at: datetime


class ThreadUpdate(BaseModel):
    status: ThreadStatus | None = None
    process_state: ProcessState | None = None
    assigned_user_id: str | None = Field(default=None, max_length=128)

    @model_validator(mode="after")
    def _require_change(self) -> "ThreadUpdate":
        if not self.model_fields_set:
            raise ValueError("No updates provided")
        return self


class MessageCreate(BaseModel):
    body: str = Field(min_length=1)


class MessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    thread_id: UUID
    direction: Direction | str
    from_addr: str | None
    snippet: str | None
    body: str
    sent_at: datetime


class ThreadDetail(BaseModel):
    thread: ThreadRead
    messages: list[MessageRead]
