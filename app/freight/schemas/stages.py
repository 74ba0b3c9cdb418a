from datetime import datetime, timezone
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

StageStatus = Literal["pending", "in_progress", "completed", "blocked", "skipped"]
StagePriority = Literal["low", "normal", "high", "urgent"]
StageAction = Literal["start", "complete", "block", "unblock", "skip"]
SkipReason = Literal[
    "not_applicable",
    "already_completed",
    "client_request",
    "technical_impossibility",
    "regulatory_exemption",
    "time_constraint",
    "cost_optimization",
    "alternative_process",
    "other",
]


class StageResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    folder_id: UUID
    stage: str
    sequence_order: int
    status: str
    priority: str
    is_mandatory: bool
    can_be_skipped: bool
    assigned_to: UUID | None
    started_at: datetime | None
    started_by: UUID | None
    completed_at: datetime | None
    completed_by: UUID | None
    blocked_at: datetime | None
    blocking_reason: str | None
    skipped_at: datetime | None
    skip_reason: str | None
    due_date: datetime | None
    estimated_completion_date: datetime | None
    actual_duration_hours: float | None
    notes: str | None
    internal_comments: str | None
    client_visible_comments: str | None
    documents_required: list[str] | None
    documents_received: list[str] | None
    created_at: datetime
    updated_at: datetime


class StageUpdateRequest(BaseModel):
    """Body of a stage PUT: either an ``action`` with its parameters or plain field changes."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"action": "start", "notes": "Documents received from the shipper"},
                {"action": "block", "blocking_reason": "Waiting for the original invoice"},
                {"priority": "urgent", "client_visible_comments": "Expedited on request"},
            ]
        }
    }

    action: StageAction | None = None
    notes: str | None = None
    documents: list[str] | None = None
    blocking_reason: str | None = None
    skip_reason: SkipReason | None = None
    status: StageStatus | None = None
    priority: StagePriority | None = None
    assigned_to: UUID | None = None
    due_date: datetime | None = None
    estimated_completion_date: datetime | None = None
    internal_comments: str | None = None
    client_visible_comments: str | None = None
    documents_required: list[str] | None = None
    documents_received: list[str] | None = None

    @field_validator("due_date", "estimated_completion_date")
    @classmethod
    def to_naive_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class StageMutationResponse(BaseModel):
    message: str
    data: StageResponse


class ProgressResponse(BaseModel):
    model_config = {"from_attributes": True}

    total_stages: int = 0
    completed_stages: int = 0
    in_progress_stages: int = 0
    pending_stages: int = 0
    blocked_stages: int = 0
    skipped_stages: int = 0
    completion_percentage: int = 0
    progress_percentage: int = 0
    current_stage: str | None = None
    current_stage_status: str | None = None
    next_stage: str | None = None
    overdue_stages: list[str] = Field(default_factory=list)
    is_on_track: bool = True


class StageListResponse(BaseModel):
    data: list[StageResponse]
    metrics: ProgressResponse


class StageInitializeResponse(StageListResponse):
    message: str


class StageIssueResponse(BaseModel):
    model_config = {"from_attributes": True}

    stage: str
    issue_type: str
    severity: str


class FolderHealthResponse(BaseModel):
    folder_id: UUID
    folder_number: str
    folder_status: str
    progress: ProgressResponse
    attention_score: int
    attention_level: str
    health_status: str
    issues: list[StageIssueResponse]


class StageTransitionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    stage: str
    action: str
    from_status: str
    to_status: str
    actor_id: UUID | None
    reason: str | None
    notes: str | None
    created_at: datetime


class StageHistoryResponse(BaseModel):
    stage: str
    data: list[StageTransitionResponse]


class StageDetailResponse(BaseModel):
    data: StageResponse
