"""Pure rules for the folder processing pipeline.

Nothing here touches the database: the stage catalog, the status transition
table and the progress/health aggregation all operate on plain values or on
any object exposing the stage row attributes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable


STAGE_ORDER = (
    "enregistrement",
    "revision_facture_commerciale",
    "elaboration_fdi",
    "elaboration_rfcv",
    "declaration_douaniere",
    "service_exploitation",
    "facturation_client",
    "livraison",
)

STAGE_STATUSES = ("pending", "in_progress", "completed", "blocked", "skipped")
STAGE_PRIORITIES = ("low", "normal", "high", "urgent")
STAGE_ACTIONS = ("start", "complete", "block", "unblock", "skip")
DONE_STATUSES = frozenset({"completed", "skipped"})

SKIP_REASONS = (
    "not_applicable",
    "already_completed",
    "client_request",
    "technical_impossibility",
    "regulatory_exemption",
    "time_constraint",
    "cost_optimization",
    "alternative_process",
    "other",
)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"in_progress", "blocked", "skipped"}),
    "in_progress": frozenset({"completed", "blocked"}),
    "blocked": frozenset({"pending", "in_progress"}),
    "completed": frozenset(),
    "skipped": frozenset(),
}

# Statuses each action may start from. The field-update path only checks
# ALLOWED_TRANSITIONS.
ACTION_SOURCES: dict[str, frozenset[str]] = {
    "start": frozenset({"pending"}),
    "complete": frozenset({"in_progress"}),
    "block": frozenset({"pending", "in_progress"}),
    "unblock": frozenset({"blocked"}),
    "skip": frozenset({"pending"}),
}

# Status reached by a plain field update, keyed by target, mapped to the
# equivalent action so both paths stamp the row identically.
STATUS_TO_ACTION = {
    "in_progress": "start",
    "completed": "complete",
    "blocked": "block",
    "skipped": "skip",
    "pending": "unblock",
}


@dataclass(frozen=True)
class StageDefault:
    stage: str
    sequence_order: int
    display_name: str
    description: str
    default_priority: str = "normal"
    is_mandatory: bool = True
    can_be_skipped: bool = False
    default_duration_hours: int = 24
    requires_documents: tuple[str, ...] = ()


DEFAULT_STAGES = (
    StageDefault(
        "enregistrement",
        1,
        "Registration",
        "Initial intake of the folder and collection of shipping documents.",
        default_priority="high",
        default_duration_hours=4,
        requires_documents=("bill_of_lading", "packing_list"),
    ),
    StageDefault(
        "revision_facture_commerciale",
        2,
        "Commercial invoice review",
        "Check of the commercial invoice against the shipping documents.",
        requires_documents=("commercial_invoice",),
    ),
    StageDefault(
        "elaboration_fdi",
        3,
        "Import declaration form",
        "Preparation of the import declaration form (FDI).",
        default_duration_hours=24,
    ),
    StageDefault(
        "elaboration_rfcv",
        4,
        "Classification and value report",
        "Final classification and value report (RFCV), not required for every regime.",
        is_mandatory=False,
        can_be_skipped=True,
        default_duration_hours=48,
    ),
    StageDefault(
        "declaration_douaniere",
        5,
        "Customs declaration",
        "Submission of the declaration to the customs authorities.",
        default_priority="high",
        default_duration_hours=48,
        requires_documents=("customs_declaration",),
    ),
    StageDefault(
        "service_exploitation",
        6,
        "Operations",
        "Payment of carrier invoices and release of the containers.",
        default_duration_hours=72,
    ),
    StageDefault(
        "facturation_client",
        7,
        "Client invoicing",
        "Preparation of the final invoice for the client.",
        default_duration_hours=24,
    ),
    StageDefault(
        "livraison",
        8,
        "Delivery",
        "Delivery of the containers to the consignee.",
        default_duration_hours=48,
        requires_documents=("delivery_note",),
    ),
)

ATTENTION_BLOCKED = 25
ATTENTION_OVERDUE = 20
ATTENTION_BLOCKED_TOO_LONG = 10
ATTENTION_MISSING_ASSIGNMENT = 10
ATTENTION_MISSING_DOCUMENTS = 5


def is_valid_stage(stage: str) -> bool:
    return stage in STAGE_ORDER


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def action_allowed(action: str, from_status: str) -> bool:
    return from_status in ACTION_SOURCES.get(action, frozenset())


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(part / total * 100)


def missing_documents(stage) -> list[str]:
    received = set(stage.documents_received or [])
    return [doc for doc in (stage.documents_required or []) if doc not in received]


def merge_documents(existing: list | None, incoming: Iterable[str] | None) -> list[str]:
    merged = list(existing or [])
    for doc in incoming or []:
        if doc not in merged:
            merged.append(doc)
    return merged


def is_overdue(stage, now: datetime) -> bool:
    return stage.status not in DONE_STATUSES and stage.due_date is not None and stage.due_date < now


def is_blocked_too_long(stage, now: datetime, alert_days: int) -> bool:
    if stage.status != "blocked" or stage.blocked_at is None:
        return False
    return now - stage.blocked_at > timedelta(days=alert_days)


def attention_level(score: int) -> str:
    if score >= 80:
        return "critical"
    if score >= 60:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


def health_status(score: int, folder_status: str | None = None) -> str:
    if folder_status == "cancelled":
        return "failed"
    if score >= 60:
        return "critical"
    if score >= 25:
        return "warning"
    return "healthy"


@dataclass
class StageIssue:
    stage: str
    issue_type: str
    severity: str


@dataclass
class FolderProgress:
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
    overdue_stages: list[str] = field(default_factory=list)
    is_on_track: bool = True


@dataclass
class FolderHealth:
    progress: FolderProgress
    attention_score: int
    attention_level: str
    health_status: str
    issues: list[StageIssue]


def compute_progress(stages: Iterable, now: datetime | None = None) -> FolderProgress:
    """Counters, percentages and the current position of a folder's pipeline."""
    now = now or datetime.utcnow()
    ordered = sorted(stages, key=lambda item: item.sequence_order)
    counts = {status: 0 for status in STAGE_STATUSES}
    for stage in ordered:
        counts[stage.status] = counts.get(stage.status, 0) + 1

    total = len(ordered)
    progress = FolderProgress(
        total_stages=total,
        completed_stages=counts["completed"],
        in_progress_stages=counts["in_progress"],
        pending_stages=counts["pending"],
        blocked_stages=counts["blocked"],
        skipped_stages=counts["skipped"],
        completion_percentage=percentage(counts["completed"], total),
        progress_percentage=percentage(counts["completed"] + counts["skipped"], total),
    )

    for index, stage in enumerate(ordered):
        if stage.status in DONE_STATUSES:
            continue
        progress.current_stage = stage.stage
        progress.current_stage_status = stage.status
        if index + 1 < total:
            progress.next_stage = ordered[index + 1].stage
        break

    progress.overdue_stages = [stage.stage for stage in ordered if is_overdue(stage, now)]
    progress.is_on_track = not progress.overdue_stages
    return progress


def compute_health(
    stages: Iterable,
    *,
    folder_status: str | None = None,
    now: datetime | None = None,
    blocked_alert_days: int = 3,
) -> FolderHealth:
    now = now or datetime.utcnow()
    ordered = sorted(stages, key=lambda item: item.sequence_order)
    progress = compute_progress(ordered, now)

    score = 0
    issues: list[StageIssue] = []
    for stage in ordered:
        if stage.status == "blocked":
            score += ATTENTION_BLOCKED
        if is_overdue(stage, now):
            score += ATTENTION_OVERDUE
            issues.append(StageIssue(stage.stage, "overdue", "high"))
        if is_blocked_too_long(stage, now, blocked_alert_days):
            score += ATTENTION_BLOCKED_TOO_LONG
            issues.append(StageIssue(stage.stage, "blocked_too_long", "high"))
        if stage.status == "in_progress":
            if stage.assigned_to is None:
                score += ATTENTION_MISSING_ASSIGNMENT
                issues.append(StageIssue(stage.stage, "missing_assignment", "medium"))
            if missing_documents(stage):
                score += ATTENTION_MISSING_DOCUMENTS
                issues.append(StageIssue(stage.stage, "missing_documents", "low"))

    score = min(score, 100)
    return FolderHealth(
        progress=progress,
        attention_score=score,
        attention_level=attention_level(score),
        health_status=health_status(score, folder_status),
        issues=issues,
    )
