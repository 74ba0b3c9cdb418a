from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from app.freight.services.stage_rules import (
    DEFAULT_STAGES,
    STAGE_ORDER,
    action_allowed,
    attention_level,
    can_transition,
    compute_health,
    compute_progress,
    health_status,
    is_valid_stage,
    merge_documents,
    missing_documents,
    percentage,
)

NOW = datetime(2025, 8, 10, 12, 0, 0)


def _stage(name, order, status="pending", **kwargs):
    values = {
        "stage": name,
        "sequence_order": order,
        "status": status,
        "due_date": None,
        "blocked_at": None,
        "assigned_to": None,
        "documents_required": [],
        "documents_received": [],
    }
    values.update(kwargs)
    return SimpleNamespace(**values)


def _pipeline(*statuses):
    return [_stage(name, index + 1, status) for index, (name, status) in enumerate(zip(STAGE_ORDER, statuses))]


def test_catalog_matches_order():
    assert [item.stage for item in DEFAULT_STAGES] == list(STAGE_ORDER)
    assert [item.sequence_order for item in DEFAULT_STAGES] == list(range(1, 9))
    optional = [item.stage for item in DEFAULT_STAGES if not item.is_mandatory]
    assert optional == ["elaboration_rfcv"]
    assert is_valid_stage("livraison")
    assert not is_valid_stage("LIVRAISON")


@pytest.mark.parametrize(
    "from_status,to_status,allowed",
    [
        ("pending", "in_progress", True),
        ("pending", "skipped", True),
        ("pending", "completed", False),
        ("in_progress", "completed", True),
        ("in_progress", "pending", False),
        ("blocked", "pending", True),
        ("blocked", "completed", False),
        ("completed", "in_progress", False),
        ("skipped", "pending", False),
    ],
)
def test_transition_table(from_status, to_status, allowed):
    assert can_transition(from_status, to_status) is allowed


@pytest.mark.parametrize(
    "action,from_status,allowed",
    [
        ("start", "pending", True),
        ("start", "blocked", False),
        ("complete", "in_progress", True),
        ("complete", "blocked", False),
        ("complete", "pending", False),
        ("block", "in_progress", True),
        ("block", "completed", False),
        ("unblock", "blocked", True),
        ("unblock", "pending", False),
        ("skip", "pending", True),
        ("skip", "blocked", False),
        ("archive", "pending", False),
    ],
)
def test_actions_start_from_fixed_statuses(action, from_status, allowed):
    assert action_allowed(action, from_status) is allowed


def test_percentage_rounds_half_up():
    assert percentage(1, 8) == 13
    assert percentage(7, 8) == 88
    assert percentage(1, 3) == 33
    assert percentage(0, 0) == 0


def test_progress_counts_and_position():
    stages = _pipeline("completed", "completed", "in_progress", "skipped", "pending", "pending", "pending", "pending")

    progress = compute_progress(stages, NOW)

    assert progress.total_stages == 8
    assert progress.completed_stages == 2
    assert progress.skipped_stages == 1
    assert progress.completion_percentage == 25
    assert progress.progress_percentage == 38
    assert progress.current_stage == "elaboration_fdi"
    assert progress.current_stage_status == "in_progress"
    assert progress.next_stage == "elaboration_rfcv"
    assert progress.is_on_track is True


def test_progress_of_finished_pipeline():
    progress = compute_progress(_pipeline(*["completed"] * 8), NOW)

    assert progress.current_stage is None
    assert progress.next_stage is None
    assert progress.progress_percentage == 100


def test_progress_without_stages():
    progress = compute_progress([], NOW)
    assert progress.total_stages == 0
    assert progress.completion_percentage == 0
    assert progress.current_stage is None


def test_overdue_stages_break_on_track():
    stages = [
        _stage("enregistrement", 1, "in_progress", due_date=NOW - timedelta(hours=1)),
        _stage("revision_facture_commerciale", 2, "completed", due_date=NOW - timedelta(days=2)),
    ]

    progress = compute_progress(stages, NOW)

    assert progress.overdue_stages == ["enregistrement"]
    assert progress.is_on_track is False


def test_health_score_accumulates_and_caps():
    stages = [
        _stage(
            "enregistrement",
            1,
            "blocked",
            blocked_at=NOW - timedelta(days=5),
            due_date=NOW - timedelta(days=1),
        ),
        _stage(
            "revision_facture_commerciale",
            2,
            "blocked",
            blocked_at=NOW - timedelta(days=4),
            due_date=NOW - timedelta(days=1),
        ),
        _stage("elaboration_fdi", 3, "in_progress", documents_required=["fdi_form"]),
    ]

    health = compute_health(stages, now=NOW, blocked_alert_days=3)

    assert health.attention_score == 100
    assert health.attention_level == "critical"
    assert health.health_status == "critical"
    issue_types = [(issue.stage, issue.issue_type) for issue in health.issues]
    assert ("enregistrement", "overdue") in issue_types
    assert ("enregistrement", "blocked_too_long") in issue_types
    assert ("elaboration_fdi", "missing_assignment") in issue_types
    assert ("elaboration_fdi", "missing_documents") in issue_types


def test_health_of_cancelled_folder_is_failed():
    health = compute_health(_pipeline(*["pending"] * 8), folder_status="cancelled", now=NOW)
    assert health.attention_score == 0
    assert health.health_status == "failed"


@pytest.mark.parametrize(
    "score,level,status",
    [(0, "low", "healthy"), (25, "low", "warning"), (40, "medium", "warning"), (60, "high", "critical"), (80, "critical", "critical")],
)
def test_score_thresholds(score, level, status):
    assert attention_level(score) == level
    assert health_status(score) == status


def test_documents_helpers():
    stage = _stage("livraison", 8, documents_required=["delivery_note", "pod"], documents_received=["pod"])
    assert missing_documents(stage) == ["delivery_note"]
    assert merge_documents(["pod"], ["pod", "delivery_note"]) == ["pod", "delivery_note"]
    assert merge_documents(None, None) == []
