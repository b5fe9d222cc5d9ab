"""
Verification workflow state machine.

Explicit status changes follow STATE_CONFIG. Automatic progression after
a step completes is a separate percentage heuristic (see next_auto_status)
and does not consult the adjacency table.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from landverify.core.clock import ensure_utc
from landverify.core.constants import (
    VerificationStatus, StepName, StepStatus, Urgency, SLA_HOURS, STEP_ESTIMATED_HOURS,
    QUALITY_REVIEW_THRESHOLD, ANALYSIS_THRESHOLD,
)
from landverify.core.exceptions import InvalidScopeError, InvalidStatusTransition
from landverify.schemas.verification import VerificationScope


# =============================================================================
# STATE CONFIGURATION
# =============================================================================

STATE_CONFIG = {
    VerificationStatus.PENDING: {
        "description": "Request received, not yet acknowledged",
        "allowed_transitions": [
            VerificationStatus.PAYMENT_PENDING,
            VerificationStatus.IN_PROGRESS,
            VerificationStatus.DENIED,
            VerificationStatus.CANCELLED,
        ],
        "timeline_field": None,
    },
    VerificationStatus.PAYMENT_PENDING: {
        "description": "Awaiting payment before work starts",
        "allowed_transitions": [VerificationStatus.IN_PROGRESS, VerificationStatus.CANCELLED],
        "timeline_field": None,
    },
    VerificationStatus.IN_PROGRESS: {
        "description": "Document collection and review under way",
        "allowed_transitions": [
            VerificationStatus.FIELD_WORK,
            VerificationStatus.EXPIRED,
            VerificationStatus.CANCELLED,
        ],
        "timeline_field": "work_started_date",
    },
    VerificationStatus.FIELD_WORK: {
        "description": "Physical inspection of the land",
        "allowed_transitions": [VerificationStatus.ANALYSIS, VerificationStatus.CANCELLED],
        "timeline_field": "field_work_date",
    },
    VerificationStatus.ANALYSIS: {
        "description": "Findings analysed, draft report prepared",
        "allowed_transitions": [VerificationStatus.QUALITY_REVIEW, VerificationStatus.CANCELLED],
        "timeline_field": "draft_report_date",
    },
    VerificationStatus.QUALITY_REVIEW: {
        "description": "Report under quality review",
        "allowed_transitions": [VerificationStatus.COMPLETED, VerificationStatus.CANCELLED],
        "timeline_field": "quality_check_date",
    },
    VerificationStatus.COMPLETED: {
        "description": "Verification delivered",
        "allowed_transitions": [],  # Terminal state
        "timeline_field": "actual_completion_date",
    },
    VerificationStatus.DENIED: {
        "description": "Request denied",
        "allowed_transitions": [],  # Terminal state
        "timeline_field": None,
    },
    VerificationStatus.EXPIRED: {
        "description": "Request expired before completion",
        "allowed_transitions": [],  # Terminal state
        "timeline_field": None,
    },
    VerificationStatus.CANCELLED: {
        "description": "Request cancelled",
        "allowed_transitions": [],  # Terminal state
        "timeline_field": "actual_completion_date",
    },
}

# Which scope flags require which step. Report generation and quality check always run.
STEP_SCOPE = [
    (StepName.DOCUMENT_COLLECTION, ("ownership_verification", "title_document_check", "encumbrance_search")),
    (StepName.DOCUMENT_REVIEW, ("ownership_verification", "title_document_check", "encumbrance_search")),
    (StepName.FIELD_VERIFICATION, ("physical_inspection",)),
    (StepName.DATA_ANALYSIS, (
        "encumbrance_search", "market_valuation", "legal_compliance_check", "risk_assessment",
    )),
    (StepName.REPORT_GENERATION, None),
    (StepName.QUALITY_CHECK, None),
]


def can_transition(from_status: VerificationStatus, to_status: VerificationStatus) -> bool:
    return to_status in STATE_CONFIG[from_status]["allowed_transitions"]


def validate_transition(from_status: VerificationStatus, to_status: VerificationStatus) -> None:
    if not can_transition(from_status, to_status):
        raise InvalidStatusTransition(from_status.value, to_status.value)


def get_next_states(status: VerificationStatus) -> List[VerificationStatus]:
    return list(STATE_CONFIG[status]["allowed_transitions"])


def sla_hours(urgency: Urgency) -> int:
    return SLA_HOURS[urgency]


def initialize_steps(scope: VerificationScope) -> List[Dict]:
    """Ordered step definitions for a scope. Each step starts pending and unassigned."""
    flags = scope.model_dump()
    if not any(flags.values()):
        raise InvalidScopeError()

    steps = []
    for name, required_by in STEP_SCOPE:
        if required_by is None or any(flags.get(flag) for flag in required_by):
            steps.append({
                "name": name,
                "position": len(steps),
                "status": StepStatus.PENDING,
                "assigned_to": None,
                "estimated_duration": float(STEP_ESTIMATED_HOURS[name]),
            })
    return steps


def next_auto_status(
    current: VerificationStatus,
    step_statuses: Sequence[StepStatus],
) -> Optional[VerificationStatus]:
    """
    Status implied by the step list after a step completes, or None if unchanged.

    This is a completion-percentage heuristic: it does not look at which
    steps are done, only how many.
    """
    total = len(step_statuses)
    if total == 0:
        return None
    completed = sum(1 for s in step_statuses if s == StepStatus.COMPLETED)
    ratio = completed / total

    if completed == total and current != VerificationStatus.COMPLETED:
        return VerificationStatus.COMPLETED
    if ratio >= QUALITY_REVIEW_THRESHOLD and current == VerificationStatus.IN_PROGRESS:
        return VerificationStatus.QUALITY_REVIEW
    if ratio >= ANALYSIS_THRESHOLD and current == VerificationStatus.FIELD_WORK:
        return VerificationStatus.ANALYSIS
    return None


def duration_hours(started_at: Optional[datetime], completed_at: Optional[datetime]) -> Optional[float]:
    if started_at is None or completed_at is None:
        return None
    delta = ensure_utc(completed_at) - ensure_utc(started_at)
    return round(delta.total_seconds() / 3600, 4)


def is_sla_compliant(created_at: datetime, completed_at: datetime, sla: int) -> bool:
    return ensure_utc(completed_at) - ensure_utc(created_at) <= timedelta(hours=sla)


def apply_status(verification, new_status: VerificationStatus, now: datetime) -> VerificationStatus:
    """Set the status and stamp the timeline. Returns the previous status."""
    previous = verification.status
    verification.status = new_status

    field = STATE_CONFIG[new_status]["timeline_field"]
    if field:
        setattr(verification, field, now)

    if new_status == VerificationStatus.IN_PROGRESS and verification.expected_completion_date is None:
        verification.expected_completion_date = now + timedelta(hours=verification.current_sla)
    elif new_status == VerificationStatus.COMPLETED:
        verification.completed_at = now
        verification.sla_compliant = is_sla_compliant(
            verification.created_at, now, verification.current_sla
        )

    return previous
