# Overview: Service-layer operations for post-commit follow-ups; encapsulates business logic and database work.

"""
Post-Commit Follow-Ups (outbox)

WHY: Some effects of a payment are secondary: moving the quality assessment
to paid, writing the day-book row, texting the supplier. They must not roll
back money that has already moved, and their failures must not vanish into
a log line either.

FLOW:
1. enqueue() writes a follow_up_tasks row inside the payment transaction
2. the payment commits
3. dispatch() runs each task in its own transaction
4. a failing task is rolled back alone, keeps status "pending" with
   attempts/last_error, and is reported back as a warning string
5. retry_pending() re-runs pending tasks; after FOLLOW_UP_MAX_ATTEMPTS a
   task becomes "failed" and needs manual reconciliation
"""

from __future__ import annotations

from typing import Callable, Iterable

from flask import current_app

from ..extensions import db
from ..models import DayBookEntry, FollowUpTask, QualityAssessment
from ..statuses import AssessmentStatus, FollowUpKind, FollowUpStatus, ensure_transition
from ..time_utils import utcnow
from . import notification_service


class FollowUpError(RuntimeError):
    """A follow-up task could not be completed."""


def enqueue(kind: FollowUpKind, payload: dict, *, payment_record_id: int | None = None) -> FollowUpTask:
    """Add a task to the caller's transaction (flush, no commit)."""
    task = FollowUpTask(
        kind=kind.value,
        payload=dict(payload),
        status=FollowUpStatus.PENDING.value,
        attempts=0,
        payment_record_id=payment_record_id,
    )
    db.session.add(task)
    db.session.flush()
    return task


# =============================================================================
# HANDLERS
# =============================================================================

def _update_assessment_status(payload: dict) -> None:
    assessment = db.session.get(QualityAssessment, payload["assessment_id"])
    if not assessment:
        raise FollowUpError(f"Quality assessment {payload['assessment_id']} not found")
    target = AssessmentStatus(payload["status"])
    if assessment.status == target.value:
        return
    assessment.status = ensure_transition("Quality assessment", assessment.status, target).value


def _write_day_book(payload: dict) -> None:
    db.session.add(DayBookEntry(
        entry_type=payload["entry_type"],
        description=payload["description"],
        amount_ugx=int(payload.get("amount_ugx") or 0),
        completed_by=payload.get("completed_by"),
        department=payload.get("department") or "Finance",
        batch_number=payload.get("batch_number"),
    ))


def _send_notification(payload: dict) -> None:
    sent = notification_service.notify(
        payload["recipient"],
        payload["message"],
        payload.get("message_type") or "payment",
    )
    if not sent:
        raise FollowUpError(f"SMS to {payload['recipient']} was not sent")


HANDLERS: dict[str, Callable[[dict], None]] = {
    FollowUpKind.ASSESSMENT_STATUS.value: _update_assessment_status,
    FollowUpKind.DAY_BOOK.value: _write_day_book,
    FollowUpKind.NOTIFICATION.value: _send_notification,
}


# =============================================================================
# DISPATCH
# =============================================================================

def _run_task(task_id: int) -> str | None:
    """Run one task in its own transaction. Returns a warning string on failure."""
    task = db.session.get(FollowUpTask, task_id)
    if task is None or task.status != FollowUpStatus.PENDING.value:
        return None

    kind = task.kind
    payload = dict(task.payload or {})
    try:
        HANDLERS[kind](payload)
        task.status = FollowUpStatus.DONE.value
        task.attempts = (task.attempts or 0) + 1
        task.completed_at = utcnow()
        task.last_error = None
        db.session.commit()
        return None
    except Exception as exc:
        db.session.rollback()
        error = f"{type(exc).__name__}: {exc}"
        current_app.logger.warning("Follow-up task %s (%s) failed: %s", task_id, kind, error)

        task = db.session.get(FollowUpTask, task_id)
        task.attempts = (task.attempts or 0) + 1
        task.last_error = error[:2000]
        max_attempts = current_app.config.get("FOLLOW_UP_MAX_ATTEMPTS", 5)
        if task.attempts >= max_attempts:
            task.status = FollowUpStatus.FAILED.value
        db.session.commit()
        return f"{kind} follow-up #{task_id} failed: {error}"


def dispatch(task_ids: Iterable[int]) -> list[str]:
    """Run the given tasks; return one warning per failure."""
    warnings = []
    for task_id in task_ids:
        warning = _run_task(task_id)
        if warning:
            warnings.append(warning)
    return warnings


def retry_pending(*, limit: int = 100) -> dict:
    """Re-run pending tasks, oldest first."""
    task_ids = [
        row.id for row in
        db.session.query(FollowUpTask.id)
        .filter(FollowUpTask.status == FollowUpStatus.PENDING.value)
        .order_by(FollowUpTask.id.asc())
        .limit(limit)
        .all()
    ]
    warnings = dispatch(task_ids)
    return {"attempted": len(task_ids), "failed": len(warnings), "warnings": warnings}


def list_tasks(*, status: str | None = None, payment_record_id: int | None = None) -> list[FollowUpTask]:
    q = db.session.query(FollowUpTask)
    if status:
        q = q.filter(FollowUpTask.status == status)
    if payment_record_id is not None:
        q = q.filter(FollowUpTask.payment_record_id == payment_record_id)
    return q.order_by(FollowUpTask.id.asc()).all()
