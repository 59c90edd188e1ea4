# Overview: Service-layer operations for approval requests; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import ApprovalRequest
from ..statuses import ApprovalStatus, ApprovalType
from ..validation import ValidationError, require_text


VALID_PRIORITIES = {"Low", "Medium", "High", "Urgent"}


def create_request(
    *,
    request_type: ApprovalType,
    title: str,
    amount_ugx: int,
    requested_by: str,
    details: dict,
    description: str | None = None,
    department: str = "Finance",
    priority: str = "Medium",
) -> ApprovalRequest:
    """
    Append a Pending approval request inside the caller's transaction.

    Flushes but does not commit: a bank-transfer request is created
    together with the payment that needs it, or not at all.
    """
    if not isinstance(request_type, ApprovalType):
        raise ValidationError(f"Invalid approval request type: {request_type!r}")
    if priority not in VALID_PRIORITIES:
        raise ValidationError(f"priority must be one of {sorted(VALID_PRIORITIES)}")
    if amount_ugx < 0:
        raise ValidationError("amount_ugx must be >= 0")

    request = ApprovalRequest(
        request_type=request_type.value,
        title=require_text(title, "title"),
        description=description,
        amount_ugx=amount_ugx,
        requested_by=require_text(requested_by, "requested_by"),
        department=department,
        priority=priority,
        status=ApprovalStatus.PENDING.value,
        details=dict(details or {}),
    )
    db.session.add(request)
    db.session.flush()
    return request


def list_requests(*, status: str | None = ApprovalStatus.PENDING.value,
                  request_type: str | None = None) -> list[ApprovalRequest]:
    """Requests, newest first, optionally filtered by status and type."""
    q = db.session.query(ApprovalRequest)
    if status:
        q = q.filter(ApprovalRequest.status == status)
    if request_type:
        q = q.filter(ApprovalRequest.request_type == request_type)
    return q.order_by(ApprovalRequest.id.desc()).all()
