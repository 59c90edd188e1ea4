# Overview: Flask API routes for approval requests and follow-up retries; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..services import approval_service, followup_service
from .errors import json_error


approvals_bp = Blueprint("approvals", __name__, url_prefix="/api")


@approvals_bp.get("/approvals/")
def list_approvals_route():
    """
    Query params:
        status: defaults to Pending; "all" lists every status
        type: Bank Transfer | Price Correction
    """
    status = request.args.get("status", "Pending")
    try:
        requests = approval_service.list_requests(
            status=None if status == "all" else status,
            request_type=request.args.get("type"),
        )
        return jsonify({"requests": [r.to_dict() for r in requests], "count": len(requests)})
    except Exception as exc:
        return json_error(exc, "list approval requests")


@approvals_bp.get("/follow-ups/")
def list_follow_ups_route():
    try:
        tasks = followup_service.list_tasks(
            status=request.args.get("status"),
            payment_record_id=request.args.get("payment_record_id", type=int),
        )
        return jsonify({"tasks": [t.to_dict() for t in tasks], "count": len(tasks)})
    except Exception as exc:
        return json_error(exc, "list follow-ups")


@approvals_bp.post("/follow-ups/retry")
def retry_follow_ups_route():
    data = request.get_json(silent=True) or {}
    try:
        limit = int(data.get("limit") or 100)
    except (TypeError, ValueError):
        return jsonify({"error": "limit must be an integer"}), 400
    try:
        return jsonify(followup_service.retry_pending(limit=max(1, min(limit, 500))))
    except Exception as exc:
        return json_error(exc, "retry follow-ups")
