# Overview: Flask API routes for price approval operations; parses input and returns JSON responses.

"""
Pricing Approval API Routes

WHY: Admins approve or reject the price of graded coffee batches. Approval
is the event that makes a batch payable.

Authentication is handled upstream; the acting user id comes in the body.
"""

from flask import Blueprint, jsonify, request

from ..services import pricing_service
from .errors import json_error


pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")


@pricing_bp.get("/pending")
def list_pending_route():
    try:
        assessments = pricing_service.list_pending_assessments()
        return jsonify({"assessments": [a.to_dict() for a in assessments], "count": len(assessments)})
    except Exception as exc:
        return json_error(exc, "list pending assessments")


@pricing_bp.post("/<int:assessment_id>/approve")
def approve_price_route(assessment_id: int):
    """
    Approve an assessment at a final price.

    Request body:
    {
        "final_price_ugx": 7500,
        "approver_user_id": 3,
        "comments": "Good outturn"  (optional)
    }

    Returns:
        200: Decision plus payable amount
        400: Invalid input
        403: Approver submitted this price correction
        409: Assessment not pending
    """
    try:
        data = request.get_json(silent=True) or {}
        decision = pricing_service.approve_price(
            assessment_id,
            data.get("final_price_ugx"),
            approver_user_id=data.get("approver_user_id"),
            comments=data.get("comments"),
        )
        return jsonify({"decision": decision.to_dict()})
    except Exception as exc:
        return json_error(exc, "approve price")


@pricing_bp.post("/<int:assessment_id>/reject")
def reject_price_route(assessment_id: int):
    try:
        data = request.get_json(silent=True) or {}
        decision = pricing_service.reject_price(
            assessment_id,
            data.get("reason"),
            reviewer_user_id=data.get("reviewer_user_id"),
        )
        return jsonify({"decision": decision.to_dict()})
    except Exception as exc:
        return json_error(exc, "reject price")


@pricing_bp.post("/<int:assessment_id>/corrections")
def submit_correction_route(assessment_id: int):
    try:
        data = request.get_json(silent=True) or {}
        approval = pricing_service.submit_price_correction(
            assessment_id,
            data.get("proposed_price_ugx"),
            submitted_by_user_id=data.get("submitted_by_user_id"),
            submitted_by=data.get("submitted_by"),
            reason=data.get("reason"),
        )
        return jsonify({"approval_request": approval.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "submit price correction")
