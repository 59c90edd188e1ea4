# Overview: Flask API routes for coffee payment operations; parses input and returns JSON responses.

"""
Coffee Payment API Routes

DESIGN:
- One payment per batch; a second attempt is a 409
- Cash payments are Paid immediately, bank transfers wait as Processing
- Follow-up failures after commit come back as "warnings", not errors
"""

from flask import Blueprint, jsonify, request

from ..services import payment_service
from .errors import json_error


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# PAYMENT CREATION
# =============================================================================

@payments_bp.post("/")
def process_payment_route():
    """
    Pay a supplier for an approved batch.

    Request body:
    {
        "batch_number": "CF-001",
        "supplier_id": 4,
        "assessment_id": 12,
        "method": "Cash",  (Cash | Bank Transfer)
        "amount_ugx": 200000,
        "advance_recovery_ugx": 50000,  (optional)
        "notes": "...",  (optional)
        "processed_by_user_id": 2,  (optional)
        "processed_by": "Finance Clerk"  (optional)
    }

    Returns:
        201: Payment result (with any follow-up warnings)
        400: Invalid input
        409: Already paid, batch not payable, or insufficient funds
        500: Server error
    """
    try:
        data = request.get_json(silent=True) or {}
        result = payment_service.process_payment(
            data.get("batch_number"),
            data.get("supplier_id"),
            data.get("assessment_id"),
            data.get("method"),
            data.get("amount_ugx"),
            advance_recovery_ugx=data.get("advance_recovery_ugx") or 0,
            notes=data.get("notes"),
            processed_by_user_id=data.get("processed_by_user_id"),
            processed_by=data.get("processed_by"),
        )
        return jsonify(result.to_dict()), 201
    except Exception as exc:
        return json_error(exc, "process payment")


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("/payable")
def list_payable_route():
    try:
        records = payment_service.list_payable()
        return jsonify({"payments": [r.to_dict() for r in records], "count": len(records)})
    except Exception as exc:
        return json_error(exc, "list payable batches")


@payments_bp.get("/<batch_number>")
def get_payment_route(batch_number: str):
    try:
        record = payment_service.get_payment(batch_number)
        if record is None:
            return jsonify({"error": f"No payment for batch {batch_number}"}), 404
        return jsonify({"payment": record.to_dict()})
    except Exception as exc:
        return json_error(exc, "get payment")
