# Overview: Flask API routes for the cash balance; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..services import cash_service
from .errors import json_error


cash_bp = Blueprint("cash", __name__, url_prefix="/api/cash")


@cash_bp.get("/balance")
def get_balance_route():
    try:
        return jsonify({
            "account": current_app.config.get("CASH_ACCOUNT", "MAIN"),
            "balance_ugx": cash_service.current_balance(),
        })
    except Exception as exc:
        return json_error(exc, "read cash balance")


@cash_bp.get("/reconcile")
def reconcile_route():
    try:
        return jsonify(cash_service.reconcile())
    except Exception as exc:
        return json_error(exc, "reconcile cash balance")


@cash_bp.get("/transactions")
def list_transactions_route():
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))
    try:
        txns = cash_service.list_transactions(
            limit=limit,
            transaction_type=request.args.get("type"),
        )
        return jsonify({"transactions": [t.to_dict() for t in txns], "count": len(txns)})
    except ValueError:
        return jsonify({"error": "Unknown transaction type"}), 400
    except Exception as exc:
        return json_error(exc, "list cash transactions")


@cash_bp.post("/deposits")
def record_deposit_route():
    """
    Request body:
    {
        "amount_ugx": 500000,
        "actor": "Finance Clerk",
        "reference": "BANK-WD-0045",  (optional)
        "notes": "...",  (optional)
        "pending": true  (optional, credit only once confirmed)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        txn = cash_service.record_deposit(
            data.get("amount_ugx"),
            actor=data.get("actor"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            pending=bool(data.get("pending", False)),
        )
        return jsonify({"transaction": txn.to_dict(), "balance_ugx": txn.balance_after_ugx}), 201
    except Exception as exc:
        return json_error(exc, "record deposit")


@cash_bp.get("/deposits/pending")
def list_pending_deposits_route():
    try:
        txns = cash_service.list_pending_deposits()
        return jsonify({"deposits": [t.to_dict() for t in txns], "count": len(txns)})
    except Exception as exc:
        return json_error(exc, "list pending deposits")


@cash_bp.post("/deposits/<int:transaction_id>/confirm")
def confirm_deposit_route(transaction_id: int):
    """
    Request body:
    {
        "actor": "Finance Manager"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        txn = cash_service.confirm_deposit(transaction_id, actor=data.get("actor"))
        return jsonify({"transaction": txn.to_dict(), "balance_ugx": txn.balance_after_ugx})
    except Exception as exc:
        return json_error(exc, "confirm deposit")


@cash_bp.post("/expenses")
def record_expense_route():
    try:
        data = request.get_json(silent=True) or {}
        txn = cash_service.record_expense(
            data.get("amount_ugx"),
            actor=data.get("actor"),
            category=data.get("category"),
            description=data.get("description"),
            reference=data.get("reference"),
        )
        return jsonify({"transaction": txn.to_dict(), "balance_ugx": txn.balance_after_ugx}), 201
    except Exception as exc:
        return json_error(exc, "record expense")
