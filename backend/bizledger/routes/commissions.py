# Overview: Flask API routes for commission transactions; parses input and returns JSON responses.

# backend/bizledger/routes/commissions.py
"""
Commission API Routes

Record standalone commission-bearing sales, settle commissions with the
employee, and report per-employee totals. Checkout records commission
for employee sales on its own; these routes cover the rest.
"""

from flask import Blueprint, request, jsonify, current_app

from .. import money
from ..services import commission_service
from ..services.commission_service import CommissionError
from ..validation import ValidationError, parse_cents, parse_int, require_fields


commissions_bp = Blueprint("commissions", __name__, url_prefix="/api/commissions")


@commissions_bp.post("")
def record_commission_route():
    """
    Record a commission transaction.

    Request body:
    {
        "business_id": 1,
        "employee_id": 2,
        "total_amount_cents": 1000000,
        "service_id": 3,  (optional)
        "sale_id": 9,  (optional)
        "notes": "..."  (optional)
    }
    """
    try:
        data = request.get_json() or {}
        require_fields(data, "business_id", "employee_id", "total_amount_cents")

        txn = commission_service.record_commission(
            business_id=parse_int(data.get("business_id"), "business_id"),
            employee_id=parse_int(data.get("employee_id"), "employee_id"),
            total_amount=money.from_cents(parse_cents(data.get("total_amount_cents"), "total_amount_cents")),
            service_id=parse_int(data.get("service_id"), "service_id", required=False),
            sale_id=parse_int(data.get("sale_id"), "sale_id", required=False),
            notes=data.get("notes"),
        )
        return jsonify({"commission": txn.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CommissionError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to record commission")
        return jsonify({"error": "Internal server error"}), 500


@commissions_bp.post("/mark-paid")
def mark_paid_route():
    """
    Mark commission transactions as paid. Idempotent.

    Request body:
    {
        "transaction_ids": [1, 2, 3],
        "business_id": 1  (optional scope)
    }
    """
    try:
        data = request.get_json() or {}
        raw_ids = data.get("transaction_ids")
        if not isinstance(raw_ids, list) or not raw_ids:
            return jsonify({"error": "transaction_ids must be a non-empty list"}), 400

        ids = [parse_int(v, "transaction_ids") for v in raw_ids]
        marked = commission_service.mark_commissions_paid(
            ids,
            business_id=parse_int(data.get("business_id"), "business_id", required=False),
        )
        return jsonify({"marked": marked, "requested": len(set(ids))}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CommissionError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except Exception:
        current_app.logger.exception("Failed to mark commissions paid")
        return jsonify({"error": "Internal server error"}), 500


@commissions_bp.get("")
def list_commissions_route():
    """
    List commission transactions for a business.

    Query params:
    - business_id: required
    - employee_id: optional
    - unpaid: "true" to list unpaid only
    """
    try:
        business_id = parse_int(request.args.get("business_id"), "business_id")
        employee_id = parse_int(request.args.get("employee_id"), "employee_id", required=False)
        unpaid_only = request.args.get("unpaid", "").lower() in ("1", "true", "yes")

        txns = commission_service.list_commissions(business_id, employee_id=employee_id, unpaid_only=unpaid_only)
        return jsonify({"commissions": [t.to_dict() for t in txns], "count": len(txns)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list commissions")
        return jsonify({"error": "Internal server error"}), 500


@commissions_bp.get("/employees/<int:employee_id>/summary")
def employee_summary_route(employee_id: int):
    try:
        return jsonify(commission_service.employee_commission_summary(employee_id)), 200

    except CommissionError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to get commission summary")
        return jsonify({"error": "Internal server error"}), 500
