# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/bizledger/routes/payments.py
"""
Payment Processing API Routes

Follow-up payments against a sale balance (debtor top-ups) and payment
history per sale.

DESIGN:
- Each payment appends a Payment row and updates the sale's balance
- Overpayment is absorbed: balance floors at zero, no change is owed
- Refunded sales accept no further payments (409)
"""

from flask import Blueprint, request, jsonify, current_app

from .. import money
from ..services import payment_service
from ..services.payment_service import PaymentError
from ..validation import ConflictError, ValidationError, parse_cents, parse_int, require_fields


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# PAYMENT CREATION
# =============================================================================

@payments_bp.post("")
def add_payment_route():
    """
    Add a payment to a sale.

    Request body:
    {
        "sale_id": 123,
        "amount_cents": 10000,
        "payment_method": "cash",  (cash, card, transfer, paystack, flutterwave)
        "reference": "PSK-12345"  (optional)
    }

    Returns:
        201: Payment created with updated sale summary
        400: Invalid input
        404: Sale not found
        409: Sale refunded
        500: Server error
    """
    try:
        data = request.get_json() or {}
        require_fields(data, "sale_id", "amount_cents")

        sale_id = parse_int(data.get("sale_id"), "sale_id")
        amount_cents = parse_cents(data.get("amount_cents"), "amount_cents")

        payment = payment_service.record_payment(
            sale_id=sale_id,
            amount=money.from_cents(amount_cents),
            method=data.get("payment_method") or payment_service.METHOD_CASH,
            reference=data.get("reference"),
        )

        summary = payment_service.get_payment_summary(sale_id)

        return jsonify({
            "payment": payment.to_dict(),
            "summary": summary,
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except PaymentError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("/sales/<int:sale_id>")
def get_sale_payments_route(sale_id: int):
    """
    Get all payments for a sale with its balance.

    Returns:
        200: Payment summary
        404: Sale not found
    """
    try:
        return jsonify(payment_service.get_payment_summary(sale_id)), 200

    except PaymentError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to get sale payments")
        return jsonify({"error": "Internal server error"}), 500
