# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/bizledger/routes/sales.py
"""Sales API routes: checkout, lookup, listings and debtors"""

from flask import Blueprint, request, jsonify, current_app

from .. import money
from ..services import sales_service
from ..services.sales_service import SaleError
from ..time_utils import parse_iso_datetime
from ..validation import (
    ConflictError,
    ValidationError,
    parse_cents,
    parse_int,
    parse_rate,
    require_fields,
)


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _parse_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        unit_price_cents = parse_cents(raw.get("unit_price_cents"), f"items[{index}].unit_price_cents", required=False)
        discount_cents = parse_cents(raw.get("discount_cents"), f"items[{index}].discount_cents", required=False)
        items.append({
            "service_id": parse_int(raw.get("service_id"), f"items[{index}].service_id", required=False),
            "quantity": parse_int(raw.get("quantity", 1), f"items[{index}].quantity"),
            "unit_price": money.from_cents(unit_price_cents) if unit_price_cents is not None else None,
            "discount": money.from_cents(discount_cents),
            "tax_rate": parse_rate(raw.get("tax_rate"), f"items[{index}].tax_rate"),
        })
    return items


@sales_bp.post("")
def checkout_route():
    """
    Check out a cart into a persisted sale.

    Request body:
    {
        "business_id": 1,
        "items": [
            {"service_id": 3, "quantity": 2},
            {"unit_price_cents": 150000, "discount_cents": 10000, "tax_rate": 7.5}
        ],
        "amount_tendered_cents": 200000,  (optional; omitted means paid in full)
        "payment_method": "cash",
        "customer_id": 4,  (optional)
        "employee_id": 2,  (optional; earns commission)
        "payment_reference": "PSK-123",  (optional)
        "notes": "..."  (optional)
    }

    Returns:
        201: Sale with items and settlement
        400: Invalid input
        409: Sale number conflict, retry
        500: Server error
    """
    try:
        data = request.get_json() or {}
        require_fields(data, "business_id")

        business_id = parse_int(data.get("business_id"), "business_id")
        items = _parse_items(data.get("items") or [])
        tendered_cents = parse_cents(data.get("amount_tendered_cents"), "amount_tendered_cents", required=False)

        sale = sales_service.checkout(
            business_id=business_id,
            items=items,
            amount_tendered=money.from_cents(tendered_cents) if tendered_cents is not None else None,
            payment_method=data.get("payment_method") or "cash",
            customer_id=parse_int(data.get("customer_id"), "customer_id", required=False),
            employee_id=parse_int(data.get("employee_id"), "employee_id", required=False),
            payment_reference=data.get("payment_reference"),
            notes=data.get("notes"),
        )
        return jsonify({"sale": sale.to_dict(include_items=True)}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to check out sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict(include_items=True)}), 200

    except SaleError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
def list_sales_route():
    """
    List sales for a business.

    Query params:
    - business_id: required
    - status: pending, partial, completed, refunded (optional)
    - since: ISO-8601 datetime (optional)
    - limit: max rows, default 100
    """
    try:
        business_id = parse_int(request.args.get("business_id"), "business_id")
        limit = parse_int(request.args.get("limit"), "limit", required=False)
        if limit is None:
            limit = 100
        elif limit < 1:
            return jsonify({"error": "limit must be a positive integer"}), 400
        try:
            since = parse_iso_datetime(request.args.get("since"))
        except ValueError:
            return jsonify({"error": "since must be an ISO-8601 datetime"}), 400

        sales = sales_service.list_sales(
            business_id,
            payment_status=request.args.get("status") or None,
            since=since,
            limit=min(limit, 500),
        )
        return jsonify({"sales": [s.to_dict() for s in sales], "count": len(sales)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/debtors")
def list_debtors_route():
    """Sales with an outstanding balance, oldest first."""
    try:
        business_id = parse_int(request.args.get("business_id"), "business_id")
        debtors = sales_service.list_debtors(business_id)
        return jsonify({
            "debtors": [s.to_dict() for s in debtors],
            "count": len(debtors),
            "total_outstanding_cents": sum(s.balance_due_cents for s in debtors),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list debtors")
        return jsonify({"error": "Internal server error"}), 500
