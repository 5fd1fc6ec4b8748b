# Overview: Flask API routes for business units and their employees, customers and services.

# backend/bizledger/routes/businesses.py
"""
Business Unit API Routes

Registers the tenants of the ledger and the collaborators a sale refers
to: employees (commission earners), customers (debtors) and catalog
services (default prices and tax rates).

Money arrives as integer cents; rates as percent numbers or strings.
"""

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError

from .. import money
from ..services import business_service
from ..services.business_service import BusinessError
from ..validation import ValidationError, parse_cents, parse_rate, require_fields


businesses_bp = Blueprint("businesses", __name__, url_prefix="/api/businesses")


@businesses_bp.post("")
def create_business_route():
    """
    Create a business unit.

    Request body:
    {
        "name": "Glow Salon",
        "address": "12 Allen Avenue",  (optional)
        "phone": "+2348000000000",  (optional)
        "currency": "NGN"  (optional)
    }
    """
    try:
        data = request.get_json() or {}
        require_fields(data, "name")

        business = business_service.create_business_unit(
            name=data["name"],
            address=data.get("address"),
            phone=data.get("phone"),
            currency=data.get("currency") or "NGN",
        )
        return jsonify({"business": business.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create business unit")
        return jsonify({"error": "Internal server error"}), 500


@businesses_bp.post("/<int:business_id>/employees")
def create_employee_route(business_id: int):
    """
    Create an employee.

    Request body:
    {
        "name": "Ada",
        "commission_type": "percentage" | "fixed",
        "commission_percentage": 10,  (percentage type)
        "fixed_commission_cents": 50000  (fixed type)
    }
    """
    try:
        data = request.get_json() or {}
        require_fields(data, "name")

        percentage = parse_rate(data.get("commission_percentage"), "commission_percentage")
        fixed_cents = parse_cents(data.get("fixed_commission_cents"), "fixed_commission_cents", required=False)

        employee = business_service.create_employee(
            business_id=business_id,
            name=data["name"],
            commission_type=data.get("commission_type") or "percentage",
            commission_percentage=percentage if percentage is not None else 0,
            fixed_commission=money.from_cents(fixed_cents),
            email=data.get("email"),
            phone=data.get("phone"),
            is_active=bool(data.get("is_active", True)),
        )
        return jsonify({"employee": employee.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except BusinessError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except Exception:
        current_app.logger.exception("Failed to create employee")
        return jsonify({"error": "Internal server error"}), 500


@businesses_bp.post("/<int:business_id>/customers")
def create_customer_route(business_id: int):
    try:
        data = request.get_json() or {}
        require_fields(data, "name")

        customer = business_service.create_customer(
            business_id=business_id,
            name=data["name"],
            phone=data.get("phone"),
            email=data.get("email"),
        )
        return jsonify({"customer": customer.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except BusinessError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@businesses_bp.post("/<int:business_id>/services")
def create_service_route(business_id: int):
    """
    Create a catalog service.

    Request body:
    {
        "name": "Haircut",
        "base_price_cents": 500000,
        "tax_rate": 7.5,  (optional, percent)
        "sku": "HC-01"  (optional)
    }
    """
    try:
        data = request.get_json() or {}
        require_fields(data, "name")

        base_price_cents = parse_cents(data.get("base_price_cents"), "base_price_cents")
        tax_rate = parse_rate(data.get("tax_rate"), "tax_rate")

        service = business_service.create_service(
            business_id=business_id,
            name=data["name"],
            base_price=money.from_cents(base_price_cents),
            tax_rate=tax_rate if tax_rate is not None else 0,
            sku=data.get("sku"),
            description=data.get("description"),
        )
        return jsonify({"service": service.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except IntegrityError:
        return jsonify({"error": "A service with this SKU already exists"}), 409
    except BusinessError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except Exception:
        current_app.logger.exception("Failed to create service")
        return jsonify({"error": "Internal server error"}), 500
