# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

# backend/backspace/routes/customers.py
"""
Customer API Routes

DESIGN:
- Create/list/update customers (human id allocated server-side)
- Duplicate lookup by exact name or phone
- Balance summary (negative balance = customer owes the business)
- Withdrawals and refunds against a customer's balance
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import balance_service, customer_service
from .errors import CLIENT_ERRORS, error_response, json_body


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("/")
def list_customers_route():
    try:
        customers = customer_service.list_customers(search=request.args.get("q"))
        return jsonify({"customers": [c.to_dict() for c in customers]}), 200
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/duplicate")
def find_duplicate_route():
    """Lookup before creating: ?name=...&phone=... returns the first match or null."""
    try:
        customer = customer_service.find_duplicate(
            name=request.args.get("name"),
            phone=request.args.get("phone"),
        )
        return jsonify({"customer": customer.to_dict() if customer else None}), 200
    except Exception:
        current_app.logger.exception("Failed to look up duplicate customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/")
def create_customer_route():
    """
    Request body:
    {
        "name": "Mona",
        "phone": "0100...",
        "email": "mona@example.com",  (optional)
        "customer_type": "visitor",   (optional)
        "notes": "..."                (optional)
    }
    """
    try:
        customer = customer_service.create_customer(json_body())
        return jsonify({"customer": customer.to_dict()}), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
        return jsonify({"customer": customer.to_dict()}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.patch("/<int:customer_id>")
def update_customer_route(customer_id: int):
    try:
        customer = customer_service.update_customer(customer_id, json_body())
        return jsonify({"customer": customer.to_dict()}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/balance")
def customer_balance_route(customer_id: int):
    try:
        return jsonify(balance_service.balance_summary(customer_id)), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute customer balance")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<int:customer_id>/withdraw")
def withdraw_route(customer_id: int):
    """
    Request body:
    {
        "amount": 5000,   (piasters)
        "notes": "..."    (optional)
    }
    """
    try:
        data = json_body()
        invoice = balance_service.withdraw_balance(customer_id, data.get("amount"), notes=data.get("notes"))
        return jsonify({
            "invoice": invoice.to_dict(),
            "balance": balance_service.compute_balance(customer_id),
        }), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to withdraw balance")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<int:customer_id>/refund")
def refund_route(customer_id: int):
    try:
        data = json_body()
        invoice = balance_service.issue_refund(customer_id, data.get("amount"), reason=data.get("reason"))
        return jsonify({
            "invoice": invoice.to_dict(),
            "balance": balance_service.compute_balance(customer_id),
        }), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to issue refund")
        return jsonify({"error": "Internal server error"}), 500
