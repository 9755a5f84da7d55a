# Overview: Flask API routes for invoices and payments; parses input and returns JSON responses.

# backend/backspace/routes/invoices.py
"""
Invoice & Payment API Routes

DESIGN:
- List invoices (filter by status, customer, type)
- Invoice detail with payment summary
- Single payments, bulk payments across several invoices
- Cancel invoices that have not received money
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import invoice_service, payment_service
from ..validation import ValidationError
from .errors import CLIENT_ERRORS, error_response, json_body


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _int_arg(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


@invoices_bp.get("/")
def list_invoices_route():
    """
    Query params:
    - status: unpaid, paid, cancelled (optional)
    - customer_id (optional)
    - type: sale, withdrawal, refund (optional)
    """
    try:
        invoices = invoice_service.list_invoices(
            status=request.args.get("status") or None,
            customer_id=_int_arg("customer_id"),
            invoice_type=request.args.get("type") or None,
        )
        return jsonify({"invoices": [inv.to_dict(include_lines=False) for inv in invoices]}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
        return jsonify({
            "invoice": invoice.to_dict(),
            "summary": payment_service.get_payment_summary(invoice_id),
        }), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/payments")
def record_payment_route(invoice_id: int):
    """
    Request body:
    {
        "amount": 2000,     (piasters, <= remaining)
        "method": "cash",   (cash, card, transfer)
        "notes": "..."      (optional)
    }

    Returns:
        201: Payment recorded, with updated summary
        400: Invalid amount or method
        404: Invoice not found
        409: Invoice already paid or cancelled
    """
    try:
        data = json_body()
        invoice = payment_service.record_payment(
            invoice_id,
            data.get("amount"),
            data.get("method"),
            notes=data.get("notes"),
        )
        return jsonify({
            "invoice": invoice.to_dict(include_lines=False),
            "summary": payment_service.get_payment_summary(invoice_id),
        }), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/bulk-payments")
def bulk_payment_route():
    """
    Request body:
    {
        "invoice_ids": [4, 7, 9],
        "amount": 10000,
        "method": "cash",
        "notes": "..."   (optional)
    }

    Allocation: oldest due date first, each invoice paid in full before the next.
    """
    try:
        data = json_body()
        invoices = payment_service.record_bulk_payment(
            data.get("invoice_ids") or [],
            data.get("amount"),
            data.get("method"),
            notes=data.get("notes"),
        )
        return jsonify({"invoices": [inv.to_dict(include_lines=False) for inv in invoices]}), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record bulk payment")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/cancel")
def cancel_invoice_route(invoice_id: int):
    try:
        data = json_body()
        invoice = invoice_service.cancel_invoice(invoice_id, reason=data.get("reason"))
        return jsonify({"invoice": invoice.to_dict()}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel invoice")
        return jsonify({"error": "Internal server error"}), 500
