# Overview: Flask API routes for sessions operations; parses input and returns JSON responses.

# backend/backspace/routes/sessions.py
"""
Session API Routes

DESIGN:
- Start a session on a free resource
- Live charge (recomputed on every request; nothing is stored)
- Add/update/remove consumed inventory while the session is open
- End a session, producing its invoice
"""

from flask import Blueprint, jsonify, current_app

from ..services import consumption_service, session_service
from ..services.billing_service import compute_session_charge
from ..services.errors import InvalidQuantity
from ..services.settings_service import get_settings
from backspace.time_utils import utcnow
from .errors import CLIENT_ERRORS, error_response, json_body


sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


def _session_with_charge(session, now, settings) -> dict:
    data = session.to_dict()
    data["charge"] = compute_session_charge(session, now, settings).to_dict()
    return data


@sessions_bp.get("/")
def list_sessions_route():
    try:
        now = utcnow()
        settings = get_settings()
        sessions = session_service.list_active_sessions()
        return jsonify({"sessions": [_session_with_charge(s, now, settings) for s in sessions]}), 200
    except Exception:
        current_app.logger.exception("Failed to list sessions")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.post("/")
def start_session_route():
    """
    Request body:
    {
        "customer_id": 1,
        "resource_id": 2
    }

    Returns:
        201: Session started
        404: Customer or resource not found
        409: Resource already in use
    """
    try:
        data = json_body()
        session = session_service.start_session(data.get("customer_id"), data.get("resource_id"))
        return jsonify({"session": session.to_dict()}), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to start session")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.get("/<int:session_id>/charge")
def live_charge_route(session_id: int):
    try:
        now = utcnow()
        session = session_service.get_session(session_id)
        return jsonify(_session_with_charge(session, now, get_settings())), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute live charge")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.post("/<int:session_id>/end")
def end_session_route(session_id: int):
    try:
        invoice = session_service.end_session(session_id)
        return jsonify({"invoice": invoice.to_dict()}), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to end session")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.post("/<int:session_id>/items")
def add_item_route(session_id: int):
    """
    Request body:
    {
        "inventory_item_id": 3,
        "quantity": 2
    }
    """
    try:
        data = json_body()
        if "inventory_item_id" not in data:
            raise InvalidQuantity("inventory_item_id is required")
        line = consumption_service.add_item(session_id, data["inventory_item_id"], data.get("quantity", 1))
        return jsonify({"consumption": line.to_dict()}), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add session item")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.patch("/<int:session_id>/items/<int:consumption_id>")
def update_item_route(session_id: int, consumption_id: int):
    """
    Request body:
    {
        "quantity": 1   (0 removes the line)
    }
    """
    try:
        data = json_body()
        line = consumption_service.update_item(session_id, consumption_id, data.get("quantity"))
        return jsonify({"consumption": line.to_dict() if line is not None else None}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update session item")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.delete("/<int:session_id>/items/<int:consumption_id>")
def remove_item_route(session_id: int, consumption_id: int):
    try:
        consumption_service.remove_item(session_id, consumption_id)
        return jsonify({"removed": consumption_id}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove session item")
        return jsonify({"error": "Internal server error"}), 500
