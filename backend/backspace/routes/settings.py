from __future__ import annotations

from flask import Blueprint, jsonify, current_app

from ..services import settings_service
from .errors import CLIENT_ERRORS, error_response, json_body


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/")
def get_settings_route():
    try:
        return jsonify({"settings": settings_service.get_settings().to_dict()}), 200
    except Exception:
        current_app.logger.exception("Failed to load settings")
        return jsonify({"error": "Internal server error"}), 500


@settings_bp.put("/")
def update_settings_route():
    """
    Partial update; nested objects merge key by key.

    {"tax": {"enabled": true, "rate": 14}, "debt_limit": 50000}
    """
    try:
        settings = settings_service.update_settings(json_body())
        return jsonify({"settings": settings.to_dict()}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500
