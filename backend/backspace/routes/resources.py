# Overview: Flask API routes for resources operations; parses input and returns JSON responses.

# backend/backspace/routes/resources.py

from flask import Blueprint, request, jsonify, current_app

from ..services import resource_service
from .errors import CLIENT_ERRORS, error_response, json_body


resources_bp = Blueprint("resources", __name__, url_prefix="/api/resources")


@resources_bp.get("/")
def list_resources_route():
    """
    Query params:
    - available: true/false (optional)
    """
    try:
        available = request.args.get("available")
        flag = None if available is None else available.lower() == "true"
        resources = resource_service.list_resources(available=flag)
        return jsonify({"resources": [r.to_dict() for r in resources]}), 200
    except Exception:
        current_app.logger.exception("Failed to list resources")
        return jsonify({"error": "Internal server error"}), 500


@resources_bp.post("/")
def create_resource_route():
    try:
        resource = resource_service.create_resource(json_body())
        return jsonify({"resource": resource.to_dict()}), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create resource")
        return jsonify({"error": "Internal server error"}), 500


@resources_bp.patch("/<int:resource_id>")
def update_resource_route(resource_id: int):
    try:
        resource = resource_service.update_resource(resource_id, json_body())
        return jsonify({"resource": resource.to_dict()}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update resource")
        return jsonify({"error": "Internal server error"}), 500
