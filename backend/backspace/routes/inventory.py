# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/backspace/routes/inventory.py
"""
Inventory catalog routes.

Stock on hand only changes through POST /<id>/adjust (explicit delta) and
through session item routes; PATCH edits catalog fields only.
"""
from flask import Blueprint, jsonify, current_app

from ..services import inventory_service
from ..services.errors import InvalidQuantity
from ..services.reporting_service import low_stock_alerts, out_of_stock_alerts
from .errors import CLIENT_ERRORS, error_response, json_body


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/")
def list_items_route():
    try:
        items = inventory_service.list_items()
        return jsonify({
            "items": [i.to_dict() for i in items],
            "low_stock": low_stock_alerts(items),
            "out_of_stock": out_of_stock_alerts(items),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/")
def create_item_route():
    """
    Request body:
    {
        "name": "Tea",
        "category": "beverage",  (beverage, snack, other)
        "price": 500,            (piasters)
        "quantity": 20,          (optional, default 0)
        "min_stock": 5           (optional, default 0)
    }
    """
    try:
        item = inventory_service.create_item(json_body())
        return jsonify({"item": item.to_dict()}), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.patch("/<int:item_id>")
def update_item_route(item_id: int):
    try:
        item = inventory_service.update_item_details(item_id, json_body())
        return jsonify({"item": item.to_dict()}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/<int:item_id>/adjust")
def adjust_item_route(item_id: int):
    """
    Request body:
    {
        "delta": -3   (non-zero integer; negative removes stock)
    }
    """
    try:
        data = json_body()
        if "delta" not in data:
            raise InvalidQuantity("delta is required")
        item = inventory_service.adjust_quantity(item_id, data["delta"])
        return jsonify({"item": item.to_dict()}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"error": "Internal server error"}), 500
