# Overview: Flask API routes for subscriptions operations; parses input and returns JSON responses.

# backend/backspace/routes/subscriptions.py

from flask import Blueprint, request, jsonify, current_app

from ..services import subscription_service
from backspace.time_utils import parse_iso_datetime, utcnow
from ..validation import ValidationError
from .errors import CLIENT_ERRORS, error_response, json_body


subscriptions_bp = Blueprint("subscriptions", __name__, url_prefix="/api/subscriptions")


def _with_days_remaining(sub, now) -> dict:
    data = sub.to_dict()
    data["days_remaining"] = sub.days_remaining(now)
    return data


@subscriptions_bp.get("/")
def list_subscriptions_route():
    """
    Query params:
    - status: active, expired, cancelled (optional)
    - customer_id (optional)
    """
    try:
        now = utcnow()
        subs = subscription_service.list_subscriptions(
            status=request.args.get("status") or None,
            customer_id=request.args.get("customer_id", type=int),
        )
        return jsonify({"subscriptions": [_with_days_remaining(s, now) for s in subs]}), 200
    except Exception:
        current_app.logger.exception("Failed to list subscriptions")
        return jsonify({"error": "Internal server error"}), 500


@subscriptions_bp.post("/")
def create_subscription_route():
    """
    Request body:
    {
        "customer_id": 1,
        "plan_type": "monthly",   (weekly, half-monthly, monthly)
        "price": 150000,          (piasters)
        "start_date": "2024-05-01T00:00:00Z"  (optional, default now)
    }

    Creates an unpaid SUB-xxxx invoice for the plan price.
    """
    try:
        data = json_body()
        try:
            start_date = parse_iso_datetime(data.get("start_date"))
        except (TypeError, ValueError):
            raise ValidationError("start_date must be an ISO-8601 datetime")

        sub = subscription_service.create_subscription(
            data.get("customer_id"),
            data.get("plan_type"),
            data.get("price"),
            start_date=start_date,
        )
        return jsonify({"subscription": _with_days_remaining(sub, utcnow())}), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create subscription")
        return jsonify({"error": "Internal server error"}), 500


@subscriptions_bp.post("/<int:subscription_id>/cancel")
def cancel_subscription_route(subscription_id: int):
    try:
        sub = subscription_service.cancel_subscription(subscription_id)
        return jsonify({"subscription": sub.to_dict()}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel subscription")
        return jsonify({"error": "Internal server error"}), 500


@subscriptions_bp.post("/<int:subscription_id>/reactivate")
def reactivate_subscription_route(subscription_id: int):
    try:
        sub = subscription_service.reactivate_subscription(subscription_id)
        return jsonify({"subscription": _with_days_remaining(sub, utcnow())}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reactivate subscription")
        return jsonify({"error": "Internal server error"}), 500
