# Overview: Maps service errors to JSON error responses.

from flask import jsonify, request

from ..services.errors import (
    BillingError,
    CancellationNotAllowed,
    InvoiceAlreadyFinalized,
    NotFoundError,
    ResourceUnavailable,
    SubscriptionEnded,
)
from ..services.settings_service import SettingsError
from ..validation import ValidationError

# Errors a caller can fix by changing the request
CLIENT_ERRORS = (BillingError, ValidationError, SettingsError)

CONFLICT_ERRORS = (
    ResourceUnavailable,
    InvoiceAlreadyFinalized,
    CancellationNotAllowed,
    SubscriptionEnded,
)


def status_for(exc: Exception) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, CONFLICT_ERRORS):
        return 409
    return 400


def error_response(exc: Exception):
    body = {"error": str(exc)}
    details = getattr(exc, "details", None)
    if details:
        body["details"] = details
    if isinstance(exc, BillingError):
        body["code"] = type(exc).__name__
    return jsonify(body), status_for(exc)


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data
