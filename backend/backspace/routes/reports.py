from datetime import timedelta

from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..models import Customer, InventoryItem, Resource
from backspace.services import ledger_service, reporting_service
from backspace.time_utils import parse_iso_date, parse_iso_datetime, utcnow


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _parse_date(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise reporting_service.ReportError(f"{name} must be an ISO-8601 date")


def _tz_offset() -> int:
    return current_app.config.get("REPORT_TZ_OFFSET_MINUTES", 0)


def _parse_datetime(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise reporting_service.ReportError(f"{name} must be an ISO-8601 datetime")


@reports_bp.get("/dashboard")
def dashboard_report():
    report = reporting_service.build_dashboard(
        utcnow(),
        week_start=current_app.config["REPORT_WEEK_START"],
        top_limit=current_app.config["TOP_CUSTOMERS_LIMIT"],
        activity_limit=current_app.config["RECENT_ACTIVITY_LIMIT"],
        tz_offset_minutes=_tz_offset(),
    )
    return jsonify(report), 200


@reports_bp.get("/revenue")
def revenue_report():
    now = utcnow()
    invoices = reporting_service.load_sale_invoices()
    report = reporting_service.revenue_data(
        invoices, now, current_app.config["REPORT_WEEK_START"], tz_offset_minutes=_tz_offset()
    )
    return jsonify(report), 200


@reports_bp.get("/revenue-series")
def revenue_series_report():
    """
    Query params:
    - start: YYYY-MM-DD (default: 29 days before end)
    - end: YYYY-MM-DD (default: today on the business clock)
    """
    try:
        end = _parse_date("end") or (utcnow() + timedelta(minutes=_tz_offset())).date()
        start = _parse_date("start") or end - timedelta(days=29)
        invoices = reporting_service.load_sale_invoices()
        series = reporting_service.revenue_series(invoices, start, end, tz_offset_minutes=_tz_offset())
        return jsonify({"start": start.isoformat(), "end": end.isoformat(), "points": series}), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/utilization")
def utilization_report():
    resources = db.session.query(Resource).order_by(Resource.name.asc()).all()
    report = reporting_service.utilization(
        resources, reporting_service.load_session_history(), tz_offset_minutes=_tz_offset()
    )
    return jsonify(report), 200


@reports_bp.get("/top-customers")
def top_customers_report():
    limit = request.args.get("limit", type=int) or current_app.config["TOP_CUSTOMERS_LIMIT"]
    customers = db.session.query(Customer).all()
    invoices = reporting_service.load_sale_invoices()
    return jsonify({"customers": reporting_service.top_customers(customers, invoices, limit)}), 200


@reports_bp.get("/low-stock")
def low_stock_report():
    items = db.session.query(InventoryItem).all()
    return jsonify({
        "low_stock": reporting_service.low_stock_alerts(items),
        "out_of_stock": reporting_service.out_of_stock_alerts(items),
    }), 200


@reports_bp.get("/operations")
def operations_report():
    """
    Query params:
    - type: operation type (optional)
    - customer_id (optional)
    - start, end: ISO-8601 datetimes, inclusive (optional)
    - limit (default 200)
    """
    try:
        records = ledger_service.operation_history(
            operation_type=request.args.get("type") or None,
            customer_id=request.args.get("customer_id", type=int),
            start=_parse_datetime("start"),
            end=_parse_datetime("end"),
            limit=request.args.get("limit", 200, type=int),
        )
        return jsonify({"operations": [r.to_dict() for r in records]}), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
