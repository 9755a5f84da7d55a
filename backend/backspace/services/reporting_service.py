# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

"""
Reporting Aggregator

Every report is a full recompute over records loaded from the store. The
aggregation functions below are pure: they take lists of rows (or any
objects with the same attributes) and return plain dicts, so they can be
called repeatedly or concurrently without side effects.

REVENUE SPLIT: an invoice's "sessions" share is the sum of its session and
subscription lines; "inventory" is whatever remains of the invoice total.
Lines written before line kinds existed are classified by description.

BUSINESS CLOCK: timestamps are stored as naive UTC. Day, week, month and
hour buckets are cut on the business clock, UTC shifted by
tz_offset_minutes (a fixed offset, no DST rules).
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from functools import cmp_to_key
from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..models import ActiveSession, Customer, InventoryItem, Invoice, Payment, Resource, Subscription
from ..models.invoices import (
    INVOICE_STATUS_CANCELLED,
    INVOICE_TYPE_SALE,
    LINE_KIND_SESSION,
    LINE_KIND_SUBSCRIPTION,
)
from ..models.subscriptions import SUBSCRIPTION_STATUS_ACTIVE
from backspace.time_utils import (
    previous_month_start,
    start_of_day,
    start_of_month,
    start_of_week,
    to_utc_z,
    utcnow,
)
from .ledger_service import recent_activity


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


_SESSION_DESCRIPTION = re.compile(r"^\s*(session|subscription)\b", re.IGNORECASE)


def _shift(tz_offset_minutes: int) -> timedelta:
    return timedelta(minutes=tz_offset_minutes or 0)


# =============================================================================
# LOADERS
# =============================================================================

def load_sale_invoices(start: datetime | None = None, end: datetime | None = None) -> list[Invoice]:
    """Non-cancelled sale invoices, optionally limited to created_at in [start, end)."""
    query = db.session.query(Invoice).filter(
        Invoice.invoice_type == INVOICE_TYPE_SALE,
        Invoice.status != INVOICE_STATUS_CANCELLED,
    )
    if start:
        query = query.filter(Invoice.created_at >= start)
    if end:
        query = query.filter(Invoice.created_at < end)
    return query.order_by(Invoice.created_at.asc(), Invoice.id.asc()).all()


def load_session_history() -> list[Invoice]:
    """Sale invoices that closed a session (carry the session snapshot)."""
    return (
        db.session.query(Invoice)
        .filter(Invoice.session_started_at.isnot(None))
        .order_by(Invoice.session_started_at.asc())
        .all()
    )


# =============================================================================
# REVENUE
# =============================================================================

def _is_session_line(line) -> bool:
    if line.kind:
        return line.kind in (LINE_KIND_SESSION, LINE_KIND_SUBSCRIPTION)
    return bool(_SESSION_DESCRIPTION.match(line.description or ""))


def split_invoice(invoice) -> tuple[int, int]:
    """(sessions, inventory) share of one invoice's total."""
    sessions = sum(line.amount for line in invoice.lines if _is_session_line(line))
    sessions = max(0, min(sessions, invoice.total))
    return sessions, invoice.total - sessions


def _is_revenue(invoice) -> bool:
    return (
        getattr(invoice, "invoice_type", INVOICE_TYPE_SALE) == INVOICE_TYPE_SALE
        and invoice.status != INVOICE_STATUS_CANCELLED
    )


def _bucket(invoices: Iterable, start: datetime, end: datetime) -> dict:
    sessions = inventory = 0
    for invoice in invoices:
        if not _is_revenue(invoice):
            continue
        if start <= invoice.created_at < end:
            s, i = split_invoice(invoice)
            sessions += s
            inventory += i
    return {"sessions": sessions, "inventory": inventory, "total": sessions + inventory}


def percent_change(current: int, previous: int) -> float:
    if not previous:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def revenue_data(invoices: Iterable, now: datetime, week_start: int = 0, tz_offset_minutes: int = 0) -> dict:
    """
    Revenue for today, this week, this month and last month.

    Current buckets run from their start up to `now` inclusive; last month
    is the full previous calendar month. Bucket starts are midnights on the
    business clock, converted back to UTC before comparing.
    """
    invoices = list(invoices)
    shift = _shift(tz_offset_minutes)
    local_now = now + shift
    upper = now + timedelta(microseconds=1)
    month_start = start_of_month(local_now) - shift

    this_month = _bucket(invoices, month_start, upper)
    last_month = _bucket(invoices, previous_month_start(local_now) - shift, month_start)

    return {
        "today": _bucket(invoices, start_of_day(local_now) - shift, upper),
        "this_week": _bucket(invoices, start_of_week(local_now, week_start) - shift, upper),
        "this_month": this_month,
        "comparison": {
            "last_month": last_month,
            "percent_change": percent_change(this_month["total"], last_month["total"]),
        },
    }


def revenue_series(invoices: Iterable, start: date, end: date, tz_offset_minutes: int = 0) -> list[dict]:
    """One point per business day in [start, end], ascending, zero-filled."""
    if end < start:
        raise ReportError("end must not be before start")

    points = {}
    day = start
    while day <= end:
        points[day] = {"date": day.isoformat(), "sessions": 0, "inventory": 0}
        day += timedelta(days=1)

    shift = _shift(tz_offset_minutes)
    for invoice in invoices:
        if not _is_revenue(invoice):
            continue
        point = points.get((invoice.created_at + shift).date())
        if point is None:
            continue
        s, i = split_invoice(invoice)
        point["sessions"] += s
        point["inventory"] += i

    return [points[d] for d in sorted(points)]


# =============================================================================
# UTILIZATION
# =============================================================================

def utilization(resources: Iterable, history: Iterable, tz_offset_minutes: int = 0) -> dict:
    """
    Current occupancy plus hourly patterns from past sessions.

    peak_hours occupancy for hour H = sessions started during H divided by
    (resource count * days spanned by the history), as a percentage capped
    at 100.
    """
    resources = list(resources)
    history = [h for h in history if getattr(h, "session_started_at", None) is not None]
    shift = _shift(tz_offset_minutes)
    started = [h.session_started_at + shift for h in history]

    total = len(resources)
    occupied = sum(1 for r in resources if not r.is_available)
    overall = round(occupied / total * 100, 2) if total else 0.0

    by_resource = [
        {
            "resource_id": r.id,
            "resource_name": r.name,
            "utilization_rate": 0 if r.is_available else 100,
        }
        for r in resources
    ]

    starts_per_hour = [0] * 24
    for ts in started:
        starts_per_hour[ts.hour] += 1

    if started:
        first = min(started).date()
        last = max(started).date()
        days = (last - first).days + 1
    else:
        days = 0

    capacity = total * days
    peak_hours = [
        {
            "hour": hour,
            "occupancy": min(100.0, round(count / capacity * 100, 2)) if capacity else 0.0,
        }
        for hour, count in enumerate(starts_per_hour)
    ]

    durations = [h.duration_minutes for h in history if h.duration_minutes is not None]
    average = round(sum(durations) / len(durations), 2) if durations else 0.0

    return {
        "overall_rate": overall,
        "by_resource": by_resource,
        "peak_hours": peak_hours,
        "average_session_duration": average,
    }


# =============================================================================
# CUSTOMERS & STOCK
# =============================================================================

def top_customers(customers: Iterable, invoices: Iterable, limit: int = 5) -> list[dict]:
    """Customers ranked by money paid on sale invoices; ties broken by name."""
    paid: dict[int, int] = {}
    counts: dict[int, int] = {}
    for invoice in invoices:
        if not _is_revenue(invoice):
            continue
        paid[invoice.customer_id] = paid.get(invoice.customer_id, 0) + invoice.paid_amount
        counts[invoice.customer_id] = counts.get(invoice.customer_id, 0) + 1

    ranked = sorted(
        (c for c in customers if paid.get(c.id, 0) > 0),
        key=lambda c: (-paid[c.id], c.name, c.id),
    )
    return [
        {
            "customer_id": c.id,
            "customer_name": c.name,
            "total_spent": paid[c.id],
            "invoice_count": counts[c.id],
        }
        for c in ranked[:limit]
    ]


def _stock_ratio_cmp(a, b) -> int:
    # a.quantity / a.min_stock vs b.quantity / b.min_stock without division
    left = a.quantity * b.min_stock
    right = b.quantity * a.min_stock
    if left != right:
        return -1 if left < right else 1
    if a.name != b.name:
        return -1 if a.name < b.name else 1
    return 0


def _stock_row(item) -> dict:
    return {
        "item_id": item.id,
        "name": item.name,
        "category": item.category,
        "quantity": item.quantity,
        "min_stock": item.min_stock,
    }


def low_stock_alerts(items: Iterable) -> list[dict]:
    """Items with 0 < quantity <= min_stock, most depleted first."""
    low = [i for i in items if 0 < i.quantity <= i.min_stock]
    return [_stock_row(i) for i in sorted(low, key=cmp_to_key(_stock_ratio_cmp))]


def out_of_stock_alerts(items: Iterable) -> list[dict]:
    empty = [i for i in items if i.quantity == 0]
    return [_stock_row(i) for i in sorted(empty, key=lambda i: (i.name, i.id))]


# =============================================================================
# DASHBOARD
# =============================================================================

def dashboard_metrics(now: datetime | None = None, tz_offset_minutes: int = 0) -> dict:
    now = now or utcnow()
    shift = _shift(tz_offset_minutes)
    day_start = start_of_day(now + shift) - shift
    day_end = day_start + timedelta(days=1)

    today_revenue = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.occurred_at >= day_start, Payment.occurred_at < day_end)
        .scalar()
    )
    new_customers = (
        db.session.query(func.count(Customer.id))
        .filter(Customer.created_at >= day_start, Customer.created_at < day_end)
        .scalar()
    )
    return {
        "today_revenue": int(today_revenue or 0),
        "active_sessions": db.session.query(func.count(ActiveSession.id)).scalar() or 0,
        "new_customers_today": new_customers or 0,
        "active_subscriptions": (
            db.session.query(func.count(Subscription.id))
            .filter(Subscription.status == SUBSCRIPTION_STATUS_ACTIVE)
            .scalar()
            or 0
        ),
    }


def build_dashboard(
    now: datetime | None = None,
    *,
    week_start: int = 0,
    top_limit: int = 5,
    activity_limit: int = 10,
    tz_offset_minutes: int = 0,
) -> dict:
    """Everything the dashboard shows, computed from one read of the store."""
    now = now or utcnow()
    invoices = load_sale_invoices()
    resources = db.session.query(Resource).order_by(Resource.name.asc()).all()
    customers = db.session.query(Customer).all()
    items = db.session.query(InventoryItem).all()
    today = (now + _shift(tz_offset_minutes)).date()

    return {
        "generated_at": to_utc_z(now),
        "metrics": dashboard_metrics(now, tz_offset_minutes),
        "revenue": revenue_data(invoices, now, week_start, tz_offset_minutes),
        "revenue_chart": revenue_series(invoices, today - timedelta(days=6), today, tz_offset_minutes),
        "utilization": utilization(resources, load_session_history(), tz_offset_minutes),
        "top_customers": top_customers(customers, invoices, top_limit),
        "low_stock": low_stock_alerts(items),
        "out_of_stock": out_of_stock_alerts(items),
        "recent_activity": [r.to_dict() for r in recent_activity(activity_limit)],
    }
