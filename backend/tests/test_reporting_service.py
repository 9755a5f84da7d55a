from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from backspace.services import reporting_service, session_service
from backspace.services.reporting_service import (
    ReportError,
    low_stock_alerts,
    out_of_stock_alerts,
    percent_change,
    revenue_data,
    revenue_series,
    split_invoice,
    top_customers,
    utilization,
)


NOW = datetime(2024, 5, 15, 12, 0, 0)  # Wednesday


def _line(amount, kind=None, description=""):
    return SimpleNamespace(kind=kind, amount=amount, description=description)


def _invoice(created_at, lines, customer_id=1, paid_amount=0, status="unpaid", invoice_type="sale"):
    return SimpleNamespace(
        created_at=created_at,
        lines=lines,
        total=sum(line.amount for line in lines),
        customer_id=customer_id,
        paid_amount=paid_amount,
        status=status,
        invoice_type=invoice_type,
    )


def _item(name, quantity, min_stock, item_id):
    return SimpleNamespace(
        id=item_id,
        name=name,
        category="beverage",
        quantity=quantity,
        min_stock=min_stock,
    )


# -----------------------------------------------------------------------------
# revenue
# -----------------------------------------------------------------------------

def test_split_uses_line_kinds():
    invoice = _invoice(NOW, [
        _line(3000, "session"),
        _line(1000, "inventory"),
        _line(-400, "discount"),
    ])
    assert split_invoice(invoice) == (3000, 3600 - 3000)


def test_split_falls_back_to_description_for_legacy_lines():
    invoice = _invoice(NOW, [
        _line(2000, description="Session at Desk 1 (1h 00m)"),
        _line(500, description="Tea x1"),
        _line(700, description="Subscription: weekly plan"),
    ])
    assert split_invoice(invoice) == (2700, 500)


def test_split_clamps_sessions_to_total():
    invoice = _invoice(NOW, [_line(1000, "session"), _line(-1500, "discount"), _line(500, "tax")])
    assert invoice.total == 0
    assert split_invoice(invoice) == (0, 0)


def test_percent_change_with_empty_previous_month():
    assert percent_change(5000, 0) == 0.0
    assert percent_change(1500, 1000) == 50.0
    assert percent_change(500, 1000) == -50.0


def test_revenue_buckets():
    invoices = [
        _invoice(NOW - timedelta(hours=1), [_line(1000, "session")]),
        _invoice(NOW - timedelta(days=3), [_line(500, "inventory")]),  # Sunday
        _invoice(datetime(2024, 5, 2, 9), [_line(2000, "session")]),
        _invoice(datetime(2024, 4, 20, 9), [_line(1750, "session")]),
        _invoice(NOW, [_line(9999, "session")], status="cancelled"),
        _invoice(NOW, [_line(800, "withdrawal")], invoice_type="withdrawal", status="paid"),
        _invoice(NOW + timedelta(hours=1), [_line(300, "session")]),
    ]

    data = revenue_data(invoices, NOW, week_start=5)

    assert data["today"] == {"sessions": 1000, "inventory": 0, "total": 1000}
    assert data["this_week"]["total"] == 1500
    assert data["this_month"] == {"sessions": 3000, "inventory": 500, "total": 3500}
    assert data["comparison"]["last_month"]["total"] == 1750
    assert data["comparison"]["percent_change"] == 100.0


def test_week_start_moves_week_bucket():
    invoices = [_invoice(datetime(2024, 5, 12, 9), [_line(500, "session")])]  # Sunday
    assert revenue_data(invoices, NOW, week_start=0)["this_week"]["total"] == 0
    assert revenue_data(invoices, NOW, week_start=5)["this_week"]["total"] == 500


def test_business_clock_offset_moves_day_and_month_boundaries():
    invoices = [
        _invoice(datetime(2024, 5, 14, 22, 0), [_line(500, "session")]),  # 01:00 on the 15th at UTC+3
        _invoice(datetime(2024, 4, 30, 22, 30), [_line(700, "session")]),  # 01:30 on May 1st at UTC+3
    ]

    utc = revenue_data(invoices, NOW, week_start=0)
    assert utc["today"]["total"] == 0
    assert utc["this_month"]["total"] == 500
    assert utc["comparison"]["last_month"]["total"] == 700

    local = revenue_data(invoices, NOW, week_start=0, tz_offset_minutes=180)
    assert local["today"]["total"] == 500
    assert local["this_month"]["total"] == 1200
    assert local["comparison"]["last_month"]["total"] == 0


def test_revenue_series_uses_business_days():
    invoices = [_invoice(datetime(2024, 5, 2, 22, 30), [_line(400, "session")])]

    utc = revenue_series(invoices, date(2024, 5, 1), date(2024, 5, 3))
    local = revenue_series(invoices, date(2024, 5, 1), date(2024, 5, 3), tz_offset_minutes=180)

    assert [p["sessions"] for p in utc] == [0, 400, 0]
    assert [p["sessions"] for p in local] == [0, 0, 400]

def test_revenue_series_zero_fills_days():
    invoices = [
        _invoice(datetime(2024, 5, 2, 9), [_line(2000, "session"), _line(500, "inventory")]),
        _invoice(datetime(2024, 5, 2, 18), [_line(1000, "session")]),
        _invoice(datetime(2024, 5, 9, 9), [_line(100, "session")]),
    ]

    series = revenue_series(invoices, date(2024, 5, 1), date(2024, 5, 3))

    assert [p["date"] for p in series] == ["2024-05-01", "2024-05-02", "2024-05-03"]
    assert series[0] == {"date": "2024-05-01", "sessions": 0, "inventory": 0}
    assert series[1] == {"date": "2024-05-02", "sessions": 3000, "inventory": 500}
    assert series[2]["sessions"] == 0


def test_revenue_series_rejects_reversed_range():
    with pytest.raises(ReportError):
        revenue_series([], date(2024, 5, 3), date(2024, 5, 1))


# -----------------------------------------------------------------------------
# utilization
# -----------------------------------------------------------------------------

def test_utilization_with_no_resources():
    report = utilization([], [])
    assert report["overall_rate"] == 0.0
    assert report["by_resource"] == []
    assert len(report["peak_hours"]) == 24
    assert report["average_session_duration"] == 0.0


def test_utilization_rates_and_peak_hours():
    resources = [
        SimpleNamespace(id=1, name="Desk 1", is_available=False),
        SimpleNamespace(id=2, name="Desk 2", is_available=True),
    ]
    history = [
        SimpleNamespace(session_started_at=datetime(2024, 5, 14, 10, 5), duration_minutes=60),
        SimpleNamespace(session_started_at=datetime(2024, 5, 15, 10, 40), duration_minutes=30),
        SimpleNamespace(session_started_at=datetime(2024, 5, 15, 14, 0), duration_minutes=90),
    ]

    report = utilization(resources, history)

    assert report["overall_rate"] == 50.0
    assert [r["utilization_rate"] for r in report["by_resource"]] == [100, 0]
    # 2 starts at 10:00 over 2 resources * 2 days
    assert report["peak_hours"][10] == {"hour": 10, "occupancy": 50.0}
    assert report["peak_hours"][14]["occupancy"] == 25.0
    assert report["peak_hours"][3]["occupancy"] == 0.0
    assert report["average_session_duration"] == 60.0


def test_peak_hours_follow_business_clock():
    resources = [SimpleNamespace(id=1, name="Desk 1", is_available=True)]
    history = [SimpleNamespace(session_started_at=datetime(2024, 5, 14, 23, 30), duration_minutes=45)]

    assert utilization(resources, history)["peak_hours"][23]["occupancy"] == 100.0
    shifted = utilization(resources, history, tz_offset_minutes=180)
    assert shifted["peak_hours"][2]["occupancy"] == 100.0
    assert shifted["peak_hours"][23]["occupancy"] == 0.0

# -----------------------------------------------------------------------------
# customers & stock
# -----------------------------------------------------------------------------

def test_top_customers_ranking_and_ties():
    customers = [
        SimpleNamespace(id=1, name="Zeina"),
        SimpleNamespace(id=2, name="Adel"),
        SimpleNamespace(id=3, name="Hany"),
        SimpleNamespace(id=4, name="Nobody"),
    ]
    invoices = [
        _invoice(NOW, [_line(3000, "session")], customer_id=1, paid_amount=3000),
        _invoice(NOW, [_line(2000, "session")], customer_id=2, paid_amount=1000),
        _invoice(NOW, [_line(2000, "session")], customer_id=2, paid_amount=2000),
        _invoice(NOW, [_line(5000, "session")], customer_id=3, paid_amount=500),
        _invoice(NOW, [_line(5000, "session")], customer_id=4, paid_amount=0),
    ]

    ranked = top_customers(customers, invoices, limit=5)

    assert [r["customer_name"] for r in ranked] == ["Adel", "Zeina", "Hany"]
    assert ranked[0]["total_spent"] == 3000
    assert ranked[0]["invoice_count"] == 2
    assert len(top_customers(customers, invoices, limit=1)) == 1


def test_low_stock_excludes_empty_and_healthy_items():
    items = [
        _item("Cola", 2, 5, 1),
        _item("Water", 0, 5, 2),
        _item("Tea", 10, 5, 3),
        _item("Chips", 5, 5, 4),
    ]
    names = [row["name"] for row in low_stock_alerts(items)]
    assert names == ["Cola", "Chips"]
    assert [row["name"] for row in out_of_stock_alerts(items)] == ["Water"]


def test_low_stock_orders_by_depletion_then_name():
    items = [
        _item("Biscuits", 4, 8, 1),   # 0.5
        _item("Cola", 1, 10, 2),      # 0.1
        _item("Apple", 2, 4, 3),      # 0.5
    ]
    assert [row["name"] for row in low_stock_alerts(items)] == ["Cola", "Apple", "Biscuits"]


# -----------------------------------------------------------------------------
# dashboard (store-backed)
# -----------------------------------------------------------------------------

def test_dashboard_reflects_ended_session(customer, resource, make_item, now):
    make_item(name="Water", quantity=0, min_stock=3)
    session = session_service.start_session(customer.id, resource.id, now=now - timedelta(hours=1))
    session_service.end_session(session.id, now=now)

    report = reporting_service.build_dashboard(now, week_start=5, top_limit=5, activity_limit=3)

    assert report["metrics"]["active_sessions"] == 0
    assert report["metrics"]["new_customers_today"] == 1
    assert report["metrics"]["today_revenue"] == 0
    assert report["revenue"]["today"]["sessions"] == 6000
    assert report["revenue_chart"][-1] == {"date": "2024-05-15", "sessions": 6000, "inventory": 0}
    assert report["utilization"]["average_session_duration"] == 60.0
    assert report["top_customers"] == []
    assert report["out_of_stock"][0]["name"] == "Water"
    assert len(report["recent_activity"]) == 3


def test_dashboard_metrics_day_follows_business_clock(customer, now):
    late_evening = now.replace(hour=22, minute=30)

    assert reporting_service.dashboard_metrics(late_evening)["new_customers_today"] == 1
    # 01:30 on the 16th at UTC+3: the customer joined "yesterday"
    assert reporting_service.dashboard_metrics(late_evening, tz_offset_minutes=180)["new_customers_today"] == 0
