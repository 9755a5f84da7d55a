# Overview: Pure session cost calculator shared by the live display and session end.

"""
Session Cost Calculator

WHY: Every surface that shows a session's cost (live card, details dialog,
end-session confirmation, the invoice itself) goes through this one function,
so they can never disagree on rounding.

RULES (all integer piasters, floor at every stage):
- session_cost = 0 when the session is subscription-covered, else
  floor(elapsed_minutes * resource_rate / 60), capped at the resource's daily
  max price when one was set.
- inventory_subtotal = sum(quantity * snapshot price).
- discount = floor(subtotal * discount% / 100) when enabled.
- tax = floor((subtotal - discount) * tax% / 100) when enabled.
- total = max(0, subtotal - discount + tax).

PURE: reads the session, never writes it. Calling it every second for a live
display is safe and gives the same answer for the same (session, now).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from backspace.money import percent_of, prorate
from backspace.time_utils import elapsed_minutes
from ..models.invoices import (
    LINE_KIND_DISCOUNT,
    LINE_KIND_INVENTORY,
    LINE_KIND_SESSION,
    LINE_KIND_TAX,
)
from .settings_service import BillingSettings


@dataclass(frozen=True)
class SessionCharge:
    duration_minutes: int
    session_cost: int
    inventory_subtotal: int
    subtotal: int
    discount: int
    tax: int
    total: int

    def to_dict(self) -> dict:
        return {
            "duration_minutes": self.duration_minutes,
            "session_cost": self.session_cost,
            "inventory_subtotal": self.inventory_subtotal,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "total": self.total,
        }


def session_cost(minutes: int, rate_per_hour: int, *, is_subscribed: bool = False, daily_cap: int = 0) -> int:
    if is_subscribed:
        return 0
    cost = prorate(minutes, rate_per_hour)
    if daily_cap and daily_cap > 0 and cost > daily_cap:
        return daily_cap
    return cost


def inventory_subtotal(consumptions) -> int:
    return sum(c.quantity * c.price for c in consumptions)


def apply_adjustments(subtotal: int, settings: BillingSettings | None) -> tuple[int, int, int]:
    """Return (discount, tax, total) for a subtotal under the given settings."""
    settings = settings or BillingSettings()

    discount = 0
    if settings.discount.enabled:
        discount = percent_of(subtotal, settings.discount.value)

    discounted = subtotal - discount
    tax = 0
    if settings.tax.enabled:
        tax = percent_of(discounted, settings.tax.rate)

    total = max(0, discounted + tax)
    return discount, tax, total


def compute_session_charge(session, now: datetime, settings: BillingSettings | None = None) -> SessionCharge:
    minutes = elapsed_minutes(session.started_at, now)
    cost = session_cost(
        minutes,
        session.resource_rate,
        is_subscribed=bool(session.is_subscribed),
        daily_cap=getattr(session, "resource_max_price", 0) or 0,
    )
    items = inventory_subtotal(session.consumptions)
    subtotal = cost + items
    discount, tax, total = apply_adjustments(subtotal, settings)

    return SessionCharge(
        duration_minutes=minutes,
        session_cost=cost,
        inventory_subtotal=items,
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        total=total,
    )


def format_duration(minutes: int) -> str:
    hours, mins = divmod(max(0, minutes), 60)
    return f"{hours}h {mins:02d}m"


def build_invoice_lines(session, charge: SessionCharge, settings: BillingSettings | None = None) -> list[dict]:
    """
    Line items for the invoice that closes `session`.

    One session line, one line per consumption, then discount/tax lines when
    they are non-zero. The amounts always sum to charge.total.
    """
    settings = settings or BillingSettings()
    label = "Session at %s (%s)" % (session.resource_name, format_duration(charge.duration_minutes))
    if session.is_subscribed:
        label += " - subscription"

    lines = [
        {
            "kind": LINE_KIND_SESSION,
            "description": label,
            "quantity": 1,
            "rate": charge.session_cost,
            "amount": charge.session_cost,
            "inventory_item_id": None,
        }
    ]
    for c in session.consumptions:
        lines.append(
            {
                "kind": LINE_KIND_INVENTORY,
                "description": c.item_name,
                "quantity": c.quantity,
                "rate": c.price,
                "amount": c.quantity * c.price,
                "inventory_item_id": c.inventory_item_id,
            }
        )
    if charge.discount:
        lines.append(
            {
                "kind": LINE_KIND_DISCOUNT,
                "description": settings.discount.label or f"Discount ({settings.discount.value}%)",
                "quantity": 1,
                "rate": -charge.discount,
                "amount": -charge.discount,
                "inventory_item_id": None,
            }
        )
    if charge.tax:
        lines.append(
            {
                "kind": LINE_KIND_TAX,
                "description": f"Tax ({settings.tax.rate}%)",
                "quantity": 1,
                "rate": charge.tax,
                "amount": charge.tax,
                "inventory_item_id": None,
            }
        )
    return lines
