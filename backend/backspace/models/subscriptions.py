from __future__ import annotations

from ..extensions import db
from backspace.time_utils import to_utc_z


SUBSCRIPTION_STATUS_ACTIVE = "active"
SUBSCRIPTION_STATUS_EXPIRED = "expired"
SUBSCRIPTION_STATUS_CANCELLED = "cancelled"

# Plan length in days
PLAN_DAYS = {
    "weekly": 7,
    "half-monthly": 15,
    "monthly": 30,
}


class Subscription(db.Model):
    """
    Prepaid plan covering resource time.

    Billing only sees it through ActiveSession.is_subscribed, captured at
    session start; later status changes never touch an open session.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        db.CheckConstraint("price >= 0", name="ck_subscriptions_price"),
        db.Index("ix_subscriptions_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    plan_type = db.Column(db.String(16), nullable=False)
    price = db.Column(db.Integer, nullable=False, default=0)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SUBSCRIPTION_STATUS_ACTIVE, index=True)

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("subscriptions", lazy=True))

    def days_remaining(self, now) -> int:
        if self.status != SUBSCRIPTION_STATUS_ACTIVE or self.end_date <= now:
            return 0
        return (self.end_date - now).days

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "plan_type": self.plan_type,
            "price": self.price,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "status": self.status,
            "invoice_id": self.invoice_id,
            "created_at": to_utc_z(self.created_at),
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
        }
