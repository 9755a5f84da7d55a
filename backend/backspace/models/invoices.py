from __future__ import annotations

from ..extensions import db
from backspace.time_utils import to_utc_z


INVOICE_STATUS_UNPAID = "unpaid"
INVOICE_STATUS_PAID = "paid"
INVOICE_STATUS_CANCELLED = "cancelled"

# Older rows may still carry these; both read as unpaid
LEGACY_UNPAID_STATUSES = ("pending", "partially_paid")

INVOICE_TYPE_SALE = "sale"
INVOICE_TYPE_WITHDRAWAL = "withdrawal"
INVOICE_TYPE_REFUND = "refund"
INVOICE_TYPES = (INVOICE_TYPE_SALE, INVOICE_TYPE_WITHDRAWAL, INVOICE_TYPE_REFUND)

LINE_KIND_SESSION = "session"
LINE_KIND_SUBSCRIPTION = "subscription"
LINE_KIND_INVENTORY = "inventory"
LINE_KIND_DISCOUNT = "discount"
LINE_KIND_TAX = "tax"
LINE_KIND_WITHDRAWAL = "withdrawal"
LINE_KIND_REFUND = "refund"


def normalize_status(status: str | None) -> str:
    if status is None or status in LEGACY_UNPAID_STATUSES:
        return INVOICE_STATUS_UNPAID
    return status


class Invoice(db.Model):
    """
    Billing document.

    LIFECYCLE: unpaid -> paid, unpaid -> cancelled. Both targets are terminal.
    Only paid_amount/status (and their timestamps) change after creation.

    Sale invoices generated from a session keep a snapshot of that session
    (resource, start/end, duration); the ActiveSession row itself is gone.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.CheckConstraint("total >= 0", name="ck_invoices_total"),
        db.CheckConstraint("paid_amount >= 0", name="ck_invoices_paid_amount"),
        db.CheckConstraint("paid_amount <= total", name="ck_invoices_paid_not_over_total"),
        db.Index("ix_invoices_customer_status", "customer_id", "status"),
        db.Index("ix_invoices_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False, unique=True)
    invoice_type = db.Column(db.String(16), nullable=False, default=INVOICE_TYPE_SALE, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)

    # Amounts in piasters; total == sum(line.amount)
    subtotal = db.Column(db.Integer, nullable=False, default=0)
    discount = db.Column(db.Integer, nullable=False, default=0)
    tax = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)
    paid_amount = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_UNPAID, index=True)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Session snapshot
    session_ref = db.Column(db.Integer, nullable=True, index=True)
    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=True, index=True)
    resource_name = db.Column(db.String(120), nullable=True)
    session_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    session_ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    duration_minutes = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    lines = db.relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.id",
        lazy=True,
    )
    payments = db.relationship(
        "Payment",
        back_populates="invoice",
        order_by="(Payment.occurred_at, Payment.id)",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def effective_status(self) -> str:
        return normalize_status(self.status)

    @property
    def remaining(self) -> int:
        if self.effective_status == INVOICE_STATUS_CANCELLED:
            return 0
        return self.total - self.paid_amount

    @property
    def is_finalized(self) -> bool:
        return self.effective_status in (INVOICE_STATUS_PAID, INVOICE_STATUS_CANCELLED)

    @property
    def is_partially_paid(self) -> bool:
        return self.paid_amount > 0 and self.effective_status == INVOICE_STATUS_UNPAID

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "invoice_type": self.invoice_type,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "total": self.total,
            "paid_amount": self.paid_amount,
            "remaining": self.remaining,
            "status": self.effective_status,
            "is_partially_paid": self.is_partially_paid,
            "due_date": to_utc_z(self.due_date),
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancel_reason": self.cancel_reason,
            "notes": self.notes,
            "session_ref": self.session_ref,
            "resource_id": self.resource_id,
            "resource_name": self.resource_name,
            "session_started_at": to_utc_z(self.session_started_at) if self.session_started_at else None,
            "session_ended_at": to_utc_z(self.session_ended_at) if self.session_ended_at else None,
            "duration_minutes": self.duration_minutes,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["line_items"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """
    Invoice line item.

    kind is the semantic category used by reporting (session, subscription,
    inventory, discount, tax, withdrawal, refund). Discount lines carry a
    negative amount so that invoice.total stays the plain sum of lines.
    """
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invoice_lines_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=True, index=True)
    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    rate = db.Column(db.Integer, nullable=False, default=0)
    amount = db.Column(db.Integer, nullable=False, default=0)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True)

    invoice = db.relationship("Invoice", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "kind": self.kind,
            "description": self.description,
            "quantity": self.quantity,
            "rate": self.rate,
            "amount": self.amount,
            "inventory_item_id": self.inventory_item_id,
        }


class Payment(db.Model):
    """
    Money received against an invoice.

    METHODS: cash, card, transfer.
    Payments of one bulk allocation share the same bulk_reference.
    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_payments_amount"),
        db.Index("ix_payments_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    amount = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False)
    notes = db.Column(db.String(255), nullable=True)
    bulk_reference = db.Column(db.String(64), nullable=True, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount": self.amount,
            "method": self.method,
            "notes": self.notes,
            "bulk_reference": self.bulk_reference,
            "occurred_at": to_utc_z(self.occurred_at),
        }
