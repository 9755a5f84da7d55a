from __future__ import annotations

from ..extensions import db
from backspace.time_utils import to_utc_z


CUSTOMER_TYPE_VISITOR = "visitor"
CUSTOMER_TYPES = ("visitor", "weekly", "half-monthly", "monthly")


class Customer(db.Model):
    """
    Customer master data.

    BALANCE SIGN: balance < 0 means the customer owes the business.
    The column is a cached projection of invoice/withdrawal history and is
    only written by balance_service.refresh_customer_balance().
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name_phone", "name", "phone"),
        db.CheckConstraint("total_sessions >= 0", name="ck_customers_total_sessions"),
        db.CheckConstraint("total_spent >= 0", name="ck_customers_total_spent"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    human_id = db.Column(db.String(32), nullable=False, unique=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    customer_type = db.Column(db.String(16), nullable=False, default=CUSTOMER_TYPE_VISITOR)
    notes = db.Column(db.Text, nullable=True)

    # Derived aggregates (piasters)
    balance = db.Column(db.Integer, nullable=False, default=0)
    total_sessions = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Customer id={self.id} human_id={self.human_id!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "human_id": self.human_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "customer_type": self.customer_type,
            "notes": self.notes,
            "balance": self.balance,
            "total_sessions": self.total_sessions,
            "total_spent": self.total_spent,
            "created_at": to_utc_z(self.created_at),
        }
