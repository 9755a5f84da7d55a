from __future__ import annotations

import json

from ..extensions import db
from backspace.time_utils import to_utc_z


class OperationRecord(db.Model):
    """
    Append-only operation log.

    Feeds both the live "recent activity" feed and the operation history
    report. Rows are never updated or deleted.
    """
    __tablename__ = "operation_records"
    __table_args__ = (
        db.Index("ix_operation_records_type_occurred", "operation_type", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # session_start, session_end, inventory_add, invoice_created, payment_received, ...
    operation_type = db.Column(db.String(32), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)

    # Optional pointers (no FKs: referenced rows such as sessions are deleted later)
    customer_id = db.Column(db.Integer, nullable=True, index=True)
    resource_id = db.Column(db.Integer, nullable=True, index=True)
    invoice_id = db.Column(db.Integer, nullable=True, index=True)
    session_ref = db.Column(db.Integer, nullable=True)

    # Business time
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    # JSON object with structured event data (amount, method, ...)
    payload = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "operation_type": self.operation_type,
            "description": self.description,
            "customer_id": self.customer_id,
            "resource_id": self.resource_id,
            "invoice_id": self.invoice_id,
            "session_ref": self.session_ref,
            "occurred_at": to_utc_z(self.occurred_at),
            "payload": json.loads(self.payload) if self.payload else None,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-type document sequences.

    WHY: Prevent race conditions when generating invoice numbers and
    customer human ids.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_doc_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
