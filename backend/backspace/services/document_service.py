# Overview: Atomic document numbering for invoices and customer ids.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


# document_type -> display prefix
INVOICE_PREFIXES = {
    "sale": "INV",
    "subscription": "SUB",
    "withdrawal": "WDR",
    "refund": "RFD",
}
CUSTOMER_PREFIX = "C"


def next_document_number(*, document_type: str, prefix: str, pad: int = 4) -> str:
    """
    Allocate the next number for a document type, inside the caller's transaction.

    The increment is a single UPDATE so two writers can never read the same
    counter value. The caller owns the commit.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        # First number of this type; `system init` pre-creates the rows so
        # concurrent first allocations only happen on an unseeded database.
        db.session.add(DocumentSequence(document_type=document_type, next_number=2))
        db.session.flush()
        next_num = 1

    return f"{prefix}-{next_num:0{pad}d}"


def ensure_sequences() -> int:
    """Create missing sequence rows. Safe to call repeatedly (idempotent)."""
    wanted = [f"invoice.{kind}" for kind in INVOICE_PREFIXES] + ["customer"]
    existing = {
        row.document_type
        for row in db.session.query(DocumentSequence.document_type).all()
    }
    created = 0
    for document_type in wanted:
        if document_type not in existing:
            db.session.add(DocumentSequence(document_type=document_type, next_number=1))
            created += 1
    db.session.commit()
    return created


def next_invoice_number(kind: str) -> str:
    prefix = INVOICE_PREFIXES.get(kind)
    if prefix is None:
        raise DocumentSequenceError(f"Unknown invoice kind: {kind}")
    return next_document_number(document_type=f"invoice.{kind}", prefix=prefix)


def next_customer_human_id() -> str:
    return next_document_number(document_type="customer", prefix=CUSTOMER_PREFIX)
