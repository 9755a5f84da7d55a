# Overview: Domain error taxonomy for the billing engine.

"""
Billing errors.

Every error here is recoverable at the call site: the caller shows the
message and retries with corrected input. Services roll back before an error
leaves them, so a raised BillingError never leaves partial state behind.
Store failures (SQLAlchemy errors) are not wrapped and propagate unchanged.
"""

from __future__ import annotations


class BillingError(Exception):
    """Base class for billing engine errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(BillingError):
    """A referenced record does not exist."""


class CustomerNotFound(NotFoundError):
    pass


class ResourceNotFound(NotFoundError):
    pass


class InventoryItemNotFound(NotFoundError):
    pass


class SessionNotFound(NotFoundError):
    """Session does not exist or has already been ended."""


class ConsumptionNotFound(NotFoundError):
    pass


class InvoiceNotFound(NotFoundError):
    pass


class SubscriptionNotFound(NotFoundError):
    pass


class OutOfStock(BillingError):
    """Requested quantity exceeds stock on hand."""


class InvalidQuantity(BillingError):
    pass


class ResourceUnavailable(BillingError):
    """Resource is already bound to an open session."""


class InvalidAmount(BillingError):
    """Payment or withdrawal amount outside the allowed range."""


class InvalidPaymentMethod(BillingError):
    pass


class InsufficientBalance(BillingError):
    """Withdrawal would push the customer past the configured debt limit."""


class InvoiceAlreadyFinalized(BillingError):
    """Invoice is paid or cancelled; no further payment or cancellation."""


class CancellationNotAllowed(BillingError):
    """Invoice already received money and can no longer be cancelled."""


class InvalidPlan(BillingError):
    pass


class SubscriptionEnded(BillingError):
    """Subscription period is over; it can no longer be reactivated."""
