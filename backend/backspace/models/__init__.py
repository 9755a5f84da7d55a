from .customers import Customer
from .resources import Resource
from .inventory import InventoryItem
from .sessions import ActiveSession, InventoryConsumption
from .invoices import Invoice, InvoiceLine, Payment
from .subscriptions import Subscription
from .settings import AppSetting
from .documents import OperationRecord, DocumentSequence

__all__ = [
    'Customer', 'Resource', 'InventoryItem',
    'ActiveSession', 'InventoryConsumption',
    'Invoice', 'InvoiceLine', 'Payment',
    'Subscription', 'AppSetting',
    'OperationRecord', 'DocumentSequence',
]
