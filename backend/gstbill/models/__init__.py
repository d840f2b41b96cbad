from .inventory import Item, StockLedgerEntry, LEDGER_ENTRY_TYPES
from .documents import (
    DocumentStatus,
    DocumentClass,
    Invoice,
    InvoiceLine,
    Purchase,
    PurchaseLine,
    DocumentSequence,
)
from .parties import Customer, Supplier
from .auth import User, SessionToken
from .audit import AuditLogEntry
from .settings import BusinessSetting

__all__ = [
    'Item', 'StockLedgerEntry', 'LEDGER_ENTRY_TYPES',
    'DocumentStatus', 'DocumentClass',
    'Invoice', 'InvoiceLine', 'Purchase', 'PurchaseLine', 'DocumentSequence',
    'Customer', 'Supplier',
    'User', 'SessionToken',
    'AuditLogEntry',
    'BusinessSetting',
]
