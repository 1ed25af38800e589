# Import all models here to ensure they are registered with SQLModel
from .sync_config import SyncConfig, SyncSettings, CursorPolicy
from .import_log import ImportLogEntry, ImportOrigin, ImportResult
from .webhook_log import WebhookLogEntry
from .mappings import TaxMap, PaymentMap
from .ledger import (
    Customer, Product, SalesDocument, SalesDocumentLine,
    SalesDocumentCreate, SalesDocumentLineCreate
)
from .remote import (
    RemoteOrder, RemoteOrderLine, RemoteCustomer, RemoteAddress,
    RemoteCountry, RemoteStatusChange
)

__all__ = [
    "SyncConfig",
    "SyncSettings",
    "CursorPolicy",
    "ImportLogEntry",
    "ImportOrigin",
    "ImportResult",
    "WebhookLogEntry",
    "TaxMap",
    "PaymentMap",
    "Customer",
    "Product",
    "SalesDocument",
    "SalesDocumentLine",
    "SalesDocumentCreate",
    "SalesDocumentLineCreate",
    "RemoteOrder",
    "RemoteOrderLine",
    "RemoteCustomer",
    "RemoteAddress",
    "RemoteCountry",
    "RemoteStatusChange",
]
