# models/__init__.py
from .base import Base
from .tenant import Tenant
from .invoice import Invoice, InvoiceStatus
from .pdc import PDC, PDCStatus, NewPaymentMethod
from .pdc_status_history import PDCStatusHistory

__all__ = [
     "Base",
     "Tenant",
     "Invoice",
     "InvoiceStatus",
     "PDC",
     "PDCStatus",
     "NewPaymentMethod",
     "PDCStatusHistory",
]
