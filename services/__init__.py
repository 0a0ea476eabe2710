# services/__init__.py
from .audit import AuditContext
from .pdc_intake import register_pdc, register_bulk, check_duplicate
from .pdc_lifecycle import (
     PDCAction,
     TRANSITIONS,
     allowed_actions,
     next_status,
     mark_due,
     deposit,
     clear,
     bounce,
     replace,
     withdraw,
     cancel,
)
from .replacement_chain import get_chain, verify_all_chains
from .pdc_linkage import get_tenant_history, get_invoice_coverage, list_tenant_pdcs
from .pdc_dashboard import get_dashboard
from .pdc_query import get_pdc, list_pdcs, list_withdrawals, list_bank_names, get_status_history

__all__ = [
     "AuditContext",
     "register_pdc",
     "register_bulk",
     "check_duplicate",
     "PDCAction",
     "TRANSITIONS",
     "allowed_actions",
     "next_status",
     "mark_due",
     "deposit",
     "clear",
     "bounce",
     "replace",
     "withdraw",
     "cancel",
     "get_chain",
     "verify_all_chains",
     "get_tenant_history",
     "get_invoice_coverage",
     "list_tenant_pdcs",
     "get_dashboard",
     "get_pdc",
     "list_pdcs",
     "list_withdrawals",
     "list_bank_names",
     "get_status_history",
]
