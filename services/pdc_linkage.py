# services/pdc_linkage.py
"""
Tenant/Invoice Linkage Resolver - read-only views of who owes what via PDCs.

Amounts are summed in Python over the tenant's (or invoice's) cheques,
which number in the tens per tenant.
"""
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from exceptions import NotFoundError
from models import PDC, PDCStatus, Invoice
from models.pdc import OUTSTANDING_STATUSES
from services.pdc_intake import get_tenant_or_404

ZERO = Decimal("0.00")

# Cheques that still count as collateral against an invoice
COLLATERAL_STATUSES = frozenset({
     PDCStatus.RECEIVED,
     PDCStatus.DUE,
     PDCStatus.DEPOSITED,
     PDCStatus.CLEARED,
})


class CoverageLevel:
     NONE = "NONE"
     PARTIAL = "PARTIAL"
     FULL = "FULL"


def bounce_rate(cleared: int, bounced: int) -> float:
     """bounced / (cleared + bounced) as a percentage, 0 when nothing was processed."""
     processed = cleared + bounced
     if processed == 0:
          return 0.0
     return round(bounced / processed * 100, 2)


def list_tenant_pdcs(db: Session, tenant_id: int) -> list[PDC]:
     """All cheques for a tenant, nearest cheque date first."""
     get_tenant_or_404(db, tenant_id)
     return (
          db.query(PDC)
          .filter(PDC.tenant_id == tenant_id)
          .order_by(PDC.cheque_date.asc(), PDC.created_at.asc())
          .all()
     )


def summarize(pdcs: list[PDC]) -> dict[str, Any]:
     """
     History statistics over a set of cheques.

     A cheque counts as bounced if it ever bounced, so REPLACED cheques are
     included. Outstanding covers cheques not yet turned into money.
     """
     cleared = [p for p in pdcs if p.status == PDCStatus.CLEARED]
     bounced = [p for p in pdcs if p.bounced_date is not None]
     outstanding = [p for p in pdcs if p.status in OUTSTANDING_STATUSES]
     pending = [p for p in pdcs if p.status in (PDCStatus.RECEIVED, PDCStatus.DUE, PDCStatus.DEPOSITED)]
     return {
          "total_pdcs": len(pdcs),
          "cleared_count": len(cleared),
          "bounced_count": len(bounced),
          "pending_count": len(pending),
          "total_received": sum((p.amount for p in cleared), ZERO),
          "total_bounced": sum((p.amount for p in bounced), ZERO),
          "total_outstanding": sum((p.amount for p in outstanding), ZERO),
          "bounce_rate": bounce_rate(len(cleared), len(bounced)),
     }


def get_tenant_history(db: Session, tenant_id: int) -> dict[str, Any]:
     """
     Tenant's cheques plus derived statistics.

     Raises:
          NotFoundError: If the tenant doesn't exist
     """
     tenant = get_tenant_or_404(db, tenant_id)
     pdcs = (
          db.query(PDC)
          .filter(PDC.tenant_id == tenant_id)
          .order_by(PDC.cheque_date.asc(), PDC.created_at.asc())
          .all()
     )
     history = {
          "tenant_id": tenant.tenant_id,
          "tenant_name": tenant.full_name,
          "pdcs": pdcs,
     }
     history.update(summarize(pdcs))
     return history


def get_invoice_coverage(db: Session, invoice_id: int) -> dict[str, Any]:
     """
     Cheques earmarked against an invoice and how much of its balance they cover.

     Raises:
          NotFoundError: If the invoice doesn't exist
     """
     invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
     if not invoice:
          raise NotFoundError("Invoice", invoice_id)

     pdcs = (
          db.query(PDC)
          .filter(PDC.invoice_id == invoice_id)
          .order_by(PDC.cheque_date.asc())
          .all()
     )
     collateral = sum((p.amount for p in pdcs if p.status in COLLATERAL_STATUSES), ZERO)
     balance = invoice.outstanding_balance

     if collateral <= 0:
          coverage = CoverageLevel.NONE
     elif collateral >= balance:
          coverage = CoverageLevel.FULL
     else:
          coverage = CoverageLevel.PARTIAL

     return {
          "invoice_id": invoice.id,
          "tenant_id": invoice.tenant_id,
          "invoice_amount": invoice.amount,
          "outstanding_balance": balance,
          "collateral_amount": collateral,
          "coverage": coverage,
          "pdcs": pdcs,
     }
