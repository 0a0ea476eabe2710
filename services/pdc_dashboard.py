# services/pdc_dashboard.py
"""
Status Aggregator - dashboard projection over current cheque state.

Recomputed from the pdcs table on every call; there is no cache, so the
per-status counts always match the rows at query time.
"""
from calendar import monthrange
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

import config
from models import PDC, PDCStatus
from models.pdc import AWAITING_DEPOSIT_STATUSES, OUTSTANDING_STATUSES
from services.pdc_linkage import bounce_rate

ZERO = Decimal("0.00")


def _bucket(pdcs: list[PDC]) -> dict[str, Any]:
     return {"count": len(pdcs), "amount": sum((p.amount for p in pdcs), ZERO)}


def get_dashboard(
     db: Session,
     today: Optional[date] = None,
     tenant_id: Optional[int] = None,
) -> dict[str, Any]:
     """
     Build the PDC dashboard.

     Args:
          db: SQLAlchemy database session
          today: Reference date for the aging windows (default: date.today())
          tenant_id: Restrict to one tenant's cheques

     Returns:
          Dict with by_status (every status, zeros included), aging buckets,
          totals, bounce rate and the upcoming / recently deposited lists
     """
     today = today or date.today()
     week_end = today + timedelta(days=config.PDC_DUE_WINDOW_DAYS)
     month_start = today.replace(day=1)
     month_end = today.replace(day=monthrange(today.year, today.month)[1])
     recent_start = today - timedelta(days=config.PDC_RECENT_WINDOW_DAYS)
     limit = config.PDC_DASHBOARD_LIST_LIMIT

     query = db.query(PDC)
     if tenant_id is not None:
          query = query.filter(PDC.tenant_id == tenant_id)
     pdcs = query.all()

     by_status = {
          status.value: _bucket([p for p in pdcs if p.status == status])
          for status in PDCStatus
     }

     awaiting_deposit = [p for p in pdcs if p.status in AWAITING_DEPOSIT_STATUSES]
     due_this_week = [p for p in awaiting_deposit if today <= p.cheque_date <= week_end]
     due_this_month = [p for p in awaiting_deposit if today <= p.cheque_date <= month_end]
     overdue = [p for p in awaiting_deposit if p.cheque_date < today]
     awaiting_clearance = [p for p in pdcs if p.status == PDCStatus.DEPOSITED]
     deposited_this_month = [
          p for p in pdcs
          if p.deposit_date is not None and month_start <= p.deposit_date <= month_end
     ]
     bounced_recently = [
          p for p in pdcs
          if p.bounced_date is not None and recent_start <= p.bounced_date <= today
     ]
     outstanding = [p for p in pdcs if p.status in OUTSTANDING_STATUSES]

     cleared_count = by_status[PDCStatus.CLEARED.value]["count"]
     ever_bounced = len([p for p in pdcs if p.bounced_date is not None])

     upcoming = sorted(
          (p for p in awaiting_deposit if p.cheque_date >= today),
          key=lambda p: (p.cheque_date, p.amount),
     )[:limit]
     recently_deposited = sorted(
          (p for p in pdcs if p.deposit_date is not None),
          key=lambda p: p.deposit_date,
          reverse=True,
     )[:limit]

     return {
          "as_of": today,
          "tenant_id": tenant_id,
          "total": _bucket(pdcs),
          "by_status": by_status,
          "due_this_week": _bucket(due_this_week),
          "due_this_month": _bucket(due_this_month),
          "overdue": _bucket(overdue),
          "awaiting_clearance": _bucket(awaiting_clearance),
          "deposited_this_month": _bucket(deposited_this_month),
          "bounced_recently": _bucket(bounced_recently),
          "outstanding": _bucket(outstanding),
          "bounce_rate": bounce_rate(cleared_count, ever_bounced),
          "upcoming": upcoming,
          "recently_deposited": recently_deposited,
     }
