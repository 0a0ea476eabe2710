# services/audit.py
"""
Audit context and status-history recording for PDC writes.

The acting user is passed explicitly into every engine call as an
AuditContext; nothing here reads request or thread-local state.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from models import PDC, PDCStatus, PDCStatusHistory


@dataclass(frozen=True)
class AuditContext:
     """Who is performing a write."""
     user_id: int
     role: str


def utcnow() -> datetime:
     """Naive UTC timestamp, matching the DateTime columns."""
     return datetime.now(timezone.utc).replace(tzinfo=None)


def stamp_created(pdc: PDC, ctx: AuditContext) -> None:
     now = utcnow()
     pdc.created_by = ctx.user_id
     pdc.created_at = now
     pdc.updated_by = ctx.user_id
     pdc.updated_at = now


def stamp_updated(pdc: PDC, ctx: AuditContext) -> None:
     pdc.updated_by = ctx.user_id
     pdc.updated_at = utcnow()


def record_status_change(
     db: Session,
     pdc: PDC,
     action: str,
     from_status: Optional[PDCStatus],
     ctx: AuditContext,
     notes: Optional[str] = None,
) -> PDCStatusHistory:
     """
     Append one history row for a cheque that has just been flushed.

     Must be called after the flush that bumped the cheque's version, so the
     recorded revision is the one the caller will see.
     """
     entry = PDCStatusHistory(
          pdc_id=pdc.id,
          action=action,
          from_status=from_status,
          to_status=pdc.status,
          revision=pdc.version,
          performed_by=ctx.user_id,
          performed_at=utcnow(),
          notes=notes,
     )
     db.add(entry)
     return entry
