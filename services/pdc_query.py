# services/pdc_query.py
"""
PDC Query Service - lookups and filtered listings over the cheque store.
"""
from datetime import date
from typing import Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from exceptions import NotFoundError, ValidationError
from models import PDC, PDCStatus, PDCStatusHistory, Tenant

SORT_COLUMNS = {
     "cheque_date": PDC.cheque_date,
     "amount": PDC.amount,
     "created_at": PDC.created_at,
}


def _escape_like(value: str) -> str:
     return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def get_pdc(db: Session, pdc_id: str) -> PDC:
     pdc = db.query(PDC).filter(PDC.id == pdc_id).first()
     if not pdc:
          raise NotFoundError("PDC", pdc_id)
     return pdc


def list_pdcs(
     db: Session,
     search: Optional[str] = None,
     status: Optional[PDCStatus] = None,
     tenant_id: Optional[int] = None,
     bank_name: Optional[str] = None,
     from_date: Optional[date] = None,
     to_date: Optional[date] = None,
     page: int = 1,
     page_size: int = 50,
     sort_by: str = "cheque_date",
     sort_direction: str = "asc",
) -> Tuple[list[PDC], int]:
     """
     Filtered, paginated cheque listing.

     Args:
          db: SQLAlchemy database session
          search: Substring of the cheque number or the tenant's name
          status: Exact status
          tenant_id: Owning tenant
          bank_name: Exact bank name
          from_date: Earliest cheque date (inclusive)
          to_date: Latest cheque date (inclusive)
          page: 1-based page number
          page_size: Items per page
          sort_by: cheque_date, amount or created_at
          sort_direction: asc or desc

     Returns:
          (page of PDCs, total matching count)

     Raises:
          ValidationError: On an unknown sort column or an inverted date range
     """
     if sort_by not in SORT_COLUMNS:
          raise ValidationError(f"Cannot sort by {sort_by}; use one of {', '.join(SORT_COLUMNS)}")
     if from_date and to_date and from_date > to_date:
          raise ValidationError("from_date must be on or before to_date")

     query = db.query(PDC).join(Tenant, PDC.tenant_id == Tenant.tenant_id)

     if search:
          term = f"%{_escape_like(search.strip())}%"
          query = query.filter(or_(
               PDC.cheque_number.ilike(term, escape="\\"),
               Tenant.first_name.ilike(term, escape="\\"),
               Tenant.last_name.ilike(term, escape="\\"),
          ))
     if status:
          query = query.filter(PDC.status == status)
     if tenant_id:
          query = query.filter(PDC.tenant_id == tenant_id)
     if bank_name:
          query = query.filter(PDC.bank_name == bank_name)
     if from_date:
          query = query.filter(PDC.cheque_date >= from_date)
     if to_date:
          query = query.filter(PDC.cheque_date <= to_date)

     total = query.count()

     column = SORT_COLUMNS[sort_by]
     order = column.desc() if sort_direction.lower() == "desc" else column.asc()
     offset = (page - 1) * page_size
     pdcs = query.order_by(order, PDC.id).offset(offset).limit(page_size).all()
     return pdcs, total


def list_withdrawals(db: Session, page: int = 1, page_size: int = 50) -> Tuple[list[PDC], int]:
     """Withdrawn cheques, most recent withdrawal first."""
     query = db.query(PDC).filter(PDC.status == PDCStatus.WITHDRAWN)
     total = query.count()
     pdcs = (
          query.order_by(PDC.withdrawal_date.desc(), PDC.updated_at.desc())
          .offset((page - 1) * page_size)
          .limit(page_size)
          .all()
     )
     return pdcs, total


def list_bank_names(db: Session) -> list[str]:
     rows = db.query(PDC.bank_name).distinct().order_by(PDC.bank_name).all()
     return [row[0] for row in rows]


def get_status_history(db: Session, pdc_id: str) -> list[PDCStatusHistory]:
     """History rows for one cheque, oldest first."""
     get_pdc(db, pdc_id)
     return (
          db.query(PDCStatusHistory)
          .filter(PDCStatusHistory.pdc_id == pdc_id)
          .order_by(PDCStatusHistory.id.asc())
          .all()
     )
