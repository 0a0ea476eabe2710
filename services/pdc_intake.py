# services/pdc_intake.py
"""
PDC Intake Service - single and bulk registration of post-dated cheques.

Bulk intake is validate-then-commit: every entry is checked (including
duplicates inside the batch and against stored cheques) before any row is
added, and the rows are written in one flush so the caller's single commit
makes the whole batch visible at once.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import false
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import config
from exceptions import (
     BulkLimitExceeded,
     DuplicateChequeError,
     NotFoundError,
     ValidationError,
)
from models import PDC, PDCStatus, Tenant, Invoice
from services.audit import AuditContext, record_status_change, stamp_created

logger = logging.getLogger(__name__)

CHEQUE_NUMBER_MIN_LENGTH = 3
CHEQUE_NUMBER_MAX_LENGTH = 50
BANK_NAME_MAX_LENGTH = 100

INTAKE_STATUSES = (PDCStatus.DUE, PDCStatus.RECEIVED)


def normalize_cheque_number(cheque_number: Optional[str]) -> str:
     return (cheque_number or "").strip()


def _field_errors(
     cheque_number: Optional[str],
     bank_name: Optional[str],
     amount: Optional[Decimal],
     cheque_date: Optional[date],
) -> list[tuple[str, str]]:
     """Return (field, message) pairs for one entry; empty when valid."""
     errors = []
     number = normalize_cheque_number(cheque_number)
     if not number:
          errors.append(("cheque_number", "Cheque number is required"))
     elif len(number) < CHEQUE_NUMBER_MIN_LENGTH:
          errors.append(("cheque_number", f"Cheque number must be at least {CHEQUE_NUMBER_MIN_LENGTH} characters"))
     elif len(number) > CHEQUE_NUMBER_MAX_LENGTH:
          errors.append(("cheque_number", f"Cheque number must be at most {CHEQUE_NUMBER_MAX_LENGTH} characters"))

     bank = (bank_name or "").strip()
     if not bank:
          errors.append(("bank_name", "Bank name is required"))
     elif len(bank) > BANK_NAME_MAX_LENGTH:
          errors.append(("bank_name", f"Bank name must be at most {BANK_NAME_MAX_LENGTH} characters"))

     if amount is None:
          errors.append(("amount", "Amount is required"))
     elif Decimal(amount) <= 0:
          errors.append(("amount", "Amount must be greater than 0"))

     if cheque_date is None:
          errors.append(("cheque_date", "Cheque date is required"))
     return errors


def validate_cheque_fields(
     cheque_number: Optional[str],
     bank_name: Optional[str],
     amount: Optional[Decimal],
     cheque_date: Optional[date],
) -> None:
     """Raise ValidationError listing every invalid field of a single cheque."""
     errors = _field_errors(cheque_number, bank_name, amount, cheque_date)
     if errors:
          raise ValidationError(
               errors[0][1],
               [{"index": 0, "field": field, "message": message} for field, message in errors],
          )


def is_duplicate_cheque(db: Session, tenant_id: int, cheque_number: str) -> bool:
     """True when a non-cancelled cheque with this number exists for the tenant."""
     number = normalize_cheque_number(cheque_number)
     return db.query(PDC.id).filter(
          PDC.tenant_id == tenant_id,
          PDC.cheque_number == number,
          PDC.is_cancelled == false(),
     ).first() is not None


def get_tenant_or_404(db: Session, tenant_id: int) -> Tenant:
     tenant = db.query(Tenant).filter(Tenant.tenant_id == tenant_id).first()
     if not tenant:
          raise NotFoundError("Tenant", tenant_id)
     return tenant


def get_invoice_for_tenant(db: Session, invoice_id: int, tenant_id: int) -> Invoice:
     """
     Look up an invoice a cheque is being earmarked against.

     Raises:
          NotFoundError: If the invoice does not exist
          ValidationError: If it belongs to a different tenant
     """
     invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
     if not invoice:
          raise NotFoundError("Invoice", invoice_id)
     if invoice.tenant_id != tenant_id:
          raise ValidationError(
               "Invoice does not belong to the specified tenant",
               [{"index": 0, "field": "invoice_id", "message": "Invoice does not belong to the specified tenant"}],
          )
     return invoice


def _resolve_initial_status(initial_status: Optional[PDCStatus]) -> PDCStatus:
     status = PDCStatus(initial_status) if initial_status else PDCStatus.DUE
     if status not in INTAKE_STATUSES:
          raise ValidationError(
               f"Cheques can only be registered as {' or '.join(s.value for s in INTAKE_STATUSES)}",
               [{"index": 0, "field": "initial_status", "message": f"Invalid initial status {status.value}"}],
          )
     return status


def _build_pdc(
     tenant_id: int,
     entry: dict[str, Any],
     status: PDCStatus,
     ctx: AuditContext,
) -> PDC:
     pdc = PDC(
          tenant_id=tenant_id,
          cheque_number=normalize_cheque_number(entry.get("cheque_number")),
          bank_name=entry["bank_name"].strip(),
          amount=Decimal(str(entry["amount"])),
          cheque_date=entry["cheque_date"],
          invoice_id=entry.get("invoice_id"),
          lease_id=entry.get("lease_id"),
          notes=entry.get("notes"),
          status=status,
          is_cancelled=False,
     )
     stamp_created(pdc, ctx)
     return pdc


def _flush_new_rows(db: Session, tenant_id: int, rows: list[PDC]) -> None:
     """Flush freshly added cheques, translating a unique-index race into a duplicate error."""
     try:
          db.flush()
     except IntegrityError as exc:
          logger.warning("Unique cheque index rejected insert for tenant %s: %s", tenant_id, exc.orig)
          numbers = ", ".join(row.cheque_number for row in rows)
          raise DuplicateChequeError(numbers, tenant_id) from exc


def register_pdc(
     db: Session,
     ctx: AuditContext,
     tenant_id: int,
     cheque_number: str,
     bank_name: str,
     amount: Decimal,
     cheque_date: date,
     invoice_id: Optional[int] = None,
     lease_id: Optional[int] = None,
     notes: Optional[str] = None,
     initial_status: Optional[PDCStatus] = None,
) -> PDC:
     """
     Register a single post-dated cheque.

     Args:
          db: SQLAlchemy database session
          ctx: Acting user, written to the audit columns
          tenant_id: Owning tenant (must exist)
          cheque_number: Number printed on the cheque, unique per tenant
          bank_name: Drawee bank
          amount: Cheque amount (must be positive)
          cheque_date: Date written on the instrument
          invoice_id: Optional invoice this cheque is collateral for
          lease_id: Optional lease reference
          notes: Free text
          initial_status: DUE (default) or RECEIVED

     Returns:
          The flushed PDC at revision 1

     Raises:
          NotFoundError: If the tenant or invoice doesn't exist
          ValidationError: If a field is invalid
          DuplicateChequeError: If the tenant already has a live cheque with this number
     """
     status = _resolve_initial_status(initial_status)
     get_tenant_or_404(db, tenant_id)
     validate_cheque_fields(cheque_number, bank_name, amount, cheque_date)
     if invoice_id is not None:
          get_invoice_for_tenant(db, invoice_id, tenant_id)

     number = normalize_cheque_number(cheque_number)
     if is_duplicate_cheque(db, tenant_id, number):
          raise DuplicateChequeError(
               number,
               tenant_id,
               [{"index": 0, "field": "cheque_number", "message": f"Cheque number {number} already exists"}],
          )

     pdc = _build_pdc(
          tenant_id,
          {
               "cheque_number": number,
               "bank_name": bank_name,
               "amount": amount,
               "cheque_date": cheque_date,
               "invoice_id": invoice_id,
               "lease_id": lease_id,
               "notes": notes,
          },
          status,
          ctx,
     )
     db.add(pdc)
     _flush_new_rows(db, tenant_id, [pdc])
     record_status_change(db, pdc, "register", None, ctx, notes=notes)
     db.flush()

     logger.info(
          "Registered PDC %s (cheque %s, amount %s) for tenant %s as %s by user %s",
          pdc.id, pdc.cheque_number, pdc.amount, tenant_id, status.value, ctx.user_id
     )
     return pdc


def register_bulk(
     db: Session,
     ctx: AuditContext,
     tenant_id: int,
     entries: list[dict[str, Any]],
     initial_status: Optional[PDCStatus] = None,
) -> list[PDC]:
     """
     Register 1..PDC_MAX_BULK_ENTRIES cheques for one tenant atomically.

     Each entry is a mapping with cheque_number, bank_name, amount,
     cheque_date and optional invoice_id / lease_id / notes.

     Every entry is validated before any row is added. On any failure
     nothing is written and a ValidationError carrying every problem as
     {index, field, message} is raised.

     Returns:
          The flushed PDCs, in submission order

     Raises:
          BulkLimitExceeded: More entries than the configured limit
          ValidationError: Empty batch or any invalid entry
          DuplicateChequeError: Only duplicate-number problems were found
          NotFoundError: If the tenant doesn't exist
     """
     limit = config.PDC_MAX_BULK_ENTRIES
     if len(entries) > limit:
          logger.warning("Rejected bulk intake of %s PDCs for tenant %s (limit %s)", len(entries), tenant_id, limit)
          raise BulkLimitExceeded(len(entries), limit)
     if not entries:
          raise ValidationError("At least one PDC entry is required")

     status = _resolve_initial_status(initial_status)
     get_tenant_or_404(db, tenant_id)

     errors: list[dict[str, Any]] = []
     duplicate_only = True
     seen: dict[str, int] = {}
     invoice_owners: dict[int, Optional[int]] = {}

     for index, entry in enumerate(entries):
          for field, message in _field_errors(
               entry.get("cheque_number"),
               entry.get("bank_name"),
               entry.get("amount"),
               entry.get("cheque_date"),
          ):
               errors.append({"index": index, "field": field, "message": message})
               duplicate_only = False

          invoice_id = entry.get("invoice_id")
          if invoice_id is not None:
               if invoice_id not in invoice_owners:
                    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
                    invoice_owners[invoice_id] = invoice.tenant_id if invoice else None
               owner = invoice_owners[invoice_id]
               if owner is None:
                    errors.append({"index": index, "field": "invoice_id", "message": f"Invoice with ID {invoice_id} not found"})
                    duplicate_only = False
               elif owner != tenant_id:
                    errors.append({"index": index, "field": "invoice_id", "message": "Invoice does not belong to the specified tenant"})
                    duplicate_only = False

          number = normalize_cheque_number(entry.get("cheque_number"))
          if not number:
               continue
          if number in seen:
               errors.append({
                    "index": index,
                    "field": "cheque_number",
                    "message": f"Duplicate cheque number {number} in batch (entry {seen[number]})",
               })
          else:
               seen[number] = index

     if seen:
          existing = {
               row[0] for row in db.query(PDC.cheque_number).filter(
                    PDC.tenant_id == tenant_id,
                    PDC.cheque_number.in_(list(seen)),
                    PDC.is_cancelled == false(),
               ).all()
          }
          for number in sorted(existing, key=seen.get):
               errors.append({
                    "index": seen[number],
                    "field": "cheque_number",
                    "message": f"Cheque number {number} already exists",
               })

     if errors:
          errors.sort(key=lambda e: e["index"])
          logger.warning(
               "Rejected bulk intake of %s PDCs for tenant %s: %s invalid field(s)",
               len(entries), tenant_id, len(errors)
          )
          if duplicate_only:
               numbers = sorted({normalize_cheque_number(entries[e["index"]].get("cheque_number")) for e in errors})
               raise DuplicateChequeError(", ".join(numbers), tenant_id, errors)
          raise ValidationError(f"{len(errors)} validation error(s) in bulk submission", errors)

     pdcs = [_build_pdc(tenant_id, entry, status, ctx) for entry in entries]
     db.add_all(pdcs)
     _flush_new_rows(db, tenant_id, pdcs)
     for pdc in pdcs:
          record_status_change(db, pdc, "register", None, ctx, notes="Bulk intake")
     db.flush()

     total = sum((pdc.amount for pdc in pdcs), Decimal("0.00"))
     logger.info(
          "Bulk registered %s PDCs (total %s) for tenant %s by user %s",
          len(pdcs), total, tenant_id, ctx.user_id
     )
     return pdcs


def check_duplicate(db: Session, tenant_id: int, cheque_number: str) -> dict[str, Any]:
     """
     Pre-submission check used by the intake form.

     Raises:
          NotFoundError: If the tenant doesn't exist
     """
     get_tenant_or_404(db, tenant_id)
     number = normalize_cheque_number(cheque_number)
     existing = db.query(PDC).filter(
          PDC.tenant_id == tenant_id,
          PDC.cheque_number == number,
          PDC.is_cancelled == false(),
     ).first()
     return {
          "cheque_number": number,
          "tenant_id": tenant_id,
          "exists": existing is not None,
          "pdc_id": existing.id if existing else None,
          "status": existing.status if existing else None,
     }

