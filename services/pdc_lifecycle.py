# services/pdc_lifecycle.py
"""
PDC Lifecycle Engine - the only code path that changes a cheque's status.

Legal moves live in one table (TRANSITIONS) keyed by action:

     RECEIVED --mark_due--> DUE --deposit--> DEPOSITED --clear--> CLEARED
                                                       --bounce--> BOUNCED --replace--> REPLACED
     RECEIVED | DUE --withdraw--> WITHDRAWN
     RECEIVED | DUE --cancel--> CANCELLED

Every transition:
1. Re-reads the cheque from the database
2. Rejects a stale caller revision with ConcurrencyConflict
3. Rejects an illegal origin status with InvalidTransitionError
4. Sets the destination status and the transition's own fields, nothing else
5. Flushes (the version column guards the UPDATE) and appends a history row

Transitions are operator-triggered only; nothing here runs on a schedule.
"""
import enum
import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from exceptions import (
     ConcurrencyConflict,
     DuplicateChequeError,
     InvalidTransitionError,
     NotFoundError,
     ValidationError,
)
from models import PDC, PDCStatus, NewPaymentMethod
from models.pdc import TERMINAL_STATUSES
from services.audit import AuditContext, record_status_change, stamp_created, stamp_updated
from services.pdc_intake import (
     get_invoice_for_tenant,
     is_duplicate_cheque,
     normalize_cheque_number,
     validate_cheque_fields,
)

logger = logging.getLogger(__name__)


class PDCAction(str, enum.Enum):
     MARK_DUE = "mark_due"
     DEPOSIT = "deposit"
     CLEAR = "clear"
     BOUNCE = "bounce"
     REPLACE = "replace"
     WITHDRAW = "withdraw"
     CANCEL = "cancel"


# action -> (allowed origin statuses, destination status)
TRANSITIONS: dict[PDCAction, Tuple[frozenset, PDCStatus]] = {
     PDCAction.MARK_DUE: (frozenset({PDCStatus.RECEIVED}), PDCStatus.DUE),
     PDCAction.DEPOSIT: (frozenset({PDCStatus.DUE}), PDCStatus.DEPOSITED),
     PDCAction.CLEAR: (frozenset({PDCStatus.DEPOSITED}), PDCStatus.CLEARED),
     PDCAction.BOUNCE: (frozenset({PDCStatus.DEPOSITED}), PDCStatus.BOUNCED),
     PDCAction.REPLACE: (frozenset({PDCStatus.BOUNCED}), PDCStatus.REPLACED),
     PDCAction.WITHDRAW: (frozenset({PDCStatus.RECEIVED, PDCStatus.DUE}), PDCStatus.WITHDRAWN),
     PDCAction.CANCEL: (frozenset({PDCStatus.RECEIVED, PDCStatus.DUE}), PDCStatus.CANCELLED),
}


def allowed_actions(status: PDCStatus) -> list[PDCAction]:
     """Actions that may be applied to a cheque currently in `status`."""
     return [action for action, (origins, _) in TRANSITIONS.items() if status in origins]


def next_status(status: PDCStatus, action: PDCAction) -> PDCStatus:
     """
     Look up the destination of `action` from `status`.

     Raises:
          InvalidTransitionError: If the table has no such edge
     """
     origins, destination = TRANSITIONS[PDCAction(action)]
     if status not in origins:
          reason = "cheque is in a terminal state" if status in TERMINAL_STATUSES else None
          raise InvalidTransitionError(PDCStatus(status).value, PDCAction(action).value, reason)
     return destination


def _load_for_transition(db: Session, pdc_id: str, expected_revision: int) -> PDC:
     # populate_existing so a cheque already in the identity map is refreshed
     pdc = db.query(PDC).filter(PDC.id == pdc_id).populate_existing().first()
     if not pdc:
          raise NotFoundError("PDC", pdc_id)
     if pdc.version != expected_revision:
          logger.warning(
               "Stale revision for PDC %s: expected %s, current %s",
               pdc_id, expected_revision, pdc.version
          )
          raise ConcurrencyConflict(pdc_id, expected_revision, pdc.version)
     return pdc


def _begin(
     db: Session,
     pdc_id: str,
     action: PDCAction,
     expected_revision: int,
) -> Tuple[PDC, PDCStatus, PDCStatus]:
     pdc = _load_for_transition(db, pdc_id, expected_revision)
     try:
          destination = next_status(pdc.status, action)
     except InvalidTransitionError:
          logger.warning("Rejected %s on PDC %s in status %s", action.value, pdc_id, pdc.status.value)
          raise
     return pdc, pdc.status, destination


def _flush_transition(db: Session, pdc_id: str, expected_revision: int) -> None:
     # The instance is expired once the flush fails
     try:
          db.flush()
     except StaleDataError as exc:
          logger.warning("PDC %s changed underneath revision %s", pdc_id, expected_revision)
          raise ConcurrencyConflict(pdc_id, expected_revision, None) from exc


def _finish(
     db: Session,
     pdc: PDC,
     action: PDCAction,
     from_status: PDCStatus,
     expected_revision: int,
     ctx: AuditContext,
     notes: Optional[str] = None,
) -> PDC:
     pdc_id = pdc.id
     stamp_updated(pdc, ctx)
     _flush_transition(db, pdc_id, expected_revision)
     record_status_change(db, pdc, action.value, from_status, ctx, notes=notes)
     db.flush()
     logger.info(
          "PDC %s %s: %s -> %s (revision %s) by user %s",
          pdc.id, action.value, from_status.value, pdc.status.value, pdc.version, ctx.user_id
     )
     return pdc


def _require_text(value: Optional[str], field: str, label: str) -> str:
     text = (value or "").strip()
     if not text:
          raise ValidationError(f"{label} is required", [{"index": 0, "field": field, "message": f"{label} is required"}])
     return text


def mark_due(
     db: Session,
     pdc_id: str,
     expected_revision: int,
     ctx: AuditContext,
     notes: Optional[str] = None,
) -> PDC:
     """Move a cheque logged ahead of time (RECEIVED) into DUE."""
     pdc, from_status, destination = _begin(db, pdc_id, PDCAction.MARK_DUE, expected_revision)
     pdc.status = destination
     return _finish(db, pdc, PDCAction.MARK_DUE, from_status, expected_revision, ctx, notes)


def deposit(
     db: Session,
     pdc_id: str,
     expected_revision: int,
     ctx: AuditContext,
     deposit_date: Optional[date] = None,
     deposit_reference: Optional[str] = None,
     notes: Optional[str] = None,
) -> PDC:
     """
     Record that a DUE cheque was handed to the bank.

     Args:
          db: SQLAlchemy database session
          pdc_id: Cheque id
          expected_revision: Revision the caller last saw
          ctx: Acting user
          deposit_date: Date of deposit (default: today)
          deposit_reference: Bank slip or account reference
          notes: Stored on the history row only

     Returns:
          The updated PDC

     Raises:
          NotFoundError, ConcurrencyConflict, InvalidTransitionError
     """
     pdc, from_status, destination = _begin(db, pdc_id, PDCAction.DEPOSIT, expected_revision)
     pdc.status = destination
     pdc.deposit_date = deposit_date or date.today()
     pdc.deposit_reference = (deposit_reference or "").strip() or None
     return _finish(db, pdc, PDCAction.DEPOSIT, from_status, expected_revision, ctx, notes)


def clear(
     db: Session,
     pdc_id: str,
     expected_revision: int,
     ctx: AuditContext,
     cleared_date: Optional[date] = None,
     notes: Optional[str] = None,
) -> PDC:
     """Record that the bank honoured a deposited cheque. CLEARED is terminal."""
     pdc, from_status, destination = _begin(db, pdc_id, PDCAction.CLEAR, expected_revision)
     pdc.status = destination
     pdc.cleared_date = cleared_date or date.today()
     return _finish(db, pdc, PDCAction.CLEAR, from_status, expected_revision, ctx, notes)


def bounce(
     db: Session,
     pdc_id: str,
     expected_revision: int,
     ctx: AuditContext,
     bounce_reason: str,
     bounced_date: Optional[date] = None,
     notes: Optional[str] = None,
) -> PDC:
     """
     Record that the bank refused a deposited cheque.

     Raises:
          ValidationError: If no bounce reason is given
          NotFoundError, ConcurrencyConflict, InvalidTransitionError
     """
     reason = _require_text(bounce_reason, "bounce_reason", "Bounce reason")
     pdc, from_status, destination = _begin(db, pdc_id, PDCAction.BOUNCE, expected_revision)
     pdc.status = destination
     pdc.bounce_reason = reason
     pdc.bounced_date = bounced_date or date.today()
     return _finish(db, pdc, PDCAction.BOUNCE, from_status, expected_revision, ctx, notes)


def withdraw(
     db: Session,
     pdc_id: str,
     expected_revision: int,
     ctx: AuditContext,
     withdrawal_reason: str,
     withdrawal_date: Optional[date] = None,
     new_payment_method: Optional[NewPaymentMethod] = None,
     transaction_id: Optional[str] = None,
     notes: Optional[str] = None,
) -> PDC:
     """
     Return an undeposited cheque to the tenant (e.g. early lease termination).

     Raises:
          ValidationError: If no withdrawal reason is given
          NotFoundError, ConcurrencyConflict, InvalidTransitionError
     """
     reason = _require_text(withdrawal_reason, "withdrawal_reason", "Withdrawal reason")
     pdc, from_status, destination = _begin(db, pdc_id, PDCAction.WITHDRAW, expected_revision)
     pdc.status = destination
     pdc.withdrawal_reason = reason
     pdc.withdrawal_date = withdrawal_date or date.today()
     pdc.new_payment_method = NewPaymentMethod(new_payment_method) if new_payment_method else None
     pdc.transaction_id = (transaction_id or "").strip() or None
     return _finish(db, pdc, PDCAction.WITHDRAW, from_status, expected_revision, ctx, notes)


def cancel(
     db: Session,
     pdc_id: str,
     expected_revision: int,
     ctx: AuditContext,
     cancellation_reason: Optional[str] = None,
     notes: Optional[str] = None,
) -> PDC:
     """
     Void an undeposited cheque without returning it to the tenant.

     A cancelled cheque drops out of the per-tenant cheque-number uniqueness
     check, so the same number may be registered again.
     """
     pdc, from_status, destination = _begin(db, pdc_id, PDCAction.CANCEL, expected_revision)
     pdc.status = destination
     pdc.is_cancelled = True
     pdc.cancellation_reason = (cancellation_reason or "").strip() or None
     return _finish(db, pdc, PDCAction.CANCEL, from_status, expected_revision, ctx, notes)


def replace(
     db: Session,
     pdc_id: str,
     expected_revision: int,
     ctx: AuditContext,
     new_cheque_number: str,
     new_cheque_date: date,
     new_amount: Decimal,
     bank_name: Optional[str] = None,
     invoice_id: Optional[int] = None,
     notes: Optional[str] = None,
) -> Tuple[PDC, PDC]:
     """
     Replace a bounced cheque with a new instrument.

     The bounced row is kept and marked REPLACED; a new DUE row is created
     for the same tenant and the two are linked (old.replacement_pdc_id,
     new.original_pdc_id). Bank name and invoice are copied from the bounced
     cheque unless given.

     Returns:
          (old_pdc, new_pdc)

     Raises:
          ValidationError: If the new cheque's fields are invalid
          DuplicateChequeError: If the tenant already has a live cheque with the new number
          NotFoundError, ConcurrencyConflict, InvalidTransitionError
     """
     old, from_status, destination = _begin(db, pdc_id, PDCAction.REPLACE, expected_revision)
     if old.replacement_pdc_id is not None:
          logger.error("PDC %s is BOUNCED but already has successor %s", old.id, old.replacement_pdc_id)
          raise InvalidTransitionError(from_status.value, PDCAction.REPLACE.value, "cheque already has a replacement")

     bank = bank_name if (bank_name or "").strip() else old.bank_name
     validate_cheque_fields(new_cheque_number, bank, new_amount, new_cheque_date)
     number = normalize_cheque_number(new_cheque_number)
     if is_duplicate_cheque(db, old.tenant_id, number):
          raise DuplicateChequeError(
               number,
               old.tenant_id,
               [{"index": 0, "field": "new_cheque_number", "message": f"Cheque number {number} already exists"}],
          )

     linked_invoice_id = old.invoice_id
     if invoice_id is not None and invoice_id != old.invoice_id:
          get_invoice_for_tenant(db, invoice_id, old.tenant_id)
          # Divergent invoice linkage is allowed but surfaced for follow-up
          logger.warning(
               "Replacement for PDC %s links invoice %s instead of predecessor's invoice %s",
               old.id, invoice_id, old.invoice_id
          )
          linked_invoice_id = invoice_id

     new = PDC(
          tenant_id=old.tenant_id,
          cheque_number=number,
          bank_name=bank.strip(),
          amount=Decimal(str(new_amount)),
          cheque_date=new_cheque_date,
          invoice_id=linked_invoice_id,
          lease_id=old.lease_id,
          notes=notes,
          status=PDCStatus.DUE,
          is_cancelled=False,
          original_pdc_id=old.id,
     )
     stamp_created(new, ctx)
     db.add(new)
     tenant_id = old.tenant_id
     # New row first so the predecessor's successor link points at an existing row
     try:
          db.flush()
     except IntegrityError as exc:
          logger.warning("Unique cheque index rejected replacement %s for tenant %s", number, tenant_id)
          raise DuplicateChequeError(number, tenant_id) from exc
     record_status_change(db, new, PDCAction.REPLACE.value, None, ctx, notes=f"Replaces cheque {old.cheque_number}")

     old.status = destination
     old.replacement_pdc_id = new.id
     _finish(db, old, PDCAction.REPLACE, from_status, expected_revision, ctx, notes)

     logger.info(
          "PDC %s (cheque %s) replaced by PDC %s (cheque %s)",
          old.id, old.cheque_number, new.id, new.cheque_number
     )
     return old, new
