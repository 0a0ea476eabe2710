# routers/pdcs.py
"""
PDC API routes.

Post-dated cheque intake, lifecycle transitions and read-side views.
Access is limited to back-office roles (see dependencies.require_pdc_access);
tenants have no self-service access here.

Domain errors raised by the services (exceptions.PDCError) are turned into
HTTP responses by the handler registered in main.py. Each write route
commits exactly once; on any error the session dependency rolls back.
"""
from datetime import date
from decimal import Decimal
from typing import Optional, List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_session
from dependencies import require_pdc_access
from models import PDC, PDCStatus
from services import pdc_lifecycle
from services.audit import AuditContext
from services.pdc_dashboard import get_dashboard
from services.pdc_intake import check_duplicate, register_bulk, register_pdc
from services.pdc_linkage import get_invoice_coverage, get_tenant_history, list_tenant_pdcs
from services.pdc_query import (
     get_pdc,
     get_status_history,
     list_bank_names,
     list_pdcs,
     list_withdrawals,
)
from services.replacement_chain import get_chain, verify_all_chains
from schemas.pdc import (
     BankListResponse,
     ChainVerificationResponse,
     DuplicateCheckResponse,
     InvoiceCoverageResponse,
     PDCBounceRequest,
     PDCBulkCreate,
     PDCBulkResponse,
     PDCCancelRequest,
     PDCChainResponse,
     PDCClearRequest,
     PDCCreate,
     PDCDashboardResponse,
     PDCDepositRequest,
     PDCListResponse,
     PDCReplaceRequest,
     PDCReplaceResponse,
     PDCResponse,
     PDCStatusHistoryResponse,
     PDCTransitionRequest,
     PDCWithdrawRequest,
     TenantPDCHistoryResponse,
)

router = APIRouter(prefix="/api/pdcs", tags=["pdcs"])


def _build_pdc_response(pdc: PDC) -> PDCResponse:
     """Build PDCResponse with tenant name and the actions currently allowed."""
     response = PDCResponse.model_validate(pdc)
     response.tenant_name = pdc.tenant.full_name if pdc.tenant else None
     response.allowed_actions = [action.value for action in pdc_lifecycle.allowed_actions(pdc.status)]
     return response


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------

@router.post(
     "",
     response_model=PDCResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Register a PDC"
)
def create_pdc(
     pdc_data: PDCCreate,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """
     Register one post-dated cheque for a tenant.

     - **cheque_number**: unique per tenant among non-cancelled cheques
     - **amount**: must be positive
     - **initial_status**: DUE (default) or RECEIVED
     """
     pdc = register_pdc(
          db,
          ctx,
          tenant_id=pdc_data.tenant_id,
          cheque_number=pdc_data.cheque_number,
          bank_name=pdc_data.bank_name,
          amount=pdc_data.amount,
          cheque_date=pdc_data.cheque_date,
          invoice_id=pdc_data.invoice_id,
          lease_id=pdc_data.lease_id,
          notes=pdc_data.notes,
          initial_status=pdc_data.initial_status,
     )
     db.commit()
     return _build_pdc_response(pdc)


@router.post(
     "/bulk",
     response_model=PDCBulkResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Register up to 24 PDCs for one tenant"
)
def create_pdcs_bulk(
     bulk_data: PDCBulkCreate,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """
     Register a batch of cheques atomically: all entries are created or none.

     Invalid entries are reported together as `errors: [{index, field, message}]`.
     """
     pdcs = register_bulk(
          db,
          ctx,
          tenant_id=bulk_data.tenant_id,
          entries=[entry.model_dump() for entry in bulk_data.pdcs],
          initial_status=bulk_data.initial_status,
     )
     db.commit()
     return PDCBulkResponse(
          created=len(pdcs),
          total_amount=sum((pdc.amount for pdc in pdcs), Decimal("0.00")),
          pdcs=[_build_pdc_response(pdc) for pdc in pdcs],
     )


# ---------------------------------------------------------------------------
# Read-side views (static paths before /{pdc_id})
# ---------------------------------------------------------------------------

@router.get(
     "",
     response_model=PDCListResponse,
     summary="List PDCs with filters"
)
def list_all_pdcs(
     search: Optional[str] = Query(None, description="Cheque number or tenant name contains"),
     status: Optional[PDCStatus] = Query(None, description="Filter by status"),
     tenant_id: Optional[int] = Query(None, description="Filter by tenant ID"),
     bank_name: Optional[str] = Query(None, description="Filter by bank"),
     from_date: Optional[date] = Query(None, description="Cheque date from (inclusive)"),
     to_date: Optional[date] = Query(None, description="Cheque date to (inclusive)"),
     sort_by: str = Query("cheque_date", description="cheque_date, amount or created_at"),
     sort_direction: str = Query("asc", pattern="^(asc|desc)$"),
     page: int = Query(1, ge=1, description="Page number"),
     page_size: int = Query(50, ge=1, le=100, description="Items per page"),
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """Retrieve a paginated list of PDCs."""
     pdcs, total = list_pdcs(
          db,
          search=search,
          status=status,
          tenant_id=tenant_id,
          bank_name=bank_name,
          from_date=from_date,
          to_date=to_date,
          page=page,
          page_size=page_size,
          sort_by=sort_by,
          sort_direction=sort_direction,
     )
     return PDCListResponse(
          pdcs=[_build_pdc_response(pdc) for pdc in pdcs],
          total=total,
          page=page,
          page_size=page_size,
     )


@router.get(
     "/dashboard",
     response_model=PDCDashboardResponse,
     summary="PDC status dashboard"
)
def pdc_dashboard(
     tenant_id: Optional[int] = Query(None, description="Restrict to one tenant"),
     as_of: Optional[date] = Query(None, description="Reference date (default: today)"),
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """Counts and amounts per status plus due/overdue/clearance buckets, computed live."""
     dashboard = get_dashboard(db, today=as_of, tenant_id=tenant_id)
     dashboard["upcoming"] = [_build_pdc_response(pdc) for pdc in dashboard["upcoming"]]
     dashboard["recently_deposited"] = [_build_pdc_response(pdc) for pdc in dashboard["recently_deposited"]]
     return PDCDashboardResponse(**dashboard)


@router.get(
     "/withdrawals",
     response_model=PDCListResponse,
     summary="Withdrawn PDCs"
)
def withdrawn_pdcs(
     page: int = Query(1, ge=1),
     page_size: int = Query(50, ge=1, le=100),
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     pdcs, total = list_withdrawals(db, page=page, page_size=page_size)
     return PDCListResponse(
          pdcs=[_build_pdc_response(pdc) for pdc in pdcs],
          total=total,
          page=page,
          page_size=page_size,
     )


@router.get(
     "/check-duplicate",
     response_model=DuplicateCheckResponse,
     summary="Check whether a cheque number is already used by a tenant"
)
def check_duplicate_cheque(
     cheque_number: str = Query(..., alias="chequeNumber"),
     tenant_id: int = Query(..., alias="tenantId"),
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     return DuplicateCheckResponse(**check_duplicate(db, tenant_id, cheque_number))


@router.get(
     "/banks",
     response_model=BankListResponse,
     summary="Distinct bank names"
)
def bank_names(
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     return BankListResponse(banks=list_bank_names(db))


@router.get(
     "/chains/verify",
     response_model=ChainVerificationResponse,
     summary="Verify every replacement chain"
)
def verify_chains(
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """
     Scan all replacement links for cycles, one-sided links and successors on
     cheques that are not REPLACED. Reports the first problem found.
     """
     verified, message, checked = verify_all_chains(db)
     return ChainVerificationResponse(verified=verified, message=message, chains_checked=checked)


@router.get(
     "/tenant/{tenant_id}",
     response_model=List[PDCResponse],
     summary="All PDCs for a tenant"
)
def tenant_pdcs(
     tenant_id: int,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     return [_build_pdc_response(pdc) for pdc in list_tenant_pdcs(db, tenant_id)]


@router.get(
     "/tenant/{tenant_id}/history",
     response_model=TenantPDCHistoryResponse,
     summary="Tenant PDC history and statistics"
)
def tenant_pdc_history(
     tenant_id: int,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """
     Tenant's cheques with totals received / bounced / outstanding and the
     bounce rate (bounced / (cleared + bounced) x 100).
     """
     history = get_tenant_history(db, tenant_id)
     history["pdcs"] = [_build_pdc_response(pdc) for pdc in history["pdcs"]]
     return TenantPDCHistoryResponse(**history)


@router.get(
     "/invoice/{invoice_id}",
     response_model=InvoiceCoverageResponse,
     summary="PDCs earmarked against an invoice"
)
def invoice_pdcs(
     invoice_id: int,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """Earmarked cheques and whether they cover the invoice's outstanding balance (NONE, PARTIAL, FULL)."""
     coverage = get_invoice_coverage(db, invoice_id)
     coverage["pdcs"] = [_build_pdc_response(pdc) for pdc in coverage["pdcs"]]
     return InvoiceCoverageResponse(**coverage)


@router.get(
     "/{pdc_id}",
     response_model=PDCResponse,
     summary="Get PDC by ID"
)
def get_pdc_by_id(
     pdc_id: str,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     return _build_pdc_response(get_pdc(db, pdc_id))


@router.get(
     "/{pdc_id}/history",
     response_model=List[PDCStatusHistoryResponse],
     summary="Status history of a PDC"
)
def pdc_status_history(
     pdc_id: str,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     return [PDCStatusHistoryResponse.model_validate(entry) for entry in get_status_history(db, pdc_id)]


@router.get(
     "/{pdc_id}/chain",
     response_model=PDCChainResponse,
     summary="Replacement chain containing a PDC"
)
def pdc_chain(
     pdc_id: str,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     chain = get_chain(db, pdc_id)
     return PDCChainResponse(
          pdc_id=pdc_id,
          length=len(chain),
          chain=[_build_pdc_response(pdc) for pdc in chain],
     )


# ---------------------------------------------------------------------------
# Lifecycle transitions
# ---------------------------------------------------------------------------

@router.post(
     "/{pdc_id}/mark-due",
     response_model=PDCResponse,
     summary="Move a RECEIVED PDC to DUE"
)
def mark_pdc_due(
     pdc_id: str,
     body: PDCTransitionRequest,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     pdc = pdc_lifecycle.mark_due(db, pdc_id, body.revision, ctx, notes=body.notes)
     db.commit()
     return _build_pdc_response(pdc)


@router.post(
     "/{pdc_id}/deposit",
     response_model=PDCResponse,
     summary="Record a PDC deposit"
)
def deposit_pdc(
     pdc_id: str,
     body: PDCDepositRequest,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """DUE -> DEPOSITED. Records deposit date and bank reference."""
     pdc = pdc_lifecycle.deposit(
          db,
          pdc_id,
          body.revision,
          ctx,
          deposit_date=body.deposit_date,
          deposit_reference=body.deposit_reference,
          notes=body.notes,
     )
     db.commit()
     return _build_pdc_response(pdc)


@router.post(
     "/{pdc_id}/clear",
     response_model=PDCResponse,
     summary="Record a PDC clearance"
)
def clear_pdc(
     pdc_id: str,
     body: PDCClearRequest,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """DEPOSITED -> CLEARED (terminal)."""
     pdc = pdc_lifecycle.clear(db, pdc_id, body.revision, ctx, cleared_date=body.cleared_date, notes=body.notes)
     db.commit()
     return _build_pdc_response(pdc)


@router.post(
     "/{pdc_id}/bounce",
     response_model=PDCResponse,
     summary="Record a PDC bounce"
)
def bounce_pdc(
     pdc_id: str,
     body: PDCBounceRequest,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """DEPOSITED -> BOUNCED. A bounced cheque can then be replaced."""
     pdc = pdc_lifecycle.bounce(
          db,
          pdc_id,
          body.revision,
          ctx,
          bounce_reason=body.bounce_reason,
          bounced_date=body.bounced_date,
          notes=body.notes,
     )
     db.commit()
     return _build_pdc_response(pdc)


@router.post(
     "/{pdc_id}/replace",
     response_model=PDCReplaceResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Replace a bounced PDC"
)
def replace_pdc(
     pdc_id: str,
     body: PDCReplaceRequest,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """
     BOUNCED -> REPLACED, creating the replacement cheque as DUE.

     Bank name and invoice default to the bounced cheque's values.
     """
     original, replacement = pdc_lifecycle.replace(
          db,
          pdc_id,
          body.revision,
          ctx,
          new_cheque_number=body.new_cheque_number,
          new_cheque_date=body.new_cheque_date,
          new_amount=body.new_amount,
          bank_name=body.bank_name,
          invoice_id=body.invoice_id,
          notes=body.notes,
     )
     db.commit()
     return PDCReplaceResponse(
          original=_build_pdc_response(original),
          replacement=_build_pdc_response(replacement),
     )


@router.post(
     "/{pdc_id}/withdraw",
     response_model=PDCResponse,
     summary="Return a PDC to the tenant"
)
def withdraw_pdc(
     pdc_id: str,
     body: PDCWithdrawRequest,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """DUE/RECEIVED -> WITHDRAWN (terminal). The instrument is handed back."""
     pdc = pdc_lifecycle.withdraw(
          db,
          pdc_id,
          body.revision,
          ctx,
          withdrawal_reason=body.withdrawal_reason,
          withdrawal_date=body.withdrawal_date,
          new_payment_method=body.new_payment_method,
          transaction_id=body.transaction_id,
          notes=body.notes,
     )
     db.commit()
     return _build_pdc_response(pdc)


@router.post(
     "/{pdc_id}/cancel",
     response_model=PDCResponse,
     summary="Cancel a PDC"
)
def cancel_pdc(
     pdc_id: str,
     body: PDCCancelRequest,
     db: Session = Depends(get_session),
     ctx: AuditContext = Depends(require_pdc_access)
):
     """DUE/RECEIVED -> CANCELLED (terminal). The instrument is voided and kept."""
     pdc = pdc_lifecycle.cancel(
          db,
          pdc_id,
          body.revision,
          ctx,
          cancellation_reason=body.cancellation_reason,
          notes=body.notes,
     )
     db.commit()
     return _build_pdc_response(pdc)
