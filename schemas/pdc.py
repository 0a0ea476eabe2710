# schemas/pdc.py
"""
Pydantic schemas for PDC API request/response validation.

Every transition request carries `revision`: the revision the caller last
read. A stale value is rejected with 409 so the caller can refetch and
reapply.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models.pdc import PDCStatus, NewPaymentMethod


class PDCCreate(BaseModel):
     """Schema for registering a single PDC."""
     tenant_id: int = Field(..., gt=0, description="Tenant ID (must exist)")
     cheque_number: str = Field(..., description="Cheque number, unique per tenant (3-50 characters)")
     bank_name: str = Field(..., description="Drawee bank")
     amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Cheque amount")
     cheque_date: date = Field(..., description="Date written on the cheque")
     invoice_id: Optional[int] = Field(None, gt=0, description="Invoice this cheque is collateral for")
     lease_id: Optional[int] = Field(None, gt=0)
     notes: Optional[str] = Field(None, max_length=500)
     initial_status: Optional[PDCStatus] = Field(None, description="DUE (default) or RECEIVED")

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "tenant_id": 1,
                    "cheque_number": "1001",
                    "bank_name": "Emirates NBD",
                    "amount": 5000.00,
                    "cheque_date": "2025-03-01",
                    "invoice_id": 1
               }
          }
     )


class PDCBulkEntry(BaseModel):
     """
     One cheque inside a bulk submission.

     Business rules (positive amount, number length, duplicates) are checked
     by the intake service so every bad entry is reported with its index.
     """
     cheque_number: Optional[str] = None
     bank_name: Optional[str] = None
     amount: Optional[Decimal] = Field(None, max_digits=12, decimal_places=2)
     cheque_date: Optional[date] = None
     invoice_id: Optional[int] = None
     lease_id: Optional[int] = None
     notes: Optional[str] = Field(None, max_length=500)


class PDCBulkCreate(BaseModel):
     """Schema for registering several PDCs for one tenant atomically."""
     tenant_id: int = Field(..., gt=0)
     initial_status: Optional[PDCStatus] = None
     pdcs: List[PDCBulkEntry]

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "tenant_id": 1,
                    "pdcs": [
                         {"cheque_number": "2001", "bank_name": "ADCB", "amount": 5000.00, "cheque_date": "2025-04-01"},
                         {"cheque_number": "2002", "bank_name": "ADCB", "amount": 5000.00, "cheque_date": "2025-05-01"}
                    ]
               }
          }
     )


class PDCTransitionRequest(BaseModel):
     """Base for every status change."""
     revision: int = Field(..., ge=1, description="Revision the caller last read")
     notes: Optional[str] = Field(None, max_length=500, description="Recorded on the status history entry")


class PDCDepositRequest(PDCTransitionRequest):
     deposit_date: Optional[date] = Field(None, description="Defaults to today")
     deposit_reference: Optional[str] = Field(None, max_length=100)


class PDCClearRequest(PDCTransitionRequest):
     cleared_date: Optional[date] = Field(None, description="Defaults to today")


class PDCBounceRequest(PDCTransitionRequest):
     bounce_reason: str = Field(..., min_length=1, max_length=255)
     bounced_date: Optional[date] = Field(None, description="Defaults to today")

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "revision": 2,
                    "bounce_reason": "insufficient funds",
                    "bounced_date": "2025-03-03"
               }
          }
     )


class PDCReplaceRequest(PDCTransitionRequest):
     """Details of the replacement cheque. Bank and invoice default to the bounced cheque's."""
     new_cheque_number: str
     new_cheque_date: date
     new_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
     bank_name: Optional[str] = None
     invoice_id: Optional[int] = Field(None, gt=0)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "revision": 3,
                    "new_cheque_number": "1002",
                    "new_cheque_date": "2025-03-15",
                    "new_amount": 5000.00
               }
          }
     )


class PDCWithdrawRequest(PDCTransitionRequest):
     withdrawal_reason: str = Field(..., min_length=1, max_length=255)
     withdrawal_date: Optional[date] = Field(None, description="Defaults to today")
     new_payment_method: Optional[NewPaymentMethod] = None
     transaction_id: Optional[str] = Field(None, max_length=100)


class PDCCancelRequest(PDCTransitionRequest):
     cancellation_reason: Optional[str] = Field(None, max_length=255)


class PDCResponse(BaseModel):
     """Schema for PDC response."""
     id: str
     cheque_number: str
     bank_name: str
     tenant_id: int
     invoice_id: Optional[int] = None
     lease_id: Optional[int] = None
     amount: Decimal
     cheque_date: date
     status: PDCStatus
     revision: int

     deposit_date: Optional[date] = None
     deposit_reference: Optional[str] = None
     cleared_date: Optional[date] = None
     bounced_date: Optional[date] = None
     bounce_reason: Optional[str] = None
     withdrawal_date: Optional[date] = None
     withdrawal_reason: Optional[str] = None
     new_payment_method: Optional[NewPaymentMethod] = None
     transaction_id: Optional[str] = None
     is_cancelled: bool = False
     cancellation_reason: Optional[str] = None

     original_pdc_id: Optional[str] = None
     replacement_pdc_id: Optional[str] = None
     notes: Optional[str] = None

     created_by: int
     created_at: datetime
     updated_by: Optional[int] = None
     updated_at: datetime

     # Optional related data
     tenant_name: Optional[str] = None
     allowed_actions: List[str] = []

     model_config = ConfigDict(from_attributes=True)


class PDCListResponse(BaseModel):
     """Schema for paginated PDC list response."""
     pdcs: List[PDCResponse]
     total: int
     page: int = 1
     page_size: int = 50


class PDCBulkResponse(BaseModel):
     created: int
     total_amount: Decimal
     pdcs: List[PDCResponse]


class PDCReplaceResponse(BaseModel):
     original: PDCResponse
     replacement: PDCResponse


class DuplicateCheckResponse(BaseModel):
     cheque_number: str
     tenant_id: int
     exists: bool
     pdc_id: Optional[str] = None
     status: Optional[PDCStatus] = None


class BankListResponse(BaseModel):
     banks: List[str]


class PDCStatusHistoryResponse(BaseModel):
     id: int
     pdc_id: str
     action: str
     from_status: Optional[PDCStatus] = None
     to_status: PDCStatus
     revision: int
     performed_by: int
     performed_at: datetime
     notes: Optional[str] = None

     model_config = ConfigDict(from_attributes=True)


class PDCChainResponse(BaseModel):
     """Replacement chain, oldest cheque first."""
     pdc_id: str
     length: int
     chain: List[PDCResponse]


class ChainVerificationResponse(BaseModel):
     verified: bool
     message: str
     chains_checked: int


class StatusBucket(BaseModel):
     count: int
     amount: Decimal


class PDCDashboardResponse(BaseModel):
     as_of: date
     tenant_id: Optional[int] = None
     total: StatusBucket
     by_status: dict[str, StatusBucket]
     due_this_week: StatusBucket
     due_this_month: StatusBucket
     overdue: StatusBucket
     awaiting_clearance: StatusBucket
     deposited_this_month: StatusBucket
     bounced_recently: StatusBucket
     outstanding: StatusBucket
     bounce_rate: float
     upcoming: List[PDCResponse]
     recently_deposited: List[PDCResponse]


class TenantPDCHistoryResponse(BaseModel):
     tenant_id: int
     tenant_name: str
     total_pdcs: int
     cleared_count: int
     bounced_count: int
     pending_count: int
     total_received: Decimal
     total_bounced: Decimal
     total_outstanding: Decimal
     bounce_rate: float
     pdcs: List[PDCResponse]


class InvoiceCoverageResponse(BaseModel):
     invoice_id: int
     tenant_id: int
     invoice_amount: Decimal
     outstanding_balance: Decimal
     collateral_amount: Decimal
     coverage: str  # NONE, PARTIAL, FULL
     pdcs: List[PDCResponse]
