# models/pdc.py
"""
PDC model - post-dated cheques taken from tenants as rent collateral.

Rows are never deleted. Terminal statuses (CLEARED, CANCELLED, WITHDRAWN,
REPLACED) are the only "deletion" equivalent so tenant history and the
replacement chain stay intact for audit.

Replacement chain: a bounced cheque points forward to its replacement via
`replacement_pdc_id`; the replacement points back via `original_pdc_id`.
Both columns carry filtered unique indexes, so a cheque has at most one
successor and at most one predecessor.

`version` is mapped as SQLAlchemy's version_id_col: every UPDATE is issued
with `WHERE version = <loaded version>` and bumps it, which is the revision
counter used for optimistic concurrency.
"""
import enum
import uuid

from sqlalchemy import (
     Boolean,
     Column,
     Date,
     Enum,
     ForeignKey,
     Index,
     Integer,
     Numeric,
     String,
     text,
)
from sqlalchemy.orm import relationship

from .base import Base, AuditMixin


class PDCStatus(str, enum.Enum):
     """Closed set of cheque lifecycle states."""
     RECEIVED = "RECEIVED"
     DUE = "DUE"
     DEPOSITED = "DEPOSITED"
     CLEARED = "CLEARED"
     BOUNCED = "BOUNCED"
     REPLACED = "REPLACED"
     WITHDRAWN = "WITHDRAWN"
     CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({
     PDCStatus.CLEARED,
     PDCStatus.CANCELLED,
     PDCStatus.WITHDRAWN,
     PDCStatus.REPLACED,
})

# Still expected to turn into money (or already bounced and awaiting replacement)
OUTSTANDING_STATUSES = frozenset({
     PDCStatus.RECEIVED,
     PDCStatus.DUE,
     PDCStatus.DEPOSITED,
     PDCStatus.BOUNCED,
})

# Registered but not yet handed to the bank
AWAITING_DEPOSIT_STATUSES = frozenset({PDCStatus.RECEIVED, PDCStatus.DUE})


class NewPaymentMethod(str, enum.Enum):
     """How the tenant pays instead once a cheque is withdrawn."""
     BANK_TRANSFER = "BANK_TRANSFER"
     CASH = "CASH"
     NEW_CHEQUE = "NEW_CHEQUE"


def _new_pdc_id() -> str:
     return str(uuid.uuid4())


class PDC(AuditMixin, Base):
     """One post-dated cheque instrument."""
     __tablename__ = "pdcs"

     id = Column(String(36), primary_key=True, default=_new_pdc_id)

     # Cheque identification
     cheque_number = Column(String(50), nullable=False, index=True)
     bank_name = Column(String(100), nullable=False, index=True)

     # Ownership and linkage
     tenant_id = Column(
          Integer,
          ForeignKey("tenants.tenant_id", ondelete="NO ACTION"),
          nullable=False,
          index=True
     )
     invoice_id = Column(
          Integer,
          ForeignKey("invoices.id", ondelete="NO ACTION"),
          nullable=True,
          index=True
     )
     lease_id = Column(Integer, nullable=True, index=True)

     # Amount and dates
     amount = Column(Numeric(12, 2), nullable=False)
     cheque_date = Column(Date, nullable=False, index=True)
     deposit_date = Column(Date, nullable=True, index=True)
     deposit_reference = Column(String(100), nullable=True)
     cleared_date = Column(Date, nullable=True)
     bounced_date = Column(Date, nullable=True)
     bounce_reason = Column(String(255), nullable=True)
     withdrawal_date = Column(Date, nullable=True)
     withdrawal_reason = Column(String(255), nullable=True)
     new_payment_method = Column(
          Enum(NewPaymentMethod, name="pdc_new_payment_method", create_constraint=True),
          nullable=True
     )
     transaction_id = Column(String(100), nullable=True)
     is_cancelled = Column(Boolean, default=False, nullable=False)
     cancellation_reason = Column(String(255), nullable=True)

     # Lifecycle
     status = Column(
          Enum(PDCStatus, name="pdc_status", create_constraint=True),
          default=PDCStatus.DUE,
          nullable=False,
          index=True
     )
     version = Column(Integer, nullable=False)

     # Replacement chain
     original_pdc_id = Column(String(36), ForeignKey("pdcs.id"), nullable=True)
     replacement_pdc_id = Column(String(36), ForeignKey("pdcs.id"), nullable=True)

     notes = Column(String(500), nullable=True)

     __mapper_args__ = {"version_id_col": version}

     __table_args__ = (
          # Cheque numbers are unique per tenant among non-cancelled cheques
          Index(
               "uq_pdcs_tenant_cheque_active",
               "tenant_id",
               "cheque_number",
               unique=True,
               sqlite_where=text("is_cancelled = 0"),
               postgresql_where=text("is_cancelled = false"),
               mssql_where=text("is_cancelled = 0"),
          ),
          # At most one predecessor and one successor per cheque; NULLs excluded
          Index(
               "uq_pdcs_original_pdc_id",
               "original_pdc_id",
               unique=True,
               sqlite_where=text("original_pdc_id IS NOT NULL"),
               postgresql_where=text("original_pdc_id IS NOT NULL"),
               mssql_where=text("original_pdc_id IS NOT NULL"),
          ),
          Index(
               "uq_pdcs_replacement_pdc_id",
               "replacement_pdc_id",
               unique=True,
               sqlite_where=text("replacement_pdc_id IS NOT NULL"),
               postgresql_where=text("replacement_pdc_id IS NOT NULL"),
               mssql_where=text("replacement_pdc_id IS NOT NULL"),
          ),
          Index("ix_pdcs_status_cheque_date", "status", "cheque_date"),
     )

     # Relationships
     tenant = relationship("Tenant", back_populates="pdcs", foreign_keys=[tenant_id])
     invoice = relationship("Invoice", back_populates="pdcs")
     status_history = relationship(
          "PDCStatusHistory",
          back_populates="pdc",
          order_by="PDCStatusHistory.id",
     )

     @property
     def revision(self) -> int:
          return self.version

     @property
     def is_terminal(self) -> bool:
          return self.status in TERMINAL_STATUSES

     @property
     def is_outstanding(self) -> bool:
          return self.status in OUTSTANDING_STATUSES

     def __repr__(self):
          return (
               f"<PDC(id={self.id}, cheque_number='{self.cheque_number}', "
               f"tenant_id={self.tenant_id}, status='{self.status.value}', version={self.version})>"
          )
