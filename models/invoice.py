# models/invoice.py
import enum
from decimal import Decimal
from sqlalchemy import Column, Integer, Numeric, Date, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from .base import Base


class InvoiceStatus(str, enum.Enum):
     """Enumeration for invoice payment status."""
     PENDING = "PENDING"
     PAID = "PAID"
     OVERDUE = "OVERDUE"


class Invoice(Base):
     """
     Invoice model - billing records for tenants.

     Owned by the invoicing side of the back office. PDCs may be earmarked
     against an invoice as collateral; this service never writes invoices.
     """
     __tablename__ = "invoices"

     id = Column(Integer, primary_key=True, autoincrement=True)

     # Foreign keys
     tenant_id = Column(
          Integer,
          ForeignKey("tenants.tenant_id", ondelete="CASCADE"),
          nullable=False,
          index=True
     )
     lease_id = Column(Integer, nullable=False, index=True)

     # Invoice details
     amount = Column(Numeric(12, 2), nullable=False)
     due_date = Column(Date, nullable=False, index=True)
     status = Column(
          Enum(InvoiceStatus, name="invoice_status", create_constraint=True),
          default=InvoiceStatus.PENDING,
          nullable=False,
          index=True
     )

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     tenant = relationship("Tenant", back_populates="invoices")
     pdcs = relationship("PDC", back_populates="invoice")

     def __repr__(self):
          return f"<Invoice(id={self.id}, amount={self.amount}, status='{self.status.value}', due_date={self.due_date})>"

     @property
     def outstanding_balance(self) -> Decimal:
          """Amount still owed on the invoice; a PAID invoice owes nothing."""
          if self.status == InvoiceStatus.PAID:
               return Decimal("0.00")
          return Decimal(self.amount or 0)
