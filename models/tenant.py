# models/tenant.py
from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from .base import Base


class Tenant(Base):
     """
     Tenant model - the party issuing post-dated cheques.
     Maps to existing 'tenants' table; tenant CRUD lives outside this service,
     PDC code only reads it to validate ownership and display names.
     """
     __tablename__ = "tenants"

     tenant_id = Column(Integer, primary_key=True, autoincrement=True)
     user_id = Column(Integer, nullable=True, unique=True)

     # Personal info
     first_name = Column(String(100), nullable=False)
     last_name = Column(String(100), nullable=False)
     email = Column(String(255), nullable=False)
     contact_number = Column(String(50), nullable=True)

     # Status
     status = Column(String(50), default="pending", nullable=False)  # pending, approved, denied

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

     # Relationships
     invoices = relationship("Invoice", back_populates="tenant")
     pdcs = relationship("PDC", back_populates="tenant", foreign_keys="PDC.tenant_id")

     @property
     def full_name(self) -> str:
          return f"{self.first_name or ''} {self.last_name or ''}".strip()

     def __repr__(self):
          return f"<Tenant(tenant_id={self.tenant_id}, name='{self.full_name}')>"
