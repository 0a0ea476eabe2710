# models/pdc_status_history.py
"""
PDCStatusHistory model - append-only audit trail of PDC status changes.

One row per registration and per transition. Rows are only ever inserted;
the sequence for a cheque, ordered by id, is the walk it took through the
lifecycle graph.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from .base import Base
from .pdc import PDCStatus


class PDCStatusHistory(Base):
     __tablename__ = "pdc_status_history"

     id = Column(Integer, primary_key=True, autoincrement=True)
     pdc_id = Column(
          String(36),
          ForeignKey("pdcs.id", ondelete="RESTRICT"),
          nullable=False,
          index=True
     )
     action = Column(String(20), nullable=False)  # register, deposit, clear, ...
     from_status = Column(Enum(PDCStatus, name="pdc_status", create_constraint=False), nullable=True)  # None on registration
     to_status = Column(Enum(PDCStatus, name="pdc_status", create_constraint=False), nullable=False)
     revision = Column(Integer, nullable=False)
     performed_by = Column(Integer, nullable=False)
     performed_at = Column(DateTime, server_default=func.now(), nullable=False)
     notes = Column(String(500), nullable=True)

     # Relationships
     pdc = relationship("PDC", back_populates="status_history")

     def __repr__(self):
          return (
               f"<PDCStatusHistory(pdc_id={self.pdc_id}, {self.from_status} -> {self.to_status}, "
               f"revision={self.revision})>"
          )
