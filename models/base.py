# models/base.py
from sqlalchemy import Column, DateTime, Integer, MetaData, func
from sqlalchemy.orm import DeclarativeBase

# Deterministic constraint names so Alembic migrations stay reproducible
NAMING_CONVENTION = {
     "ix": "ix_%(table_name)s_%(column_0_N_name)s",
     "uq": "uq_%(table_name)s_%(column_0_N_name)s",
     "ck": "ck_%(table_name)s_%(constraint_name)s",
     "fk": "fk_%(table_name)s_%(column_0_name)s",
     "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
     """
     Base class for all SQLAlchemy models.
     Every model names its table explicitly to match the existing schema.
     """
     metadata = MetaData(naming_convention=NAMING_CONVENTION)


class AuditMixin:
     """
     Who/when columns for rows mutated by back-office users.

     `created_by` / `updated_by` hold the acting user id passed in explicitly
     by the service layer, never read from ambient request state.
     """
     created_by = Column(Integer, nullable=False)
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_by = Column(Integer, nullable=True)
     updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
