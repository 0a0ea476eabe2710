# database.py
"""
SQLAlchemy database connection and session management.

This module provides:
- Database engine configuration for Azure SQL (MS SQL Server), or any URL from DATABASE_URL
- Session factory for dependency injection
- Connection utilities

Usage:
     from database import get_session, engine

     # In FastAPI routes:
     @router.get("/pdcs/{pdc_id}")
     def get_pdc(pdc_id: str, db: Session = Depends(get_session)):
          return db.get(PDC, pdc_id)
     """
import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

import config

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False) -> Engine:
     """
     Create an engine for the given URL.

     SQLite (local runs and tests) gets a single shared connection so an
     in-memory database survives across sessions; everything else uses a
     QueuePool sized for the API.
     """
     if url.startswith("sqlite"):
          options = {"connect_args": {"check_same_thread": False}, "echo": echo}
          if url in ("sqlite://", "sqlite:///:memory:"):
               options["poolclass"] = StaticPool
          return create_engine(url, **options)
     return create_engine(
          url,
          poolclass=QueuePool,
          pool_size=5,
          max_overflow=10,
          pool_timeout=30,
          pool_recycle=1800,  # Recycle connections after 30 minutes
          echo=echo,
     )


# Create SQLAlchemy engine
engine = build_engine(config.DATABASE_URL, echo=config.SQL_ECHO)

# Session factory
SessionLocal = sessionmaker(
     bind=engine,
     autocommit=False,
     autoflush=False,
     expire_on_commit=False,
)


def get_session() -> Generator[Session, None, None]:
     """
     FastAPI dependency that provides a database session.

     Routes commit explicitly; anything left uncommitted when the request
     fails is rolled back here.

     Yields:
          Session: SQLAlchemy database session
     """
     session = SessionLocal()
     try:
          yield session
     except Exception:
          session.rollback()
          raise
     finally:
          session.close()


@contextmanager
def get_session_context() -> Generator[Session, None, None]:
     """
     Context manager for database sessions (for use outside FastAPI routes).

     Usage:
          with get_session_context() as db:
               pdcs = db.query(PDC).all()

     Yields:
          Session: SQLAlchemy database session
     """
     session = SessionLocal()
     try:
          yield session
          session.commit()
     except Exception:
          session.rollback()
          raise
     finally:
          session.close()


def init_db() -> None:
     """
     Initialize database tables.

     Creates all tables defined in the models if they don't exist.
     For production, use Alembic migrations instead.
     """
     from models import Base
     Base.metadata.create_all(bind=engine)


def check_connection() -> bool:
     """
     Test database connectivity.

     Returns:
          bool: True if connection successful, False otherwise
     """
     try:
          with engine.connect() as conn:
               conn.execute(text("SELECT 1"))
          return True
     except Exception as e:
          logger.error("Database connection failed: %s", e)
          return False
