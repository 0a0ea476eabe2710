"""
Pytest fixtures for the PDC test suite.

Provides:
- An in-memory SQLite database, rebuilt for every test
- Seeded tenants and an invoice
- An AuditContext for service calls and a factory for registered cheques
- A FastAPI TestClient with signed bearer tokens

Environment is set before any application module is imported so config
picks up the test database and JWT secret.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["PDC_ALLOWED_ROLES"] = "admin,manager"

from datetime import date
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import Session

from database import SessionLocal, engine
from models import Base, Invoice, Tenant
from services.audit import AuditContext
from services.pdc_intake import register_pdc
from services import pdc_lifecycle

TODAY = date(2025, 3, 10)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def tenant(db_session: Session) -> Tenant:
    tenant = Tenant(first_name="Aisha", last_name="Rahman", email="aisha@example.com", status="approved")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture
def other_tenant(db_session: Session) -> Tenant:
    tenant = Tenant(first_name="Omar", last_name="Haddad", email="omar@example.com", status="approved")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture
def invoice(db_session: Session, tenant: Tenant) -> Invoice:
    invoice = Invoice(
        tenant_id=tenant.tenant_id,
        lease_id=1,
        amount=Decimal("10000.00"),
        due_date=date(2025, 3, 31),
    )
    db_session.add(invoice)
    db_session.commit()
    return invoice


@pytest.fixture
def ctx() -> AuditContext:
    return AuditContext(user_id=7, role="manager")


@pytest.fixture
def make_pdc(db_session: Session, tenant: Tenant, ctx: AuditContext):
    """Register and commit a cheque; keyword arguments override the defaults."""
    counter = {"n": 1000}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "tenant_id": tenant.tenant_id,
            "cheque_number": str(counter["n"]),
            "bank_name": "Emirates NBD",
            "amount": Decimal("5000.00"),
            "cheque_date": date(2025, 3, 1),
        }
        fields.update(overrides)
        pdc = register_pdc(db_session, ctx, **fields)
        db_session.commit()
        return pdc

    return _make


@pytest.fixture
def deposited_pdc(db_session: Session, make_pdc, ctx: AuditContext):
    pdc = make_pdc()
    pdc_lifecycle.deposit(db_session, pdc.id, pdc.version, ctx, deposit_date=date(2025, 3, 1))
    db_session.commit()
    return pdc


@pytest.fixture
def bounced_pdc(db_session: Session, deposited_pdc, ctx: AuditContext):
    pdc_lifecycle.bounce(
        db_session, deposited_pdc.id, deposited_pdc.version, ctx,
        bounce_reason="insufficient funds", bounced_date=date(2025, 3, 3),
    )
    db_session.commit()
    return deposited_pdc


def make_token(user_id=1, role="admin") -> str:
    return jwt.encode({"id": user_id, "role": role}, "test-secret", algorithm="HS256")


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    from main import app

    with TestClient(app) as test_client:
        test_client.headers.update({"Authorization": f"Bearer {make_token()}"})
        yield test_client
