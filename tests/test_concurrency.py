"""
Optimistic concurrency across two independent sessions.

Uses a file-backed SQLite database so each session gets its own connection.
"""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from database import build_engine
from exceptions import ConcurrencyConflict, InvalidTransitionError
from models import Base, PDC, PDCStatus, Tenant
from services import pdc_lifecycle
from services.audit import AuditContext
from services.pdc_intake import register_pdc


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'pdc.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def deposited_id(session_factory):
    ctx = AuditContext(user_id=1, role="admin")
    with session_factory() as session:
        tenant = Tenant(first_name="Lina", last_name="Saleh", email="lina@example.com")
        session.add(tenant)
        session.flush()
        pdc = register_pdc(
            session, ctx,
            tenant_id=tenant.tenant_id, cheque_number="7001", bank_name="FAB",
            amount=Decimal("3000.00"), cheque_date=date(2025, 3, 1),
        )
        pdc_lifecycle.deposit(session, pdc.id, 1, ctx, deposit_date=date(2025, 3, 1))
        session.commit()
        return pdc.id


class TestConcurrentTransitions:
    def test_clear_and_bounce_only_one_wins(self, session_factory, deposited_id):
        clerk = AuditContext(user_id=2, role="manager")
        supervisor = AuditContext(user_id=3, role="admin")

        first = session_factory()
        second = session_factory()
        try:
            # Both operators read revision 2
            assert first.get(PDC, deposited_id).version == 2
            assert second.get(PDC, deposited_id).version == 2

            pdc_lifecycle.clear(first, deposited_id, 2, clerk, cleared_date=date(2025, 3, 4))
            first.commit()

            with pytest.raises(ConcurrencyConflict) as exc_info:
                pdc_lifecycle.bounce(second, deposited_id, 2, supervisor, bounce_reason="stopped")
            assert exc_info.value.current_revision == 3
            second.rollback()
        finally:
            first.close()
            second.close()

        with session_factory() as check:
            pdc = check.get(PDC, deposited_id)
            assert pdc.status == PDCStatus.CLEARED
            assert pdc.bounce_reason is None
            assert pdc.version == 3

    def test_loser_of_race_after_revision_check_gets_conflict(self, session_factory, deposited_id):
        clerk = AuditContext(user_id=2, role="manager")
        supervisor = AuditContext(user_id=3, role="admin")

        first = session_factory()
        second = session_factory()
        try:
            # Both pass the revision and state checks before either writes
            won, won_from, won_to = pdc_lifecycle._begin(first, deposited_id, pdc_lifecycle.PDCAction.CLEAR, 2)
            lost, lost_from, lost_to = pdc_lifecycle._begin(second, deposited_id, pdc_lifecycle.PDCAction.BOUNCE, 2)

            won.status = won_to
            won.cleared_date = date(2025, 3, 4)
            pdc_lifecycle._finish(first, won, pdc_lifecycle.PDCAction.CLEAR, won_from, 2, clerk)
            first.commit()

            lost.status = lost_to
            lost.bounce_reason = "stopped"
            lost.bounced_date = date(2025, 3, 4)
            with pytest.raises(ConcurrencyConflict) as exc_info:
                pdc_lifecycle._finish(second, lost, pdc_lifecycle.PDCAction.BOUNCE, lost_from, 2, supervisor)
            assert exc_info.value.pdc_id == deposited_id
            assert exc_info.value.expected_revision == 2
            assert exc_info.value.retryable is True
            second.rollback()
        finally:
            first.close()
            second.close()

        with session_factory() as check:
            pdc = check.get(PDC, deposited_id)
            assert pdc.status == PDCStatus.CLEARED
            assert pdc.bounce_reason is None
            assert pdc.version == 3

    def test_stale_in_memory_update_is_refused_by_version_column(self, session_factory, deposited_id):
        first = session_factory()
        second = session_factory()
        try:
            stale = second.get(PDC, deposited_id)

            fresh = first.get(PDC, deposited_id)
            fresh.status = PDCStatus.CLEARED
            first.commit()

            stale.status = PDCStatus.BOUNCED
            with pytest.raises(StaleDataError):
                second.flush()
            second.rollback()
        finally:
            first.close()
            second.close()

    def test_retry_after_refetch_succeeds_on_legal_edge(self, session_factory, deposited_id):
        ctx = AuditContext(user_id=2, role="manager")
        with session_factory() as session:
            pdc_lifecycle.bounce(session, deposited_id, 2, ctx, bounce_reason="no funds")
            session.commit()

        with session_factory() as session:
            with pytest.raises(ConcurrencyConflict):
                pdc_lifecycle.clear(session, deposited_id, 2, ctx)
            current = session.get(PDC, deposited_id)
            # Refetched state is BOUNCED, so clear is no longer a legal move
            assert current.status == PDCStatus.BOUNCED
            with pytest.raises(InvalidTransitionError):
                pdc_lifecycle.clear(session, deposited_id, current.version, ctx)
