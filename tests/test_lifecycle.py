"""
Lifecycle engine tests: transition table, per-transition effects and
rejections, terminal states and the status history trail.
"""
from datetime import date
from decimal import Decimal

import pytest

from exceptions import ConcurrencyConflict, InvalidTransitionError, NotFoundError, ValidationError
from models import PDCStatus, PDCStatusHistory, NewPaymentMethod
from models.pdc import TERMINAL_STATUSES
from services import pdc_lifecycle
from services.pdc_lifecycle import PDCAction, TRANSITIONS, allowed_actions, next_status


class TestTransitionTable:
    def test_every_edge(self):
        edges = {
            (origin, action, destination)
            for action, (origins, destination) in TRANSITIONS.items()
            for origin in origins
        }
        assert edges == {
            (PDCStatus.RECEIVED, PDCAction.MARK_DUE, PDCStatus.DUE),
            (PDCStatus.DUE, PDCAction.DEPOSIT, PDCStatus.DEPOSITED),
            (PDCStatus.DEPOSITED, PDCAction.CLEAR, PDCStatus.CLEARED),
            (PDCStatus.DEPOSITED, PDCAction.BOUNCE, PDCStatus.BOUNCED),
            (PDCStatus.BOUNCED, PDCAction.REPLACE, PDCStatus.REPLACED),
            (PDCStatus.DUE, PDCAction.WITHDRAW, PDCStatus.WITHDRAWN),
            (PDCStatus.RECEIVED, PDCAction.WITHDRAW, PDCStatus.WITHDRAWN),
            (PDCStatus.DUE, PDCAction.CANCEL, PDCStatus.CANCELLED),
            (PDCStatus.RECEIVED, PDCAction.CANCEL, PDCStatus.CANCELLED),
        }

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_statuses_have_no_actions(self, status):
        assert allowed_actions(status) == []

    def test_received_behaves_like_due_for_withdraw_and_cancel(self):
        assert set(allowed_actions(PDCStatus.RECEIVED)) == {
            PDCAction.MARK_DUE, PDCAction.WITHDRAW, PDCAction.CANCEL,
        }

    def test_deposit_cannot_skip_to_clear(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            next_status(PDCStatus.DUE, PDCAction.CLEAR)
        assert exc_info.value.current_status == "DUE"
        assert exc_info.value.requested_action == "clear"

    def test_terminal_rejection_names_the_reason(self):
        with pytest.raises(InvalidTransitionError, match="terminal"):
            next_status(PDCStatus.CLEARED, PDCAction.BOUNCE)


class TestTransitions:
    def test_deposit_sets_deposit_fields(self, db_session, make_pdc, ctx):
        pdc = make_pdc()
        assert pdc.status == PDCStatus.DUE
        assert pdc.version == 1

        pdc_lifecycle.deposit(
            db_session, pdc.id, 1, ctx,
            deposit_date=date(2025, 3, 1), deposit_reference="SLIP-77",
        )
        db_session.commit()

        assert pdc.status == PDCStatus.DEPOSITED
        assert pdc.deposit_date == date(2025, 3, 1)
        assert pdc.deposit_reference == "SLIP-77"
        assert pdc.version == 2
        assert pdc.updated_by == ctx.user_id

    def test_deposit_leaves_other_fields_alone(self, db_session, make_pdc, ctx):
        pdc = make_pdc(notes="front desk")
        pdc_lifecycle.deposit(db_session, pdc.id, 1, ctx, deposit_date=date(2025, 3, 1), notes="sent")
        db_session.commit()

        assert pdc.notes == "front desk"
        assert pdc.amount == Decimal("5000.00")
        assert pdc.cleared_date is None
        assert pdc.bounce_reason is None

    def test_clear_is_terminal(self, db_session, deposited_pdc, ctx):
        pdc_lifecycle.clear(db_session, deposited_pdc.id, 2, ctx, cleared_date=date(2025, 3, 4))
        db_session.commit()

        assert deposited_pdc.status == PDCStatus.CLEARED
        assert deposited_pdc.cleared_date == date(2025, 3, 4)
        for attempt in (
            lambda: pdc_lifecycle.bounce(db_session, deposited_pdc.id, 3, ctx, bounce_reason="late"),
            lambda: pdc_lifecycle.clear(db_session, deposited_pdc.id, 3, ctx),
            lambda: pdc_lifecycle.cancel(db_session, deposited_pdc.id, 3, ctx),
            lambda: pdc_lifecycle.withdraw(db_session, deposited_pdc.id, 3, ctx, withdrawal_reason="x"),
        ):
            with pytest.raises(InvalidTransitionError):
                attempt()

    def test_bounce_records_reason_and_date(self, db_session, deposited_pdc, ctx):
        pdc_lifecycle.bounce(
            db_session, deposited_pdc.id, 2, ctx,
            bounce_reason="insufficient funds", bounced_date=date(2025, 3, 3),
        )
        db_session.commit()

        assert deposited_pdc.status == PDCStatus.BOUNCED
        assert deposited_pdc.bounce_reason == "insufficient funds"
        assert deposited_pdc.bounced_date == date(2025, 3, 3)

    def test_bounce_requires_reason(self, db_session, deposited_pdc, ctx):
        with pytest.raises(ValidationError):
            pdc_lifecycle.bounce(db_session, deposited_pdc.id, 2, ctx, bounce_reason="   ")

    def test_bounce_from_due_is_rejected(self, db_session, make_pdc, ctx):
        pdc = make_pdc()
        with pytest.raises(InvalidTransitionError) as exc_info:
            pdc_lifecycle.bounce(db_session, pdc.id, 1, ctx, bounce_reason="no funds")
        assert exc_info.value.current_status == "DUE"
        assert exc_info.value.requested_action == "bounce"

    def test_withdraw_records_return_details(self, db_session, make_pdc, ctx):
        pdc = make_pdc()
        pdc_lifecycle.withdraw(
            db_session, pdc.id, 1, ctx,
            withdrawal_reason="Lease terminated early",
            withdrawal_date=date(2025, 2, 20),
            new_payment_method=NewPaymentMethod.BANK_TRANSFER,
            transaction_id="TRX-1",
        )
        db_session.commit()

        assert pdc.status == PDCStatus.WITHDRAWN
        assert pdc.withdrawal_reason == "Lease terminated early"
        assert pdc.withdrawal_date == date(2025, 2, 20)
        assert pdc.new_payment_method == NewPaymentMethod.BANK_TRANSFER
        assert pdc.transaction_id == "TRX-1"
        assert pdc.is_cancelled is False

    def test_withdraw_after_deposit_is_rejected(self, db_session, deposited_pdc, ctx):
        with pytest.raises(InvalidTransitionError):
            pdc_lifecycle.withdraw(db_session, deposited_pdc.id, 2, ctx, withdrawal_reason="too late")

    def test_cancel_from_received(self, db_session, make_pdc, ctx):
        pdc = make_pdc(initial_status=PDCStatus.RECEIVED)
        pdc_lifecycle.cancel(db_session, pdc.id, 1, ctx, cancellation_reason="Entered twice")
        db_session.commit()

        assert pdc.status == PDCStatus.CANCELLED
        assert pdc.is_cancelled is True
        assert pdc.cancellation_reason == "Entered twice"

    def test_mark_due_then_deposit(self, db_session, make_pdc, ctx):
        pdc = make_pdc(initial_status=PDCStatus.RECEIVED)
        with pytest.raises(InvalidTransitionError):
            pdc_lifecycle.deposit(db_session, pdc.id, 1, ctx)

        pdc_lifecycle.mark_due(db_session, pdc.id, 1, ctx)
        pdc_lifecycle.deposit(db_session, pdc.id, 2, ctx, deposit_date=date(2025, 3, 1))
        db_session.commit()
        assert pdc.status == PDCStatus.DEPOSITED
        assert pdc.version == 3

    def test_unknown_pdc(self, db_session, tenant, ctx):
        with pytest.raises(NotFoundError):
            pdc_lifecycle.deposit(db_session, "does-not-exist", 1, ctx)

    def test_stale_revision_is_rejected_before_state_check(self, db_session, deposited_pdc, ctx):
        with pytest.raises(ConcurrencyConflict) as exc_info:
            pdc_lifecycle.clear(db_session, deposited_pdc.id, 1, ctx)
        assert exc_info.value.expected_revision == 1
        assert exc_info.value.current_revision == 2
        assert exc_info.value.retryable is True


class TestStatusHistory:
    def test_history_is_a_walk_of_the_graph(self, db_session, bounced_pdc, ctx):
        pdc_lifecycle.replace(
            db_session, bounced_pdc.id, 3, ctx,
            new_cheque_number="1099", new_cheque_date=date(2025, 3, 15), new_amount=Decimal("5000.00"),
        )
        db_session.commit()

        rows = (
            db_session.query(PDCStatusHistory)
            .filter(PDCStatusHistory.pdc_id == bounced_pdc.id)
            .order_by(PDCStatusHistory.id)
            .all()
        )
        assert [(r.action, r.from_status, r.to_status) for r in rows] == [
            ("register", None, PDCStatus.DUE),
            ("deposit", PDCStatus.DUE, PDCStatus.DEPOSITED),
            ("bounce", PDCStatus.DEPOSITED, PDCStatus.BOUNCED),
            ("replace", PDCStatus.BOUNCED, PDCStatus.REPLACED),
        ]
        assert [r.revision for r in rows] == [1, 2, 3, 4]
        for previous, current in zip(rows, rows[1:]):
            assert current.from_status == previous.to_status
            next_status(current.from_status, PDCAction(current.action))

    def test_history_records_acting_user(self, db_session, make_pdc, ctx):
        pdc = make_pdc()
        row = db_session.query(PDCStatusHistory).filter(PDCStatusHistory.pdc_id == pdc.id).one()
        assert row.performed_by == ctx.user_id
        assert pdc.created_by == ctx.user_id
