"""
Replacement tests: the replace transition, chain retrieval and the
integrity checks that guard against corrupted links.
"""
from datetime import date
from decimal import Decimal

import pytest

from exceptions import ChainIntegrityError, DuplicateChequeError, InvalidTransitionError
from models import PDCStatus
from services import pdc_lifecycle
from services.replacement_chain import get_chain, verify_all_chains


def _replace(db_session, pdc, ctx, number, **overrides):
    fields = {
        "new_cheque_number": number,
        "new_cheque_date": date(2025, 3, 15),
        "new_amount": Decimal("5000.00"),
    }
    fields.update(overrides)
    old, new = pdc_lifecycle.replace(db_session, pdc.id, pdc.version, ctx, **fields)
    db_session.commit()
    return old, new


def _bounce_again(db_session, pdc, ctx):
    pdc_lifecycle.deposit(db_session, pdc.id, pdc.version, ctx, deposit_date=date(2025, 3, 15))
    pdc_lifecycle.bounce(db_session, pdc.id, pdc.version, ctx, bounce_reason="signature mismatch")
    db_session.commit()


class TestReplace:
    def test_replace_links_both_rows(self, db_session, bounced_pdc, ctx):
        old, new = _replace(db_session, bounced_pdc, ctx, "1099")

        assert old.status == PDCStatus.REPLACED
        assert new.status == PDCStatus.DUE
        assert new.original_pdc_id == old.id
        assert old.replacement_pdc_id == new.id
        assert new.tenant_id == old.tenant_id
        assert new.version == 1

    def test_bank_and_invoice_copied_from_predecessor(self, db_session, make_pdc, invoice, ctx):
        pdc = make_pdc(bank_name="Mashreq", invoice_id=invoice.id)
        pdc_lifecycle.deposit(db_session, pdc.id, 1, ctx, deposit_date=date(2025, 3, 1))
        pdc_lifecycle.bounce(db_session, pdc.id, 2, ctx, bounce_reason="stopped")
        db_session.commit()

        _, new = _replace(db_session, pdc, ctx, "1099")
        assert new.bank_name == "Mashreq"
        assert new.invoice_id == invoice.id

    def test_replace_requires_bounced(self, db_session, deposited_pdc, ctx):
        with pytest.raises(InvalidTransitionError):
            _replace(db_session, deposited_pdc, ctx, "1099")

    def test_replaced_cheque_cannot_be_replaced_again(self, db_session, bounced_pdc, ctx):
        old, _ = _replace(db_session, bounced_pdc, ctx, "1099")
        with pytest.raises(InvalidTransitionError):
            _replace(db_session, old, ctx, "1100")

    def test_new_number_must_be_unique_for_tenant(self, db_session, bounced_pdc, make_pdc, ctx):
        make_pdc(cheque_number="1099")
        with pytest.raises(DuplicateChequeError):
            _replace(db_session, bounced_pdc, ctx, "1099")
        db_session.rollback()
        db_session.refresh(bounced_pdc)
        assert bounced_pdc.status == PDCStatus.BOUNCED

    def test_unique_index_rejects_number_the_lookup_missed(self, db_session, bounced_pdc, make_pdc, ctx, monkeypatch):
        make_pdc(cheque_number="1099")
        # Another request inserted 1099 after the lookup ran
        monkeypatch.setattr(pdc_lifecycle, "is_duplicate_cheque", lambda *args: False)

        with pytest.raises(DuplicateChequeError) as exc_info:
            pdc_lifecycle.replace(
                db_session, bounced_pdc.id, bounced_pdc.version, ctx,
                new_cheque_number="1099", new_cheque_date=date(2025, 3, 15), new_amount=Decimal("5000.00"),
            )
        assert exc_info.value.cheque_number == "1099"
        db_session.rollback()
        db_session.refresh(bounced_pdc)
        assert bounced_pdc.status == PDCStatus.BOUNCED
        assert bounced_pdc.replacement_pdc_id is None

    def test_scenario_1001_to_1002(self, db_session, make_pdc, ctx):
        pdc = make_pdc(cheque_number="#1001", cheque_date=date(2025, 3, 1), amount=Decimal("5000"))
        pdc_lifecycle.deposit(db_session, pdc.id, 1, ctx, deposit_date=date(2025, 3, 1))
        assert pdc.status == PDCStatus.DEPOSITED
        pdc_lifecycle.bounce(db_session, pdc.id, 2, ctx, bounce_reason="insufficient funds")
        assert pdc.status == PDCStatus.BOUNCED
        db_session.commit()

        old, new = _replace(db_session, pdc, ctx, "#1002", new_amount=Decimal("5000"))
        assert old.status == PDCStatus.REPLACED
        assert new.status == PDCStatus.DUE
        assert new.cheque_number == "#1002"
        assert new.cheque_date == date(2025, 3, 15)
        assert new.original_pdc_id == old.id


class TestChain:
    def test_single_cheque_is_chain_of_one(self, db_session, make_pdc):
        pdc = make_pdc()
        assert [p.id for p in get_chain(db_session, pdc.id)] == [pdc.id]

    def test_chain_is_ordered_oldest_first_from_any_member(self, db_session, bounced_pdc, ctx):
        first, second = _replace(db_session, bounced_pdc, ctx, "1099")
        _bounce_again(db_session, second, ctx)
        _, third = _replace(db_session, second, ctx, "1100")

        expected = [first.id, second.id, third.id]
        for member in (first, second, third):
            assert [p.id for p in get_chain(db_session, member.id)] == expected

    def test_verify_passes_on_clean_store(self, db_session, bounced_pdc, make_pdc, ctx):
        make_pdc()
        _replace(db_session, bounced_pdc, ctx, "1099")

        verified, message, checked = verify_all_chains(db_session)
        assert verified is True
        assert checked == 1

    def test_cycle_is_detected(self, db_session, bounced_pdc, ctx):
        old, new = _replace(db_session, bounced_pdc, ctx, "1099")
        # Corrupt: point the original back at the replacement
        old.original_pdc_id = new.id
        db_session.commit()

        with pytest.raises(ChainIntegrityError):
            get_chain(db_session, new.id)
        verified, message, _ = verify_all_chains(db_session)
        assert verified is False

    def test_hop_limit(self, db_session, bounced_pdc, ctx):
        first, second = _replace(db_session, bounced_pdc, ctx, "1099")
        _bounce_again(db_session, second, ctx)
        _, third = _replace(db_session, second, ctx, "1100")

        with pytest.raises(ChainIntegrityError):
            get_chain(db_session, third.id, max_hops=1)

    def test_successor_on_non_replaced_cheque(self, db_session, make_pdc):
        a = make_pdc()
        b = make_pdc()
        a.replacement_pdc_id = b.id
        b.original_pdc_id = a.id
        db_session.commit()

        verified, message, _ = verify_all_chains(db_session)
        assert verified is False
        assert "status DUE" in message
