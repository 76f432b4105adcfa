import threading
from decimal import Decimal

import pytest

from washpos.errors import ValidationError
from washpos.ledger import PaymentLedger, LedgerRegistry


def test_overpayment_gives_change_and_caps_paid():
    ledger = PaymentLedger()
    res = ledger.record_payment("100", "150")
    assert res.accepted is True
    assert res.new_paid == Decimal("100")
    assert res.new_remaining == Decimal("0")
    assert res.change == Decimal("50")
    assert ledger.is_settled

def test_partial_payment_then_completion():
    ledger = PaymentLedger()
    first = ledger.record_payment("100", "40")
    assert (first.new_paid, first.new_remaining, first.change) == (Decimal("40"), Decimal("60"), Decimal("0"))
    second = ledger.record_payment("100", "60")
    assert second.new_remaining == 0
    assert second.change == 0

def test_split_tenders_match_single_tender():
    split = PaymentLedger()
    split.record_payment("115500", "100000")
    last = split.record_payment("115500", "20000")
    single = PaymentLedger()
    one = single.record_payment("115500", "120000")
    assert split.paid == single.paid == Decimal("115500")
    assert last.change == one.change == Decimal("4500")

@pytest.mark.parametrize("bad", ["0", "-5", "abc", None])
def test_non_positive_or_non_numeric_tender_rejected(bad):
    ledger = PaymentLedger()
    with pytest.raises(ValidationError):
        ledger.record_payment("100", bad)
    assert ledger.paid == 0
    assert ledger.entries == ()

def test_settled_ledger_rejects_tender():
    ledger = PaymentLedger()
    ledger.record_payment("100", "100")
    with pytest.raises(ValidationError) as exc:
        ledger.record_payment("100", "1")
    assert exc.value.code == "already_paid"
    assert len(ledger.entries) == 1

def test_entries_are_append_only_and_immutable():
    ledger = PaymentLedger()
    ledger.record_payment("100", "30", method="card")
    ledger.record_payment("100", "90")
    entries = ledger.entries
    assert [e.applied for e in entries] == [Decimal("30"), Decimal("70")]
    assert entries[0].method == "card"
    assert entries[1].change == Decimal("20")
    with pytest.raises(Exception):
        entries[0].amount = Decimal("1")

def test_target_is_locked_after_first_tender():
    ledger = PaymentLedger()
    ledger.record_payment("100", "10")
    with pytest.raises(ValidationError):
        ledger.record_payment("120", "10")

def test_restored_ledger_keeps_paid_amount():
    ledger = PaymentLedger(target="100", paid="40")
    assert ledger.remaining == Decimal("60")
    assert ledger.record_payment("100", "60").new_remaining == 0

def test_concurrent_tenders_never_double_count():
    ledger = PaymentLedger()
    ledger.record_payment("1000", "1")
    errors = []

    def pay():
        try:
            ledger.record_payment("1000", "10")
        except ValidationError as e:
            errors.append(e)

    threads = [threading.Thread(target=pay) for _ in range(150)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert ledger.paid == Decimal("1000")
    assert sum(e.applied for e in ledger.entries) == Decimal("1000")

def test_registry_returns_one_ledger_per_booking():
    reg = LedgerRegistry()
    a = reg.get(42, target="100")
    assert reg.get("42") is a
    other = PaymentLedger()
    assert reg.attach(42, other) is a
    assert reg.drop(42) is a
