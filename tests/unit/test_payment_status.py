from datetime import datetime
from decimal import Decimal

import pytest

from washpos.errors import TransientStoreError
from washpos.ledger import PaymentLedger
from washpos.payment_status import (
    PaymentStatus,
    PaymentStatusProjector,
    annotate,
    clean_conflicting_markers,
    initial_annotation,
    project,
    project_from_annotation,
)

AT = datetime(2025, 7, 2, 9, 35, 15)


@pytest.mark.parametrize("notes, expected", [
    ("Payment Status: paid | Payment Method: Cash | Amount Paid: $91.30", PaymentStatus.PAID),
    ("Payment Method: Cash | Amount: $50.00\nStatus updated to in_progress at x", PaymentStatus.PAID),
    ("foo\nPayment Status: partial | Amount Paid: $40.00\nbar", PaymentStatus.PARTIAL),
    ("Payment Status: unpaid\nStatus updated to in_progress at x", PaymentStatus.UNPAID),
    ("free text only", None),
    (None, None),
])
def test_project_from_annotation(notes, expected):
    assert project_from_annotation(notes) == expected

def test_initial_annotation_format():
    assert initial_annotation(3) == "Payment Status: unpaid | Cart items: 3"

def test_annotate_replaces_unpaid_marker_in_place():
    notes = "Payment Status: unpaid\nStatus updated to in_progress at 7/2/2025"
    out = annotate(notes, PaymentStatus.PAID, method="cash", amount=Decimal("91.3"), at=AT)
    assert out.startswith("Payment Status: paid | Payment Method: Cash | Amount Paid: $91.30 | Payment Date: 2025-07-02T09:35:15")
    assert "Payment Status: unpaid" not in out
    assert out.endswith("Status updated to in_progress at 7/2/2025")

def test_annotate_partial_never_contains_method_marker():
    out = annotate(initial_annotation(2), PaymentStatus.PARTIAL, amount=Decimal("40"))
    assert "Method:" not in out
    assert project_from_annotation(out) == PaymentStatus.PARTIAL
    assert out == "Payment Status: partial | Amount Paid: $40.00 | Cart items: 2"

def test_annotate_updates_existing_partial_amount():
    first = annotate("Payment Status: unpaid", PaymentStatus.PARTIAL, amount=Decimal("40"))
    second = annotate(first, PaymentStatus.PARTIAL, amount=Decimal("70"))
    assert second == "Payment Status: partial | Amount Paid: $70.00"

def test_annotate_appends_when_no_marker_and_paid_only_once():
    out = annotate("Customer waiting", PaymentStatus.PAID, amount=Decimal("10"), at=AT)
    assert out.split("\n")[0] == "Customer waiting"
    assert annotate(out, PaymentStatus.PAID, amount=Decimal("10"), at=AT) == out
    assert out.count("Payment Method:") == 1

def test_clean_conflicting_markers_drops_stale_unpaid():
    notes = "Payment Status: unpaid | Cart items: 2\nPayment Status: paid | Payment Method: Cash | Amount Paid: $10.00"
    cleaned = clean_conflicting_markers(notes)
    assert "unpaid" not in cleaned
    assert cleaned.split("\n")[0] == "Cart items: 2"
    assert project_from_annotation(cleaned) == PaymentStatus.PAID

def test_project_prefers_structured_field_and_merges_ledger():
    ledger = PaymentLedger()
    assert project({"payment_status": "unpaid", "notes": ""}, ledger) == PaymentStatus.UNPAID
    ledger.record_payment("100", "40")
    assert project({"payment_status": "unpaid", "notes": ""}, ledger) == PaymentStatus.PARTIAL
    assert project({"payment_status": "paid", "notes": "Payment Status: unpaid"}, None) == PaymentStatus.PAID
    assert project({"notes": "Payment Method: Cash"}, None) == PaymentStatus.PAID

def test_project_without_markers_uses_ledger():
    ledger = PaymentLedger()
    ledger.record_payment("100", "100")
    assert project({"notes": "no marker"}, ledger) == PaymentStatus.PAID
    assert project(None, PaymentLedger()) == PaymentStatus.UNPAID


def _booking(store, notes="Payment Status: unpaid | Cart items: 1"):
    return store.create_booking(1, 1, 2, Decimal("100"), notes)

def test_reconcile_partial_writes_marker_without_transaction(store):
    bid = _booking(store)
    ledger = PaymentLedger()
    ledger.record_payment("100", "40")
    res = PaymentStatusProjector(store).reconcile(bid, ledger)
    assert res.status == PaymentStatus.PARTIAL and res.written
    assert store.bookings[bid]["payment_status"] == "partial"
    assert "Amount Paid: $40.00" in store.bookings[bid]["notes"]
    assert store.transactions == []

def test_reconcile_paid_creates_exactly_one_transaction(store):
    bid = _booking(store)
    ledger = PaymentLedger()
    ledger.record_payment("100", "150")
    projector = PaymentStatusProjector(store)
    first = projector.reconcile(bid, ledger, "cash")
    second = projector.reconcile(bid, ledger, "cash")
    assert first.status == PaymentStatus.PAID and first.transaction is not None
    assert first.transaction.amount == Decimal("100")
    assert second.written is False
    assert len(store.transactions) == 1
    assert store.bookings[bid]["payment_status"] == "paid"

def test_reconcile_leaves_legacy_paid_booking_untouched(store):
    bid = _booking(store, notes="Payment Status: paid | Method: Cash")
    store.bookings[bid]["payment_status"] = None
    res = PaymentStatusProjector(store).reconcile(bid, PaymentLedger())
    assert res.written is False
    assert store.payment_writes == []

def test_reconcile_store_failure_leaves_ledger_untouched(store):
    bid = _booking(store)
    ledger = PaymentLedger()
    ledger.record_payment("100", "100")
    store.fail_update_payment = True
    with pytest.raises(TransientStoreError):
        PaymentStatusProjector(store).reconcile(bid, ledger)
    assert ledger.paid == Decimal("100")
    assert len(ledger.entries) == 1
    assert store.transactions == []

def test_reconcile_completes_transaction_missing_after_interrupted_write(store):
    bid = _booking(store)
    ledger = PaymentLedger()
    ledger.record_payment("100", "100")
    projector = PaymentStatusProjector(store)
    store.fail_create_transaction = True
    with pytest.raises(TransientStoreError):
        projector.reconcile(bid, ledger, "cash")
    assert store.bookings[bid]["payment_status"] == "paid"
    assert store.transactions == []

    store.fail_create_transaction = False
    res = projector.reconcile(bid, ledger, "cash")
    assert res.status == PaymentStatus.PAID and res.written is True
    assert res.transaction.amount == Decimal("100")
    assert len(store.transactions) == 1
    assert len(store.payment_writes) == 1
    assert projector.reconcile(bid, ledger, "cash").written is False
    assert len(store.transactions) == 1
