from decimal import Decimal
from unittest.mock import MagicMock

import pytest

import washpos.bookings.repository as repo
from washpos.errors import NotFoundError, TransientStoreError

class _Resp:
    def __init__(self, data=None):
        self.data = data

def _mk_client(data=None):
    """Client Supabase chaînable: table().select().eq().limit().execute() -> _Resp(data)."""
    client = MagicMock()
    query = MagicMock()
    client.table.return_value = query
    for name in ("select", "eq", "limit", "order", "insert", "update"):
        getattr(query, name).return_value = query
    query.execute.return_value = _Resp(data)
    return client, query

def _use(monkeypatch, client):
    monkeypatch.setattr("washpos.infra.supabase_client.get_service_supabase", lambda: client)

def _boom():
    raise Exception("network down")

def test_find_vehicle_by_plate_normalizes_plate(monkeypatch):
    client, query = _mk_client([{"id": 5, "license_plate": "51A12345", "customer_id": 3}])
    _use(monkeypatch, client)
    v = repo.find_vehicle_by_plate(" 51a 12345 ")
    assert (v.id, v.customer_id) == (5, 3)
    query.eq.assert_called_with("license_plate", "51A12345")

def test_find_vehicle_by_plate_error_returns_none(monkeypatch):
    monkeypatch.setattr("washpos.infra.supabase_client.get_service_supabase", _boom)
    assert repo.find_vehicle_by_plate("51A") is None

def test_find_customer_by_phone_detects_vip_tag(monkeypatch):
    client, _ = _mk_client([{"id": 1, "name": "A", "phone": "0901", "tags": "VIP,Regular"}])
    _use(monkeypatch, client)
    c = repo.find_customer_by_phone("0901")
    assert c.vip is True
    assert repo.find_customer_by_phone("") is None

def test_create_customer_returns_explicit_result(monkeypatch):
    client, _ = _mk_client([{"id": 77}])
    _use(monkeypatch, client)
    res = repo.create_customer("A", "0901")
    assert res.ok and res.id == 77

def test_create_customer_failure_is_not_raised(monkeypatch):
    client, query = _mk_client()
    query.execute.side_effect = Exception("duplicate key")
    _use(monkeypatch, client)
    res = repo.create_customer("A", "0901")
    assert res.ok is False
    assert "duplicate key" in res.error

def test_create_vehicle_without_row_is_failure(monkeypatch):
    client, _ = _mk_client([])
    _use(monkeypatch, client)
    assert repo.create_vehicle("51A", 1).ok is False

def test_create_booking_returns_id_and_writes_amount_as_text(monkeypatch):
    client, query = _mk_client([{"id": 9}])
    _use(monkeypatch, client)
    assert repo.create_booking(1, 2, 3, Decimal("115500"), "Payment Status: unpaid | Cart items: 2") == 9
    payload = query.insert.call_args[0][0]
    assert payload["total_price"] == "115500.00"
    assert payload["booking_state_id"] == 3
    assert payload["payment_status"] == "unpaid"

def test_create_booking_failure_raises_transient(monkeypatch):
    client, query = _mk_client()
    query.execute.side_effect = Exception("timeout")
    _use(monkeypatch, client)
    with pytest.raises(TransientStoreError):
        repo.create_booking(1, 2, 3, Decimal("1"))

def test_get_booking_not_found(monkeypatch):
    client, _ = _mk_client([])
    _use(monkeypatch, client)
    with pytest.raises(NotFoundError):
        repo.get_booking(1)

def test_get_booking_parses_row(monkeypatch):
    client, _ = _mk_client([{"id": 1, "customer_id": 2, "vehicle_id": 3, "booking_state_id": 2,
                             "total_price": 115500, "notes": "x", "payment_status": "partial"}])
    _use(monkeypatch, client)
    b = repo.get_booking(1)
    assert b.total_price == Decimal("115500")
    assert b.payment_status == "partial"

def test_lookup_state_id_exact_and_fallback(monkeypatch):
    client, _ = _mk_client([
        {"id": 10, "state_name": "draft", "sort_order": 1},
        {"id": 11, "state_name": "in_progress", "sort_order": 2},
    ])
    _use(monkeypatch, client)
    assert repo.lookup_state_id("in_progress") == 11
    assert repo.lookup_state_id("departed") == 10

def test_lookup_state_id_empty_table(monkeypatch):
    client, _ = _mk_client([])
    _use(monkeypatch, client)
    with pytest.raises(NotFoundError):
        repo.lookup_state_id("draft")

def test_update_booking_payment_failure_raises(monkeypatch):
    client, query = _mk_client()
    query.execute.side_effect = Exception("503")
    _use(monkeypatch, client)
    with pytest.raises(TransientStoreError):
        repo.update_booking_payment(1, "paid", "notes")

def test_update_booking_state_payload(monkeypatch):
    client, query = _mk_client([])
    _use(monkeypatch, client)
    repo.update_booking_state(1, 3, "n", "2025-07-02T09:35:15")
    query.update.assert_called_with({"booking_state_id": 3, "notes": "n", "updatedAt": "2025-07-02T09:35:15"})

def test_create_transaction(monkeypatch):
    client, query = _mk_client([{"id": 55}])
    _use(monkeypatch, client)
    rec = repo.create_transaction(9, Decimal("115500"), "cash", customer_id=2)
    assert rec.id == 55 and rec.booking_id == 9
    payload = query.insert.call_args[0][0]
    assert payload["status"] == "completed"
    assert payload["payment_method"] == "cash"

def test_find_transaction_by_booking(monkeypatch):
    client, query = _mk_client([{"id": 55, "booking_id": 9, "amount": "115500.00", "payment_method": "cash",
                                 "createdAt": "2025-07-02T09:35:15+00:00"}])
    _use(monkeypatch, client)
    rec = repo.find_transaction(9)
    assert rec.id == 55 and rec.amount == Decimal("115500.00")
    client.table.assert_called_with("transactions")
    query.eq.assert_called_with("booking_id", 9)

def test_find_transaction_absent_or_failing(monkeypatch):
    client, query = _mk_client([])
    _use(monkeypatch, client)
    assert repo.find_transaction(9) is None
    query.execute.side_effect = Exception("timeout")
    with pytest.raises(TransientStoreError):
        repo.find_transaction(9)
