import os

# Avant tout import de l'app: pas de Redis réel pour le rate limiting
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import itertools
from datetime import datetime, timezone
from decimal import Decimal
from typing import Generator, Dict, Any, List, Optional
from unittest.mock import MagicMock

import fakeredis
import pytest
from fastapi.testclient import TestClient

from washpos.app import app as fastapi_app
from washpos.bookings.models import Booking, CreateResult, Customer, TransactionRecord, Vehicle
from washpos.errors import NotFoundError, TransientStoreError
from washpos.handoff import HandoffStore
from washpos.pos import views as pos_views
from washpos.pos.service import StationRegistry

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


class FakeBookingStore:
    """
    BookingStore en mémoire, mêmes signatures que washpos.bookings.repository.
    Les drapeaux fail_* simulent une panne réseau sur l'écriture correspondante.
    """

    STATES = [
        {"id": 1, "state_name": "draft", "sort_order": 1},
        {"id": 2, "state_name": "in_progress", "sort_order": 2},
        {"id": 3, "state_name": "departed", "sort_order": 3},
        {"id": 4, "state_name": "completed", "sort_order": 4},
        {"id": 5, "state_name": "cancelled", "sort_order": 5},
    ]

    def __init__(self):
        self._ids = itertools.count(100)
        self.customers: Dict[int, Dict[str, Any]] = {}
        self.vehicles: Dict[int, Dict[str, Any]] = {}
        self.bookings: Dict[int, Dict[str, Any]] = {}
        self.transactions: List[TransactionRecord] = []
        self.state_writes: List[Dict[str, Any]] = []
        self.payment_writes: List[Dict[str, Any]] = []
        self.fail_create_booking = False
        self.fail_update_state = False
        self.fail_update_payment = False
        self.fail_create_customer = False
        self.fail_create_vehicle = False
        self.fail_create_transaction = False

    # lectures
    def find_vehicle_by_plate(self, plate: str) -> Optional[Vehicle]:
        key = "".join((plate or "").split()).upper()
        for row in self.vehicles.values():
            if row["license_plate"] == key:
                return Vehicle.from_row(row)
        return None

    def find_customer_by_phone(self, phone: str) -> Optional[Customer]:
        for row in self.customers.values():
            if row["phone"] == (phone or "").strip():
                return Customer.from_row(row)
        return None

    def lookup_state_id(self, state_name: str) -> int:
        for st in self.STATES:
            if st["state_name"] == state_name:
                return st["id"]
        return self.STATES[0]["id"]

    def state_name(self, booking_id: int) -> str:
        sid = self.bookings[booking_id]["booking_state_id"]
        return next(st["state_name"] for st in self.STATES if st["id"] == sid)

    def find_transaction(self, booking_id: int) -> Optional[TransactionRecord]:
        return next((t for t in self.transactions if t.booking_id == booking_id), None)

    def get_booking(self, booking_id: int) -> Booking:
        row = self.bookings.get(booking_id)
        if row is None:
            raise NotFoundError(f"Réservation {booking_id} introuvable", code="booking_not_found")
        return Booking.from_row(row)

    # écritures
    def create_customer(self, name, phone, email=None, vip=False) -> CreateResult:
        if self.fail_create_customer:
            return CreateResult(ok=False, error="customers insert failed")
        cid = next(self._ids)
        self.customers[cid] = {"id": cid, "name": name, "phone": phone, "email": email, "tags": "VIP" if vip else "Regular"}
        return CreateResult(ok=True, id=cid)

    def create_vehicle(self, license_plate, customer_id, model=None) -> CreateResult:
        if self.fail_create_vehicle:
            return CreateResult(ok=False, error="vehicles insert failed")
        vid = next(self._ids)
        self.vehicles[vid] = {
            "id": vid,
            "license_plate": "".join(license_plate.split()).upper(),
            "customer_id": customer_id,
            "model": model,
        }
        return CreateResult(ok=True, id=vid)

    def create_booking(self, customer_id, vehicle_id, state_id, total_price, notes="") -> int:
        if self.fail_create_booking:
            raise TransientStoreError("Création de la réservation impossible")
        bid = next(self._ids)
        now = datetime.now(timezone.utc).isoformat()
        self.bookings[bid] = {
            "id": bid,
            "customer_id": customer_id,
            "vehicle_id": vehicle_id,
            "booking_state_id": state_id,
            "total_price": str(total_price),
            "notes": notes,
            "payment_status": "unpaid",
            "createdAt": now,
            "updatedAt": now,
        }
        return bid

    def update_booking_state(self, booking_id, state_id, notes, updated_at=None) -> None:
        if self.fail_update_state:
            raise TransientStoreError("Mise à jour de la réservation impossible")
        self.bookings[booking_id].update({"booking_state_id": state_id, "notes": notes, "updatedAt": updated_at})
        self.state_writes.append({"booking_id": booking_id, "state_id": state_id})

    def update_booking_payment(self, booking_id, payment_status, notes, updated_at=None) -> None:
        if self.fail_update_payment:
            raise TransientStoreError("Mise à jour de la réservation impossible")
        self.bookings[booking_id].update({"payment_status": payment_status, "notes": notes, "updatedAt": updated_at})
        self.payment_writes.append({"booking_id": booking_id, "payment_status": payment_status})

    def create_transaction(self, booking_id, amount, method, customer_id=None) -> TransactionRecord:
        if self.fail_create_transaction:
            raise TransientStoreError("Enregistrement de la transaction impossible")
        record = TransactionRecord(
            booking_id=booking_id,
            amount=Decimal(amount),
            method=method,
            timestamp=datetime.now(timezone.utc),
            id=next(self._ids),
        )
        self.transactions.append(record)
        return record


@pytest.fixture
def store() -> FakeBookingStore:
    return FakeBookingStore()

@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)

@pytest.fixture
def handoff_store(redis_client) -> HandoffStore:
    return HandoffStore(redis_client, ttl_seconds=60)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def registry(store) -> StationRegistry:
    return StationRegistry(store=store)

@pytest.fixture()
def client(app, registry, handoff_store) -> Generator[TestClient, None, None]:
    app.dependency_overrides[pos_views.get_registry] = lambda: registry
    app.dependency_overrides[pos_views.get_handoff] = lambda: handoff_store
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()

# Aucun accès réseau à Supabase pendant les tests
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("washpos.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("washpos.infra.supabase_client.get_service_supabase", lambda: MagicMock())
