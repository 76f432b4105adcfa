"""
Accès aux données pour la feature 'bookings' (BookingStore Supabase).
Tables: customers, vehicles, bookings, booking_state, transactions.
- Lectures tolérantes: None/[] en cas d'erreur (loggée).
- Écriture de la réservation: échec franc (TransientStoreError), l'appelant ne change pas d'état.
- Créations auxiliaires (client, véhicule): CreateResult explicite, l'appelant décide.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import washpos.infra.supabase_client as supabase_client
from washpos.errors import NotFoundError, TransientStoreError
from washpos.utils.money import format_amount
from .models import Booking, CreateResult, Customer, TransactionRecord, Vehicle

logger = logging.getLogger(__name__)

# module washpos.bookings.repository

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def _first(res: Any) -> Optional[Dict[str, Any]]:
    data = getattr(res, "data", None) or []
    if isinstance(data, dict):
        return data
    return data[0] if data else None

def normalize_plate(plate: str) -> str:
    return "".join((plate or "").split()).upper()

def find_vehicle_by_plate(plate: str) -> Optional[Vehicle]:
    """
    Recherche un véhicule par plaque (insensible aux espaces et à la casse).
    - Retourne None si absent ou en cas d'erreur.
    """
    key = normalize_plate(plate)
    if not key:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("vehicles")
            .select("*")
            .eq("license_plate", key)
            .limit(1)
            .execute()
        )
        row = _first(res)
        return Vehicle.from_row(row) if row else None
    except Exception:
        logger.exception("bookings.repository.find_vehicle_by_plate failed plate=%s", key)
        return None

def find_customer_by_phone(phone: str) -> Optional[Customer]:
    phone = (phone or "").strip()
    if not phone:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("customers")
            .select("*")
            .eq("phone", phone)
            .limit(1)
            .execute()
        )
        row = _first(res)
        return Customer.from_row(row) if row else None
    except Exception:
        logger.exception("bookings.repository.find_customer_by_phone failed phone=%s", phone)
        return None

def create_customer(name: str, phone: str, email: Optional[str] = None, vip: bool = False) -> CreateResult:
    payload: Dict[str, Any] = {
        "name": name,
        "phone": phone,
        "email": email or None,
        "tags": "VIP" if vip else "Regular",
        "createdAt": _now_iso(),
        "updatedAt": _now_iso(),
    }
    try:
        res = supabase_client.get_service_supabase().table("customers").insert(payload).execute()
        row = _first(res)
        if not row or row.get("id") is None:
            return CreateResult(ok=False, error="Aucune ligne renvoyée")
        return CreateResult(ok=True, id=row.get("id"))
    except Exception as e:
        logger.exception("bookings.repository.create_customer failed phone=%s", phone)
        return CreateResult(ok=False, error=str(e))

def create_vehicle(license_plate: str, customer_id: int, model: Optional[str] = None) -> CreateResult:
    payload: Dict[str, Any] = {
        "license_plate": normalize_plate(license_plate),
        "customer_id": customer_id,
        "createdAt": _now_iso(),
        "updatedAt": _now_iso(),
    }
    if model:
        payload["model"] = model
    try:
        res = supabase_client.get_service_supabase().table("vehicles").insert(payload).execute()
        row = _first(res)
        if not row or row.get("id") is None:
            return CreateResult(ok=False, error="Aucune ligne renvoyée")
        return CreateResult(ok=True, id=row.get("id"))
    except Exception as e:
        logger.exception("bookings.repository.create_vehicle failed plate=%s", license_plate)
        return CreateResult(ok=False, error=str(e))

def list_states() -> List[Dict[str, Any]]:
    res = (
        supabase_client.get_service_supabase()
        .table("booking_state")
        .select("id,state_name,sort_order")
        .order("sort_order")
        .execute()
    )
    return res.data or []

def lookup_state_id(state_name: str) -> int:
    """
    Résout l'id d'un état ('draft', 'in_progress', ...).
    - Retombe sur le premier état disponible (sort_order) si le nom est inconnu.
    - NotFoundError si la table est vide; TransientStoreError si la lecture échoue.
    """
    try:
        states = list_states()
    except Exception:
        logger.exception("bookings.repository.lookup_state_id failed state=%s", state_name)
        raise TransientStoreError("Lecture des états de réservation impossible")
    for st in states:
        if (st.get("state_name") or "").lower() == (state_name or "").lower():
            return st["id"]
    if states:
        logger.warning("booking_state '%s' introuvable, repli sur '%s'", state_name, states[0].get("state_name"))
        return states[0]["id"]
    raise NotFoundError("Aucun état de réservation disponible", code="state_not_found")

def create_booking(customer_id: int, vehicle_id: int, state_id: int, total_price: Decimal, notes: str = "") -> int:
    """
    Insère une réservation et retourne son id. Échec -> TransientStoreError.
    """
    now = _now_iso()
    payload = {
        "customer_id": customer_id,
        "vehicle_id": vehicle_id,
        "booking_state_id": state_id,
        "total_price": format_amount(total_price),
        "notes": notes,
        "payment_status": "unpaid",
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        res = supabase_client.get_service_supabase().table("bookings").insert(payload).execute()
    except Exception:
        logger.exception("bookings.repository.create_booking failed customer_id=%s vehicle_id=%s", customer_id, vehicle_id)
        raise TransientStoreError("Création de la réservation impossible")
    row = _first(res)
    if not row or row.get("id") is None:
        raise TransientStoreError("Création de la réservation sans identifiant")
    return row["id"]

def get_booking(booking_id: int) -> Booking:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("bookings")
            .select("*")
            .eq("id", booking_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("bookings.repository.get_booking failed booking_id=%s", booking_id)
        raise TransientStoreError("Lecture de la réservation impossible")
    row = _first(res)
    if not row:
        raise NotFoundError(f"Réservation {booking_id} introuvable", code="booking_not_found")
    return Booking.from_row(row)

def _update_booking(booking_id: int, values: Dict[str, Any], what: str) -> None:
    try:
        (
            supabase_client.get_service_supabase()
            .table("bookings")
            .update(values)
            .eq("id", booking_id)
            .execute()
        )
    except Exception:
        logger.exception("bookings.repository.%s failed booking_id=%s", what, booking_id)
        raise TransientStoreError("Mise à jour de la réservation impossible")

def update_booking_state(booking_id: int, state_id: int, notes: str, updated_at: Optional[str] = None) -> None:
    _update_booking(
        booking_id,
        {"booking_state_id": state_id, "notes": notes, "updatedAt": updated_at or _now_iso()},
        "update_booking_state",
    )

def update_booking_payment(booking_id: int, payment_status: str, notes: str, updated_at: Optional[str] = None) -> None:
    _update_booking(
        booking_id,
        {"payment_status": payment_status, "notes": notes, "updatedAt": updated_at or _now_iso()},
        "update_booking_payment",
    )

def create_transaction(booking_id: int, amount: Decimal, method: str, customer_id: Optional[int] = None) -> TransactionRecord:
    """
    Trace comptable de l'encaissement (une seule par réservation payée).
    """
    now = datetime.now(timezone.utc)
    payload = {
        "customer_id": customer_id,
        "booking_id": booking_id,
        "amount": format_amount(amount),
        "payment_method": method,
        "status": "completed",
        "createdAt": now.isoformat(),
        "updatedAt": now.isoformat(),
    }
    try:
        res = supabase_client.get_service_supabase().table("transactions").insert(payload).execute()
    except Exception:
        logger.exception("bookings.repository.create_transaction failed booking_id=%s", booking_id)
        raise TransientStoreError("Enregistrement de la transaction impossible")
    row = _first(res) or {}
    return TransactionRecord(booking_id=booking_id, amount=amount, method=method, timestamp=now, id=row.get("id"))

def find_transaction(booking_id: int) -> Optional[TransactionRecord]:
    """
    Transaction déjà enregistrée pour la réservation, sinon None.
    Échec de lecture -> TransientStoreError (on ne crée pas de doublon à l'aveugle).
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("transactions")
            .select("*")
            .eq("booking_id", booking_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("bookings.repository.find_transaction failed booking_id=%s", booking_id)
        raise TransientStoreError("Lecture des transactions impossible")
    row = _first(res)
    return TransactionRecord.from_row(row) if row else None
