"""
Instantané de session transportable (poste de caisse <-> écran de paiement).

Format JSON persistant:
{
  "cart": [...],
  "customerInfo": {"name", "phone", "email", "isVip", "id"},
  "carInfo": {"licensePlate", "bookingId", "status", "total"},
  "paidAmount": "0",
  "viewOnly": false,
  "fromPayment": false
}
Les montants sont des chaînes décimales. Un blob absent ou illisible donne une session vide.
"""
import json
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

from washpos.errors import ValidationError
from washpos.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    cart: List[Dict[str, Any]] = field(default_factory=list)
    customer_info: Dict[str, Any] = field(default_factory=dict)
    booking_reference: Any = None
    license_plate: str = ""
    status: Optional[str] = None
    total: Optional[Decimal] = None
    paid_amount: Decimal = ZERO
    view_only: bool = False
    from_payment: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.cart and not self.customer_info and self.booking_reference is None and not self.license_plate


def _amount_or(value: Any, default: Optional[Decimal]) -> Optional[Decimal]:
    if value is None or value == "":
        return default
    try:
        return to_decimal(value)
    except ValidationError:
        return default


def to_payload(snapshot: SessionSnapshot) -> Dict[str, Any]:
    return {
        "cart": list(snapshot.cart),
        "customerInfo": dict(snapshot.customer_info),
        "carInfo": {
            "licensePlate": snapshot.license_plate,
            "bookingId": snapshot.booking_reference,
            "status": snapshot.status,
            "total": str(snapshot.total) if snapshot.total is not None else None,
        },
        "paidAmount": str(snapshot.paid_amount),
        "viewOnly": bool(snapshot.view_only),
        "fromPayment": bool(snapshot.from_payment),
    }


def serialize_session(snapshot: SessionSnapshot) -> str:
    return json.dumps(to_payload(snapshot), default=str)


def from_payload(data: Union[Dict[str, Any], List[Any], None]) -> SessionSnapshot:
    if isinstance(data, list):
        # Ancien format: le panier seul
        return SessionSnapshot(cart=[it for it in data if isinstance(it, dict)])
    if not isinstance(data, dict):
        return SessionSnapshot()

    cart = data.get("cart") if isinstance(data.get("cart"), list) else []
    customer = data.get("customerInfo") if isinstance(data.get("customerInfo"), dict) else {}
    car = data.get("carInfo") if isinstance(data.get("carInfo"), dict) else {}
    booking_ref = car.get("bookingId", data.get("bookingId"))
    return SessionSnapshot(
        cart=[it for it in cart if isinstance(it, dict)],
        customer_info=customer,
        booking_reference=booking_ref,
        license_plate=str(car.get("licensePlate") or ""),
        status=car.get("status") or None,
        total=_amount_or(car.get("total"), None),
        paid_amount=_amount_or(data.get("paidAmount"), ZERO),
        # viewOnly n'est jamais déduit du statut ou des montants
        view_only=data.get("viewOnly") is True,
        from_payment=data.get("fromPayment") is True,
    )


def deserialize_session(blob: Union[str, bytes, None]) -> SessionSnapshot:
    """Blob absent ou mal formé -> session vide (jamais d'erreur)."""
    if not blob:
        return SessionSnapshot()
    if isinstance(blob, bytes):
        blob = blob.decode("utf-8", errors="replace")
    try:
        data = json.loads(blob)
    except (TypeError, ValueError):
        logger.warning("Session transférée illisible, ignorée")
        return SessionSnapshot()
    return from_payload(data)


def read_handoff(blob: Union[str, bytes, None]) -> Tuple[SessionSnapshot, Optional[str]]:
    """
    Lecture côté poste de caisse: retourne (instantané, blob à réécrire).
    L'indicateur fromPayment est effacé à la première lecture.
    """
    snapshot = deserialize_session(blob)
    if not blob:
        return snapshot, None
    if snapshot.from_payment:
        return snapshot, serialize_session(replace(snapshot, from_payment=False))
    return snapshot, blob.decode("utf-8") if isinstance(blob, bytes) else blob
