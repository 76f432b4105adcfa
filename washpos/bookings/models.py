"""
Modèles métier de la feature 'bookings' (lignes Supabase -> objets typés).
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from washpos.utils.money import ZERO, format_amount, to_decimal
from washpos.errors import ValidationError


def _is_vip(tags: Any) -> bool:
    # tags: "VIP,Regular" ou ["VIP", ...]
    if not tags:
        return False
    if isinstance(tags, (list, tuple, set)):
        return any("VIP" in str(t) for t in tags)
    return "VIP" in str(tags)


@dataclass
class Customer:
    id: Optional[int]
    name: str
    phone: str
    email: Optional[str] = None
    vip: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Customer":
        return cls(
            id=row.get("id"),
            name=row.get("name") or "",
            phone=row.get("phone") or "",
            email=row.get("email") or None,
            vip=bool(row.get("vip")) or _is_vip(row.get("tags")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "phone": self.phone, "email": self.email, "isVip": self.vip}


@dataclass
class Vehicle:
    id: Optional[int]
    license_plate: str
    customer_id: Optional[int] = None
    model: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Vehicle":
        return cls(
            id=row.get("id"),
            license_plate=row.get("license_plate") or "",
            customer_id=row.get("customer_id"),
            model=row.get("model") or None,
        )


@dataclass
class Booking:
    id: int
    customer_id: Optional[int]
    vehicle_id: Optional[int]
    booking_state_id: Optional[int]
    total_price: Decimal = ZERO
    notes: str = ""
    payment_status: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Booking":
        try:
            total = to_decimal(row.get("total_price") if row.get("total_price") is not None else 0, field="total_price")
        except ValidationError:
            total = ZERO
        return cls(
            id=row.get("id"),
            customer_id=row.get("customer_id"),
            vehicle_id=row.get("vehicle_id"),
            booking_state_id=row.get("booking_state_id"),
            total_price=total,
            notes=row.get("notes") or "",
            payment_status=row.get("payment_status") or None,
            created_at=row.get("createdAt"),
            updated_at=row.get("updatedAt"),
        )


@dataclass(frozen=True)
class TransactionRecord:
    booking_id: int
    amount: Decimal
    method: str
    timestamp: datetime
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TransactionRecord":
        try:
            amount = to_decimal(row.get("amount"), field="amount")
        except ValidationError:
            amount = ZERO
        try:
            ts = datetime.fromisoformat(str(row.get("createdAt")))
        except ValueError:
            ts = datetime.now(timezone.utc)
        return cls(
            booking_id=row.get("booking_id"),
            amount=amount,
            method=row.get("payment_method") or "",
            timestamp=ts,
            id=row.get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "amount": format_amount(self.amount),
            "method": self.method,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class CreateResult:
    """Résultat explicite d'une création auxiliaire (client, véhicule)."""
    ok: bool
    id: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class EntityRef:
    """Référence résolue; placeholder=True si l'id de repli a été utilisé."""
    id: int
    placeholder: bool = False


@dataclass
class Parties:
    customer: EntityRef
    vehicle: EntityRef
    warnings: list = field(default_factory=list)
